"""Pure domain logic: geometry, zones, durations, schedule views, skills, rules."""

from .durations import DurationEstimate, InsufficientDurationData, estimate_duration
from .geo import distance_miles, point_in_polygon, polygon_bounds, polygon_centroid
from .schedule_context import ScheduleContext, build_schedule_context
from .skills import SkillConstraintModel, normalise_service_type
from .zones import match_zone

__all__ = [
    "DurationEstimate",
    "InsufficientDurationData",
    "ScheduleContext",
    "SkillConstraintModel",
    "build_schedule_context",
    "distance_miles",
    "estimate_duration",
    "match_zone",
    "normalise_service_type",
    "point_in_polygon",
    "polygon_bounds",
    "polygon_centroid",
]
