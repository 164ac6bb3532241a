"""Per-technician service skill constraints.

Usage example:
    from dispatch_ranker.domain.skills import SkillConstraintModel
    from dispatch_ranker.types import SkillRecord

    model = SkillConstraintModel([SkillRecord("t1", "carpet_cleaning", "never")])
    assert model.is_hard_excluded("t1", "Carpet Cleaning")
    assert model.level_for("t2", "carpet_cleaning") == "standard"

`never` is absolute. `preferred` > `standard` > `avoid` only breaks ties between
technicians that are otherwise comparable.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from ..types import SkillLevel, SkillMatch, SkillRecord

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Lower sorts first.
_PREFERENCE_ORDER: dict[SkillLevel, int] = {
    "preferred": 0,
    "standard": 1,
    "avoid": 2,
    "never": 3,
}
# Higher wins when combining levels across several requested services.
_STRICTNESS: dict[SkillLevel, int] = {
    "standard": 0,
    "preferred": 1,
    "avoid": 2,
    "never": 3,
}


def normalise_service_type(name: str) -> str:
    """Map display names and stored keys onto one key (`Tile & Grout` -> `tile_grout`)."""
    return _NON_ALNUM_RE.sub("_", name.strip().lower()).strip("_")


@dataclass(frozen=True)
class SkillEntry:
    service_type: str
    note: str | None = None

    @property
    def label(self) -> str:
        """Service type with its note, e.g. `upholstery (certified)`."""
        return f"{self.service_type} ({self.note})" if self.note else self.service_type


@dataclass(frozen=True)
class SkillSummary:
    preferred: tuple[SkillEntry, ...] = ()
    avoid: tuple[SkillEntry, ...] = ()
    never: tuple[SkillEntry, ...] = ()

    @property
    def has_preferences(self) -> bool:
        return bool(self.preferred or self.avoid or self.never)

    def as_groups(self) -> dict[str, list[str]]:
        """Entry labels grouped by level; empty groups are omitted."""
        groups = {
            "preferred": [entry.label for entry in self.preferred],
            "avoid": [entry.label for entry in self.avoid],
            "never": [entry.label for entry in self.never],
        }
        return {level: names for level, names in groups.items() if names}


class SkillConstraintModel:
    """Lookup over skill records keyed by (technician, normalised service type)."""

    def __init__(self, records: Iterable[SkillRecord]) -> None:
        self._levels: dict[tuple[str, str], SkillRecord] = {}
        for record in records:
            key = (record.technician_id, normalise_service_type(record.service_type))
            self._levels[key] = record

    def level_for(self, technician_id: str, service_type: str) -> SkillLevel:
        record = self._levels.get((technician_id, normalise_service_type(service_type)))
        return record.level if record else "standard"

    def is_hard_excluded(self, technician_id: str, service_type: str) -> bool:
        return self.level_for(technician_id, service_type) == "never"

    def combined_level(self, technician_id: str, service_types: Iterable[str]) -> SkillLevel:
        """Strictest level across several services (never > avoid > preferred > standard)."""
        combined: SkillLevel = "standard"
        for service_type in service_types:
            level = self.level_for(technician_id, service_type)
            if _STRICTNESS[level] > _STRICTNESS[combined]:
                combined = level
        return combined

    def is_excluded_for_any(self, technician_id: str, service_types: Iterable[str]) -> bool:
        return self.combined_level(technician_id, service_types) == "never"

    def skill_match(self, technician_id: str, service_types: Iterable[str]) -> SkillMatch:
        """Combined level for reporting; callers must have removed `never` already."""
        level = self.combined_level(technician_id, service_types)
        return "avoid" if level == "never" else level

    def summarize(self, technician_id: str) -> SkillSummary:
        grouped: dict[SkillLevel, list[SkillEntry]] = {"preferred": [], "avoid": [], "never": []}
        for (tech_id, service_type), record in sorted(self._levels.items()):
            if tech_id != technician_id or record.level not in grouped:
                continue
            grouped[record.level].append(SkillEntry(service_type=service_type, note=record.note))
        return SkillSummary(
            preferred=tuple(grouped["preferred"]),
            avoid=tuple(grouped["avoid"]),
            never=tuple(grouped["never"]),
        )


def preference_rank(level: SkillLevel) -> int:
    return _PREFERENCE_ORDER[level]


def apply_skill_tiebreak[ItemT](
    items: Sequence[ItemT],
    *,
    distance_of: Callable[[ItemT], float],
    level_of: Callable[[ItemT], SkillLevel],
    tolerance_miles: float,
) -> list[ItemT]:
    """Reorder distance-sorted items so better skill wins among comparable distances.

    A group starts at the closest remaining item and holds every following item within
    `tolerance_miles` of it, so closely spaced items cannot chain into one wide group;
    each group is reordered by skill preference, keeping distance order inside a level.
    Items further apart than the tolerance never swap.
    """
    result: list[ItemT] = []
    group: list[ItemT] = []
    for item in items:
        if group and distance_of(item) - distance_of(group[0]) > tolerance_miles:
            result.extend(sorted(group, key=lambda entry: preference_rank(level_of(entry))))
            group = []
        group.append(item)
    result.extend(sorted(group, key=lambda entry: preference_rank(level_of(entry))))
    return result
