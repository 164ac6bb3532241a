"""JSON payloads shaped like the snapshot and request files the CLI reads."""

from __future__ import annotations


def snapshot_payload() -> dict[str, object]:
    """A small schedule: three technicians, one zone, a booking and some history."""
    return {
        "technicians": [
            {"id": "tech-a", "name": "Alice", "home_latitude": 39.7684, "home_longitude": -86.17},
            {"id": "tech-b", "name": "Bob", "home_latitude": 39.7684, "home_longitude": -86.11},
            {"id": "tech-c", "name": "Carla", "home_latitude": 39.7684, "home_longitude": -86.21},
            {"id": "tech-d", "name": "Dev"},
        ],
        "service_zones": [
            {
                "id": "zone-central",
                "name": "Central",
                "color": "#3366ff",
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [
                        [[-86.26, 39.66], [-86.06, 39.66], [-86.06, 39.86], [-86.26, 39.86]]
                    ],
                },
            },
            {"id": "zone-empty", "name": "Unmapped", "geometry": None},
        ],
        "skills": [
            {"technician_id": "tech-a", "service_type": "carpet_cleaning", "level": "Never"},
            {"technician_id": "tech-b", "service_type": "carpet_cleaning", "level": "preferred"},
            {"technician_id": "tech-c", "service_type": "tile_grout", "level": "expert"},
        ],
        "jobs": [
            {
                "id": "booked-1",
                "status": "scheduled",
                "latitude": 39.7700,
                "longitude": -86.1500,
                "scheduled_date": "2026-03-03",
                "scheduled_start": "08:00",
                "scheduled_end": "10:00",
                "technician_id": "tech-b",
                "technician_name": "Bob",
                "city": "Indianapolis",
                "service_names": ["Carpet Cleaning"],
            },
            {
                "id": "cancelled-1",
                "status": "Cancelled",
                "latitude": 39.7700,
                "longitude": -86.1500,
                "scheduled_date": "2026-03-03",
                "scheduled_start": "14:00",
                "scheduled_end": "16:00",
                "technician_id": "tech-c",
            },
            {
                "id": "far-future",
                "scheduled_date": "2026-06-01",
                "scheduled_start": "08:00",
                "scheduled_end": "10:00",
                "technician_id": "tech-c",
            },
            *[
                {
                    "id": f"done-{index}",
                    "status": "completed",
                    "scheduled_date": f"2026-02-0{index + 2}",
                    "scheduled_start": "09:00",
                    "scheduled_end": end,
                    "technician_id": "tech-b",
                    "service_names": ["Carpet Cleaning"],
                }
                for index, end in enumerate(("10:00", "10:30", "11:00"))
            ],
        ],
    }


def request_payload() -> dict[str, object]:
    return {
        "latitude": 39.7684,
        "longitude": -86.1581,
        "service_names": ["Carpet Cleaning"],
        "duration_minutes": 90,
        "preferred_days": ["Tuesday", "someday"],
        "preferred_time_window": {"start": "08:00", "end": "12:00"},
        "address": "100 Monument Cir, Indianapolis, IN",
    }
