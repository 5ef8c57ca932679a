"""Serializers for routing outputs."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict

from ..routing.models import Route


def route_to_json(route: Route) -> dict:
    summary = {
        "total_distance": route.total_distance,
        "total_travel_time": route.total_travel_time,
        "total_walk_time": route.total_walk_time,
        "total_time": route.total_time,
        "optimized": route.optimized,
        "groups_count": route.groups_count,
        "solo_count": route.solo_count,
        "warnings": list(route.warnings),
        "unserved_appointment_ids": list(route.unserved_appointment_ids),
        "stops": [
            {**asdict(stop), "arrival_time": stop.arrival_time}
            for stop in route.stops
        ],
    }
    if route.comparison is not None:
        summary["comparison"] = asdict(route.comparison)
    return summary


def route_to_csv(route: Route) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "sequence",
        "stop_type",
        "appointment_id",
        "pet_name",
        "arrival_time",
        "latitude",
        "longitude",
        "distance_from_previous",
        "travel_time_from_previous",
        "elapsed_minutes",
        "overdue",
        "window_missed",
        "unit_index",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for stop in route.stops:
        writer.writerow(
            {
                "sequence": stop.sequence,
                "stop_type": stop.stop_type,
                "appointment_id": stop.appointment_id,
                "pet_name": stop.pet_name,
                "arrival_time": stop.arrival_time,
                "latitude": stop.latitude,
                "longitude": stop.longitude,
                "distance_from_previous": stop.distance_from_previous,
                "travel_time_from_previous": stop.travel_time_from_previous,
                "elapsed_minutes": "" if stop.elapsed_minutes is None else stop.elapsed_minutes,
                "overdue": stop.overdue,
                "window_missed": stop.window_missed,
                "unit_index": stop.unit_index,
            }
        )
    return buffer.getvalue()
