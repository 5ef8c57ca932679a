"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ...config import settings
from ...models.domain import Appointment, TimeOfDay
from .trace import PlanTrace

UNIT_GROUP = "group"
UNIT_SOLO = "solo"

STOP_PICKUP = "pickup"
STOP_DROPOFF = "dropoff"
STOP_SOLO = "solo"


@dataclass(slots=True)
class PlannerConfig:
    """Tunable constants of the planner. Only the relative size of the cost weights matters."""

    walking_speed_mph: float = settings.walking_speed_mph
    default_walk_duration_minutes: int = settings.default_walk_duration_minutes
    replan_from_current_time: bool = settings.replan_from_current_time
    pack_capacity: int = settings.pack_capacity
    pickup_service_minutes: float = settings.pickup_service_minutes
    dropoff_service_minutes: float = settings.dropoff_service_minutes
    duration_tolerance_minutes: float = settings.duration_tolerance_minutes
    pickup_candidate_limit: int = settings.pickup_candidate_limit
    duration_deviation_weight: float = settings.duration_deviation_weight
    pack_relief_bonus: float = settings.pack_relief_bonus
    chaining_bonus: float = settings.chaining_bonus
    chaining_radius_miles: float = settings.chaining_radius_miles
    urgency_horizon_minutes: float = settings.urgency_horizon_minutes
    overdue_penalty: float = settings.overdue_penalty
    near_overdue_penalty: float = settings.near_overdue_penalty
    duration_compatibility_weight: float = settings.duration_compatibility_weight
    grouping_max_distance_miles: float = settings.grouping_max_distance_miles
    grouping_buffer_minutes: int = settings.grouping_buffer_minutes
    max_group_size: int = settings.max_group_size
    solo_walk_types: tuple[str, ...] = settings.solo_walk_types


@dataclass(slots=True)
class WalkUnit:
    kind: str
    appointments: List[Appointment]
    earliest_pickup: Optional[TimeOfDay]
    latest_pickup: Optional[TimeOfDay]
    label: Optional[str] = None

    @property
    def is_group(self) -> bool:
        return self.kind == UNIT_GROUP


@dataclass(slots=True)
class RouteStop:
    id: str
    appointment_id: str
    pet_id: str
    pet_name: str
    address: Optional[str]
    start_time: Optional[str]
    end_time: Optional[str]
    duration: int
    walk_type: Optional[str]
    walk_group_id: Optional[str]
    stop_type: str
    latitude: float
    longitude: float
    unit_index: int
    arrival_minute: float
    sequence: int = 0
    distance_from_previous: float = 0.0
    travel_time_from_previous: int = 0
    elapsed_minutes: Optional[float] = None
    overdue: bool = False
    window_missed: bool = False

    @property
    def coordinates(self) -> dict[str, float]:
        return {"lat": self.latitude, "lng": self.longitude}

    @property
    def arrival_time(self) -> str:
        return TimeOfDay(self.arrival_minute).format()


@dataclass(slots=True)
class RouteComparison:
    original_distance: float
    original_time: int
    distance_saved: float
    time_saved: int
    improvement_percent: float


@dataclass(slots=True)
class Route:
    stops: List[RouteStop]
    total_distance: float
    total_travel_time: int
    total_walk_time: int
    total_time: int
    optimized: bool
    groups_count: int = 0
    solo_count: int = 0
    total_appointments: int = 0
    geocoded_appointments: int = 0
    message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    unserved_appointment_ids: List[str] = field(default_factory=list)
    manually_ordered: bool = False
    comparison: Optional[RouteComparison] = None
    trace: PlanTrace = field(default_factory=PlanTrace)

    @property
    def path_coordinates(self) -> list[dict[str, float]]:
        return [stop.coordinates for stop in self.stops]
