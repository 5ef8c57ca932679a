"""Routing request/response schemas."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..services.time_of_day import parse_time_of_day


def _as_identifier(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


class CoordinatesModel(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class PetModel(BaseModel):
    id: Optional[str] = None
    name: str = ""
    address: Optional[str] = None
    lat: Optional[float] = Field(default=None, description="Latitude; appointments without it are not planned.")
    lng: Optional[float] = Field(default=None, description="Longitude; appointments without it are not planned.")

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _as_identifier(value)


class AppointmentModel(BaseModel):
    id: str
    pet: PetModel
    start_time: Optional[str] = Field(default=None, description="Pickup window start (e.g. '09:30').")
    end_time: Optional[str] = Field(default=None, description="Pickup window end (e.g. '10:00').")
    duration_minutes: Optional[int] = Field(default=None, ge=1, description="Target walk duration.")
    walk_type: Optional[str] = Field(default=None, description="solo, group, training or other.")
    manual_group_id: Optional[str] = Field(default=None, description="Walker-assigned pack identifier.")

    @field_validator("id", "manual_group_id", mode="before")
    @classmethod
    def normalize_ids(cls, value: Any) -> Any:
        return _as_identifier(value)


class PlannerWeights(BaseModel):
    """Per-request overrides of the planner's tunable constants."""

    pack_capacity: Optional[int] = Field(None, ge=1)
    pickup_service_minutes: Optional[float] = Field(None, ge=0)
    dropoff_service_minutes: Optional[float] = Field(None, ge=0)
    duration_tolerance_minutes: Optional[float] = Field(None, ge=0)
    pickup_candidate_limit: Optional[int] = Field(None, ge=1)
    duration_deviation_weight: Optional[float] = Field(None, ge=0)
    pack_relief_bonus: Optional[float] = Field(None, ge=0)
    chaining_bonus: Optional[float] = Field(None, ge=0)
    chaining_radius_miles: Optional[float] = Field(None, ge=0)
    urgency_horizon_minutes: Optional[float] = Field(None, ge=0)
    overdue_penalty: Optional[float] = Field(None, ge=0)
    near_overdue_penalty: Optional[float] = Field(None, ge=0)
    duration_compatibility_weight: Optional[float] = Field(None, ge=0)
    grouping_max_distance_miles: Optional[float] = Field(None, ge=0)
    grouping_buffer_minutes: Optional[int] = Field(None, ge=0)
    max_group_size: Optional[int] = Field(None, ge=1)


class RouteRequest(BaseModel):
    appointments: List[AppointmentModel] = Field(default_factory=list)
    start_location: Optional[CoordinatesModel] = None
    compare: bool = Field(default=False, description="Also report savings against the input order.")
    current_time: Optional[str] = Field(
        default=None,
        description="Clock time to re-plan from (HH:MM). Defaults to the server clock.",
    )
    weights: Optional[PlannerWeights] = None
    include_trace: bool = Field(default=False, description="Return the planner decision trace.")
    persist: bool = Field(default=False, description="Write the planned route to the output directory.")
    run_label: Optional[str] = Field(default=None, description="Friendly name for persisted outputs.")

    @field_validator("current_time")
    @classmethod
    def validate_current_time(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and parse_time_of_day(value) is None:
            raise ValueError("current_time must be a clock time such as '09:30'")
        return value


class ReorderRequest(BaseModel):
    appointments: List[AppointmentModel]
    order: List[str] = Field(..., min_length=1, description="Appointment ids in the walker's chosen order.")

    @field_validator("order", mode="before")
    @classmethod
    def normalize_order(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_as_identifier(item) for item in value]
        return value


class RouteStopModel(BaseModel):
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
    coordinates: CoordinatesModel
    sequence: int
    arrival_time: str
    arrival_minute: float
    distance_from_previous: float
    travel_time_from_previous: int
    unit_index: int
    elapsed_minutes: Optional[float] = None
    overdue: bool = False
    window_missed: bool = Field(default=False, description="Picked up or started after the pickup window closed.")


class ComparisonModel(BaseModel):
    original_distance: float
    original_time: int
    distance_saved: float
    time_saved: int
    improvement_percent: float


class RouteResponse(BaseModel):
    route: List[RouteStopModel]
    total_distance: float
    total_travel_time: int
    total_walk_time: int
    total_time: int
    path_coordinates: List[CoordinatesModel]
    optimized: bool
    groups_count: int = 0
    solo_count: int = 0
    total_appointments: int = 0
    geocoded_appointments: int = 0
    message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    unserved_appointment_ids: List[str] = Field(default_factory=list)
    manually_ordered: bool = False
    comparison: Optional[ComparisonModel] = None
    trace: Optional[List[dict]] = None
