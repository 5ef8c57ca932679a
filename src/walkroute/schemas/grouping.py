"""Pydantic request/response models for walk-group suggestions."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .routing import AppointmentModel


class GroupSuggestionRequest(BaseModel):
    appointments: List[AppointmentModel] = Field(default_factory=list)
    max_distance: Optional[float] = Field(default=None, ge=0.0, description="Miles between neighbouring pets.")
    max_group_size: Optional[int] = Field(default=None, ge=1)


class PetSummaryModel(BaseModel):
    id: str
    name: str
    address: Optional[str]
    latitude: float
    longitude: float


class GroupSuggestionModel(BaseModel):
    appointments: List[str]
    pets: List[PetSummaryModel]
    total_distance: float
    estimated_time: int
    estimated_savings: int
    group_size: int
    walk_type: Optional[str]


class GroupSuggestionResponse(BaseModel):
    total_appointments: int
    groupable_appointments: int
    suggestions: List[GroupSuggestionModel]
    count: int
