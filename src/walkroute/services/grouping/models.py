"""Grouping suggestion models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


@dataclass(slots=True)
class PetSummary:
    pet_id: str
    name: str
    address: Optional[str]
    latitude: float
    longitude: float


@dataclass(slots=True)
class GroupSuggestion:
    appointment_ids: List[str]
    pets: List[PetSummary]
    total_distance: float
    estimated_time: int
    estimated_savings: int
    group_size: int
    walk_type: Optional[str]
