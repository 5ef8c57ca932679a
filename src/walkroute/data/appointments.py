"""Convert request payloads into domain appointments."""

from __future__ import annotations

from typing import Iterable, Optional

from ..config import settings
from ..models.domain import Appointment, Pet
from ..schemas.routing import AppointmentModel
from ..services.time_of_day import parse_time_of_day


def _coerce_float(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def appointment_from_model(model: AppointmentModel) -> Appointment:
    pet = Pet(
        pet_id=model.pet.id or model.id,
        name=model.pet.name,
        address=model.pet.address,
        latitude=_coerce_float(model.pet.lat),
        longitude=_coerce_float(model.pet.lng),
    )
    return Appointment(
        appointment_id=model.id,
        pet=pet,
        start_time=parse_time_of_day(model.start_time),
        end_time=parse_time_of_day(model.end_time),
        duration_minutes=model.duration_minutes or settings.default_walk_duration_minutes,
        walk_type=model.walk_type,
        manual_group_id=model.manual_group_id or None,
    )


def build_appointments(models: Iterable[AppointmentModel]) -> list[Appointment]:
    """Map request appointments to domain objects, keeping input order."""

    return [appointment_from_model(model) for model in models]
