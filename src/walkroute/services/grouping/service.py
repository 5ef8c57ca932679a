"""Proximity and time-window based walk grouping."""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import settings
from ...data.appointments import build_appointments
from ...models.domain import Appointment
from ...schemas.grouping import (
    GroupSuggestionModel,
    GroupSuggestionRequest,
    GroupSuggestionResponse,
    PetSummaryModel,
)
from ..geospatial import distance_between, travel_minutes
from .models import GroupSuggestion, PetSummary

logger = logging.getLogger(__name__)


def groupable_walk_type(appointment: Appointment, solo_types: Sequence[str] | None = None) -> bool:
    """Solo and training walks always go out alone."""
    solo_types = settings.solo_walk_types if solo_types is None else solo_types
    return appointment.normalized_walk_type not in solo_types


def walk_type_compatible(first: Appointment, second: Appointment, solo_types: Sequence[str] | None = None) -> bool:
    return groupable_walk_type(first, solo_types) and groupable_walk_type(second, solo_types)


def _walk_window(appointment: Appointment, default_duration: int) -> tuple[float, float] | None:
    if appointment.start_time is None:
        return None
    start = appointment.start_time.minutes
    duration = appointment.duration_minutes or default_duration
    return start, start + duration


def time_compatible(
    first: Appointment,
    second: Appointment,
    buffer_minutes: float | None = None,
    default_duration: int | None = None,
) -> bool:
    """True when the two walk windows overlap or sit within ``buffer_minutes`` of each other.

    A walk window runs from the appointment start time for the walk duration.
    """
    buffer_minutes = settings.grouping_buffer_minutes if buffer_minutes is None else buffer_minutes
    default_duration = settings.default_walk_duration_minutes if default_duration is None else default_duration

    window1 = _walk_window(first, default_duration)
    window2 = _walk_window(second, default_duration)
    if window1 is None or window2 is None:
        return False
    start1, end1 = window1
    start2, end2 = window2
    return start1 <= end2 + buffer_minutes and start2 <= end1 + buffer_minutes


def can_join_group(
    group: Sequence[Appointment],
    candidate: Appointment,
    *,
    max_distance: float,
    buffer_minutes: float | None = None,
    solo_types: Sequence[str] | None = None,
    default_duration: int | None = None,
) -> bool:
    """Check a candidate against an existing group.

    The candidate must be walk-type compatible with the whole group and be both
    close enough to and time compatible with at least one current member.
    """
    if not all(walk_type_compatible(member, candidate, solo_types) for member in group):
        return False
    for member in group:
        distance = distance_between(
            member.pet.latitude, member.pet.longitude, candidate.pet.latitude, candidate.pet.longitude
        )
        if distance is None or distance > max_distance:
            continue
        if time_compatible(member, candidate, buffer_minutes, default_duration):
            return True
    return False


def cluster_appointments(
    appointments: Sequence[Appointment],
    *,
    max_distance: float | None = None,
    max_group_size: int | None = None,
    buffer_minutes: float | None = None,
    solo_types: Sequence[str] | None = None,
    default_duration: int | None = None,
) -> list[list[Appointment]]:
    """Greedy single-pass clustering in input order.

    Every appointment ends up in exactly one cluster; clusters of one are kept.
    """
    max_distance = settings.grouping_max_distance_miles if max_distance is None else max_distance
    max_group_size = settings.max_group_size if max_group_size is None else max_group_size
    if max_group_size < 1:
        raise ValueError("max_group_size must be >= 1")

    clusters: list[list[Appointment]] = []
    processed: set[int] = set()
    for index, seed in enumerate(appointments):
        if index in processed:
            continue
        processed.add(index)
        group = [seed]
        for candidate_index in range(index + 1, len(appointments)):
            if len(group) >= max_group_size:
                break
            if candidate_index in processed:
                continue
            candidate = appointments[candidate_index]
            if can_join_group(
                group,
                candidate,
                max_distance=max_distance,
                buffer_minutes=buffer_minutes,
                solo_types=solo_types,
                default_duration=default_duration,
            ):
                group.append(candidate)
                processed.add(candidate_index)
        clusters.append(group)
    return clusters


def group_distance(appointments: Sequence[Appointment]) -> float:
    """Sum of consecutive pet-to-pet distances in the given order."""
    total = 0.0
    for first, second in zip(appointments, appointments[1:]):
        distance = distance_between(first.pet.latitude, first.pet.longitude, second.pet.latitude, second.pet.longitude)
        if distance is not None:
            total += distance
    return total


def _format_suggestion(group: Sequence[Appointment], default_duration: int, walking_speed_mph: float) -> GroupSuggestion:
    total_distance = group_distance(group)
    total_duration = sum(appointment.duration_minutes or default_duration for appointment in group)
    travel_time = round(travel_minutes(total_distance, walking_speed_mph))
    estimated_time = total_duration + travel_time
    individual_time = sum(appointment.duration_minutes or default_duration for appointment in group)

    return GroupSuggestion(
        appointment_ids=[appointment.appointment_id for appointment in group],
        pets=[
            PetSummary(
                pet_id=appointment.pet.pet_id,
                name=appointment.pet.name,
                address=appointment.pet.address,
                latitude=appointment.pet.latitude,
                longitude=appointment.pet.longitude,
            )
            for appointment in group
        ],
        total_distance=round(total_distance, 2),
        estimated_time=estimated_time,
        estimated_savings=individual_time - estimated_time,
        group_size=len(group),
        walk_type=group[0].walk_type,
    )


def suggest_groups(
    appointments: Sequence[Appointment],
    max_distance: float | None = None,
    max_group_size: int | None = None,
    buffer_minutes: float | None = None,
    default_duration: int | None = None,
    walking_speed_mph: float | None = None,
) -> list[GroupSuggestion]:
    """Advisory grouping of geocoded, groupable appointments, best savings first."""

    groupable = [
        appointment
        for appointment in appointments
        if appointment.pet.geocoded and groupable_walk_type(appointment)
    ]
    if not groupable:
        return []

    clusters = cluster_appointments(
        groupable,
        max_distance=max_distance,
        max_group_size=max_group_size,
        buffer_minutes=buffer_minutes,
        default_duration=default_duration,
    )
    logger.info("Grouping produced %d suggestions from %d groupable appointments", len(clusters), len(groupable))

    default_duration = settings.default_walk_duration_minutes if default_duration is None else default_duration
    walking_speed_mph = settings.walking_speed_mph if walking_speed_mph is None else walking_speed_mph
    suggestions = [_format_suggestion(cluster, default_duration, walking_speed_mph) for cluster in clusters]
    return sorted(suggestions, key=lambda suggestion: -suggestion.estimated_savings)


def process_suggestion_request(payload: GroupSuggestionRequest) -> GroupSuggestionResponse:
    appointments = build_appointments(payload.appointments)
    suggestions = suggest_groups(
        appointments,
        max_distance=payload.max_distance,
        max_group_size=payload.max_group_size,
    )
    return GroupSuggestionResponse(
        total_appointments=len(appointments),
        groupable_appointments=sum(1 for appointment in appointments if groupable_walk_type(appointment)),
        suggestions=[
            GroupSuggestionModel(
                appointments=suggestion.appointment_ids,
                pets=[
                    PetSummaryModel(
                        id=pet.pet_id,
                        name=pet.name,
                        address=pet.address,
                        latitude=pet.latitude,
                        longitude=pet.longitude,
                    )
                    for pet in suggestion.pets
                ],
                total_distance=suggestion.total_distance,
                estimated_time=suggestion.estimated_time,
                estimated_savings=suggestion.estimated_savings,
                group_size=suggestion.group_size,
                walk_type=suggestion.walk_type,
            )
            for suggestion in suggestions
        ],
        count=len(suggestions),
    )
