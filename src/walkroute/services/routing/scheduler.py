"""Walk-unit categorization, ordering and itinerary assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ...models.domain import Appointment, TimeOfDay
from ..geospatial import distance_between, travel_minutes
from ..grouping.service import cluster_appointments, groupable_walk_type
from . import simulation
from .models import (
    STOP_SOLO,
    UNIT_GROUP,
    UNIT_SOLO,
    PlannerConfig,
    RouteStop,
    WalkUnit,
)
from .trace import PlanTrace

logger = logging.getLogger(__name__)

Location = tuple[float, float]


@dataclass(slots=True)
class Categorized:
    groups: list[tuple[Optional[str], list[Appointment]]]
    solo_walks: list[Appointment]


@dataclass(slots=True)
class Itinerary:
    stops: list[RouteStop]
    units: list[WalkUnit]
    warnings: list[str] = field(default_factory=list)
    unserved: list[str] = field(default_factory=list)


def is_solo_walk(appointment: Appointment, config: PlannerConfig) -> bool:
    return not groupable_walk_type(appointment, config.solo_walk_types)


def auto_group_appointments(
    appointments: Sequence[Appointment], config: PlannerConfig, trace: PlanTrace
) -> list[list[Appointment]]:
    """Cluster ungrouped appointments; any failure falls back to one group per appointment."""

    if not appointments:
        return []
    try:
        return cluster_appointments(
            appointments,
            max_distance=config.grouping_max_distance_miles,
            max_group_size=config.max_group_size,
            buffer_minutes=config.grouping_buffer_minutes,
            solo_types=config.solo_walk_types,
            default_duration=config.default_walk_duration_minutes,
        )
    except Exception as exc:
        logger.warning("Auto-grouping failed (%s); planning each appointment on its own", exc)
        trace.record(
            "grouping_fallback",
            f"Auto-grouping failed: {exc}",
            appointment_ids=[appt.appointment_id for appt in appointments],
        )
        return [[appointment] for appointment in appointments]


def categorize_appointments(
    appointments: Sequence[Appointment], config: PlannerConfig, trace: PlanTrace
) -> Categorized:
    manual_groups: dict[str, list[Appointment]] = {}
    solo_walks: list[Appointment] = []
    candidates: list[Appointment] = []

    for appointment in appointments:
        if is_solo_walk(appointment, config):
            # a solo or training booking never joins a pack, even when tagged with a group
            solo_walks.append(appointment)
        elif appointment.manual_group_id:
            manual_groups.setdefault(appointment.manual_group_id, []).append(appointment)
        else:
            candidates.append(appointment)

    auto_groups = auto_group_appointments(candidates, config, trace)

    trace.record(
        "categorize",
        f"{len(manual_groups)} manual groups, {len(auto_groups)} auto-groups, {len(solo_walks)} solo walks",
        manual_groups=len(manual_groups),
        auto_groups=len(auto_groups),
        solo_walks=len(solo_walks),
        candidates=len(candidates),
    )
    for members in auto_groups:
        trace.record(
            "auto_group",
            "Auto-grouped " + ", ".join(appt.pet.name for appt in members),
            appointment_ids=[appt.appointment_id for appt in members],
        )

    groups: list[tuple[Optional[str], list[Appointment]]] = [
        (group_id, members) for group_id, members in manual_groups.items()
    ]
    groups.extend((None, members) for members in auto_groups)
    return Categorized(groups=groups, solo_walks=solo_walks)


def build_walk_units(categorized: Categorized) -> list[WalkUnit]:
    units: list[WalkUnit] = []
    for group_id, members in categorized.groups:
        units.append(
            WalkUnit(
                kind=UNIT_GROUP,
                appointments=list(members),
                earliest_pickup=min(appt.start_time for appt in members),
                latest_pickup=max(appt.end_time for appt in members),
                label=group_id,
            )
        )
    for appointment in categorized.solo_walks:
        units.append(
            WalkUnit(
                kind=UNIT_SOLO,
                appointments=[appointment],
                earliest_pickup=appointment.start_time,
                latest_pickup=appointment.end_time,
            )
        )
    return units


def planning_start(units: Sequence[WalkUnit], now: Optional[TimeOfDay], fallback: TimeOfDay) -> TimeOfDay:
    """Earliest window of the day, or ``now`` when re-planning inside the day's windows."""

    starts = [unit.earliest_pickup for unit in units if unit.earliest_pickup is not None]
    ends = [unit.latest_pickup for unit in units if unit.latest_pickup is not None]
    if not starts:
        return now or fallback
    day_start = min(starts)
    day_end = max(ends) if ends else day_start
    if now is not None and day_start <= now <= day_end:
        return now
    return day_start


def _unit_service_minutes(unit: WalkUnit, config: PlannerConfig) -> float:
    first_duration = unit.appointments[0].duration_minutes or config.default_walk_duration_minutes
    if not unit.is_group:
        return first_duration
    count = len(unit.appointments)
    return count * config.pickup_service_minutes + first_duration + count * config.dropoff_service_minutes


def _travel_to(location: Optional[Location], appointment: Appointment, config: PlannerConfig) -> float:
    if location is None:
        return 0.0
    distance = distance_between(location[0], location[1], appointment.pet.latitude, appointment.pet.longitude)
    return travel_minutes(distance or 0.0, config.walking_speed_mph)


def order_walk_units(
    units: Sequence[WalkUnit],
    *,
    start_location: Optional[Location],
    start_time: TimeOfDay,
    config: PlannerConfig,
    trace: PlanTrace,
) -> tuple[list[WalkUnit], list[str]]:
    """Chronological order, checked by a forward pass of the virtual clock.

    Units that can only be reached after their latest pickup are kept in place
    and reported as conflicts.
    """
    ordered = sorted(
        units,
        key=lambda unit: unit.earliest_pickup.minutes if unit.earliest_pickup is not None else start_time.minutes,
    )
    warnings: list[str] = []
    clock = start_time.minutes
    location = start_location

    for index, unit in enumerate(ordered):
        clock += _travel_to(location, unit.appointments[0], config)
        if unit.earliest_pickup is not None and clock < unit.earliest_pickup.minutes:
            clock = unit.earliest_pickup.minutes
        ids = [appt.appointment_id for appt in unit.appointments]
        if unit.latest_pickup is not None and clock > unit.latest_pickup.minutes:
            message = (
                f"Cannot make pickup within window for unit {ids}: "
                f"arrival {TimeOfDay(clock).format()} after {unit.latest_pickup.format()}"
            )
            logger.warning(message)
            warnings.append(message)
            trace.record("conflict", message, minute=clock, appointment_ids=ids)
        trace.record(
            "unit_order",
            f"Unit {index + 1} ({unit.kind}) starts around {TimeOfDay(clock).format()}",
            minute=clock,
            appointment_ids=ids,
            label=unit.label,
        )
        clock += _unit_service_minutes(unit, config)
        last = unit.appointments[-1].pet
        location = (last.latitude, last.longitude)

    return ordered, warnings


def make_stop(
    appointment: Appointment,
    stop_type: str,
    *,
    unit_index: int,
    arrival: float,
    elapsed: Optional[float] = None,
    overdue: bool = False,
    window_missed: bool = False,
) -> RouteStop:
    return RouteStop(
        id=f"{appointment.appointment_id}_{stop_type}",
        appointment_id=appointment.appointment_id,
        pet_id=appointment.pet.pet_id,
        pet_name=appointment.pet.name,
        address=appointment.pet.address,
        start_time=appointment.start_time.format() if appointment.start_time else None,
        end_time=appointment.end_time.format() if appointment.end_time else None,
        duration=appointment.duration_minutes,
        walk_type=appointment.walk_type,
        walk_group_id=appointment.manual_group_id,
        stop_type=stop_type,
        latitude=appointment.pet.latitude,
        longitude=appointment.pet.longitude,
        unit_index=unit_index,
        arrival_minute=round(arrival, 2),
        elapsed_minutes=round(elapsed, 2) if elapsed is not None else None,
        overdue=overdue,
        window_missed=window_missed,
    )


def _record_decisions(trace: PlanTrace, unit_index: int, decisions: Sequence[simulation.Decision]) -> None:
    for decision in decisions:
        if decision.kind == simulation.DECISION_WAIT:
            trace.record("wait", f"Unit {unit_index}: nothing to do, advancing clock", minute=decision.clock)
            continue
        if decision.kind in (simulation.DECISION_STALLED, simulation.DECISION_DONE):
            trace.record(decision.kind, f"Unit {unit_index}: simulation ended", minute=decision.clock)
            continue
        trace.record(
            decision.kind,
            f"Unit {unit_index}: {decision.kind} {decision.appointment_id}",
            minute=decision.clock,
            appointment_ids=[decision.appointment_id],
            cost=decision.cost,
            candidates=[
                {"kind": candidate.kind, "appointment_id": candidate.appointment_id, "cost": round(candidate.cost, 2)}
                for candidate in decision.candidates
            ],
        )


def build_itinerary(
    units: Sequence[WalkUnit],
    *,
    start_location: Optional[Location],
    start_time: TimeOfDay,
    config: PlannerConfig,
    trace: PlanTrace,
) -> Itinerary:
    """Run every unit in order, carrying the real clock and position between them."""

    stops: list[RouteStop] = []
    warnings: list[str] = []
    unserved: list[str] = []
    clock = start_time.minutes
    location = start_location

    for unit_index, unit in enumerate(units, start=1):
        if unit.is_group:
            result = simulation.simulate_group(unit.appointments, clock=clock, location=location, config=config)
            _record_decisions(trace, unit_index, result.decisions)
            by_id = {appt.appointment_id: appt for appt in unit.appointments}
            for simulated in result.stops:
                stops.append(
                    make_stop(
                        by_id[simulated.appointment_id],
                        simulated.stop_type,
                        unit_index=unit_index,
                        arrival=simulated.arrival,
                        elapsed=simulated.elapsed_minutes,
                        overdue=simulated.overdue,
                        window_missed=simulated.window_missed,
                    )
                )
            late = [simulated.appointment_id for simulated in result.stops if simulated.window_missed]
            if late:
                message = f"Picked up {late} after their pickup windows closed"
                logger.warning(message)
                warnings.append(message)
            if result.unserved:
                message = f"Could not pick up {result.unserved} within their windows"
                logger.warning(message)
                warnings.append(message)
                trace.record("unserved", message, minute=result.final_state.clock, appointment_ids=result.unserved)
                unserved.extend(result.unserved)
            clock = result.final_state.clock
            location = result.final_state.location
            continue

        appointment = unit.appointments[0]
        clock += _travel_to(location, appointment, config)
        if appointment.start_time is not None and clock < appointment.start_time.minutes:
            clock = appointment.start_time.minutes
        window_missed = appointment.end_time is not None and clock > appointment.end_time.minutes + simulation.EPSILON
        stops.append(make_stop(appointment, STOP_SOLO, unit_index=unit_index, arrival=clock, window_missed=window_missed))
        trace.record(
            "solo",
            f"Unit {unit_index}: solo walk {appointment.appointment_id}",
            minute=clock,
            appointment_ids=[appointment.appointment_id],
        )
        clock += appointment.duration_minutes or config.default_walk_duration_minutes
        location = (appointment.pet.latitude, appointment.pet.longitude)

    return Itinerary(stops=stops, units=list(units), warnings=warnings, unserved=unserved)
