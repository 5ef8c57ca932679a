"""Routing orchestration service."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence

from ...config import settings
from ...data.appointments import build_appointments
from ...models.domain import Appointment, TimeOfDay
from ...persistence.filesystem import FileStorage
from ...schemas.routing import (
    ComparisonModel,
    CoordinatesModel,
    ReorderRequest,
    RouteRequest,
    RouteResponse,
    RouteStopModel,
)
from ..geospatial import distance_between, total_route_distance, travel_minutes
from ..outputs.routing_formatter import route_to_csv, route_to_json
from ..time_of_day import parse_time_of_day
from .models import UNIT_SOLO, PlannerConfig, Route, RouteComparison, RouteStop, WalkUnit
from .scheduler import (
    build_itinerary,
    build_walk_units,
    categorize_appointments,
    order_walk_units,
    planning_start,
)
from .trace import PlanTrace

logger = logging.getLogger(__name__)

EMPTY_ROUTE_MESSAGE = "No geocoded appointments to optimize"

Location = tuple[float, float]


def empty_route(total_appointments: int = 0, geocoded: int = 0, trace: PlanTrace | None = None) -> Route:
    return Route(
        stops=[],
        total_distance=0,
        total_travel_time=0,
        total_walk_time=0,
        total_time=0,
        optimized=False,
        total_appointments=total_appointments,
        geocoded_appointments=geocoded,
        message=EMPTY_ROUTE_MESSAGE,
        trace=trace or PlanTrace(),
    )


def _default_day_start() -> TimeOfDay:
    return parse_time_of_day(settings.default_day_start) or TimeOfDay.of(8)


def _travel_time(distance_miles: float, config: PlannerConfig) -> int:
    return round(travel_minutes(distance_miles, config.walking_speed_mph))


def select_plannable(
    appointments: Sequence[Appointment], trace: PlanTrace
) -> tuple[list[Appointment], list[Appointment], list[str]]:
    """Split off appointments that cannot be planned.

    Returns the geocoded appointments, the plannable subset and the warnings
    raised for skipped windows.
    """
    geocoded = [appointment for appointment in appointments if appointment.pet.geocoded]
    plannable: list[Appointment] = []
    warnings: list[str] = []
    for appointment in geocoded:
        if not appointment.has_window:
            message = f"Skipping appointment {appointment.appointment_id}: pickup window is missing or unreadable"
            logger.warning(message)
            warnings.append(message)
            trace.record("skipped", message, appointment_ids=[appointment.appointment_id])
            continue
        plannable.append(appointment)
    skipped_locations = len(appointments) - len(geocoded)
    if skipped_locations:
        logger.info("Excluded %d appointments without usable coordinates", skipped_locations)
    return geocoded, plannable, warnings


def _number_stops(stops: list[RouteStop], config: PlannerConfig) -> None:
    previous: Optional[RouteStop] = None
    for sequence, stop in enumerate(stops, start=1):
        stop.sequence = sequence
        if previous is not None:
            distance = distance_between(previous.latitude, previous.longitude, stop.latitude, stop.longitude) or 0.0
            stop.distance_from_previous = distance
            stop.travel_time_from_previous = _travel_time(distance, config)
        previous = stop


def _assemble_route(
    stops: list[RouteStop],
    served: Sequence[Appointment],
    *,
    config: PlannerConfig,
    **extra,
) -> Route:
    _number_stops(stops, config)
    total_distance = total_route_distance([stop.coordinates for stop in stops])
    travel_time = _travel_time(total_distance, config)
    walk_time = sum(appointment.duration_minutes or config.default_walk_duration_minutes for appointment in served)
    return Route(
        stops=stops,
        total_distance=round(total_distance, 2),
        total_travel_time=travel_time,
        total_walk_time=walk_time,
        total_time=round(travel_time + walk_time),
        **extra,
    )


def optimize_route(
    appointments: Sequence[Appointment],
    *,
    start_location: Optional[Location] = None,
    now: Optional[TimeOfDay] = None,
    config: Optional[PlannerConfig] = None,
) -> Route:
    """Plan one walker's day: group, order and sequence every plannable appointment."""

    config = config or PlannerConfig()
    trace = PlanTrace()
    geocoded, plannable, warnings = select_plannable(appointments, trace)
    if not plannable:
        route = empty_route(len(appointments), len(geocoded), trace)
        route.warnings = warnings
        return route

    if now is None and config.replan_from_current_time:
        now = TimeOfDay.now()

    categorized = categorize_appointments(plannable, config, trace)
    units: list[WalkUnit] = build_walk_units(categorized)
    start_time = planning_start(units, now, _default_day_start())
    trace.record("start", f"Planning from {start_time.format()}", minute=start_time.minutes)

    ordered, conflicts = order_walk_units(
        units, start_location=start_location, start_time=start_time, config=config, trace=trace
    )
    itinerary = build_itinerary(
        ordered, start_location=start_location, start_time=start_time, config=config, trace=trace
    )

    unserved = set(itinerary.unserved)
    served = [appointment for appointment in plannable if appointment.appointment_id not in unserved]
    solo_count = sum(1 for unit in ordered if unit.kind == UNIT_SOLO)
    route = _assemble_route(
        itinerary.stops,
        served,
        config=config,
        optimized=True,
        groups_count=len(ordered) - solo_count,
        solo_count=solo_count,
        total_appointments=len(appointments),
        geocoded_appointments=len(geocoded),
        warnings=warnings + conflicts + itinerary.warnings,
        unserved_appointment_ids=list(itinerary.unserved),
        trace=trace,
    )
    logger.info(
        "Planned %d stops across %d groups and %d solo walks: %.2f mi, %d min",
        len(route.stops),
        route.groups_count,
        route.solo_count,
        route.total_distance,
        route.total_time,
    )
    trace.replay(logger)
    return route


def optimize_and_compare(
    appointments: Sequence[Appointment],
    *,
    start_location: Optional[Location] = None,
    now: Optional[TimeOfDay] = None,
    config: Optional[PlannerConfig] = None,
) -> Route:
    """Plan the day and report the savings against visiting pets in input order."""

    config = config or PlannerConfig()
    original_coordinates = [
        {"lat": appointment.pet.latitude, "lng": appointment.pet.longitude}
        for appointment in appointments
        if appointment.pet.geocoded
    ]
    original_distance = total_route_distance(original_coordinates)
    original_time = _travel_time(original_distance, config)

    route = optimize_route(appointments, start_location=start_location, now=now, config=config)

    distance_saved = original_distance - route.total_distance
    time_saved = original_time - route.total_travel_time
    improvement_percent = round(distance_saved / original_distance * 100, 1) if original_distance > 0 else 0
    route.comparison = RouteComparison(
        original_distance=round(original_distance, 2),
        original_time=original_time,
        distance_saved=round(distance_saved, 2),
        time_saved=time_saved,
        improvement_percent=improvement_percent,
    )
    return route


def reorder_route(
    appointments: Sequence[Appointment],
    order: Sequence[str],
    *,
    config: Optional[PlannerConfig] = None,
) -> Route:
    """Metrics for visiting appointments one at a time in a walker-chosen order."""

    config = config or PlannerConfig()
    by_id = {appointment.appointment_id: appointment for appointment in appointments}
    missing = [appointment_id for appointment_id in order if appointment_id not in by_id]
    if missing:
        raise ValueError(f"Unknown appointment ids in order: {', '.join(missing)}")

    ordered = [by_id[appointment_id] for appointment_id in order if by_id[appointment_id].pet.geocoded]
    trace = PlanTrace()
    if not ordered:
        return empty_route(len(order), 0, trace)

    units = [
        WalkUnit(
            kind=UNIT_SOLO,
            appointments=[appointment],
            earliest_pickup=appointment.start_time,
            latest_pickup=appointment.end_time,
        )
        for appointment in ordered
    ]
    starts = [unit.earliest_pickup for unit in units if unit.earliest_pickup is not None]
    start_time = min(starts) if starts else _default_day_start()
    itinerary = build_itinerary(units, start_location=None, start_time=start_time, config=config, trace=trace)
    return _assemble_route(
        itinerary.stops,
        ordered,
        config=config,
        optimized=False,
        solo_count=len(units),
        total_appointments=len(order),
        geocoded_appointments=len(ordered),
        manually_ordered=True,
        trace=trace,
    )


def _build_config(payload: RouteRequest) -> PlannerConfig:
    base = PlannerConfig()
    if payload.weights is None:
        return base
    overrides = {key: value for key, value in payload.weights.model_dump().items() if value is not None}
    return replace(base, **overrides)


def route_to_response(route: Route, *, include_trace: bool = False) -> RouteResponse:
    return RouteResponse(
        route=[
            RouteStopModel(
                id=stop.id,
                appointment_id=stop.appointment_id,
                pet_id=stop.pet_id,
                pet_name=stop.pet_name,
                address=stop.address,
                start_time=stop.start_time,
                end_time=stop.end_time,
                duration=stop.duration,
                walk_type=stop.walk_type,
                walk_group_id=stop.walk_group_id,
                stop_type=stop.stop_type,
                coordinates=CoordinatesModel(**stop.coordinates),
                sequence=stop.sequence,
                arrival_time=stop.arrival_time,
                arrival_minute=stop.arrival_minute,
                distance_from_previous=stop.distance_from_previous,
                travel_time_from_previous=stop.travel_time_from_previous,
                unit_index=stop.unit_index,
                elapsed_minutes=stop.elapsed_minutes,
                overdue=stop.overdue,
                window_missed=stop.window_missed,
            )
            for stop in route.stops
        ],
        total_distance=route.total_distance,
        total_travel_time=route.total_travel_time,
        total_walk_time=route.total_walk_time,
        total_time=route.total_time,
        path_coordinates=[CoordinatesModel(**point) for point in route.path_coordinates],
        optimized=route.optimized,
        groups_count=route.groups_count,
        solo_count=route.solo_count,
        total_appointments=route.total_appointments,
        geocoded_appointments=route.geocoded_appointments,
        message=route.message,
        warnings=list(route.warnings),
        unserved_appointment_ids=list(route.unserved_appointment_ids),
        manually_ordered=route.manually_ordered,
        comparison=ComparisonModel(
            original_distance=route.comparison.original_distance,
            original_time=route.comparison.original_time,
            distance_saved=route.comparison.distance_saved,
            time_saved=route.comparison.time_saved,
            improvement_percent=route.comparison.improvement_percent,
        )
        if route.comparison
        else None,
        trace=route.trace.to_list() if include_trace else None,
    )


def plan_route(payload: RouteRequest) -> RouteResponse:
    """Entry point for the optimize endpoint."""

    appointments = build_appointments(payload.appointments)
    start_location = (
        (payload.start_location.lat, payload.start_location.lng) if payload.start_location else None
    )
    now = parse_time_of_day(payload.current_time) if payload.current_time else None
    config = _build_config(payload)

    planner = optimize_and_compare if payload.compare else optimize_route
    route = planner(appointments, start_location=start_location, now=now, config=config)
    response = route_to_response(route, include_trace=payload.include_trace)

    if payload.persist and route.stops:
        try:
            storage = FileStorage()
            label = payload.run_label or "plan"
            run_dir = storage.make_run_directory(prefix=f"route_{label}")
            storage.write_json(run_dir / "summary.json", route_to_json(route))
            storage.write_csv(run_dir / "stops.csv", route_to_csv(route))
        except OSError as exc:
            logger.warning(f"Failed to export planned route: {exc}")

    return response


def plan_reorder(payload: ReorderRequest) -> RouteResponse:
    appointments = build_appointments(payload.appointments)
    route = reorder_route(appointments, payload.order)
    return route_to_response(route)
