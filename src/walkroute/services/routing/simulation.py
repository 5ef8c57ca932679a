"""Event-driven greedy simulation of a single pack walk.

The walk is modelled as a reducer: :func:`step` takes an immutable
:class:`PackState` and returns the next state together with the stop it
produced (if any) and a :class:`Decision` describing why. :func:`simulate_group`
drives the reducer until every dog is either dropped off or unreachable.

Times are minutes since midnight on the reference day.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Sequence

from ...models.domain import Appointment
from ..geospatial import distance_between, travel_minutes
from .models import STOP_DROPOFF, STOP_PICKUP, PlannerConfig

EPSILON = 1e-6

DECISION_OVERDUE = "overdue_dropoff"
DECISION_DROPOFF = "dropoff"
DECISION_PICKUP = "pickup"
DECISION_LATE_PICKUP = "late_pickup"
DECISION_WAIT = "wait"
DECISION_STALLED = "stalled"
DECISION_DONE = "done"

Location = tuple[float, float]


@dataclass(frozen=True, slots=True)
class PackState:
    clock: float
    location: Optional[Location]
    waiting: tuple[str, ...] = ()
    walking: tuple[str, ...] = ()
    pickup_started: Mapping[str, float] = field(default_factory=dict)

    @property
    def pack_size(self) -> int:
        return len(self.walking)

    @property
    def finished(self) -> bool:
        return not self.waiting and not self.walking


@dataclass(frozen=True, slots=True)
class Candidate:
    kind: str
    appointment_id: str
    travel: float
    cost: float
    elapsed_on_arrival: Optional[float] = None


@dataclass(frozen=True, slots=True)
class SimulatedStop:
    appointment_id: str
    stop_type: str
    arrival: float
    elapsed_minutes: Optional[float] = None
    overdue: bool = False
    window_missed: bool = False


@dataclass(frozen=True, slots=True)
class Decision:
    kind: str
    clock: float
    appointment_id: Optional[str] = None
    cost: Optional[float] = None
    candidates: tuple[Candidate, ...] = ()


@dataclass(frozen=True, slots=True)
class StepResult:
    state: PackState
    decision: Decision
    stop: Optional[SimulatedStop] = None


@dataclass(slots=True)
class GroupSimulation:
    stops: list[SimulatedStop]
    decisions: list[Decision]
    final_state: PackState
    unserved: list[str]


class SimulationContext:
    """Read-only lookups shared by every step of one group simulation."""

    def __init__(self, appointments: Sequence[Appointment], config: PlannerConfig) -> None:
        self.config = config
        self.appointments: dict[str, Appointment] = {appt.appointment_id: appt for appt in appointments}
        self.order: dict[str, int] = {appt.appointment_id: index for index, appt in enumerate(appointments)}

    def appointment(self, appointment_id: str) -> Appointment:
        return self.appointments[appointment_id]

    def duration(self, appointment_id: str) -> float:
        return self.appointments[appointment_id].duration_minutes or self.config.default_walk_duration_minutes

    def distance(self, location: Optional[Location], appointment_id: str) -> float:
        if location is None:
            return 0.0
        pet = self.appointments[appointment_id].pet
        return distance_between(location[0], location[1], pet.latitude, pet.longitude) or 0.0

    def travel(self, location: Optional[Location], appointment_id: str) -> float:
        return travel_minutes(self.distance(location, appointment_id), self.config.walking_speed_mph)

    def upper_limit(self, appointment_id: str) -> float:
        return self.duration(appointment_id) + self.config.duration_tolerance_minutes

    def lower_limit(self, appointment_id: str) -> float:
        return self.duration(appointment_id) - self.config.duration_tolerance_minutes


def initial_state(
    appointments: Sequence[Appointment], clock: float, location: Optional[Location]
) -> PackState:
    return PackState(
        clock=clock,
        location=location,
        waiting=tuple(appt.appointment_id for appt in appointments),
    )


def _overdue_dog(state: PackState, ctx: SimulationContext) -> Optional[Candidate]:
    """The walked dog furthest past its tolerance on arrival, if any is past it."""
    worst: Optional[Candidate] = None
    worst_excess = 0.0
    for appointment_id in state.walking:
        travel = ctx.travel(state.location, appointment_id)
        elapsed = state.clock + travel - state.pickup_started[appointment_id]
        excess = elapsed - ctx.upper_limit(appointment_id)
        if excess > EPSILON and (worst is None or excess > worst_excess):
            worst = Candidate(DECISION_DROPOFF, appointment_id, travel, 0.0, elapsed)
            worst_excess = excess
    return worst


def _open_pickups_near(state: PackState, ctx: SimulationContext, appointment_id: str) -> int:
    pet = ctx.appointment(appointment_id).pet
    count = 0
    for waiting_id in state.waiting:
        waiting = ctx.appointment(waiting_id)
        if waiting.end_time is None or waiting.end_time.minutes < state.clock:
            continue
        distance = distance_between(pet.latitude, pet.longitude, waiting.pet.latitude, waiting.pet.longitude)
        if distance is not None and distance <= ctx.config.chaining_radius_miles:
            count += 1
    return count


def dropoff_cost(state: PackState, ctx: SimulationContext, appointment_id: str, travel: float, elapsed: float) -> float:
    config = ctx.config
    cost = travel + config.duration_deviation_weight * abs(elapsed - ctx.duration(appointment_id))
    if state.pack_size >= config.pack_capacity:
        cost -= config.pack_relief_bonus
    cost -= config.chaining_bonus * _open_pickups_near(state, ctx, appointment_id)
    return cost


def pickup_cost(state: PackState, ctx: SimulationContext, appointment_id: str, travel: float) -> float:
    config = ctx.config
    appointment = ctx.appointment(appointment_id)
    cost = travel

    minutes_until_close = appointment.end_time.minutes - state.clock
    if minutes_until_close < config.urgency_horizon_minutes:
        cost -= config.urgency_horizon_minutes - max(0.0, minutes_until_close)

    finished_pickup = state.clock + travel + config.pickup_service_minutes
    pushes_past = False
    pushes_close = False
    for walked_id in state.walking:
        projected = finished_pickup - state.pickup_started[walked_id]
        limit = ctx.upper_limit(walked_id)
        if projected > limit:
            pushes_past = True
        elif projected > limit - config.duration_tolerance_minutes:
            pushes_close = True
    if pushes_past:
        cost += config.overdue_penalty
    elif pushes_close:
        cost += config.near_overdue_penalty

    if state.walking:
        remaining = [
            max(0.0, ctx.duration(walked_id) - (state.clock - state.pickup_started[walked_id]))
            for walked_id in state.walking
        ]
        average_remaining = sum(remaining) / len(remaining)
        cost += config.duration_compatibility_weight * abs(ctx.duration(appointment_id) - average_remaining)
    return cost


def dropoff_candidates(state: PackState, ctx: SimulationContext) -> list[Candidate]:
    candidates = []
    for appointment_id in state.walking:
        travel = ctx.travel(state.location, appointment_id)
        elapsed = state.clock + travel - state.pickup_started[appointment_id]
        if ctx.lower_limit(appointment_id) - EPSILON <= elapsed <= ctx.upper_limit(appointment_id) + EPSILON:
            candidates.append(
                Candidate(
                    DECISION_DROPOFF,
                    appointment_id,
                    travel,
                    dropoff_cost(state, ctx, appointment_id, travel, elapsed),
                    elapsed,
                )
            )
    return candidates


def pickup_candidates(state: PackState, ctx: SimulationContext) -> list[Candidate]:
    """Pickups whose window is open when the walker gets there, restricted to the nearest few."""
    if state.pack_size >= ctx.config.pack_capacity:
        return []
    reachable: list[tuple[float, str]] = []
    for appointment_id in state.waiting:
        appointment = ctx.appointment(appointment_id)
        arrival = state.clock + ctx.travel(state.location, appointment_id)
        if not (appointment.start_time.minutes - EPSILON <= arrival <= appointment.end_time.minutes + EPSILON):
            continue
        reachable.append((ctx.distance(state.location, appointment_id), appointment_id))

    # sorted() is stable, so equally distant dogs keep their input order
    nearest = sorted(reachable, key=lambda item: item[0])[: ctx.config.pickup_candidate_limit]
    candidates = []
    for _, appointment_id in nearest:
        travel = ctx.travel(state.location, appointment_id)
        candidates.append(
            Candidate(DECISION_PICKUP, appointment_id, travel, pickup_cost(state, ctx, appointment_id, travel))
        )
    return candidates


def late_pickup_candidates(state: PackState, ctx: SimulationContext) -> list[Candidate]:
    """Dogs the walker can no longer reach before their window closes, nearest first.

    Only offered when nothing else can be done right now; the pickup is then
    made late rather than dropping the dog from the plan.
    """
    if state.pack_size >= ctx.config.pack_capacity:
        return []
    missed: list[tuple[float, str]] = []
    for appointment_id in state.waiting:
        arrival = state.clock + ctx.travel(state.location, appointment_id)
        if arrival > ctx.appointment(appointment_id).end_time.minutes + EPSILON:
            missed.append((ctx.distance(state.location, appointment_id), appointment_id))

    nearest = sorted(missed, key=lambda item: item[0])[: ctx.config.pickup_candidate_limit]
    candidates = []
    for _, appointment_id in nearest:
        travel = ctx.travel(state.location, appointment_id)
        candidates.append(
            Candidate(DECISION_LATE_PICKUP, appointment_id, travel, pickup_cost(state, ctx, appointment_id, travel))
        )
    return candidates


def next_event_time(state: PackState, ctx: SimulationContext) -> Optional[float]:
    """Earliest future moment a walked dog becomes droppable or a waiting window opens.

    Both are measured on arrival: a window "opens" at the latest departure time
    that still reaches the pet no earlier than its start time.
    """
    events: list[float] = []
    for appointment_id in state.walking:
        travel = ctx.travel(state.location, appointment_id)
        elapsed = state.clock + travel - state.pickup_started[appointment_id]
        shortfall = ctx.lower_limit(appointment_id) - elapsed
        if shortfall > EPSILON:
            events.append(state.clock + shortfall)
    for appointment_id in state.waiting:
        travel = ctx.travel(state.location, appointment_id)
        departure = ctx.appointment(appointment_id).start_time.minutes - travel
        if departure > state.clock + EPSILON:
            events.append(departure)
    return min(events) if events else None


def _apply_pickup(
    state: PackState, ctx: SimulationContext, candidate: Candidate, late: bool = False
) -> tuple[PackState, SimulatedStop]:
    arrival = state.clock + candidate.travel
    pet = ctx.appointment(candidate.appointment_id).pet
    started = dict(state.pickup_started)
    started[candidate.appointment_id] = arrival
    new_state = PackState(
        clock=arrival + ctx.config.pickup_service_minutes,
        location=(pet.latitude, pet.longitude),
        waiting=tuple(item for item in state.waiting if item != candidate.appointment_id),
        walking=state.walking + (candidate.appointment_id,),
        pickup_started=started,
    )
    return new_state, SimulatedStop(candidate.appointment_id, STOP_PICKUP, arrival, window_missed=late)


def _apply_dropoff(
    state: PackState, ctx: SimulationContext, candidate: Candidate, overdue: bool
) -> tuple[PackState, SimulatedStop]:
    arrival = state.clock + candidate.travel
    pet = ctx.appointment(candidate.appointment_id).pet
    elapsed = arrival - state.pickup_started[candidate.appointment_id]
    started = {key: value for key, value in state.pickup_started.items() if key != candidate.appointment_id}
    new_state = PackState(
        clock=arrival + ctx.config.dropoff_service_minutes,
        location=(pet.latitude, pet.longitude),
        waiting=state.waiting,
        walking=tuple(item for item in state.walking if item != candidate.appointment_id),
        pickup_started=started,
    )
    return new_state, SimulatedStop(candidate.appointment_id, STOP_DROPOFF, arrival, elapsed, overdue)


def step(state: PackState, ctx: SimulationContext) -> StepResult:
    """Advance the pack walk by exactly one action or one clock jump."""

    if state.finished:
        return StepResult(state, Decision(DECISION_DONE, state.clock))

    overdue = _overdue_dog(state, ctx)
    if overdue is not None:
        new_state, stop = _apply_dropoff(state, ctx, overdue, overdue=True)
        return StepResult(new_state, Decision(DECISION_OVERDUE, state.clock, overdue.appointment_id), stop)

    candidates = dropoff_candidates(state, ctx) + pickup_candidates(state, ctx)
    if candidates:
        # min() keeps the first of equal-cost candidates
        best = min(candidates, key=lambda candidate: candidate.cost)
        if best.kind == DECISION_PICKUP:
            new_state, stop = _apply_pickup(state, ctx, best)
        else:
            new_state, stop = _apply_dropoff(state, ctx, best, overdue=False)
        decision = Decision(best.kind, state.clock, best.appointment_id, best.cost, tuple(candidates))
        return StepResult(new_state, decision, stop)

    late = late_pickup_candidates(state, ctx)
    if late:
        best = min(late, key=lambda candidate: candidate.cost)
        new_state, stop = _apply_pickup(state, ctx, best, late=True)
        decision = Decision(DECISION_LATE_PICKUP, state.clock, best.appointment_id, best.cost, tuple(late))
        return StepResult(new_state, decision, stop)

    event = next_event_time(state, ctx)
    if event is None:
        return StepResult(state, Decision(DECISION_STALLED, state.clock))
    return StepResult(replace(state, clock=event), Decision(DECISION_WAIT, state.clock))


def simulate_group(
    appointments: Sequence[Appointment],
    *,
    clock: float,
    location: Optional[Location],
    config: PlannerConfig,
) -> GroupSimulation:
    """Interleave pickups and drop-offs for one group of appointments."""

    ctx = SimulationContext(appointments, config)
    state = initial_state(appointments, clock, location)
    stops: list[SimulatedStop] = []
    decisions: list[Decision] = []

    while not state.finished:
        result = step(state, ctx)
        decisions.append(result.decision)
        if result.stop is not None:
            stops.append(result.stop)
        if result.decision.kind == DECISION_STALLED:
            break
        state = result.state

    unserved = sorted(state.waiting, key=lambda appointment_id: ctx.order[appointment_id])
    return GroupSimulation(stops=stops, decisions=decisions, final_state=state, unserved=unserved)
