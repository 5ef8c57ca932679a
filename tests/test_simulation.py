from typing import Optional

import pytest

from walkroute.models.domain import Appointment, Pet, TimeOfDay
from walkroute.services.routing import simulation
from walkroute.services.routing.models import STOP_DROPOFF, STOP_PICKUP, PlannerConfig


def _appointment(
    aid: str,
    lat: float,
    lng: float = -74.0,
    start: float = 600,
    end: float = 630,
    duration: int = 30,
) -> Appointment:
    return Appointment(
        appointment_id=aid,
        pet=Pet(pet_id=f"pet-{aid}", name=f"Dog {aid}", address=None, latitude=lat, longitude=lng),
        start_time=TimeOfDay(start),
        end_time=TimeOfDay(end),
        duration_minutes=duration,
        walk_type="group",
    )


def _context(*appointments: Appointment, config: Optional[PlannerConfig] = None) -> simulation.SimulationContext:
    return simulation.SimulationContext(list(appointments), config or PlannerConfig())


def test_two_dog_walk_interleaves_pickups_and_dropoffs() -> None:
    first = _appointment("A", 40.7)
    second = _appointment("B", 40.7029)

    result = simulation.simulate_group([first, second], clock=600, location=None, config=PlannerConfig())

    assert [(stop.appointment_id, stop.stop_type) for stop in result.stops] == [
        ("A", STOP_PICKUP),
        ("B", STOP_PICKUP),
        ("A", STOP_DROPOFF),
        ("B", STOP_DROPOFF),
    ]
    assert [stop.arrival for stop in result.stops] == pytest.approx([600, 609, 620, 629])
    assert result.stops[2].elapsed_minutes == pytest.approx(20)
    assert result.stops[3].elapsed_minutes == pytest.approx(20)
    assert result.unserved == []
    assert result.final_state.finished
    assert result.final_state.clock == pytest.approx(631)
    assert simulation.DECISION_WAIT in [decision.kind for decision in result.decisions]


def test_pickups_stay_inside_windows_and_dropoffs_inside_tolerance() -> None:
    config = PlannerConfig()
    appointments = [
        _appointment("A", 40.7, start=600, end=640, duration=30),
        _appointment("B", 40.7015, start=610, end=650, duration=45),
        _appointment("C", 40.703, start=605, end=620, duration=20),
        _appointment("D", 40.7045, start=600, end=660, duration=60),
    ]
    by_id = {appt.appointment_id: appt for appt in appointments}

    result = simulation.simulate_group(appointments, clock=600, location=(40.7, -74.0), config=config)

    assert result.unserved == []
    for stop in result.stops:
        appointment = by_id[stop.appointment_id]
        if stop.stop_type == STOP_PICKUP:
            assert appointment.start_time.minutes - 1e-6 <= stop.arrival <= appointment.end_time.minutes + 1e-6
        elif not stop.overdue:
            assert abs(stop.elapsed_minutes - appointment.duration_minutes) <= config.duration_tolerance_minutes + 1e-6


def test_pack_never_exceeds_capacity() -> None:
    config = PlannerConfig(pack_capacity=2)
    appointments = [_appointment(str(index), 40.7 + index * 0.0005, start=600, end=700) for index in range(5)]

    result = simulation.simulate_group(appointments, clock=600, location=None, config=config)

    in_pack = 0
    for stop in result.stops:
        in_pack += 1 if stop.stop_type == STOP_PICKUP else -1
        assert 0 <= in_pack <= 2
    assert in_pack == 0
    assert len(result.stops) == 10


def test_full_pack_offers_no_pickups() -> None:
    config = PlannerConfig(pack_capacity=2)
    appointments = [_appointment("A", 40.7), _appointment("B", 40.7), _appointment("C", 40.7)]
    ctx = _context(*appointments, config=config)
    state = simulation.PackState(
        clock=605,
        location=(40.7, -74.0),
        waiting=("C",),
        walking=("A", "B"),
        pickup_started={"A": 600, "B": 600},
    )

    assert simulation.pickup_candidates(state, ctx) == []
    result = simulation.step(state, ctx)
    assert result.decision.kind == simulation.DECISION_WAIT
    # both walked dogs reach the lower tolerance 20 minutes after pickup
    assert result.state.clock == pytest.approx(620)
    assert result.stop is None


def test_overdue_dog_is_dropped_first() -> None:
    ctx = _context(_appointment("A", 40.7), _appointment("B", 40.7), _appointment("C", 40.7029))
    state = simulation.PackState(
        clock=645,
        location=(40.7, -74.0),
        waiting=("C",),
        walking=("A", "B"),
        pickup_started={"A": 600, "B": 610},
    )

    result = simulation.step(state, ctx)

    assert result.decision.kind == simulation.DECISION_OVERDUE
    assert result.decision.appointment_id == "A"
    assert result.stop.overdue
    assert result.stop.elapsed_minutes == pytest.approx(45)
    assert result.state.walking == ("B",)
    assert "A" not in result.state.pickup_started
    assert result.state.clock == pytest.approx(647)
    # the reducer never mutates its input
    assert state.walking == ("A", "B")


def test_urgent_pickup_wins_over_earlier_listed_dog() -> None:
    relaxed = _appointment("A", 40.7, start=600, end=690)
    urgent = _appointment("B", 40.7, start=600, end=610)
    ctx = _context(relaxed, urgent)
    state = simulation.initial_state([relaxed, urgent], 600, None)

    candidates = simulation.pickup_candidates(state, ctx)
    result = simulation.step(state, ctx)

    assert [candidate.cost for candidate in candidates] == pytest.approx([0, -20])
    assert result.decision.appointment_id == "B"


def test_equal_costs_keep_input_order() -> None:
    first = _appointment("A", 40.7)
    second = _appointment("B", 40.7)
    ctx = _context(first, second)

    result = simulation.step(simulation.initial_state([first, second], 600, None), ctx)

    assert result.decision.appointment_id == "A"


def test_pickup_candidates_limited_to_nearest() -> None:
    appointments = [_appointment(str(index), 40.7 + (4 - index) * 0.001) for index in range(5)]
    ctx = _context(*appointments)
    state = simulation.initial_state(appointments, 600, (40.7, -74.0))

    candidates = simulation.pickup_candidates(state, ctx)

    assert [candidate.appointment_id for candidate in candidates] == ["4", "3", "2"]


def test_pickup_cost_penalises_pushing_walked_dogs_toward_overdue() -> None:
    walked = _appointment("A", 40.7)
    candidate = _appointment("B", 40.7, start=600, end=700)
    ctx = _context(walked, candidate)

    near_limit = simulation.PackState(
        clock=630, location=(40.7, -74.0), waiting=("B",), walking=("A",), pickup_started={"A": 600}
    )
    past_limit = simulation.PackState(
        clock=640, location=(40.7, -74.0), waiting=("B",), walking=("A",), pickup_started={"A": 600}
    )

    # 30 near-overdue penalty plus half the 30 minute duration mismatch
    assert simulation.pickup_cost(near_limit, ctx, "B", 0.0) == pytest.approx(45)
    assert simulation.pickup_cost(past_limit, ctx, "B", 0.0) == pytest.approx(115)


def test_dropoff_cost_rewards_relief_and_chaining() -> None:
    appointments = [_appointment(str(index), 40.7, start=600, end=700) for index in range(5)]
    config = PlannerConfig(pack_capacity=4)
    ctx = _context(*appointments, config=config)
    started = {str(index): 600 for index in range(4)}

    full = simulation.PackState(clock=630, location=(40.7, -74.0), walking=("0", "1", "2", "3"), pickup_started=started)
    chained = simulation.PackState(
        clock=630, location=(40.7, -74.0), waiting=("4",), walking=("0", "1", "2"), pickup_started=started
    )
    plain = simulation.PackState(clock=630, location=(40.7, -74.0), walking=("0", "1", "2"), pickup_started=started)

    assert simulation.dropoff_cost(plain, ctx, "0", 0.0, 35) == pytest.approx(10)
    assert simulation.dropoff_cost(full, ctx, "0", 0.0, 35) == pytest.approx(-10)
    assert simulation.dropoff_cost(chained, ctx, "0", 0.0, 35) == pytest.approx(0)


def test_walker_leaves_early_to_arrive_when_window_opens() -> None:
    far = _appointment("A", 40.75, start=780, end=810)
    ctx = _context(far)
    state = simulation.initial_state([far], 631, (40.7029, -74.0))

    assert simulation.pickup_candidates(state, ctx) == []
    result = simulation.step(state, ctx)

    assert result.decision.kind == simulation.DECISION_WAIT
    assert result.state.clock + ctx.travel(result.state.location, "A") == pytest.approx(780)
    assert len(simulation.pickup_candidates(result.state, ctx)) == 1


def test_missed_windows_are_picked_up_late_after_open_ones() -> None:
    late = _appointment("A", 40.7, start=600, end=630)
    open_ = _appointment("B", 40.7, start=700, end=730)

    result = simulation.simulate_group([late, open_], clock=700, location=None, config=PlannerConfig())

    assert result.unserved == []
    assert [(stop.appointment_id, stop.stop_type) for stop in result.stops] == [
        ("B", STOP_PICKUP),
        ("A", STOP_PICKUP),
        ("B", STOP_DROPOFF),
        ("A", STOP_DROPOFF),
    ]
    assert [stop.window_missed for stop in result.stops] == [False, True, False, False]
    assert result.stops[1].arrival == pytest.approx(705)
    assert simulation.DECISION_LATE_PICKUP in [decision.kind for decision in result.decisions]
    assert result.final_state.finished


def test_late_pickups_respect_capacity() -> None:
    config = PlannerConfig(pack_capacity=1)
    appointments = [_appointment("A", 40.7, start=600, end=610), _appointment("B", 40.7, start=600, end=610)]

    result = simulation.simulate_group(appointments, clock=660, location=None, config=config)

    assert result.unserved == []
    assert [(stop.appointment_id, stop.stop_type) for stop in result.stops] == [
        ("A", STOP_PICKUP),
        ("A", STOP_DROPOFF),
        ("B", STOP_PICKUP),
        ("B", STOP_DROPOFF),
    ]
    assert all(stop.window_missed for stop in result.stops if stop.stop_type == STOP_PICKUP)


def test_late_pickup_candidates_only_cover_missed_windows() -> None:
    missed = _appointment("A", 40.7, start=600, end=630)
    upcoming = _appointment("B", 40.7, start=700, end=730)
    ctx = _context(missed, upcoming)
    state = simulation.initial_state([missed, upcoming], 650, None)

    candidates = simulation.late_pickup_candidates(state, ctx)

    assert [candidate.appointment_id for candidate in candidates] == ["A"]
    assert candidates[0].kind == simulation.DECISION_LATE_PICKUP


def test_simulation_is_deterministic() -> None:
    appointments = [_appointment(str(index), 40.7 + index * 0.0007, start=600 + index * 3, end=660) for index in range(6)]

    first = simulation.simulate_group(appointments, clock=600, location=None, config=PlannerConfig())
    second = simulation.simulate_group(appointments, clock=600, location=None, config=PlannerConfig())

    assert first.stops == second.stops
    assert first.decisions == second.decisions
