"""Property-based tests for seat hold invariants."""

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from ticketing_api.realtime.hold_table import HoldTable
from ticketing_api.realtime.notifier import RoomNotifier

TIMEOUT = 300.0
EVENT = "event-1"

seat_keys = st.sampled_from(["s1", "s2", "s3"])
holders = st.sampled_from(["alice", "bob", "carol"])
steps = st.floats(min_value=0, max_value=400, allow_nan=False)

operations = st.lists(
    st.one_of(
        st.tuples(st.just("acquire"), seat_keys, holders),
        st.tuples(st.just("release"), seat_keys, holders),
        st.tuples(st.just("consume"), seat_keys, holders),
        st.tuples(st.just("advance"), steps),
        st.tuples(st.just("sweep")),
    ),
    max_size=40,
)


class Clock:
    def __init__(self):
        self.now = 1_000_000.0

    def __call__(self) -> float:
        return self.now


def fresh_table() -> tuple[HoldTable, Clock]:
    clock = Clock()
    return HoldTable(RoomNotifier(), timeout_seconds=TIMEOUT, clock=clock), clock


@settings(max_examples=200, deadline=None)
@given(ops=operations)
def test_hold_table_matches_single_holder_model(ops):
    """At any time each seat has at most one live holder, and only that holder can take it."""

    async def run():
        table, clock = fresh_table()
        # seat -> (holder, acquired_at)
        model: dict[str, tuple[str, float]] = {}

        def live(seat):
            lease = model.get(seat)
            if lease is None or clock.now - lease[1] > TIMEOUT:
                return None
            return lease

        for op in ops:
            kind = op[0]
            if kind == "acquire":
                _, seat, holder = op
                current = live(seat)
                result = await table.acquire(seat, holder, f"conn-{holder}", EVENT)
                if current is not None and current[0] != holder:
                    assert not result.success
                    assert result.holder_id == current[0]
                else:
                    assert result.success
                    model[seat] = (holder, clock.now)
            elif kind == "release":
                _, seat, holder = op
                expected = seat in model and model[seat][0] == holder
                assert await table.release(seat, holder, EVENT) is expected
                if expected:
                    del model[seat]
            elif kind == "consume":
                _, seat, holder = op
                removed = await table.consume(seat, holder, EVENT)
                assert (removed is not None) == (seat in model)
                model.pop(seat, None)
            elif kind == "advance":
                clock.now += op[1]
            else:
                expired = [seat for seat in model if live(seat) is None]
                assert await table.sweep_expired() == len(expired)
                for seat in expired:
                    del model[seat]

            states = await table.query(["s1", "s2", "s3"])
            for seat, state in states.items():
                current = live(seat)
                assert state.is_held == (current is not None)
                assert state.holder_id == (current[0] if current else None)
            assert await table.active_count() == sum(1 for seat in model if live(seat))

    asyncio.run(run())


@settings(max_examples=100, deadline=None)
@given(age=st.floats(min_value=0, max_value=2 * TIMEOUT, allow_nan=False))
def test_sweep_removes_exactly_the_stale_holds(age):
    async def run():
        table, clock = fresh_table()
        await table.acquire("s1", "alice", "conn-a", EVENT)
        start = clock.now
        clock.now += age
        removed = await table.sweep_expired()
        return removed, clock.now - start > TIMEOUT

    removed, stale = asyncio.run(run())
    assert removed == (1 if stale else 0)


@settings(max_examples=50, deadline=None)
@given(contenders=st.lists(holders, min_size=2, max_size=12))
def test_simultaneous_acquires_have_one_winner(contenders):
    async def run():
        table, _ = fresh_table()
        results = await asyncio.gather(*(
            table.acquire("s1", holder, f"conn-{n}", EVENT) for n, holder in enumerate(contenders)
        ))
        return results, await table.query(["s1"])

    results, states = asyncio.run(run())
    winners = {contenders[n] for n, result in enumerate(results) if result.success}
    assert len(winners) == 1
    assert states["s1"].holder_id in winners
    # The first contender always gets there first; same-holder retries only renew
    assert winners == {contenders[0]}


@settings(max_examples=50, deadline=None)
@given(renewals=st.lists(st.floats(min_value=0, max_value=TIMEOUT, allow_nan=False), min_size=1, max_size=10))
def test_renewing_within_timeout_keeps_hold_alive(renewals):
    async def run():
        table, clock = fresh_table()
        await table.acquire("s1", "alice", "conn-a", EVENT)
        for step in renewals:
            clock.now += step
            assert (await table.acquire("s1", "alice", "conn-a", EVENT)).success
            assert not (await table.acquire("s1", "bob", "conn-b", EVENT)).success
        return await table.sweep_expired()

    assert asyncio.run(run()) == 0
