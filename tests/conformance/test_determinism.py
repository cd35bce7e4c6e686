"""
Determinism Conformance Tests

INVARIANT: Given identical inputs, the pool produces identical outputs.

    ∀ inputs I:
        pool1.process(I) = pool2.process(I)

This guarantees:
- Replay produces identical reserves, checkpoints and handles
- Operation ids depend only on pool name, sequence and time
- Testing is reproducible
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from hyperdrive import Funds, HyperdriveError, PoolKeeper, TimeSeriesSharePriceSource

from tests.pool_factory import DISCOUNTED_BONDS, WEEK, YEAR, base, make_pool


def actions():
    action = st.tuples(
        st.sampled_from(["open_long", "open_short", "close", "add", "remove", "wait"]),
        st.integers(min_value=10, max_value=5000),
    )
    return st.lists(action, min_size=1, max_size=15)


def run_script(pool, script):
    """Apply script to pool; returns one outcome per action."""
    handles = []
    outcomes = []
    for kind, amount in script:
        try:
            if kind == "open_long":
                handles.append(pool.open_long(base(amount)))
                outcomes.append(handles[-1])
            elif kind == "open_short":
                handle, change = pool.open_short(base(amount), Decimal(amount))
                handles.append(handle)
                outcomes.append((handle, change))
            elif kind == "close":
                if not handles:
                    continue
                handle = handles.pop(0)
                if handle.startswith(pool.long_kind):
                    outcomes.append(pool.close_long(handle))
                else:
                    outcomes.append(pool.close_short(handle))
            elif kind == "add":
                outcomes.append(pool.add_liquidity(base(amount)))
            elif kind == "remove":
                outcomes.append(pool.remove_liquidity(Funds(pool.lp_asset, Decimal(amount))))
            else:
                pool.clock.advance_by(amount * 60)
                outcomes.append(pool.checkpoint())
        except HyperdriveError as exc:
            outcomes.append((type(exc).__name__, str(exc)))
    return outcomes


class TestDeterminismProperties:
    """Property-based determinism tests."""

    @given(actions())
    @settings(max_examples=30, deadline=None)
    def test_identical_scripts_produce_identical_pools(self, script):
        """
        PROPERTY: Two pools processing the same script reach the same state.
        """
        pool1 = make_pool()
        pool2 = make_pool()

        assert run_script(pool1, script) == run_script(pool2, script)
        assert pool1.get_pool_state() == pool2.get_pool_state()
        assert pool1.operation_log == pool2.operation_log
        assert pool1.custody.balance == pool2.custody.balance
        assert pool1.governance_custody.balance == pool2.governance_custody.balance

    @given(actions())
    @settings(max_examples=30, deadline=None)
    def test_operation_ids_are_sequential(self, script):
        pool = make_pool()
        run_script(pool, script)
        for sequence, operation in enumerate(pool.operation_log):
            assert operation.sequence_number == sequence
            assert operation.op_id == f"op:hd:{sequence:012d}:{operation.timestamp}"


class TestDeterminismExamples:
    """Explicit determinism examples."""

    def test_keeper_schedule_replays_identically(self):
        pools = [make_pool(bond_reserves=DISCOUNTED_BONDS) for _ in range(2)]
        for pool in pools:
            pool.open_long(base(5000))
            pool.open_short(base(2000), Decimal(2000))
            source = TimeSeriesSharePriceSource.from_rate(0, YEAR, WEEK, Decimal("0.05"))
            PoolKeeper(pool, source).run(range(WEEK, YEAR, WEEK))

        assert pools[0].get_pool_state() == pools[1].get_pool_state()
        assert [op.op_id for op in pools[0].operation_log] == [op.op_id for op in pools[1].operation_log]

    def test_pool_name_scopes_operation_ids(self):
        first = make_pool(name="alpha")
        second = make_pool(name="beta")
        assert first.operation_log[0].op_id == "op:alpha:000000000000:0"
        assert second.operation_log[0].op_id == "op:beta:000000000000:0"
        assert first.get_pool_state() == second.get_pool_state()

    def test_handles_replay_identically(self):
        pools = [make_pool(), make_pool()]
        handles = [[pool.open_long(base(100)) for _ in range(3)] for pool in pools]
        assert handles[0] == handles[1] == ["hd/LONG#1", "hd/LONG#2", "hd/LONG#3"]
