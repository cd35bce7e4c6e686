"""
conftest.py - Shared pytest fixtures for pool tests

Provides common fixtures used across unit, functional and conformance tests:
- Pool configurations (default fees, fee-free)
- Seeded pools on a manual clock
- Bare PoolState aggregates for the service-level tests
"""

import pytest

from hyperdrive import HyperdrivePool, PoolConfig, ManualClock

from tests.pool_factory import BASE, fee_free_config, make_pool, make_state


@pytest.fixture
def config():
    """Default pool configuration (weekly checkpoints, one-year term)."""
    return PoolConfig()


@pytest.fixture
def pool():
    """Seeded pool: 100000 USDC of shares against 105000 bonds at c = 1."""
    return make_pool()


@pytest.fixture
def fee_free_pool():
    """Seeded pool with every fee at zero."""
    return make_pool(config=fee_free_config())


@pytest.fixture
def empty_pool():
    """A pool that has not been created yet."""
    return HyperdrivePool("hd", base_asset=BASE, clock=ManualClock(0), verbose=False)


@pytest.fixture
def state():
    """Seeded PoolState with default configuration."""
    return make_state()


@pytest.fixture
def fee_free_state():
    return make_state(config=fee_free_config())
