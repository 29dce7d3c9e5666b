"""
Shared test fixtures and helpers for the Missy test suite.
"""

import pytest

from missy import Schema
from missy.drivers import MemoryDriver


# ============================================================================
# Schema Fixtures
# ============================================================================


@pytest.fixture
def driver():
    """A fresh in-memory driver."""
    return MemoryDriver()


@pytest.fixture
async def schema(driver):
    """A connected schema over the in-memory driver."""
    s = Schema(driver)
    await s.connect()
    yield s
    await s.disconnect()


# ============================================================================
# Hook Helpers
# ============================================================================


class HookCounter:
    """
    Counts hook invocations of a model.

    ``fired()`` compares the counts since the previous call with the
    expected increments and resets the baseline.
    """

    def __init__(self, model):
        self.counts = {name: 0 for name in model.hooks.hook_names}
        self._prev = dict(self.counts)
        for name in self.counts:
            model.hooks.register_hook(name, self._counter(name))

    def _counter(self, name):
        def _count(*args):
            self.counts[name] += 1
        return _count

    def fired(self, **hits):
        expected = dict(self._prev)
        for name, n in hits.items():
            expected[name] += n
        assert self.counts == expected
        self._prev = dict(self.counts)


@pytest.fixture
def hook_counter():
    return HookCounter
