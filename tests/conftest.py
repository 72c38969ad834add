import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from engine_config import reset_config  # noqa: E402

_ENV_KEYS = ("TRANSNUM_TOLERANCE", "TRANSNUM_PROBE_BITS", "TRANSNUM_MAX_ORBIT", "TRANSNUM_MAX_RADIUS")


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Every test starts from the built-in defaults."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def rational_lift():
    """0 -> 2/3 -> 4/3 -> 2: translation number exactly 2/3."""
    from circle_lift import piecewise_linear

    return piecewise_linear([(0, "2/3"), ("1/3", 1), ("1/2", "25/24"), ("2/3", "4/3")])


@pytest.fixture
def slow_lift():
    """Fixed point at 1/2, the orbit of 0 creeps towards it without returning."""
    from circle_lift import piecewise_linear

    return piecewise_linear([(0, "1/4"), ("1/2", "1/2")])


@pytest.fixture
def skew_lift():
    """Fixes the integers, moves everything else forward."""
    from circle_lift import piecewise_linear

    return piecewise_linear([(0, 0), ("1/2", "3/4")])


@pytest.fixture
def bend_unit():
    from circle_lift import as_unit, piecewise_linear

    return as_unit(piecewise_linear([(0, 0), ("1/2", "1/4")]))
