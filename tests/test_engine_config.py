from fractions import Fraction

import pytest

from engine_config import EngineConfig, load_config, reset_config


def test_defaults():
    cfg = load_config()
    assert cfg.default_tolerance == Fraction(1, 1024)
    assert cfg.probe_bits == 6
    assert cfg.probe_size == 64
    assert (cfg.max_orbit, cfg.max_radius) == (4096, 6)
    assert load_config() is cfg


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TRANSNUM_TOLERANCE", "0.001")
    monkeypatch.setenv("TRANSNUM_PROBE_BITS", "3")
    monkeypatch.setenv("TRANSNUM_MAX_RADIUS", "0")
    reset_config()
    cfg = load_config()
    assert cfg.default_tolerance == Fraction(1, 1000)
    assert cfg.probe_size == 8
    assert cfg.max_radius == 0


@pytest.mark.parametrize(
    "key,value",
    [
        ("TRANSNUM_TOLERANCE", "-1/2"),
        ("TRANSNUM_TOLERANCE", "tiny"),
        ("TRANSNUM_PROBE_BITS", "0"),
        ("TRANSNUM_MAX_ORBIT", "many"),
        ("TRANSNUM_MAX_RADIUS", "-1"),
    ],
)
def test_invalid_environment_raises(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    reset_config()
    with pytest.raises(ValueError):
        load_config()


def test_direct_construction_is_validated():
    with pytest.raises(ValueError):
        EngineConfig(probe_bits=0)
    with pytest.raises(ValueError):
        EngineConfig(default_tolerance=Fraction(0))
