"""
Degree-one lift carrier: construction, monoid, lattice and units.
"""

from concurrent.futures import ThreadPoolExecutor
from fractions import Fraction

import pytest

from circle_lift import (
    FunctionLift,
    LiftInputError,
    LiftInvariantViolation,
    NotAUnitError,
    PiecewiseLinearLift,
    as_fraction_strict,
    as_unit,
    commutes,
    compose,
    displacement_range,
    fraction_ceil,
    fraction_floor,
    identity,
    iterate,
    iterate_pow,
    join,
    le,
    lifts_agree,
    meet,
    piecewise_linear,
    probe_grid,
    solve_displacement,
    translate,
)

SAMPLE = [Fraction(j, 12) for j in range(-12, 25)]


def _rot(c):
    c = Fraction(c)
    return FunctionLift.from_function(lambda x: x + c, inverse=lambda y: y - c, continuous=True, label=f"rot{c}")


def test_floor_ceil_are_exact_on_negatives():
    assert fraction_floor(Fraction(-3, 2)) == -2
    assert fraction_ceil(Fraction(-3, 2)) == -1
    assert fraction_floor(Fraction(4)) == 4
    assert fraction_ceil(Fraction(4)) == 4


def test_strict_coercion_rejects_float_and_complex():
    assert as_fraction_strict("0.37") == Fraction(37, 100)
    with pytest.raises(LiftInputError):
        as_fraction_strict(0.5)
    with pytest.raises(LiftInputError):
        as_fraction_strict(1j)
    with pytest.raises(LiftInputError):
        as_fraction_strict("half")


def test_knot_table_validation():
    with pytest.raises(LiftInvariantViolation):
        piecewise_linear([(0, 0), ("1/2", "-1/4")])
    with pytest.raises(LiftInvariantViolation):
        piecewise_linear([(0, 0), ("1/2", "3/2")])
    with pytest.raises(LiftInputError):
        piecewise_linear([("1/4", 0)])
    with pytest.raises(LiftInputError):
        piecewise_linear([(0, 0.25)])
    with pytest.raises(LiftInvariantViolation):
        piecewise_linear([(0, 0), (1, 2)])


def test_normalised_tables_compare_extensionally():
    a = piecewise_linear([(0, 0), ("1/2", "1/2")])
    b = piecewise_linear([(0, 0), ("1/3", "1/3"), (1, 1)])
    assert a == identity() == b
    assert hash(a) == hash(identity())


def test_evaluation_and_integer_shift(slow_lift):
    assert slow_lift(0) == Fraction(1, 4)
    assert slow_lift("1/4") == Fraction(3, 8)
    assert slow_lift("1/2") == Fraction(1, 2)
    assert slow_lift("-1/2") == Fraction(-1, 2)
    assert slow_lift("7/4") == slow_lift("3/4") + 1


def test_compose_is_exact_and_pointwise(rational_lift, slow_lift):
    fg = compose(rational_lift, slow_lift)
    assert isinstance(fg, PiecewiseLinearLift)
    for x in SAMPLE:
        assert fg(x) == rational_lift(slow_lift(x))
    assert rational_lift * slow_lift == fg


def test_monoid_laws(rational_lift, slow_lift, skew_lift):
    e = identity()
    assert compose(e, rational_lift) == rational_lift == compose(rational_lift, e)
    left = compose(compose(rational_lift, slow_lift), skew_lift)
    right = compose(rational_lift, compose(slow_lift, skew_lift))
    assert left == right


def test_compose_not_commutative(skew_lift, slow_lift):
    assert compose(skew_lift, slow_lift)(0) == Fraction(3, 8)
    assert compose(slow_lift, skew_lift)(0) == Fraction(1, 4)
    assert not commutes(skew_lift, slow_lift)
    assert commutes(translate("1/3").lift, translate("1/5").lift)


def test_iterate_pow_matches_function_iterate(rational_lift):
    f3 = iterate_pow(rational_lift, 3)
    assert f3 == compose(rational_lift, compose(rational_lift, rational_lift))
    assert rational_lift ** 0 == identity()
    for x in SAMPLE:
        assert f3(x) == iterate(rational_lift, x, 3)


def test_negative_power_needs_a_unit():
    flat = piecewise_linear([(0, 0), ("1/2", 0)])
    assert as_unit(flat) is None
    with pytest.raises(NotAUnitError):
        iterate_pow(flat, -1)


def test_units_form_a_group(rational_lift):
    u = as_unit(rational_lift)
    assert u is not None
    assert compose(u.lift, u.inv) == identity()
    assert compose(u.inv, u.lift) == identity()
    assert (u ** -2 * u ** 2).lift == identity()
    assert rational_lift ** -1 == rational_lift.inverse_lift()
    assert u.inverse().inverse() == u


def test_translate_is_a_homomorphism():
    assert (translate("1/3") * translate("1/4")).lift == translate("7/12").lift
    assert translate(0).lift == identity()
    assert translate("0.37")(1) == Fraction(137, 100)


def test_lattice_is_pointwise(skew_lift, slow_lift):
    hi = join(skew_lift, slow_lift)
    lo = meet(skew_lift, slow_lift)
    for x in list(probe_grid(4)) + SAMPLE:
        assert hi(x) == max(skew_lift(x), slow_lift(x))
        assert lo(x) == min(skew_lift(x), slow_lift(x))
    assert le(lo, hi)
    assert skew_lift <= skew_lift | slow_lift
    assert skew_lift & slow_lift <= slow_lift
    assert hi >= slow_lift
    assert not le(skew_lift, slow_lift) and not le(slow_lift, skew_lift)


def test_order_is_antisymmetric(rational_lift):
    same = piecewise_linear(list(rational_lift.points) + [(1, "5/3")])
    assert lifts_agree(rational_lift, same)
    assert rational_lift == same


def test_function_lift_validation():
    with pytest.raises(LiftInvariantViolation):
        FunctionLift.from_function(lambda x: 2 * x)
    with pytest.raises(LiftInvariantViolation):
        FunctionLift.from_function(lambda x: -x)
    with pytest.raises(LiftInputError):
        FunctionLift.from_function(lambda x: float(x))
    with pytest.raises(LiftInputError):
        FunctionLift.from_function(lambda x: x + Fraction(1, 3), inverse=lambda y: y - Fraction(1, 4))


def test_jump_lift_is_valid_but_not_a_unit():
    floor_lift = FunctionLift.from_function(lambda x: fraction_floor(x), label="floor")
    assert floor_lift("3/2") == 1
    assert as_unit(floor_lift) is None


def test_opaque_lifts_compose_and_compare():
    rot = _rot("1/3")
    assert (rot ** 3)(0) == 1
    assert (rot ** -1)(0) == Fraction(-1, 3)
    assert le(rot, translate("1/2").lift)
    assert not le(translate("1/2").lift, rot)
    both = compose(rot, translate("1/6").lift)
    assert both("1/4") == Fraction(3, 4)
    assert as_unit(both) is not None
    assert commutes(rot, translate("1/6").lift)


def test_displacement_range_and_roots(slow_lift, rational_lift):
    assert displacement_range(slow_lift) == (Fraction(0), Fraction(1, 4))
    assert solve_displacement(slow_lift, 0) == Fraction(1, 2)
    assert solve_displacement(slow_lift, "1/2") is None
    assert displacement_range(rational_lift) == (Fraction(13, 24), Fraction(2, 3))
    with pytest.raises(LiftInputError):
        displacement_range(_rot("1/3"))


def test_orbit_cache_under_threads(rational_lift):
    def run(_):
        return tuple(rational_lift.orbit_of_zero(40))

    with ThreadPoolExecutor(max_workers=4) as pool:
        orbits = set(pool.map(run, range(8)))
    assert len(orbits) == 1
    orbit = orbits.pop()
    assert orbit[3] == 2
    assert orbit[40] == iterate(rational_lift, 0, 40)


def test_orbit_cache_keeps_a_bounded_prefix(slow_lift, monkeypatch):
    from engine_config import reset_config

    monkeypatch.setenv("TRANSNUM_MAX_ORBIT", "8")
    reset_config()
    orbit = slow_lift.orbit_of_zero(30)
    assert len(slow_lift._orbit) == 9
    assert orbit[30] == iterate(slow_lift, 0, 30)
    assert slow_lift.orbit_of_zero(30) == orbit
    assert slow_lift.orbit_of_zero(5) == orbit[:6]
    assert len(slow_lift._orbit) == 9


def test_mesh_step_rounds_to_the_mesh(rational_lift, skew_lift):
    for f in (rational_lift, skew_lift, translate("-5/2").lift):
        opaque = FunctionLift(f, label="opaque")
        down, up = f.mesh_step(5), f.mesh_step(5, upward=True)
        for y in range(-70, 70, 3):
            x = Fraction(y, 32)
            assert down(y) == fraction_floor(f(x) * 32) == opaque.mesh_step(5)(y)
            assert up(y) == fraction_ceil(f(x) * 32) == opaque.mesh_step(5, upward=True)(y)
            assert down(y + 32) == down(y) + 32
    with pytest.raises(LiftInputError):
        rational_lift.mesh_step(-1)
