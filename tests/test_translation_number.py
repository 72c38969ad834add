"""
Translation-number estimator: certified dyadic limit, exact rational path, algebraic laws.
"""

import logging
from fractions import Fraction

import pytest

from circle_lift import (
    FunctionLift,
    LiftInputError,
    LiftInvariantViolation,
    as_unit,
    compose,
    displacement_range,
    fraction_floor,
    identity,
    iterate,
    join,
    le,
    meet,
    translate,
)
from translation_number import (
    TranslationEstimate,
    average_displacement,
    displacement_point,
    dyadic_sample,
    geometric_cauchy_limit,
    intervals_overlap,
    mesh_bits_for,
    orbit_return_in,
    rounded_dyadic_samples,
    steps_for_tolerance,
    strict_bounds,
    transfer_estimate,
    translation_number,
    translation_number_at,
    translation_number_bracket,
    translation_number_sandwich,
)

TOL = Fraction(1, 1024)


def test_identity_and_translation_calibration():
    est = translation_number(identity(), TOL)
    assert est.exact and est.value == 0
    est = translation_number(translate("0.37").lift, TOL)
    assert est.value == Fraction(37, 100)
    assert est.error_bound <= TOL


def test_rational_exactness(rational_lift):
    assert iterate(rational_lift, 0, 3) == 2
    est = translation_number(rational_lift, TOL)
    assert est.exact
    assert est.value == Fraction(2, 3)
    assert est.error_bound == 0


def test_certified_bound_without_orbit_return(slow_lift):
    est = translation_number(slow_lift, TOL)
    assert not est.exact
    assert 0 < est.error_bound <= TOL
    assert est.contains(0)
    assert est.steps == 12


def test_fine_tolerance_runs_on_the_mesh(slow_lift):
    tol = Fraction(1, 2 ** 16)
    est = translation_number(slow_lift, tol)
    assert not est.exact
    assert 0 < est.error_bound <= tol
    assert est.contains(0)
    assert est.steps == 18


def test_rounded_samples_bracket_the_exact_orbit(slow_lift, rational_lift):
    for f in (slow_lift, rational_lift, FunctionLift(slow_lift, continuous=True, label="slow")):
        down = rounded_dyadic_samples(f, 6, 8)
        up = rounded_dyadic_samples(f, 6, 8, upward=True)
        for k in range(7):
            assert down[k] <= dyadic_sample(f, k) <= up[k]
            assert (down[k] * 2 ** k * 2 ** 8).denominator == 1
    opaque = rounded_dyadic_samples(FunctionLift(rational_lift, label="r"), 5, 7, upward=True)
    assert opaque == rounded_dyadic_samples(rational_lift, 5, 7, upward=True)


def test_mesh_bits_for():
    assert mesh_bits_for(TOL) == 12
    assert mesh_bits_for(1) == 2
    assert mesh_bits_for("1/3") == 4


def test_default_tolerance_comes_from_config(slow_lift, monkeypatch):
    from engine_config import reset_config

    monkeypatch.setenv("TRANSNUM_TOLERANCE", "1/16")
    reset_config()
    est = translation_number(slow_lift)
    assert est.error_bound <= Fraction(1, 16)
    assert est.steps == 6


def test_f0_stays_within_one_of_tau(rational_lift, slow_lift, skew_lift):
    for f in (rational_lift, slow_lift, skew_lift, translate("-5/2").lift):
        est = translation_number(f, TOL)
        assert abs(f(0) - est.value) <= 1 + est.error_bound


def test_powers_scale_tau(rational_lift, slow_lift):
    assert translation_number(rational_lift ** 2, TOL).value == Fraction(4, 3)
    assert translation_number(rational_lift ** 5, TOL).value == Fraction(10, 3)
    assert translation_number(rational_lift ** -1, TOL).value == Fraction(-2, 3)
    assert translation_number(rational_lift ** -3, TOL).value == -2
    est = translation_number(slow_lift, TOL)
    est3 = translation_number(slow_lift ** 3, TOL)
    assert not est3.exact
    assert abs(est3.value - 3 * est.value) <= est3.error_bound + 3 * est.error_bound


def test_additive_on_commuting_lifts(rational_lift):
    est = translation_number(compose(translate("1/3").lift, translate("1/4").lift), TOL)
    assert est.value == Fraction(7, 12)
    est = translation_number(compose(rational_lift, rational_lift ** 2), TOL)
    assert est.value == 2


def test_not_additive_without_commuting(skew_lift, slow_lift):
    est_f = translation_number(skew_lift, TOL)
    est_g = translation_number(slow_lift, TOL)
    fg = compose(skew_lift, slow_lift)
    est_fg = translation_number(fg, TOL)
    assert est_f.exact and est_f.value == 0
    assert displacement_range(fg)[0] == Fraction(1, 6)
    assert est_fg.lower > est_f.upper + est_g.upper


def test_monotone_in_the_lift(skew_lift, rational_lift):
    below = meet(skew_lift, rational_lift)
    above = join(translate("3/4").lift, rational_lift)
    assert le(below, rational_lift) and le(rational_lift, above)
    assert not le(above, rational_lift) and not le(rational_lift, below)
    lo = translation_number(below, TOL)
    mid = translation_number(rational_lift, TOL)
    hi = translation_number(above, TOL)
    assert lo.lower <= mid.upper
    assert mid.lower <= hi.upper


def test_exact_orbit_fallback(slow_lift, monkeypatch, caplog):
    import translation_number as tn

    monkeypatch.setattr(tn, "_MESH_ROUNDS", 0)
    with caplog.at_level(logging.WARNING, logger="translation_number"):
        est = translation_number(slow_lift, Fraction(1, 16))
    assert "using the exact orbit" in caplog.text
    assert est.value == dyadic_sample(slow_lift, est.steps)
    assert est.contains(0) and est.error_bound <= Fraction(1, 64)


def test_conjugation_invariance(rational_lift, bend_unit):
    conj = bend_unit.conj(rational_lift)
    assert conj != rational_lift
    est = translation_number(conj, TOL)
    assert est.exact and est.value == Fraction(2, 3)


def test_inverse_negates_tau_for_units(slow_lift):
    u = as_unit(slow_lift)
    est = translation_number(u.lift, TOL)
    est_inv = translation_number(u.inv, TOL)
    assert intervals_overlap(est_inv, TranslationEstimate(-est.value, est.error_bound, est.steps))


def test_orbit_return_in():
    assert orbit_return_in([Fraction(0), Fraction(1, 2), Fraction(3, 2)]) == (1, 2, 1)
    assert orbit_return_in([Fraction(0), Fraction(1, 3), Fraction(1, 2)]) is None


def test_steps_for_tolerance():
    assert steps_for_tolerance(TOL) == 10
    assert steps_for_tolerance(1) == 0
    with pytest.raises(LiftInputError):
        steps_for_tolerance(0)
    with pytest.raises(LiftInputError):
        steps_for_tolerance(0.001)


def test_geometric_cauchy_limit():
    limit = geometric_cauchy_limit(lambda k: 1 - Fraction(1, 2 ** k), tolerance=Fraction(1, 64))
    assert limit.steps == 6
    assert limit.value == Fraction(63, 64)
    assert abs(limit.value - 1) <= limit.error_bound <= Fraction(1, 64)
    with pytest.raises(LiftInvariantViolation):
        geometric_cauchy_limit(lambda k: k, tolerance=Fraction(1, 64))


def test_bounded_distance_transfer(rational_lift):
    shifted = lambda n: iterate(rational_lift, 0, n) + Fraction(1, 2)  # noqa: E731
    est = transfer_estimate(shifted, distance_bound="1/2", tolerance=Fraction(1, 64), lift=rational_lift)
    assert est.error_bound <= Fraction(1, 64)
    assert est.contains(Fraction(2, 3))
    with pytest.raises(LiftInputError):
        transfer_estimate(lambda n: iterate(rational_lift, 0, n) + 5, distance_bound=1, lift=rational_lift)


def test_average_displacement_any_base_point(rational_lift, slow_lift):
    est = average_displacement(rational_lift, "1/5", 30)
    assert est.error_bound == Fraction(1, 30)
    assert est.contains(Fraction(2, 3))
    assert translation_number_at(slow_lift, "1/4", "1/8").contains(0)
    with pytest.raises(LiftInputError):
        average_displacement(rational_lift, 0, 0)


def test_sandwich_and_strict_bounds(rational_lift):
    est = translation_number(rational_lift, TOL)
    for x in ("0", "1/7", "1/2", "-5/3", "9/4"):
        lo, hi = translation_number_sandwich(rational_lift, x)
        assert lo <= est.value <= hi
        strict_bounds(rational_lift, x, est)
    lo, hi = translation_number_bracket(rational_lift)
    assert lo <= est.value <= hi


def test_displacement_point_exact(rational_lift):
    dp = displacement_point(rational_lift, TOL)
    assert dp.lower == dp.upper == 0
    assert rational_lift(dp.point) == dp.point + Fraction(2, 3)


def test_displacement_point_by_bisection(slow_lift):
    opaque = FunctionLift(slow_lift, continuous=True, label="slow")
    dp = displacement_point(opaque, TOL)
    assert dp.upper - dp.lower <= TOL
    assert 0 <= dp.lower <= dp.upper < 1
    assert abs(slow_lift(dp.point) - dp.point - dp.displacement) <= TOL


def test_displacement_point_needs_continuity():
    jump = FunctionLift(lambda x: fraction_floor(x), label="floor")
    with pytest.raises(LiftInputError):
        displacement_point(jump, TOL)


def test_rejects_non_lifts():
    with pytest.raises(LiftInputError):
        translation_number(lambda x: x, TOL)
