#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Translation number of a degree-one lift.

    tau(f) = lim a_n,   a_n = f^(2^n)(0) / 2^n

Certificate chain:
  1. |a_n - a_{n+1}| < (1/2) / 2^n          (composition window applied to F = f^(2^n))
  2. sum_{k >= n} (1/2) / 2^k = 1 / 2^n      (geometric domination, ratio 1/2)
  3. |a_n - tau| <= 1 / 2^n                  (certified error after n steps)

So a tolerance eps costs n = ceil(log2(4/eps)) dyadic steps, i.e. 2^n evaluations of f.

Exact path: if the orbit of 0 returns to itself modulo Z, f^k(0) = f^j(0) + m, then
f^(k-j)(x) = x + m at x = f^j(0) and tau = m / (k - j) exactly; no limiting error.

Mesh path: exact Fraction orbits grow by about a bit of denominator per step, so the chain
runs on g- <= f <= g+, the lift rounded down and up to the mesh 2^-bits. Both are lifts,
tau(g-) <= tau(f) <= tau(g+), and their orbits stay integers over 2^bits.

Redlines:
  - The step bound of (1) is checked on every computed pair; a breach raises
    LiftInvariantViolation (the input was not a lift).
  - error_bound <= tolerance on every returned estimate.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from circle_lift import (
    DegreeOneLift,
    LiftComputationError,
    LiftInputError,
    LiftInvariantViolation,
    PiecewiseLinearLift,
    as_fraction_strict,
    displacement_range,
    fraction_ceil,
    fraction_floor,
    fractional_part,
    iterate,
    probe_grid,
    solve_displacement,
)
from engine_config import configure_smoke_logging, load_config
from lift_estimates import composition_defect_values, dyadic_step_bound

_logger = logging.getLogger(__name__)

_HALF = Fraction(1, 2)


# ===========================================================
# Section 1: Results
# ===========================================================

@dataclass(frozen=True)
class CauchyLimit:
    value: Fraction
    error_bound: Fraction
    steps: int


@dataclass(frozen=True)
class TranslationEstimate:
    """
    tau(f) lies in [value - error_bound, value + error_bound]; exact means error_bound == 0
    and value is tau itself.
    """

    value: Fraction
    error_bound: Fraction
    steps: int
    exact: bool = False

    @property
    def lower(self) -> Fraction:
        return self.value - self.error_bound

    @property
    def upper(self) -> Fraction:
        return self.value + self.error_bound

    def contains(self, x: Any) -> bool:
        x = as_fraction_strict(x, name="x")
        return self.lower <= x <= self.upper


def intervals_overlap(a: TranslationEstimate, b: TranslationEstimate) -> bool:
    """False only when the certified intervals prove tau(a) != tau(b)."""
    return a.lower <= b.upper and b.lower <= a.upper


# ===========================================================
# Section 2: Geometric Cauchy limits
# ===========================================================

def _check_tolerance(tolerance: Any) -> Fraction:
    if tolerance is None:
        return load_config().default_tolerance
    tol = as_fraction_strict(tolerance, name="tolerance")
    if tol <= 0:
        raise LiftInputError(f"tolerance must be > 0, got {tol}")
    return tol


def steps_for_tolerance(tolerance: Any, *, ratio: Any = _HALF, scale: Any = _HALF) -> int:
    """Least n with scale * ratio^n / (1 - ratio) <= tolerance."""
    tol = _check_tolerance(tolerance)
    r = as_fraction_strict(ratio, name="ratio")
    c = as_fraction_strict(scale, name="scale")
    if not 0 < r < 1:
        raise LiftInputError(f"ratio must lie in (0, 1), got {r}")
    if c < 0:
        raise LiftInputError(f"scale must be >= 0, got {c}")
    n = 0
    tail = c / (1 - r)
    while tail > tol:
        tail *= r
        n += 1
    return n


def geometric_cauchy_limit(
    term: Callable[[int], Any],
    *,
    ratio: Any = _HALF,
    scale: Any = _HALF,
    tolerance: Any = None,
) -> CauchyLimit:
    """
    Limit of a sequence with |a_k - a_{k+1}| <= scale * ratio^k.

    Stops at the least n whose tail bound scale * ratio^n / (1 - ratio) is within tolerance;
    every consecutive pair up to n is checked against its step bound.
    """
    tol = _check_tolerance(tolerance)
    r = as_fraction_strict(ratio, name="ratio")
    c = as_fraction_strict(scale, name="scale")
    n = steps_for_tolerance(tol, ratio=r, scale=c)
    prev = as_fraction_strict(term(0), name="a_0")
    step = c
    for k in range(n):
        cur = as_fraction_strict(term(k + 1), name=f"a_{k + 1}")
        if abs(cur - prev) > step:
            raise LiftInvariantViolation(f"|a_{k} - a_{k + 1}| = {abs(cur - prev)} exceeds step bound {step}")
        prev = cur
        step *= r
    return CauchyLimit(value=prev, error_bound=c * r ** n / (1 - r), steps=n)


# ===========================================================
# Section 3: The estimator
# ===========================================================

# Mesh refinements tried before falling back to the exact orbit.
_MESH_ROUNDS = 3


def _dyadic_points(step: Callable[[Any], Any], start: Any, n: int) -> List[Any]:
    """[g^(2^k)(start) for k = 0..n], where g is applied through step."""
    out = []
    y = start
    done = 0
    for k in range(n + 1):
        while done < 2 ** k:
            y = step(y)
            done += 1
        out.append(y)
    return out


def dyadic_sample(f: DegreeOneLift, n: int) -> Fraction:
    """a_n = f^(2^n)(0) / 2^n, on the exact orbit."""
    if not isinstance(n, int) or n < 0:
        raise LiftInputError(f"dyadic index must be int >= 0, got {n!r}")
    return _dyadic_points(f, Fraction(0), n)[n] / 2 ** n


def mesh_bits_for(tolerance: Any) -> int:
    """Least b with 2^-b <= tolerance / 4."""
    quarter = _check_tolerance(tolerance) / 4
    bits = 0
    while Fraction(1, 2 ** bits) > quarter:
        bits += 1
    return bits


def rounded_dyadic_samples(f: DegreeOneLift, n: int, bits: int, *, upward: bool = False) -> List[Fraction]:
    """
    [g^(2^k)(0) / 2^k for k = 0..n] where g is f rounded down (up) to the mesh 2^-bits.

    g is a degree-one lift with g <= f (g >= f), so its samples bracket the exact ones and
    tau(g) <= tau(f) (tau(g) >= tau(f)).
    """
    if not isinstance(n, int) or n < 0:
        raise LiftInputError(f"dyadic index must be int >= 0, got {n!r}")
    size = 2 ** bits
    points = _dyadic_points(f.mesh_step(bits, upward=upward), 0, n)
    return [Fraction(y, size) / 2 ** k for k, y in enumerate(points)]


def _certified_limit(samples: Sequence[Fraction], tolerance: Fraction) -> CauchyLimit:
    # samples[k] = F(0) / 2^k with F = g^(2^k), and F(F(0)) = samples[k + 1] * 2^(k + 1)
    for k in range(len(samples) - 1):
        p = samples[k] * 2 ** k
        composition_defect_values(p, p, samples[k + 1] * 2 ** (k + 1))
        _logger.debug("dyadic step %d: a=%s bound=%s", k, samples[k], dyadic_step_bound(k))
    return geometric_cauchy_limit(lambda k: samples[k], ratio=_HALF, scale=_HALF, tolerance=tolerance)


def orbit_return_in(orbit: Iterable[Fraction]) -> Optional[Tuple[int, int, int]]:
    """
    First (j, k, m) with j < k and orbit[k] = orbit[j] + m, m in Z, or None.

    The orbit is consumed lazily and the scan stops at the first return.
    """
    first_seen: Dict[Fraction, Tuple[int, Fraction]] = {}
    for k, x in enumerate(orbit):
        r = fractional_part(x)
        hit = first_seen.get(r)
        if hit is not None:
            j, xj = hit
            return j, k, int(x - xj)
        first_seen[r] = (k, x)
    return None


def _short_orbit(f: DegreeOneLift, max_steps: int, max_denominator: int) -> Iterator[Fraction]:
    """Exact orbit of 0 for at most max_steps steps, cut at the first denominator above max_denominator."""
    x = Fraction(0)
    for k in range(max_steps + 1):
        if x.denominator > max_denominator:
            return
        yield x
        if k < max_steps:
            x = f(x)


def translation_number(f: DegreeOneLift, tolerance: Any = None) -> TranslationEstimate:
    """
    tau(f) with a certified error bound <= tolerance (config default when omitted).

    The exact orbit of 0 is scanned for a return while its denominators stay on the mesh
    scale. Without one, tau is bracketed between the rounded-down and rounded-up lifts: both
    orbits live on the mesh 2^-bits, so every step costs integer arithmetic of fixed size.
    If the bracket is too wide the mesh is refined, and after _MESH_ROUNDS tries the exact
    orbit is used.
    """
    if not isinstance(f, DegreeOneLift):
        raise LiftInputError(f"translation_number expects a DegreeOneLift, got {type(f).__name__}")
    tol = _check_tolerance(tolerance)
    quarter = tol / 4
    n = steps_for_tolerance(quarter)
    bits = mesh_bits_for(tol)

    ret = orbit_return_in(_short_orbit(f, 2 ** n, 2 ** bits))
    if ret is not None:
        j, k, m = ret
        value = Fraction(m, k - j)
        _logger.debug("tau(%s) = %s exactly: orbit of 0 returns at j=%d k=%d shift=%d", f.label, value, j, k, m)
        return TranslationEstimate(value=value, error_bound=Fraction(0), steps=n, exact=True)

    for _ in range(_MESH_ROUNDS):
        low = _certified_limit(rounded_dyadic_samples(f, n, bits), quarter)
        high = _certified_limit(rounded_dyadic_samples(f, n, bits, upward=True), quarter)
        lower = low.value - low.error_bound
        upper = high.value + high.error_bound
        if upper - lower <= 2 * tol:
            _logger.debug("tau(%s) in [%s, %s] on mesh 2^-%d after %d dyadic steps", f.label, lower, upper, bits, n)
            return TranslationEstimate(value=(lower + upper) / 2, error_bound=(upper - lower) / 2, steps=n)
        _logger.debug("mesh 2^-%d brackets tau(%s) in [%s, %s]; refining", bits, f.label, lower, upper)
        bits *= 2

    _logger.warning("rounded orbits of %s did not pin tau within %s; using the exact orbit", f.label, tol)
    exact = [x / 2 ** k for k, x in enumerate(_dyadic_points(f, Fraction(0), n))]
    limit = _certified_limit(exact, quarter)
    _logger.debug("tau(%s) ~ %s +/- %s after %d dyadic steps", f.label, limit.value, limit.error_bound, limit.steps)
    return TranslationEstimate(value=limit.value, error_bound=limit.error_bound, steps=limit.steps)


def transfer_estimate(
    xs: Callable[[int], Any],
    *,
    distance_bound: Any,
    tolerance: Any = None,
    lift: Optional[DegreeOneLift] = None,
) -> TranslationEstimate:
    """
    Bounded-distance transfer.

    If |f^n(0) - xs(n)| <= C for every n, then |xs(2^n)/2^n - tau(f)| <= (C + 1) / 2^n. Passing
    the lift checks the distance hypothesis at the index actually used.
    """
    c = as_fraction_strict(distance_bound, name="distance_bound")
    if c < 0:
        raise LiftInputError(f"distance_bound must be >= 0, got {c}")
    tol = _check_tolerance(tolerance)
    n = steps_for_tolerance(tol, ratio=_HALF, scale=(c + 1) / 2)
    count = 2 ** n
    x = as_fraction_strict(xs(count), name=f"xs({count})")
    if lift is not None:
        true_x = lift.orbit_of_zero(count)[count]
        if abs(true_x - x) > c:
            raise LiftInputError(f"xs({count}) = {x} is {abs(true_x - x)} away from the orbit, bound was {c}")
    return TranslationEstimate(value=x / count, error_bound=(c + 1) / count, steps=n)


def average_displacement(f: DegreeOneLift, x: Any, n: int) -> TranslationEstimate:
    """
    (f^n(x) - x) / n, which is strictly within 1/n of tau(f) for every base point x.
    """
    if not isinstance(n, int) or n < 1:
        raise LiftInputError(f"iterate count must be int >= 1, got {n!r}")
    x = as_fraction_strict(x, name="x")
    return TranslationEstimate(value=(iterate(f, x, n) - x) / n, error_bound=Fraction(1, n), steps=n)


def translation_number_at(f: DegreeOneLift, x: Any, tolerance: Any = None) -> TranslationEstimate:
    tol = _check_tolerance(tolerance)
    return average_displacement(f, x, fraction_ceil(1 / tol))


# ===========================================================
# Section 4: Sandwich estimates and the displacement point
# ===========================================================

def translation_number_sandwich(f: DegreeOneLift, x: Any) -> Tuple[int, int]:
    """floor(f(x) - x) <= tau(f) <= ceil(f(x) - x)."""
    x = as_fraction_strict(x, name="x")
    d = f(x) - x
    return fraction_floor(d), fraction_ceil(d)


def strict_bounds(f: DegreeOneLift, x: Any, estimate: TranslationEstimate) -> Tuple[Fraction, Fraction]:
    """
    Open window (x + tau - 1, x + tau + 1) for f(x), widened by the estimate's error, checked
    against f(x).
    """
    x = as_fraction_strict(x, name="x")
    lo = x + estimate.lower - 1
    hi = x + estimate.upper + 1
    v = f(x)
    if not lo < v < hi:
        raise LiftInvariantViolation(f"{f.label}({x}) = {v} escapes ({lo}, {hi})")
    return lo, hi


def translation_number_bracket(f: DegreeOneLift) -> Tuple[Fraction, Fraction]:
    """
    For a continuous (piecewise-linear) lift: min(f(x) - x) <= tau(f) <= max(f(x) - x).
    """
    return displacement_range(f)


@dataclass(frozen=True)
class DisplacementPoint:
    """
    f(x) = x + displacement for some x in [lower, upper], with |displacement - tau| <= error_bound.
    """

    lower: Fraction
    upper: Fraction
    displacement: Fraction
    error_bound: Fraction

    @property
    def point(self) -> Fraction:
        return (self.lower + self.upper) / 2


def displacement_point(f: DegreeOneLift, tolerance: Any = None) -> DisplacementPoint:
    """
    A point where f moves by its translation number (continuous lifts only).

    Piecewise-linear lifts get an exact root; opaque continuous lifts are bracketed on the
    probe grid and bisected until the bracket is narrower than tolerance.
    """
    tol = _check_tolerance(tolerance)
    est = translation_number(f, tol)
    if isinstance(f, PiecewiseLinearLift):
        lo_d, hi_d = displacement_range(f)
        target = min(max(est.value, lo_d), hi_d)
        x = solve_displacement(f, target)
        if x is None:
            raise LiftComputationError(f"no root of {f.label}(x) - x = {target} in [0, 1)")
        return DisplacementPoint(lower=x, upper=x, displacement=target, error_bound=est.error_bound)

    if not f.is_continuous:
        raise LiftInputError(f"displacement_point needs a continuous lift, {f.label} is not declared continuous")
    target = est.value

    def h(t: Fraction) -> Fraction:
        return f(t) - t - target

    grid = list(probe_grid())
    bracket: Optional[Tuple[Fraction, Fraction]] = None
    for a, b in zip(grid, grid[1:]):
        ha, hb = h(a), h(b)
        if ha == 0:
            return DisplacementPoint(lower=a, upper=a, displacement=target, error_bound=est.error_bound)
        if (ha < 0) != (hb < 0):
            bracket = (a, b)
            break
    if bracket is None:
        raise LiftComputationError(f"no sign change of {f.label}(x) - x - {target} on the probe grid")
    a, b = bracket
    neg_at_a = h(a) < 0
    while b - a > tol:
        mid = (a + b) / 2
        hm = h(mid)
        if hm == 0:
            a = b = mid
            break
        if (hm < 0) == neg_at_a:
            a = mid
        else:
            b = mid
    return DisplacementPoint(lower=a, upper=b, displacement=target, error_bound=est.error_bound)


# ===========================================================
# Smoke
# ===========================================================

def main() -> int:
    from circle_lift import compose, piecewise_linear, translate

    configure_smoke_logging()
    _logger.info("translation_number smoke: START")

    t = translate("0.37")
    est = translation_number(t.lift, Fraction(1, 256))
    _logger.info("[translate] tau=%s err=%s exact=%s", est.value, est.error_bound, est.exact)
    if est.value != Fraction(37, 100):
        raise LiftComputationError(f"calibration failed: tau(translate(0.37)) = {est.value}")

    f = piecewise_linear([(0, "2/3"), ("1/3", 1), ("1/2", "25/24"), ("2/3", "4/3")])
    est = translation_number(f, Fraction(1, 256))
    _logger.info("[rational] tau=%s err=%s exact=%s", est.value, est.error_bound, est.exact)
    if not (est.exact and est.value == Fraction(2, 3)):
        raise LiftComputationError(f"rational exactness failed: {est}")

    g = piecewise_linear([(0, "1/4"), ("1/2", "1/2")])
    est_g = translation_number(g, Fraction(1, 256))
    est_fg = translation_number(compose(f, g), Fraction(1, 256))
    _logger.info("[non-commuting] tau(g)=%s+/-%s tau(f o g)=%s+/-%s", est_g.value, est_g.error_bound, est_fg.value, est_fg.error_bound)

    dp = displacement_point(f, Fraction(1, 256))
    _logger.info("[displacement] f(%s) = %s + %s", dp.point, dp.point, dp.displacement)

    _logger.info("translation_number smoke: PASS")
    return 0


if __name__ == "__main__":
    sys.exit(main())
