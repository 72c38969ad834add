#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Periodic orbits and rational translation numbers.

A point x is (period q, shift p) periodic for f when f^q(x) = x + p. Then tau(f) = p / q
exactly. Conversely a continuous lift with tau(f) = p / q has such a point: f^q(x) - x - p is
continuous, 1-periodic and takes both signs, so it vanishes somewhere in [0, 1).

For piecewise-linear lifts f^q is computed exactly and its displacement range decides
existence, so rational rotation is detected without any limiting error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, List, Optional

from circle_lift import (
    DegreeOneLift,
    LiftInputError,
    PiecewiseLinearLift,
    as_fraction_strict,
    compose,
    displacement_range,
    fraction_ceil,
    fraction_floor,
    iterate,
    solve_displacement,
)
from translation_number import orbit_return_in

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodicOrbit:
    point: Fraction
    period: int
    shift: int

    def __post_init__(self) -> None:
        if not isinstance(self.period, int) or self.period < 1:
            raise LiftInputError(f"period must be int >= 1, got {self.period!r}")
        if not isinstance(self.shift, int) or isinstance(self.shift, bool):
            raise LiftInputError(f"shift must be int, got {self.shift!r}")

    @property
    def translation_number(self) -> Fraction:
        return Fraction(self.shift, self.period)

    def points(self, f: DegreeOneLift) -> List[Fraction]:
        """x, f(x), ..., f^(q-1)(x)."""
        out = [self.point]
        for _ in range(self.period - 1):
            out.append(f(out[-1]))
        return out


def _check_period(n: Any) -> int:
    if not isinstance(n, int) or isinstance(n, bool) or n < 1:
        raise LiftInputError(f"period must be int >= 1, got {n!r}")
    return n


def is_periodic_point(f: DegreeOneLift, x: Any, n: int, m: int) -> bool:
    """f^n(x) == x + m, exactly."""
    n = _check_period(n)
    if not isinstance(m, int) or isinstance(m, bool):
        raise LiftInputError(f"shift must be int, got {m!r}")
    x = as_fraction_strict(x, name="x")
    return iterate(f, x, n) == x + m


def translation_number_of_periodic_point(f: DegreeOneLift, x: Any, n: int, m: int) -> Fraction:
    """tau(f) = m / n, given f^n(x) = x + m."""
    if not is_periodic_point(f, x, n, m):
        raise LiftInputError(f"{x} is not a periodic point of {f.label} with period {n} and shift {m}")
    return Fraction(m, n)


def orbit_return(f: DegreeOneLift, max_steps: int) -> Optional[PeriodicOrbit]:
    """
    Return of the orbit of 0 modulo Z within max_steps iterates, as a periodic orbit through
    the first repeated point.
    """
    if not isinstance(max_steps, int) or max_steps < 1:
        raise LiftInputError(f"max_steps must be int >= 1, got {max_steps!r}")
    orbit = f.orbit_of_zero(max_steps)
    ret = orbit_return_in(orbit)
    if ret is None:
        return None
    j, k, m = ret
    return PeriodicOrbit(point=orbit[j], period=k - j, shift=m)


def _require_pl(f: DegreeOneLift) -> PiecewiseLinearLift:
    if not isinstance(f, PiecewiseLinearLift):
        raise LiftInputError(f"exact periodic-point search needs a piecewise-linear lift, got {f.label}")
    return f


def find_periodic_point(f: DegreeOneLift, shift: int, period: int) -> Optional[PeriodicOrbit]:
    """Exact x in [0, 1) with f^period(x) = x + shift, or None."""
    _require_pl(f)
    period = _check_period(period)
    if not isinstance(shift, int) or isinstance(shift, bool):
        raise LiftInputError(f"shift must be int, got {shift!r}")
    fq = f ** period
    x = solve_displacement(fq, shift)
    if x is None:
        return None
    return PeriodicOrbit(point=x, period=period, shift=shift)


def rational_rotation(f: DegreeOneLift, max_period: int) -> Optional[PeriodicOrbit]:
    """
    Least period q <= max_period for which f^q(x) = x + p has a solution; then tau(f) = p / q.

    An integer p in the displacement range of f^q means f^q(x) - x hits p (continuity); since
    a fixed point of f^q - p pins tau(f^q) = p, at most one integer can be hit.
    """
    _require_pl(f)
    max_period = _check_period(max_period)
    fq: PiecewiseLinearLift = f
    for q in range(1, max_period + 1):
        if q > 1:
            fq = compose(f, fq)
        lo, hi = displacement_range(fq)
        p_lo, p_hi = fraction_ceil(lo), fraction_floor(hi)
        if p_lo <= p_hi:
            x = solve_displacement(fq, p_lo)
            _logger.debug("rational rotation of %s: period=%d shift=%d at x=%s", f.label, q, p_lo, x)
            return PeriodicOrbit(point=x, period=q, shift=p_lo)
    return None
