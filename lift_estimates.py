#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Integer-translation estimates for degree-one lifts.

Everything here follows from two facts: f is monotone and f(x + n) = f(x) + n for n in Z.

  value_bounds        f(0) + floor(x) <= f(x) <= f(0) + ceil(x)
  composition_window  f(0) + g(0) - 1 < f(g(0)) < f(0) + g(0) + 1
  dyadic_step_bound   |a_n - a_{n+1}| < (1/2) / 2^n for a_n = f^(2^n)(0) / 2^n

The composition window is the seed of both the convergence certificate of the
translation-number estimator and the boundedness of the semiconjugacy supremum.

Redline: the checking variants evaluate the lift and raise LiftInvariantViolation on a
breach; a breach on real values means the callable was never a degree-one lift.
"""

from __future__ import annotations

import logging
from fractions import Fraction
from typing import Any, Tuple

from circle_lift import (
    DegreeOneLift,
    LiftInputError,
    LiftInvariantViolation,
    as_fraction_strict,
    displacement_range,
    fraction_ceil,
    fraction_floor,
    iterate,
)

_logger = logging.getLogger(__name__)


def check_integer_shift(f: DegreeOneLift, x: Any, n: int) -> Fraction:
    """Verify f(x + n) = f(x) + n exactly and return f(x + n)."""
    if not isinstance(n, int) or isinstance(n, bool):
        raise LiftInputError(f"shift must be int, got {type(n).__name__}")
    x = as_fraction_strict(x, name="x")
    shifted = f(x + n)
    base = f(x)
    if shifted != base + n:
        raise LiftInvariantViolation(f"{f.label}({x} + {n}) = {shifted} != {f.label}({x}) + {n} = {base + n}")
    return shifted


def value_bounds(f: DegreeOneLift, x: Any) -> Tuple[Fraction, Fraction]:
    """(f(0) + floor(x), f(0) + ceil(x)), the closed window holding f(x)."""
    x = as_fraction_strict(x, name="x")
    f0 = f(0)
    return f0 + fraction_floor(x), f0 + fraction_ceil(x)


def check_value_bounds(f: DegreeOneLift, x: Any) -> Fraction:
    lo, hi = value_bounds(f, x)
    v = f(x)
    if not lo <= v <= hi:
        raise LiftInvariantViolation(f"{f.label}({x}) = {v} escapes [{lo}, {hi}]")
    return v


def composition_window(f: DegreeOneLift, g: DegreeOneLift) -> Tuple[Fraction, Fraction]:
    """Open interval (f(0) + g(0) - 1, f(0) + g(0) + 1) that contains f(g(0))."""
    s = f(0) + g(0)
    return s - 1, s + 1


def composition_defect_values(f_at_0: Fraction, g_at_0: Fraction, f_at_g0: Fraction) -> Fraction:
    """
    |f(0) + g(0) - f(g(0))| from already computed values; must be < 1.

    Taking f = g = F lets the estimator certify a dyadic step without building F.
    """
    defect = abs(f_at_0 + g_at_0 - f_at_g0)
    if defect >= 1:
        raise LiftInvariantViolation(
            f"composition defect {defect} >= 1 (f(0)={f_at_0}, g(0)={g_at_0}, f(g(0))={f_at_g0})"
        )
    return defect


def composition_defect(f: DegreeOneLift, g: DegreeOneLift) -> Fraction:
    """dist(f(0) + g(0), f(g(0))) < 1."""
    g0 = g(0)
    return composition_defect_values(f(0), g0, f(g0))


def dyadic_step_bound(n: int) -> Fraction:
    """(1/2) / 2^n: strict bound on |a_n - a_{n+1}| for the dyadic samples."""
    if not isinstance(n, int) or n < 0:
        raise LiftInputError(f"step index must be int >= 0, got {n!r}")
    return Fraction(1, 2 ** (n + 1))


def iterate_drift(x: Any, m: Any, n: int) -> Fraction:
    """
    x + n*m. Bounds f^n(x) from above when f(y) <= y + m for every y, and from below when
    y + m <= f(y) for every y.
    """
    if not isinstance(n, int) or n < 0:
        raise LiftInputError(f"iterate count must be int >= 0, got {n!r}")
    return as_fraction_strict(x, name="x") + n * as_fraction_strict(m, name="m")


def iterate_bounds(f: DegreeOneLift, x: Any, n: int) -> Tuple[Fraction, Fraction]:
    """
    Window for f^n(x) from the exact displacement range of a piecewise-linear lift, checked
    against the actual iterate.
    """
    lo_d, hi_d = displacement_range(f)
    lo = iterate_drift(x, lo_d, n)
    hi = iterate_drift(x, hi_d, n)
    v = iterate(f, x, n)
    if not lo <= v <= hi:
        raise LiftInvariantViolation(f"{f.label}^{n}({x}) = {v} escapes [{lo}, {hi}]")
    return lo, hi
