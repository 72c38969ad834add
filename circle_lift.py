#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Degree-one lifts of monotone circle maps.

A degree-one lift is a monotone f: R -> R with f(x + 1) = f(x) + 1. Lifts form a monoid
under composition (identity as unit), a lattice under the pointwise order (join = pointwise
max, meet = pointwise min), and the bijective lifts form its group of units.

Representations:
  1. PiecewiseLinearLift - exact knot table over the fundamental domain [0, 1).
                           Closed under compose / join / meet / inverse, all computed exactly.
  2. FunctionLift        - opaque callable, validated on a dyadic probe grid.

Redlines:
  - Exact arithmetic only: every value is a Fraction; float/complex input or output is rejected.
  - Invalid lifts raise at construction; results of compose/join/meet are trusted (the
    operations preserve monotonicity and the integer-shift law).
  - Partiality is typed: as_unit returns None for non-bijective lifts, it never raises.
"""

from __future__ import annotations

import bisect
import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from fractions import Fraction
from functools import cached_property, reduce
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as _np

from engine_config import load_config

_logger = logging.getLogger(__name__)

Point = Tuple[Fraction, Fraction]


# ===========================================================
# Section 0: Error model (no silent downgrade)
# ===========================================================

class LiftError(RuntimeError):
    """Base error for the lift engine."""


class LiftInputError(LiftError):
    """Bad input type or value (float contamination, wrong shapes, unsupported representation)."""


class LiftInvariantViolation(LiftError):
    """Monotonicity, the integer-shift law, or a proven estimate failed on actual values."""


class LiftComputationError(LiftError):
    """A constructive step (root, bracket, orbit budget) could not be completed."""


class NotAUnitError(LiftError):
    """A group-only operation (negative power, inverse) was applied to a non-bijective lift."""


# ===========================================================
# Section 1: Exact primitives
# ===========================================================

def fraction_floor(x: Fraction) -> int:
    """
    floor(x) for Fraction, exact integer arithmetic.

    Python's // on integers is floor division, so numerator // denominator is the
    mathematical floor for negative values too.
    """
    if not isinstance(x, Fraction):
        raise LiftInputError(f"fraction_floor expects Fraction, got {type(x).__name__}")
    return int(x.numerator // x.denominator)


def fraction_ceil(x: Fraction) -> int:
    """ceil(x) for Fraction, exact integer arithmetic."""
    if not isinstance(x, Fraction):
        raise LiftInputError(f"fraction_ceil expects Fraction, got {type(x).__name__}")
    return int(-fraction_floor(-x))


def fractional_part(x: Fraction) -> Fraction:
    return x - fraction_floor(x)


def as_fraction_strict(x: Any, *, name: str = "value") -> Fraction:
    """
    Convert a rational-like input to Fraction, rejecting float/complex.

    Accepted:
      - int / bool
      - Fraction
      - str (e.g. "3/2", "0.37")
    """
    if isinstance(x, Fraction):
        return x
    if isinstance(x, bool):
        return Fraction(int(x))
    if isinstance(x, int):
        return Fraction(x)
    if isinstance(x, str):
        try:
            return Fraction(x)
        except Exception as e:
            raise LiftInputError(f"{name} must be a rational string like '3/2', got {x!r}") from e
    if isinstance(x, float):
        raise LiftInputError(f"{name} must be rational (int/Fraction/str); float is forbidden: {x!r}")
    if isinstance(x, complex):
        raise LiftInputError(f"{name} must be rational (int/Fraction/str); complex is forbidden: {x!r}")
    raise LiftInputError(f"{name} must be int/Fraction/str, got {type(x).__name__}")


def probe_grid(bits: Optional[int] = None) -> _np.ndarray:
    """Dyadic grid j / 2^bits, j = 0..2^bits, of the closed fundamental domain [0, 1]."""
    if bits is None:
        bits = load_config().probe_bits
    if not isinstance(bits, int) or bits < 0:
        raise LiftInputError(f"probe bits must be int >= 0, got {bits!r}")
    size = 2 ** bits
    return _np.array([Fraction(j, size) for j in range(size + 1)], dtype=object)


def _sample(f: "DegreeOneLift", grid: _np.ndarray) -> _np.ndarray:
    return _np.array([f(x) for x in grid], dtype=object)


def _mesh_size(bits: Any) -> int:
    if not isinstance(bits, int) or isinstance(bits, bool) or bits < 0:
        raise LiftInputError(f"mesh bits must be int >= 0, got {bits!r}")
    return 2 ** bits


class _OrbitCache:
    """
    Memoised prefix 0, f(0), f^2(0), ... of the orbit of one lift instance.

    The stored prefix is extended under a lock, so each stored iterate is computed at most
    once even when several threads ask for estimates of the same lift. At most limit + 1
    points are kept; iterates past the cap are recomputed per request and dropped.
    """

    __slots__ = ("_lock", "_points")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._points: List[Fraction] = [Fraction(0)]

    def __len__(self) -> int:
        return len(self._points)

    def extend(self, step: Callable[[Fraction], Fraction], count: int, limit: int) -> List[Fraction]:
        with self._lock:
            pts = self._points
            while len(pts) <= min(count, limit):
                pts.append(step(pts[-1]))
            out = pts[: count + 1]
        while len(out) <= count:
            out.append(step(out[-1]))
        return out


# ===========================================================
# Section 2: The carrier
# ===========================================================

class DegreeOneLift(ABC):
    """
    Monotone f: R -> R with f(x + 1) = f(x) + 1.

    Operators: f * g is composition (f after g), f ** n the n-fold iterate, f <= g the
    pointwise order, f | g the join and f & g the meet.
    """

    _orbit: _OrbitCache

    @abstractmethod
    def __call__(self, x: Any) -> Fraction:
        ...

    @property
    def knots(self) -> Optional[Tuple[Point, ...]]:
        """Knot table when the lift is piecewise linear, None for opaque lifts."""
        return None

    @property
    def is_continuous(self) -> bool:
        return False

    @abstractmethod
    def inverse_lift(self) -> Optional["DegreeOneLift"]:
        """The inverse lift when this lift is known to be bijective, else None."""

    @property
    def label(self) -> str:
        return type(self).__name__

    def orbit_of_zero(self, count: int) -> List[Fraction]:
        """[f^0(0), f^1(0), ..., f^count(0)]; the first max_orbit + 1 points are memoised per instance."""
        if not isinstance(count, int) or count < 0:
            raise LiftInputError(f"orbit length must be int >= 0, got {count!r}")
        return self._orbit.extend(self, count, load_config().max_orbit)

    def mesh_step(self, bits: int, *, upward: bool = False) -> Callable[[int], int]:
        """
        This lift rounded to the dyadic mesh 2^-bits, acting on mesh numerators.

        Returns step(Y) = floor(2^bits * f(Y / 2^bits)), or the ceiling when upward=True.
        The rounded map is itself a degree-one lift (monotone, and the shift law survives
        because the mesh divides 1), and it sits within one mesh cell below (above) f.
        """
        size = _mesh_size(bits)
        rnd = fraction_ceil if upward else fraction_floor

        def step(y: int) -> int:
            return rnd(self(Fraction(y, size)) * size)

        return step

    def __mul__(self, other: "DegreeOneLift") -> "DegreeOneLift":
        if not isinstance(other, DegreeOneLift):
            return NotImplemented
        return compose(self, other)

    def __pow__(self, n: int) -> "DegreeOneLift":
        return iterate_pow(self, n)

    def __le__(self, other: "DegreeOneLift") -> bool:
        if not isinstance(other, DegreeOneLift):
            return NotImplemented
        return le(self, other)

    def __ge__(self, other: "DegreeOneLift") -> bool:
        if not isinstance(other, DegreeOneLift):
            return NotImplemented
        return le(other, self)

    def __or__(self, other: "DegreeOneLift") -> "DegreeOneLift":
        if not isinstance(other, DegreeOneLift):
            return NotImplemented
        return join(self, other)

    def __and__(self, other: "DegreeOneLift") -> "DegreeOneLift":
        if not isinstance(other, DegreeOneLift):
            return NotImplemented
        return meet(self, other)


def _collinear(a: Point, b: Point, c: Point) -> bool:
    return (b[1] - a[1]) * (c[0] - b[0]) == (c[1] - b[1]) * (b[0] - a[0])


def _normalize_points(points: Sequence[Point]) -> Tuple[Point, ...]:
    """Drop interior knots where the slope does not change; the knot at x = 0 is always kept."""
    closure = (Fraction(1), points[0][1] + 1)
    out: List[Point] = [points[0]]
    for p in list(points[1:]) + [closure]:
        while len(out) >= 2 and _collinear(out[-2], out[-1], p):
            out.pop()
        out.append(p)
    out.pop()
    return tuple(out)


@dataclass(frozen=True, repr=False)
class PiecewiseLinearLift(DegreeOneLift):
    """
    Exact piecewise-linear lift.

    points = ((x_0, y_0), ..., (x_k, y_k)) with 0 = x_0 < ... < x_k < 1; the lift is affine
    between consecutive knots and on the closing segment to (1, y_0 + 1), and is extended
    to R by f(x + n) = f(x) + n.

    The table is normalised on construction, so two instances compare equal exactly when
    they agree as functions.
    """

    points: Tuple[Point, ...]
    _orbit: _OrbitCache = field(default_factory=_OrbitCache, init=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.points, (tuple, list)) or len(self.points) < 1:
            raise LiftInputError("PiecewiseLinearLift needs a non-empty knot table")
        pts: List[Point] = []
        for i, p in enumerate(self.points):
            if not isinstance(p, (tuple, list)) or len(p) != 2:
                raise LiftInputError(f"knot {i} must be an (x, y) pair, got {p!r}")
            pts.append((as_fraction_strict(p[0], name=f"knot[{i}].x"), as_fraction_strict(p[1], name=f"knot[{i}].y")))
        if pts[0][0] != 0:
            raise LiftInputError(f"first knot must sit at x = 0, got x = {pts[0][0]}")
        for i in range(1, len(pts)):
            if not pts[i - 1][0] < pts[i][0]:
                raise LiftInputError(f"knot abscissae must be strictly increasing (index {i})")
            if not pts[i - 1][1] <= pts[i][1]:
                raise LiftInvariantViolation(
                    f"not monotone: f({pts[i - 1][0]}) = {pts[i - 1][1]} > f({pts[i][0]}) = {pts[i][1]}"
                )
        if pts[-1][0] >= 1:
            raise LiftInputError(f"knot abscissae must lie in [0, 1), got {pts[-1][0]}")
        if pts[-1][1] > pts[0][1] + 1:
            raise LiftInvariantViolation(
                f"not monotone across the period: f({pts[-1][0]}) = {pts[-1][1]} > f(1) = {pts[0][1] + 1}"
            )
        object.__setattr__(self, "points", _normalize_points(pts))

    @classmethod
    def from_points(cls, points: Iterable[Sequence[Any]]) -> "PiecewiseLinearLift":
        """
        Smart constructor: accepts an optional closing knot (1, y_0 + 1) and rejects one that
        breaks the integer-shift law.
        """
        pts = [tuple(p) for p in points]
        if not pts:
            raise LiftInputError("no knots given")
        if len(pts) >= 2 and as_fraction_strict(pts[-1][0], name="closing x") == 1:
            y0 = as_fraction_strict(pts[0][1], name="knot[0].y")
            y1 = as_fraction_strict(pts[-1][1], name="closing y")
            if y1 != y0 + 1:
                raise LiftInvariantViolation(f"closing knot must be (1, {y0 + 1}), got (1, {y1})")
            pts = pts[:-1]
        return cls(tuple(pts))

    @cached_property
    def _closed(self) -> Tuple[Point, ...]:
        return self.points + ((Fraction(1), self.points[0][1] + 1),)

    @cached_property
    def _xs(self) -> Tuple[Fraction, ...]:
        return tuple(p[0] for p in self.points)

    @cached_property
    def _ys_closed(self) -> Tuple[Fraction, ...]:
        return tuple(p[1] for p in self._closed)

    @property
    def knots(self) -> Tuple[Point, ...]:
        return self.points

    @property
    def is_continuous(self) -> bool:
        return True

    def segments(self) -> Iterable[Tuple[Point, Point]]:
        closed = self._closed
        for i in range(len(closed) - 1):
            yield closed[i], closed[i + 1]

    def __call__(self, x: Any) -> Fraction:
        x = as_fraction_strict(x, name="x")
        n = fraction_floor(x)
        t = x - n
        i = bisect.bisect_right(self._xs, t) - 1
        (x0, y0), (x1, y1) = self._closed[i], self._closed[i + 1]
        return y0 + (t - x0) * (y1 - y0) / (x1 - x0) + n

    def mesh_step(self, bits: int, *, upward: bool = False) -> Callable[[int], int]:
        """
        Integer form of DegreeOneLift.mesh_step.

        On the segment starting at x_i, 2^bits * f(T / 2^bits) = (a*T + b) / d with fixed
        integers a, b, d > 0, so a step costs one table lookup and one integer division.
        """
        size = _mesh_size(bits)
        starts: List[int] = []
        lines: List[Tuple[int, int, int]] = []
        for (x0, y0), (x1, y1) in self.segments():
            slope = (y1 - y0) / (x1 - x0)
            offset = size * (y0 - x0 * slope)
            d = math.lcm(slope.denominator, offset.denominator)
            starts.append(fraction_ceil(x0 * size))
            lines.append((int(slope * d), int(offset * d), d))

        def step(y: int) -> int:
            n, t = divmod(y, size)
            a, b, d = lines[bisect.bisect_right(starts, t) - 1]
            q = -((-(a * t + b)) // d) if upward else (a * t + b) // d
            return n * size + q

        return step

    @property
    def is_strictly_increasing(self) -> bool:
        return all(b[1] > a[1] for a, b in self.segments())

    def _invert_value(self, y: Fraction) -> Fraction:
        base = self.points[0][1]
        k = fraction_floor(y - base)
        yy = y - k
        i = bisect.bisect_right(self._ys_closed, yy) - 1
        (x0, y0), (x1, y1) = self._closed[i], self._closed[i + 1]
        return x0 + (yy - y0) * (x1 - x0) / (y1 - y0) + k

    @cached_property
    def _inverse(self) -> Optional["PiecewiseLinearLift"]:
        if not self.is_strictly_increasing:
            return None
        # knots of the inverse are the images of our knots, reduced mod 1
        ts = sorted({Fraction(0)} | {fractional_part(y) for _, y in self.points})
        return PiecewiseLinearLift(tuple((t, self._invert_value(t)) for t in ts))

    def inverse_lift(self) -> Optional["PiecewiseLinearLift"]:
        return self._inverse

    def __repr__(self) -> str:
        body = ", ".join(f"{x}->{y}" for x, y in self.points)
        return f"PiecewiseLinearLift({body})"


class FunctionLift(DegreeOneLift):
    """
    Opaque lift backed by a Python callable on Fractions.

    The plain constructor is the trusted path used for composites; user-supplied callables go
    through from_function, which checks monotonicity and f(x + 1) = f(x) + 1 on the probe
    grid (and inv(f(x)) = x when an inverse is declared).
    """

    def __init__(
        self,
        fn: Callable[[Fraction], Any],
        *,
        inverse: Optional[Callable[[Fraction], Any]] = None,
        continuous: bool = False,
        label: Optional[str] = None,
    ):
        if not callable(fn):
            raise LiftInputError(f"fn must be callable, got {type(fn).__name__}")
        if inverse is not None and not callable(inverse):
            raise LiftInputError(f"inverse must be callable, got {type(inverse).__name__}")
        self._fn = fn
        self._inverse_fn = inverse
        self._continuous = bool(continuous)
        self._label = label or getattr(fn, "__name__", "fn")
        self._orbit = _OrbitCache()

    @classmethod
    def from_function(
        cls,
        fn: Callable[[Fraction], Any],
        *,
        inverse: Optional[Callable[[Fraction], Any]] = None,
        continuous: bool = False,
        label: Optional[str] = None,
        probe_bits: Optional[int] = None,
    ) -> "FunctionLift":
        lift = cls(fn, inverse=inverse, continuous=continuous, label=label)
        _validate_on_grid(lift, probe_grid(probe_bits))
        return lift

    @property
    def label(self) -> str:
        return self._label

    @property
    def is_continuous(self) -> bool:
        return self._continuous

    def __call__(self, x: Any) -> Fraction:
        x = as_fraction_strict(x, name="x")
        return as_fraction_strict(self._fn(x), name=self._label)

    def inverse_lift(self) -> Optional["FunctionLift"]:
        if self._inverse_fn is None:
            return None
        return FunctionLift(self._inverse_fn, inverse=self._fn, continuous=self._continuous, label=f"{self._label}^-1")

    def __repr__(self) -> str:
        return f"FunctionLift({self._label})"


def _validate_on_grid(lift: FunctionLift, grid: _np.ndarray) -> None:
    vals = _sample(lift, grid)
    drops = _np.flatnonzero((_np.diff(vals) < 0).astype(bool))
    if drops.size:
        i = int(drops[0])
        raise LiftInvariantViolation(
            f"{lift.label} is not monotone: f({grid[i]}) = {vals[i]} > f({grid[i + 1]}) = {vals[i + 1]}"
        )
    for shift in (1, -1):
        shifted = _np.array([lift(x + shift) for x in grid], dtype=object)
        bad = _np.flatnonzero(((shifted - vals) != shift).astype(bool))
        if bad.size:
            i = int(bad[0])
            raise LiftInvariantViolation(
                f"{lift.label} breaks f(x{shift:+d}) = f(x){shift:+d} at x = {grid[i]}: "
                f"{shifted[i]} != {vals[i] + shift}"
            )
    inv = lift.inverse_lift()
    if inv is not None:
        for x, y in zip(grid, vals):
            if inv(y) != x or lift(inv(x)) != x:
                raise LiftInputError(f"declared inverse of {lift.label} is wrong near x = {x}")
    _logger.debug("validated %s on %d probe points", lift.label, len(grid))


# ===========================================================
# Section 3: Constructors
# ===========================================================

def piecewise_linear(points: Iterable[Sequence[Any]]) -> PiecewiseLinearLift:
    return PiecewiseLinearLift.from_points(points)


def identity() -> PiecewiseLinearLift:
    return PiecewiseLinearLift(((Fraction(0), Fraction(0)),))


def _translation_lift(x: Fraction) -> PiecewiseLinearLift:
    return PiecewiseLinearLift(((Fraction(0), x),))


# ===========================================================
# Section 4: Monoid and lattice operations
# ===========================================================

def _compose_pl(f: PiecewiseLinearLift, g: PiecewiseLinearLift) -> PiecewiseLinearLift:
    """
    Exact f o g. Breakpoints in [0, 1) are the knots of g plus the g-preimages of the
    (integer-shifted) knots of f.
    """
    ts = set(g._xs)
    for (xa, ya), (xb, yb) in g.segments():
        if ya == yb:
            continue
        for s in f._xs:
            for k in range(fraction_floor(ya - s), fraction_ceil(yb - s) + 1):
                v = s + k
                if ya < v < yb:
                    ts.add(xa + (v - ya) * (xb - xa) / (yb - ya))
    return PiecewiseLinearLift(tuple((t, f(g(t))) for t in sorted(ts)))


def compose(f: DegreeOneLift, g: DegreeOneLift) -> DegreeOneLift:
    """(f * g)(x) = f(g(x)). Associative, identity() is the unit, not commutative in general."""
    if isinstance(f, PiecewiseLinearLift) and isinstance(g, PiecewiseLinearLift):
        return _compose_pl(f, g)
    f_inv, g_inv = f.inverse_lift(), g.inverse_lift()
    inverse = None
    if f_inv is not None and g_inv is not None:
        inverse = lambda y: g_inv(f_inv(y))  # noqa: E731
    return FunctionLift(
        lambda x: f(g(x)),
        inverse=inverse,
        continuous=f.is_continuous and g.is_continuous,
        label=f"({f.label} o {g.label})",
    )


def iterate(f: DegreeOneLift, x: Any, n: int) -> Fraction:
    """f^n(x) for n >= 0, without building the composite lift."""
    if not isinstance(n, int) or isinstance(n, bool) or n < 0:
        raise LiftInputError(f"iterate needs int n >= 0, got {n!r}")
    y = as_fraction_strict(x, name="x")
    for _ in range(n):
        y = f(y)
    return y


def iterate_pow(f: DegreeOneLift, n: int) -> DegreeOneLift:
    """
    n-fold self-composition. Negative n is only defined on units and raises NotAUnitError
    otherwise.
    """
    if not isinstance(n, int) or isinstance(n, bool):
        raise LiftInputError(f"exponent must be int, got {type(n).__name__}")
    if n < 0:
        u = as_unit(f)
        if u is None:
            raise NotAUnitError(f"{f.label} ** {n}: negative powers need a bijective lift")
        return (u ** n).lift
    if n == 0:
        return identity()
    if isinstance(f, PiecewiseLinearLift):
        result: Optional[PiecewiseLinearLift] = None
        base = f
        k = n
        while k:
            if k & 1:
                result = base if result is None else _compose_pl(result, base)
            k >>= 1
            if k:
                base = _compose_pl(base, base)
        return result
    f_inv = f.inverse_lift()
    return FunctionLift(
        lambda x: iterate(f, x, n),
        inverse=(lambda y: iterate(f_inv, y, n)) if f_inv is not None else None,
        continuous=f.is_continuous,
        label=f"{f.label}^{n}",
    )


def _merged_knots(f: PiecewiseLinearLift, g: PiecewiseLinearLift) -> List[Fraction]:
    return sorted(set(f._xs) | set(g._xs))


def le(f: DegreeOneLift, g: DegreeOneLift) -> bool:
    """
    Pointwise order f <= g.

    Exact for two piecewise-linear lifts (f - g is affine between merged knots). Anything
    opaque is compared on the probe grid of [0, 1], which by the integer-shift law covers
    one full period.
    """
    if isinstance(f, PiecewiseLinearLift) and isinstance(g, PiecewiseLinearLift):
        return all(f(t) <= g(t) for t in _merged_knots(f, g))
    grid = probe_grid()
    return bool(_np.all(_sample(f, grid) <= _sample(g, grid)))


def lifts_agree(f: DegreeOneLift, g: DegreeOneLift) -> bool:
    """Extensional equality through the pointwise order."""
    return le(f, g) and le(g, f)


def _lattice_pl(f: PiecewiseLinearLift, g: PiecewiseLinearLift, pick: Callable[[Fraction, Fraction], Fraction]) -> PiecewiseLinearLift:
    ts = _merged_knots(f, g)
    extra: List[Fraction] = []
    for a, b in zip(ts, ts[1:] + [Fraction(1)]):
        da = f(a) - g(a)
        db = f(b) - g(b)
        if (da < 0 < db) or (db < 0 < da):
            extra.append(a + da * (b - a) / (da - db))
    return PiecewiseLinearLift(tuple((t, pick(f(t), g(t))) for t in sorted(set(ts) | set(extra))))


def join(f: DegreeOneLift, g: DegreeOneLift) -> DegreeOneLift:
    """Pointwise max; the inverse of a join of units is the meet of the inverses."""
    if isinstance(f, PiecewiseLinearLift) and isinstance(g, PiecewiseLinearLift):
        return _lattice_pl(f, g, max)
    f_inv, g_inv = f.inverse_lift(), g.inverse_lift()
    inverse = None
    if f_inv is not None and g_inv is not None:
        inverse = lambda y: min(f_inv(y), g_inv(y))  # noqa: E731
    return FunctionLift(
        lambda x: max(f(x), g(x)),
        inverse=inverse,
        continuous=f.is_continuous and g.is_continuous,
        label=f"({f.label} | {g.label})",
    )


def meet(f: DegreeOneLift, g: DegreeOneLift) -> DegreeOneLift:
    """Pointwise min; the inverse of a meet of units is the join of the inverses."""
    if isinstance(f, PiecewiseLinearLift) and isinstance(g, PiecewiseLinearLift):
        return _lattice_pl(f, g, min)
    f_inv, g_inv = f.inverse_lift(), g.inverse_lift()
    inverse = None
    if f_inv is not None and g_inv is not None:
        inverse = lambda y: max(f_inv(y), g_inv(y))  # noqa: E731
    return FunctionLift(
        lambda x: min(f(x), g(x)),
        inverse=inverse,
        continuous=f.is_continuous and g.is_continuous,
        label=f"({f.label} & {g.label})",
    )


def join_all(lifts: Sequence[DegreeOneLift]) -> DegreeOneLift:
    if not lifts:
        raise LiftInputError("join_all needs at least one lift")
    return reduce(join, lifts)


def commutes(f: DegreeOneLift, g: DegreeOneLift) -> bool:
    """f o g == g o f; exact for piecewise-linear lifts, probe-grid otherwise."""
    fg, gf = compose(f, g), compose(g, f)
    if isinstance(fg, PiecewiseLinearLift) and isinstance(gf, PiecewiseLinearLift):
        return fg == gf
    grid = probe_grid()
    return bool(_np.all(_sample(fg, grid) == _sample(gf, grid)))


def displacement_range(f: DegreeOneLift) -> Tuple[Fraction, Fraction]:
    """
    Exact (min, max) of f(x) - x over R for a piecewise-linear lift.

    f(x) - x is 1-periodic and affine between knots, so both extremes sit at knots.
    """
    if not isinstance(f, PiecewiseLinearLift):
        raise LiftInputError(f"displacement_range needs a piecewise-linear lift, got {f.label}")
    ds = [y - x for x, y in f.points]
    return min(ds), max(ds)


def solve_displacement(f: DegreeOneLift, d: Any) -> Optional[Fraction]:
    """Least x in [0, 1) with f(x) = x + d for a piecewise-linear lift, or None."""
    if not isinstance(f, PiecewiseLinearLift):
        raise LiftInputError(f"solve_displacement needs a piecewise-linear lift, got {f.label}")
    d = as_fraction_strict(d, name="d")
    for (xa, ya), (xb, yb) in f.segments():
        ha = ya - xa - d
        hb = yb - xb - d
        if ha == 0:
            return xa
        if (ha < 0 < hb) or (hb < 0 < ha):
            return xa + ha * (xb - xa) / (ha - hb)
    return None


# ===========================================================
# Section 5: Units
# ===========================================================

@dataclass(frozen=True)
class Unit:
    """
    A bijective lift together with its inverse.

    Units form a group: u * v, u.inverse(), u ** n for every integer n, and conjugation
    u.conj(g) = u * g * u^-1 on arbitrary lifts.
    """

    lift: DegreeOneLift
    inv: DegreeOneLift

    def __call__(self, x: Any) -> Fraction:
        return self.lift(x)

    def __mul__(self, other: "Unit") -> "Unit":
        if not isinstance(other, Unit):
            return NotImplemented
        return Unit(compose(self.lift, other.lift), compose(other.inv, self.inv))

    def inverse(self) -> "Unit":
        return Unit(self.inv, self.lift)

    def __pow__(self, n: int) -> "Unit":
        if not isinstance(n, int) or isinstance(n, bool):
            raise LiftInputError(f"exponent must be int, got {type(n).__name__}")
        if n < 0:
            return self.inverse() ** (-n)
        return Unit(iterate_pow(self.lift, n), iterate_pow(self.inv, n))

    def conj(self, g: DegreeOneLift) -> DegreeOneLift:
        return compose(compose(self.lift, g), self.inv)


def as_unit(f: DegreeOneLift) -> Optional[Unit]:
    """
    Safe downcast to the group of units.

    A continuous piecewise-linear lift is bijective iff it is injective iff every segment has
    positive slope. An opaque lift is a unit only when it carries a validated inverse.
    """
    if isinstance(f, Unit):
        return f
    inv = f.inverse_lift()
    if inv is None:
        return None
    return Unit(f, inv)


def translate(x: Any) -> Unit:
    """y -> x + y; a homomorphism from (Q, +) into the units."""
    x = as_fraction_strict(x, name="translation")
    return Unit(_translation_lift(x), _translation_lift(-x))
