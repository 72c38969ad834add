#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Semiconjugacy synthesis for two actions by degree-one lifts.

Input: a group G given by generators, and two homomorphisms f1, f2: G -> Units with
tau(f1(g)) = tau(f2(g)) for every g. Output: a lift F with F o f1(g) = f2(g) o F.

    t_g(x) = f2(g^-1)(f1(g)(x))          one term per group element
    F(x)   = sup_g t_g(x)                 the conjugator

Boundedness: f1(g)(x) < x + tau + 1 and f2(g)^-1(y) < y - tau + 1, so every term satisfies
t_g(x) < x + 2 (SUPREMUM_BOUND). Equivariance comes from re-indexing the orbit:

    t_{g.s} = f2(s)^-1 o t_g o f1(s)

so the family {t_g} is closed under that move for every generator s and its inverse, and
F o f1(s) = f2(s) o F follows since f2(s) is monotone.

Construction:
  1. Generator check: certified tau intervals of f1(s) and f2(s) must overlap, else None.
  2. Breadth-first exploration of the terms from t_e = identity.
       - piecewise-linear images: terms are deduplicated structurally; when the set closes
         the maximum is the exact supremum.
       - opaque images: terms are indexed by reduced words of the ball of radius R.
  3. F = join of the explored terms.

Redlines:
  - A piecewise-linear term with max(t(x) - x) >= 2 disproves the equal-tau hypothesis:
    the result is None, never a clipped conjugator.
  - An opaque conjugator checks the bound at evaluation time and raises SemiconjugacyError.
  - exact=True only when the term orbit closed within the budget.
"""

from __future__ import annotations

import logging
import sys
from collections import deque
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Deque, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

import numpy as _np

from circle_lift import (
    DegreeOneLift,
    FunctionLift,
    LiftError,
    LiftInputError,
    LiftInvariantViolation,
    NotAUnitError,
    PiecewiseLinearLift,
    Unit,
    as_fraction_strict,
    as_unit,
    compose,
    displacement_range,
    identity,
    join_all,
    probe_grid,
)
from engine_config import configure_smoke_logging, load_config
from group_words import Alphabet, Letter, Word, ball
from translation_number import intervals_overlap, translation_number

_logger = logging.getLogger(__name__)

SUPREMUM_BOUND = Fraction(2)


class SemiconjugacyError(LiftError):
    """The synthesized supremum left its proven window (equal-tau hypothesis broken)."""


# ===========================================================
# Section 1: Actions and the semiconjugacy relation
# ===========================================================

def _unit_of(f: Union[Unit, DegreeOneLift], *, name: str) -> Unit:
    if isinstance(f, Unit):
        return f
    if not isinstance(f, DegreeOneLift):
        raise LiftInputError(f"{name} must be a Unit or a DegreeOneLift, got {type(f).__name__}")
    u = as_unit(f)
    if u is None:
        raise NotAUnitError(f"{name} = {f.label} is not bijective; group actions need units")
    return u


def _lift_of(f: Union[Unit, DegreeOneLift]) -> DegreeOneLift:
    return f.lift if isinstance(f, Unit) else f


class LiftAction:
    """
    Homomorphism from the free group on `alphabet` into the units, fixed by generator images.
    """

    def __init__(self, alphabet: Alphabet, images: Mapping[str, Union[Unit, DegreeOneLift]]):
        if not isinstance(alphabet, Alphabet):
            raise LiftInputError(f"alphabet must be an Alphabet, got {type(alphabet).__name__}")
        missing = [n for n in alphabet.names if n not in images]
        extra = [n for n in images if n not in alphabet.names]
        if missing or extra:
            raise LiftInputError(f"generator images do not match {alphabet}: missing={missing} extra={extra}")
        self.alphabet = alphabet
        self._images: Dict[str, Unit] = {n: _unit_of(images[n], name=f"image of {n}") for n in alphabet.names}

    @classmethod
    def cyclic(cls, unit: Union[Unit, DegreeOneLift], name: str = "t") -> "LiftAction":
        """Z acting by powers of one unit."""
        return cls(Alphabet([name]), {name: unit})

    @property
    def is_piecewise_linear(self) -> bool:
        return all(
            isinstance(u.lift, PiecewiseLinearLift) and isinstance(u.inv, PiecewiseLinearLift)
            for u in self._images.values()
        )

    def image(self, symbol: Letter) -> Unit:
        u = self._images[symbol.name]
        return u.inverse() if symbol.inverted else u

    def act(self, word: Union[Word, str]) -> Unit:
        """f(s_1 ... s_k) = f(s_1) o ... o f(s_k), on the reduced word; strings are parsed first."""
        if isinstance(word, str):
            word = Word.parse(word, self.alphabet)
        if word.alphabet != self.alphabet:
            raise LiftInputError(f"word over {word.alphabet} cannot act through {self.alphabet}")
        ident = identity()
        result = Unit(ident, ident)
        for s in word.reduced().letters:
            result = result * self.image(s)
        return result

    def __repr__(self) -> str:
        body = ", ".join(f"{n}->{u.lift.label}" for n, u in self._images.items())
        return f"LiftAction({body})"


@dataclass(frozen=True)
class Semiconj:
    """conj o source = target o conj."""

    conj: DegreeOneLift
    source: DegreeOneLift
    target: DegreeOneLift

    def holds(self, points: Optional[Sequence[Any]] = None) -> bool:
        """
        Exact for three piecewise-linear lifts when no points are given; otherwise checked at
        the given points (probe grid by default).
        """
        lhs = compose(self.conj, self.source)
        rhs = compose(self.target, self.conj)
        if points is None and isinstance(lhs, PiecewiseLinearLift) and isinstance(rhs, PiecewiseLinearLift):
            return lhs == rhs
        xs = probe_grid() if points is None else [as_fraction_strict(p, name="point") for p in points]
        return all(lhs(x) == rhs(x) for x in xs)


@dataclass(frozen=True)
class SemiconjugacyCertificate:
    conjugator: DegreeOneLift
    orbit_size: int
    exact: bool
    radius: int

    def relations(self, action1: LiftAction, action2: LiftAction) -> List[Semiconj]:
        """One Semiconj per generator."""
        return [
            Semiconj(self.conjugator, action1.image(s).lift, action2.image(s).lift)
            for s in action1.alphabet.generators
        ]


# ===========================================================
# Section 2: Term orbit
# ===========================================================

def _step(term: DegreeOneLift, s: Letter, action1: LiftAction, action2: LiftAction) -> DegreeOneLift:
    """t_{g.s} = f2(s)^-1 o t_g o f1(s)."""
    return compose(compose(action2.image(s).inv, term), action1.image(s).lift)


def _pl_orbit(
    action1: LiftAction, action2: LiftAction, max_orbit: int
) -> Tuple[List[PiecewiseLinearLift], bool, int]:
    start = identity()
    seen: Set[PiecewiseLinearLift] = {start}
    terms: List[PiecewiseLinearLift] = [start]
    queue: Deque[Tuple[PiecewiseLinearLift, int]] = deque([(start, 0)])
    depth = 0
    symbols = action1.alphabet.letters
    while queue:
        term, d = queue.popleft()
        depth = max(depth, d)
        for s in symbols:
            nxt = _step(term, s, action1, action2)
            if nxt in seen:
                continue
            if len(terms) >= max_orbit:
                return terms, False, depth
            seen.add(nxt)
            terms.append(nxt)
            queue.append((nxt, d + 1))
    return terms, True, depth


def _word_terms(action1: LiftAction, action2: LiftAction, radius: int, max_orbit: int) -> List[DegreeOneLift]:
    """t_g = f2(g^-1) o f1(g) for every g in the word ball."""
    terms: List[DegreeOneLift] = []
    for w in ball(action1.alphabet, radius)[:max_orbit]:
        if not len(w):
            terms.append(identity())
            continue
        terms.append(compose(action2.act(w.inverse()).lift, action1.act(w).lift))
    return terms


def _bounded_sup(terms: Sequence[DegreeOneLift], continuous: bool) -> FunctionLift:
    frozen = tuple(terms)

    def conjugator(x: Fraction) -> Fraction:
        vals = _np.array([t(x) for t in frozen], dtype=object)
        top = vals.max()
        if top >= x + SUPREMUM_BOUND:
            i = int(_np.argmax((vals >= x + SUPREMUM_BOUND).astype(bool)))
            raise SemiconjugacyError(
                f"term {frozen[i].label} reaches {vals[i]} >= {x} + {SUPREMUM_BOUND}; translation numbers differ"
            )
        return top

    return FunctionLift(conjugator, continuous=continuous, label=f"sup[{len(frozen)} terms]")


# ===========================================================
# Section 3: Synthesis
# ===========================================================

def synthesize_semiconjugacy(
    action1: LiftAction,
    action2: LiftAction,
    *,
    tolerance: Any = None,
    max_orbit: Optional[int] = None,
    max_radius: Optional[int] = None,
) -> Optional[SemiconjugacyCertificate]:
    """
    Conjugator F with F o f1(g) = f2(g) o F for every g, or None when the generator
    translation numbers are provably different.
    """
    if not isinstance(action1, LiftAction) or not isinstance(action2, LiftAction):
        raise LiftInputError("synthesize_semiconjugacy expects two LiftAction values")
    if action1.alphabet != action2.alphabet:
        raise LiftInputError(f"actions over different groups: {action1.alphabet} vs {action2.alphabet}")
    cfg = load_config()
    max_orbit = cfg.max_orbit if max_orbit is None else max_orbit
    max_radius = cfg.max_radius if max_radius is None else max_radius
    if not isinstance(max_orbit, int) or max_orbit < 1:
        raise LiftInputError(f"max_orbit must be int >= 1, got {max_orbit!r}")
    if not isinstance(max_radius, int) or max_radius < 0:
        raise LiftInputError(f"max_radius must be int >= 0, got {max_radius!r}")

    for s in action1.alphabet.generators:
        e1 = translation_number(action1.image(s).lift, tolerance)
        e2 = translation_number(action2.image(s).lift, tolerance)
        if not intervals_overlap(e1, e2):
            _logger.info("no semiconjugacy: tau(f1(%s)) = %s +/- %s, tau(f2(%s)) = %s +/- %s",
                         s, e1.value, e1.error_bound, s, e2.value, e2.error_bound)
            return None

    if action1.is_piecewise_linear and action2.is_piecewise_linear:
        terms, closed, depth = _pl_orbit(action1, action2, max_orbit)
        for t in terms:
            hi = displacement_range(t)[1]
            if hi >= SUPREMUM_BOUND:
                _logger.info("no semiconjugacy: term %r moves a point by %s >= %s", t, hi, SUPREMUM_BOUND)
                return None
        conj = join_all(terms)
        if closed:
            for s in action1.alphabet.generators:
                rel = Semiconj(conj, action1.image(s).lift, action2.image(s).lift)
                if not rel.holds():
                    raise LiftInvariantViolation(f"synthesized conjugator fails the relation for generator {s}")
            _logger.info("semiconjugacy synthesized: %d terms, orbit closed at depth %d", len(terms), depth)
        else:
            _logger.warning("term orbit did not close within %d terms (depth %d); supremum is truncated",
                            max_orbit, depth)
        return SemiconjugacyCertificate(conjugator=conj, orbit_size=len(terms), exact=closed, radius=depth)

    terms = _word_terms(action1, action2, max_radius, max_orbit)
    continuous = all(
        action.image(s).lift.is_continuous
        for action in (action1, action2)
        for s in action.alphabet.generators
    )
    conj = _bounded_sup(terms, continuous)
    _logger.warning("opaque action: supremum over the word ball of radius %d (%d terms) is truncated",
                    max_radius, len(terms))
    return SemiconjugacyCertificate(conjugator=conj, orbit_size=len(terms), exact=False, radius=max_radius)


def semiconjugate(action1: LiftAction, action2: LiftAction, **kwargs: Any) -> Optional[DegreeOneLift]:
    cert = synthesize_semiconjugacy(action1, action2, **kwargs)
    return None if cert is None else cert.conjugator


def semiconjugate_units(
    u1: Union[Unit, DegreeOneLift], u2: Union[Unit, DegreeOneLift], **kwargs: Any
) -> Optional[DegreeOneLift]:
    """Two units with equal translation number are semiconjugate (Z acting by powers)."""
    a1 = LiftAction.cyclic(_unit_of(u1, name="u1"))
    a2 = LiftAction.cyclic(_unit_of(u2, name="u2"))
    return semiconjugate(a1, a2, **kwargs)


# ===========================================================
# Smoke
# ===========================================================

def main() -> int:
    from circle_lift import piecewise_linear, translate

    configure_smoke_logging()
    _logger.info("semiconj_synthesis smoke: START")

    h = as_unit(piecewise_linear([(0, 0), ("1/2", "1/4")]))
    f1 = h.conj(translate("1/3").lift)
    f2 = translate("1/3")
    cert = synthesize_semiconjugacy(LiftAction.cyclic(f1), LiftAction.cyclic(f2))
    if cert is None or not cert.exact:
        raise SemiconjugacyError(f"cyclic synthesis failed: {cert}")
    rel = Semiconj(cert.conjugator, f1, f2.lift)
    _logger.info("[cyclic] F=%r orbit=%d holds=%s", cert.conjugator, cert.orbit_size, rel.holds())
    if not rel.holds():
        raise SemiconjugacyError("F o f1 != f2 o F")

    if semiconjugate_units(translate("1/3"), translate("1/2")) is not None:
        raise SemiconjugacyError("mismatched translation numbers produced a conjugator")
    _logger.info("[mismatch] None as expected")

    _logger.info("semiconj_synthesis smoke: PASS")
    return 0


if __name__ == "__main__":
    sys.exit(main())
