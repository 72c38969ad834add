#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Words in the free group on a finite generating set.

A group acting on the line by lifts is handled through its generators: an element is a
reduced word over S ∪ S⁻¹, and an action is fixed by the images of the generators.

  Letter    - a generator, or the formal inverse of one
  Alphabet  - the ordered generating set; parses letters ("a", "a^" for a⁻¹)
  Word      - letters of one alphabet; reduced() cancels a·a⁻¹, inverse() reverses
  ball      - every reduced word of length <= R, shortest first

Enumeration order is deterministic: within a length, words are extended letter by letter
in alphabet order, generators before inverses.

Redline: unknown letters and words mixing alphabets raise WordError; nothing is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple


class WordError(ValueError):
    """Bad alphabet, unknown letter, or a word used with the wrong alphabet."""


@dataclass(frozen=True)
class Letter:
    name: str
    inverted: bool = False

    def inverse(self) -> Letter:
        return Letter(self.name, not self.inverted)

    def __repr__(self) -> str:
        return f"{self.name}⁻¹" if self.inverted else self.name


class Alphabet:
    """Ordered generating set; immutable and compared by its names."""

    def __init__(self, names: Iterable[str]):
        names = tuple(names)
        if not names:
            raise WordError("alphabet needs at least one generator")
        for name in names:
            if not isinstance(name, str) or not name or name.endswith("^") or " " in name:
                raise WordError(f"bad generator name {name!r}")
        if len(set(names)) != len(names):
            raise WordError(f"duplicate generator names in {names}")
        self.names: Tuple[str, ...] = names

    @property
    def generators(self) -> Tuple[Letter, ...]:
        return tuple(Letter(n) for n in self.names)

    @property
    def letters(self) -> Tuple[Letter, ...]:
        """Generators followed by their inverses."""
        gens = self.generators
        return gens + tuple(g.inverse() for g in gens)

    def letter(self, token: str) -> Letter:
        """'a' is the generator a, 'a^' its inverse."""
        inverted = token.endswith("^")
        name = token[:-1] if inverted else token
        if name not in self.names:
            raise WordError(f"unknown letter {token!r} for {self}")
        return Letter(name, inverted)

    def __contains__(self, letter: object) -> bool:
        return isinstance(letter, Letter) and letter.name in self.names

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Alphabet):
            return NotImplemented
        return self.names == other.names

    def __hash__(self) -> int:
        return hash(self.names)

    def __repr__(self) -> str:
        return f"Alphabet⟨{', '.join(self.names)}⟩"


@dataclass(frozen=True)
class Word:
    """
    Finite product of letters; the empty word is the identity. Equality is letter by letter,
    so compare reduced() forms to compare group elements.
    """

    letters: Tuple[Letter, ...]
    alphabet: Alphabet

    def __post_init__(self) -> None:
        stray = [x for x in self.letters if x not in self.alphabet]
        if stray:
            raise WordError(f"letters {stray} are not in {self.alphabet}")

    @classmethod
    def parse(cls, text: str, alphabet: Alphabet) -> Word:
        """Whitespace separated letters: "a b a^" is a·b·a⁻¹."""
        return cls(tuple(alphabet.letter(tok) for tok in text.split()), alphabet)

    def __len__(self) -> int:
        return len(self.letters)

    def reduced(self) -> Word:
        out: List[Letter] = []
        for x in self.letters:
            if out and out[-1] == x.inverse():
                out.pop()
            else:
                out.append(x)
        return Word(tuple(out), self.alphabet)

    def inverse(self) -> Word:
        return Word(tuple(x.inverse() for x in reversed(self.letters)), self.alphabet)

    def __repr__(self) -> str:
        return "·".join(map(repr, self.letters)) if self.letters else "ε"


def ball(alphabet: Alphabet, radius: int) -> List[Word]:
    """All reduced words of length <= radius, shortest first."""
    if not isinstance(radius, int) or radius < 0:
        raise WordError(f"radius must be int >= 0, got {radius!r}")
    sphere: List[Tuple[Letter, ...]] = [()]
    out = [Word((), alphabet)]
    for _ in range(radius):
        sphere = [w + (x,) for w in sphere for x in alphabet.letters if not w or w[-1] != x.inverse()]
        out.extend(Word(w, alphabet) for w in sphere)
    return out
