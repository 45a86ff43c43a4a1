"""Seeded pseudo-random source.

A two-word xorshift generator. All arithmetic is masked to 32 bits so a seed
yields the same stream on every platform; the state can be exported and
restored so a run survives save/load mid-stream.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

MASK32 = 0xFFFFFFFF
SEED_SALT = 0x6C078965


class Random:
    def __init__(self, seed: int) -> None:
        self.reseed(seed)

    @classmethod
    def from_state(cls, state: Sequence[int]) -> Random:
        rng = cls(0)
        rng.set_state(state)
        return rng

    def reseed(self, seed: int) -> None:
        """Replace the whole state from a new seed."""
        seed &= MASK32
        self._s0 = seed
        self._s1 = (seed ^ SEED_SALT) & MASK32

    def get_state(self) -> tuple[int, int]:
        return (self._s0, self._s1)

    def set_state(self, state: Sequence[int]) -> None:
        s0, s1 = state
        self._s0 = int(s0) & MASK32
        self._s1 = int(s1) & MASK32

    def next(self) -> float:
        """Float in [0, 1)."""
        s1 = self._s0
        s0 = self._s1
        self._s0 = s0
        s1 ^= (s1 << 23) & MASK32
        s1 ^= s1 >> 17
        s1 ^= s0
        s1 ^= s0 >> 26
        self._s1 = s1 & MASK32
        return ((self._s0 + self._s1) & MASK32) / 4294967296

    def next_int(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi], both ends inclusive."""
        return int(self.next() * (hi - lo + 1)) + lo

    def check(self, probability: float) -> bool:
        return self.next() < probability

    def sample(self, items: Sequence[T], n: int) -> list[T]:
        """``n`` distinct elements via Fisher-Yates shuffle of a copy."""
        shuffled = list(items)
        for i in range(len(shuffled) - 1, 0, -1):
            j = int(self.next() * (i + 1))
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled[:n]

    def weighted_choice(self, weighted: Sequence[tuple[T, float]]) -> T:
        """Pick proportionally to weight by a cumulative scan.

        Falls back to the last candidate when float rounding leaves a positive
        remainder after the scan.
        """
        if not weighted:
            raise ValueError("weighted_choice() needs at least one candidate")
        remaining = self.next() * sum(weight for _, weight in weighted)
        for item, weight in weighted:
            remaining -= weight
            if remaining <= 0:
                return item
        return weighted[-1][0]
