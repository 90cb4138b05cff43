"""Exact binomial arithmetic for simple and covered (system) bets."""

from __future__ import annotations

import math
from typing import Iterable


def choose(n: int, k: int) -> int:
    """Return ``C(n, k)``; zero when ``k`` is outside ``0..n``."""
    if n < 0 or k < 0 or k > n:
        return 0
    return math.comb(n, k)


def elementary_bets(played: int, pick: int) -> int:
    """Number of simple bets a wager playing ``played`` numbers stands for."""
    return choose(played, pick)


def winning_combinations(played: int, hits: int, pick: int, level: int) -> int:
    """Combinations of a covered bet that hit exactly ``level`` numbers.

    A wager playing ``played`` numbers with ``hits`` of them drawn contains
    ``C(hits, level) * C(played - hits, pick - level)`` elementary bets with
    exactly ``level`` hits.
    """
    if hits < 0 or hits > played or level > hits:
        return 0
    return choose(hits, level) * choose(played - hits, pick - level)


def simple_winners(hits: int, levels: Iterable[int]) -> dict[int, int]:
    """Winner counts of a simple bet: one winner at the level equal to ``hits``."""
    return {level: 1 if hits == level else 0 for level in levels}


def covered_winners(played: int, hits: int, pick: int, levels: Iterable[int]) -> dict[int, int]:
    """Winner counts of a covered bet for every level in ``levels``."""
    return {level: winning_combinations(played, hits, pick, level) for level in levels}


def winners_by_level(played: int, hits: int, pick: int, levels: Iterable[int]) -> dict[int, int]:
    """Dispatch to :func:`simple_winners` or :func:`covered_winners`."""
    if played == pick:
        return simple_winners(hits, levels)
    return covered_winners(played, hits, pick, levels)


__all__ = [
    "choose",
    "covered_winners",
    "elementary_bets",
    "simple_winners",
    "winners_by_level",
    "winning_combinations",
]
