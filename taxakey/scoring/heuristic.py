"""
Heuristic scoring for the TaxaKey Identification Engine.

The simple alternative to the Bayesian posterior: a candidate's score is
the fraction of its applicable observations that match. No error rates,
no smoothing. Candidates without any applicable observation score 0.
"""

from __future__ import annotations

from typing import Sequence

from .match_stats import MatchStats


def match_rate(stats: MatchStats) -> float:
    if stats.support == 0:
        return 0.0
    return stats.matches / stats.support


def heuristic_scores(stats: Sequence[MatchStats]) -> list[float]:
    """Match rate per taxon, in matrix order."""
    return [match_rate(s) for s in stats]
