"""
Posterior Aggregator for the TaxaKey Identification Engine.

Core principle:
    A taxon's log-posterior is the plain sum of its per-trait
    log-likelihoods over the traits the user actually observed.
    Unobserved traits contribute nothing.

Normalization is a smoothed softmax ("softmax-with-kappa"): a
Dirichlet-style floor keeps every taxon at non-zero probability when
kappa > 0, so one decisive trait never produces premature certainty.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from ..domain import EmptyMatrixError, Matrix, Taxon
from ..evidence import ObservedTrait, resolve_observations, truth_for
from ..options import AlgoOptions
from .likelihood import LikelihoodParams, log_likelihood
from .match_stats import MatchStats

logger = logging.getLogger(__name__)


# =============================================================================
# AGGREGATION
# =============================================================================

def log_posteriors(
    matrix: Matrix,
    resolved: Sequence[ObservedTrait],
    params: LikelihoodParams,
) -> list[float]:
    """Sum per-trait log-likelihoods for every taxon."""
    out = []
    for taxon in matrix.taxa:
        lp = 0.0
        for item in resolved:
            lp += log_likelihood(truth_for(taxon, item.trait), item.observation, params)
        out.append(lp)
    return out


def _uniform(n: int) -> list[float]:
    return [1.0 / n] * n


def softmax_with_kappa(log_post: Sequence[float], kappa: float, epsilon_cut: float) -> list[float]:
    """
    Convert log-posteriors into a probability vector.

    Subtract the max finite value, exponentiate, zero entries below
    epsilon_cut, then post[i] = (u[i] + kappa/n) / (sum(u) + kappa).
    Falls back to uniform when every entry is -inf or nothing survives
    the cut.
    """
    n = len(log_post)
    if n == 0:
        return []

    finite = [v for v in log_post if not math.isinf(v) and not math.isnan(v)]
    if not finite:
        return _uniform(n)
    max_log = max(finite)

    u = []
    for v in log_post:
        if math.isinf(v) or math.isnan(v):
            u.append(0.0)
            continue
        val = math.exp(v - max_log)
        u.append(val if val >= epsilon_cut else 0.0)

    sum_u = sum(u)
    if sum_u == 0:
        return _uniform(n)

    kappa = max(0.0, kappa)
    add = kappa / n
    den = sum_u + kappa
    return [(val + add) / den for val in u]


def compute_posterior(
    matrix: Matrix,
    observations: Mapping[str, Any],
    options: Optional[AlgoOptions] = None,
) -> list[float]:
    """
    Posterior vector over matrix.taxa for the given observations.

    Raises:
        EmptyMatrixError: If the matrix has no taxa
    """
    if not matrix.taxa:
        raise EmptyMatrixError()
    opts = (options or AlgoOptions()).normalized()
    resolved = resolve_observations(matrix, observations)
    return posterior_from_resolved(matrix, resolved, opts)


def posterior_from_resolved(
    matrix: Matrix,
    resolved: Sequence[ObservedTrait],
    options: AlgoOptions,
) -> list[float]:
    params = LikelihoodParams.from_options(options)
    logger.debug("Active traits for evaluation: %s", [o.trait_id for o in resolved])
    log_post = log_posteriors(matrix, resolved, params)
    return softmax_with_kappa(log_post, options.kappa, options.epsilon_cut)


# =============================================================================
# RANKED SCORES
# =============================================================================

@dataclass
class TaxonScore:
    """
    One ranked candidate.

    Exposes:
    - taxon_index: position in Matrix.taxa
    - posterior: normalized plausibility
    - delta: gap to the top-ranked candidate
    - match/conflict/support counts for display
    """
    taxon_index: int
    taxon: Taxon
    posterior: float
    delta: float
    match_count: int
    conflict_count: int
    support_count: int
    used_count: int = 0

    @property
    def name(self) -> str:
        return self.taxon.get_name_value()

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.taxon_index,
            "taxonId": self.taxon.taxon_id,
            "name": self.name,
            "post": self.posterior,
            "delta": self.delta,
            "match": self.match_count,
            "conflicts": self.conflict_count,
            "support": self.support_count,
            "used": self.used_count,
        }


def _recompute_deltas(scores: list[TaxonScore]) -> list[TaxonScore]:
    top = scores[0].posterior if scores else 0.0
    for score in scores:
        score.delta = top - score.posterior
    return scores


def rank_scores(
    matrix: Matrix,
    post: Sequence[float],
    stats: Sequence[MatchStats],
    used_count: int = 0,
) -> list[TaxonScore]:
    """
    Build TaxonScores sorted by descending posterior.

    Ties go to the candidate with fewer conflicts, then to matrix order.
    """
    scores = [
        TaxonScore(
            taxon_index=i,
            taxon=matrix.taxa[i],
            posterior=post[i],
            delta=0.0,
            match_count=stats[i].matches,
            conflict_count=stats[i].conflicts,
            support_count=stats[i].support,
            used_count=used_count,
        )
        for i in range(len(post))
    ]
    scores.sort(key=lambda s: (-s.posterior, s.conflict_count, s.taxon_index))
    _recompute_deltas(scores)

    if scores:
        logger.debug(
            "Top candidates: %s",
            ", ".join(f"{s.name} ({s.posterior:.4f})" for s in scores[:3]),
        )
    return scores


def apply_mode(scores: list[TaxonScore], mode: str = "lenient") -> list[TaxonScore]:
    """
    Apply the display mode over ranked scores.

    "strict" drops every candidate with at least one conflict and
    re-measures delta against the surviving top. Any other mode returns
    the scores unchanged.
    """
    if mode != "strict":
        return scores
    kept = [s for s in scores if s.conflict_count == 0]
    return _recompute_deltas(kept)
