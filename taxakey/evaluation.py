"""
Evaluation entry point for the TaxaKey Identification Engine.

Ties the stages together into one stateless call:

    1. Resolve observations against the matrix (adapter)
    2. Score every taxon (likelihood core + posterior aggregator,
       or the heuristic match rate)
    3. Count matches and conflicts for display
    4. Rank, then apply the strict/lenient display mode
    5. Suggest the next questions from the unfiltered posterior

Identical inputs always produce identical outputs. The caller owns the
observation set and passes it fresh on every call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .domain import EmptyMatrixError, Matrix
from .evidence import resolve_observations
from .options import AlgoOptions
from .scoring.heuristic import heuristic_scores
from .scoring.likelihood import LikelihoodParams
from .scoring.match_stats import compute_all_match_stats
from .scoring.posterior import TaxonScore, apply_mode, posterior_from_resolved, rank_scores
from .suggestion.engine import TraitSuggestion, suggest_traits
from .suggestion.information import normalize

logger = logging.getLogger(__name__)


@dataclass
class EvalResult:
    """
    Complete result of one evaluation.

    Exposes:
    - scores: ranked candidates (after the display mode is applied)
    - suggestions: ranked next questions (empty unless requested)
    - posterior: the unfiltered distribution, in matrix order
    - used_trait_ids: the observed traits that were scored
    """
    scores: list[TaxonScore]
    suggestions: list[TraitSuggestion] = field(default_factory=list)
    posterior: list[float] = field(default_factory=list)
    used_trait_ids: list[str] = field(default_factory=list)

    def get_score(self, taxon_id: str) -> Optional[TaxonScore]:
        for score in self.scores:
            if score.taxon.taxon_id == taxon_id:
                return score
        return None

    @property
    def top(self) -> Optional[TaxonScore]:
        return self.scores[0] if self.scores else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scores": [s.to_dict() for s in self.scores],
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


def evaluate(
    matrix: Matrix,
    observations: Optional[Mapping[str, Any]] = None,
    options: Optional[AlgoOptions] = None,
    mode: str = "lenient",
    algorithm: str = "bayes",
) -> EvalResult:
    """
    Rank candidates and suggest next questions.

    Args:
        matrix: A fully populated Matrix (never modified)
        observations: trait ID -> raw observed value
        options: Algorithm options; clamped into their domains
        mode: "lenient" keeps every candidate, "strict" drops any with conflicts
        algorithm: "bayes" (posterior) or "heuristic" (match rate)

    Raises:
        EmptyMatrixError: If the matrix has no taxa
    """
    if not matrix.taxa:
        raise EmptyMatrixError()

    opts = (options or AlgoOptions()).normalized()
    resolved = resolve_observations(matrix, observations or {})
    used = [o.trait_id for o in resolved]
    logger.debug(
        "Evaluating taxa=%d observed=%d mode=%s algorithm=%s",
        len(matrix.taxa), len(used), mode, algorithm,
    )

    params = LikelihoodParams.from_options(opts)
    stats = compute_all_match_stats(matrix, resolved, params)

    if algorithm == "heuristic":
        raw = heuristic_scores(stats)
        ranked = rank_scores(matrix, raw, stats, used_count=len(used))
        post = normalize(raw)
    else:
        post = posterior_from_resolved(matrix, resolved, opts)
        ranked = rank_scores(matrix, post, stats, used_count=len(used))

    scores = apply_mode(ranked, mode)

    suggestions: list[TraitSuggestion] = []
    if opts.want_info_gain:
        suggestions = suggest_traits(
            matrix,
            post,
            observed=used,
            tau=opts.tau,
            strategy=opts.recommendation_strategy,
        )

    return EvalResult(
        scores=scores,
        suggestions=suggestions,
        posterior=list(post),
        used_trait_ids=used,
    )
