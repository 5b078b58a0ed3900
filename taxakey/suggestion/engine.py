"""
Suggestion Engine for the TaxaKey Identification Engine.

Given the current posterior, ranks every unobserved question by the
uncertainty it is expected to remove.

Questions:
    - a binary trait, with outcomes Yes / No
    - a nominal or ordinal trait, with one outcome per state

For each outcome s the hypothetical posterior zeroes the mass of taxa
whose known truth is incompatible with s and renormalizes. Taxa with
unknown truth stay compatible with every outcome; a taxon with only
excluded states stays compatible with the states it does not exclude.

Scores reported per question:
    information_gain              — H(post) - Σ P(s) H(post | s)
    expected_candidate_reduction  — expected fraction of candidates
                                    above tau that the answer removes
    max_information_gain          — H(post) - min_s H(post | s)
    gini, entropy                 — balance of the outcome distribution
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from ..domain import Matrix, Ternary, Trait, TraitKind
from ..evidence import Truth, truth_for
from ..options import DEFAULT_TAU
from .information import count_above, gini_impurity, normalize, shannon_entropy

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class OutcomeProbability:
    """Predicted probability of one answer to a question."""
    state: str
    p: float


@dataclass
class TraitSuggestion:
    """
    One candidate next question with its full scoring.

    score is the value the suggestions were sorted by, chosen by the
    recommendation strategy.
    """
    trait_id: str
    name: str
    group: str
    information_gain: float
    expected_candidate_reduction: float
    gini: float
    entropy: float
    outcome_distribution: list[OutcomeProbability] = field(default_factory=list)
    max_information_gain: float = 0.0
    expected_entropy: float = 0.0
    difficulty: float = 1.0
    risk: float = 0.5
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "traitId": self.trait_id,
            "name": self.name,
            "group": self.group,
            "ig": self.information_gain,
            "max_ig": self.max_information_gain,
            "ecr": self.expected_candidate_reduction,
            "gini": self.gini,
            "entropy": self.entropy,
            "pStates": [{"state": o.state, "p": o.p} for o in self.outcome_distribution],
            "difficulty": self.difficulty,
            "risk": self.risk,
            "score": self.score,
        }


# =============================================================================
# OUTCOME COMPATIBILITY
# =============================================================================

def outcome_compatible(trait: Trait, truth: Truth, outcome: str) -> bool:
    """Whether a taxon with this truth could produce this answer."""
    if truth.unknown:
        return True
    if trait.kind is TraitKind.BINARY:
        wanted = Ternary.YES if outcome == "Yes" else Ternary.NO
        return truth.state is wanted
    return truth.state_truth(outcome) is not Ternary.NO


def _select_score(strategy: str, suggestion: TraitSuggestion) -> float:
    if strategy == "ecr":
        return suggestion.expected_candidate_reduction
    if strategy == "max_ig":
        return suggestion.max_information_gain
    return suggestion.information_gain


def observed_question_ids(matrix: Matrix, observed: Iterable[str]) -> frozenset[str]:
    """
    Question IDs already answered.

    Legacy per-state IDs count as an answer to their parent group.
    """
    out = set()
    for trait_id in observed:
        derived = matrix.resolve_derived(trait_id)
        out.add(derived[0] if derived else trait_id)
    return frozenset(out)


# =============================================================================
# SCORING ONE QUESTION
# =============================================================================

def evaluate_question(
    matrix: Matrix,
    trait: Trait,
    post: Sequence[float],
    tau: float = DEFAULT_TAU,
) -> TraitSuggestion:
    """Score asking trait against the (normalized) posterior post."""
    outcomes = trait.outcome_labels()
    truths = [truth_for(taxon, trait) for taxon in matrix.taxa]

    h_now = shannon_entropy(post)
    c_now = count_above(post, tau)

    conditionals = []
    masses = []
    for outcome in outcomes:
        masked = [
            p if outcome_compatible(trait, truth, outcome) else 0.0
            for p, truth in zip(post, truths)
        ]
        masses.append(sum(masked))
        conditionals.append(normalize(masked))
    p_outcome = normalize(masses)

    expected_h = 0.0
    expected_reduction = 0.0
    conditional_h = []
    for p_s, post_s in zip(p_outcome, conditionals):
        h_s = shannon_entropy(post_s)
        conditional_h.append(h_s)
        expected_h += p_s * h_s
        if c_now > 0:
            expected_reduction += p_s * (1.0 - count_above(post_s, tau) / c_now)

    reachable = [h for p_s, h in zip(p_outcome, conditional_h) if p_s > 0]
    max_ig = h_now - min(reachable) if reachable else 0.0

    return TraitSuggestion(
        trait_id=trait.trait_id,
        name=trait.name or trait.trait_id,
        group=trait.group,
        information_gain=h_now - expected_h,
        expected_candidate_reduction=expected_reduction,
        gini=gini_impurity(p_outcome),
        entropy=shannon_entropy(p_outcome),
        outcome_distribution=[
            OutcomeProbability(state=s, p=p) for s, p in zip(outcomes, p_outcome)
        ],
        max_information_gain=max_ig,
        expected_entropy=expected_h,
        difficulty=trait.difficulty,
        risk=trait.risk,
    )


# =============================================================================
# RANKING
# =============================================================================

def suggest_traits(
    matrix: Matrix,
    post: Sequence[float],
    observed: Iterable[str] = (),
    tau: float = DEFAULT_TAU,
    strategy: str = "expected_ig",
    limit: Optional[int] = None,
) -> list[TraitSuggestion]:
    """
    Rank every unobserved question by the chosen strategy.

    Sorted by descending score, ties broken by name then trait ID.
    Pure: neither the matrix nor post is modified.

    Raises:
        ValueError: If post does not have one entry per taxon
    """
    if not matrix.taxa or not matrix.traits:
        return []
    if len(post) != len(matrix.taxa):
        raise ValueError(
            f"posterior has {len(post)} entries but the matrix has {len(matrix.taxa)} taxa"
        )

    current = normalize(post)
    answered = observed_question_ids(matrix, observed)

    suggestions = []
    for trait in matrix.question_traits():
        if trait.trait_id in answered:
            continue
        suggestion = evaluate_question(matrix, trait, current, tau)
        suggestion.score = _select_score(strategy, suggestion)
        suggestions.append(suggestion)

    suggestions.sort(key=lambda s: (-s.score, s.name, s.trait_id))
    logger.debug("Scored %d candidate questions (strategy=%s)", len(suggestions), strategy)

    if limit is not None:
        return suggestions[:limit]
    return suggestions
