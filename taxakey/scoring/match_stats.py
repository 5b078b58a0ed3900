"""
Match-Statistics Evaluator for the TaxaKey Identification Engine.

Independent of the probability math and used for display only:
nothing computed here feeds back into the posterior.

For each candidate, every observed trait is classified as a match, a
conflict, or not applicable (unknown truth), using the same per-kind
comparison rules as the likelihood core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from ..domain import STATE_KINDS, Matrix, Taxon, Ternary, TraitKind
from ..evidence import Observation, ObservedTrait, Truth, resolve_observations, truth_for
from ..options import AlgoOptions
from .likelihood import (
    LikelihoodParams,
    TraitOutcome,
    classify,
    compare_states,
    log_likelihood,
)


# =============================================================================
# COUNTS
# =============================================================================

@dataclass(frozen=True)
class MatchStats:
    """
    Match counts for one taxon.

    support counts observed traits for which the taxon has known truth,
    so matches + conflicts == support. Each answered state of a
    nominal/ordinal trait counts as one comparison.
    """
    matches: int = 0
    conflicts: int = 0
    support: int = 0


def count_outcomes(
    truth: Truth,
    observation: Observation,
    params: LikelihoodParams,
) -> tuple[int, int]:
    """
    (matches, conflicts) contributed by one observed trait.

    A nominal/ordinal trait counts each answered state with a recorded
    value separately, mirroring its one-term-per-state likelihood.
    """
    if observation.observed and observation.kind in STATE_KINDS:
        outcomes = compare_states(truth, observation)
        return outcomes.count(TraitOutcome.MATCH), outcomes.count(TraitOutcome.CONFLICT)
    outcome = classify(truth, observation, params)
    if outcome is TraitOutcome.MATCH:
        return 1, 0
    if outcome in (TraitOutcome.CONFLICT, TraitOutcome.PARTIAL):
        return 0, 1
    return 0, 0


def compute_match_stats(
    taxon: Taxon,
    resolved: Sequence[ObservedTrait],
    params: LikelihoodParams,
) -> MatchStats:
    """Classify each observed trait for taxon and count the outcomes."""
    matches = conflicts = 0
    for item in resolved:
        m, c = count_outcomes(truth_for(taxon, item.trait), item.observation, params)
        matches += m
        conflicts += c
    return MatchStats(matches=matches, conflicts=conflicts, support=matches + conflicts)


def compute_all_match_stats(
    matrix: Matrix,
    resolved: Sequence[ObservedTrait],
    params: LikelihoodParams,
) -> list[MatchStats]:
    return [compute_match_stats(taxon, resolved, params) for taxon in matrix.taxa]


# =============================================================================
# JUSTIFICATION
# =============================================================================

def _format_ternary(state: Ternary) -> str:
    return "Yes" if state is Ternary.YES else "No"


def _format_truth(truth: Truth) -> str:
    if truth.unknown:
        return "unknown"
    if truth.kind is TraitKind.BINARY:
        return _format_ternary(truth.state)
    if truth.kind in STATE_KINDS:
        return truth.label or ", ".join(f"not {s}" for s in sorted(truth.excluded))
    if truth.kind is TraitKind.CONTINUOUS:
        return f"{truth.value_range.min:g}-{truth.value_range.max:g}"
    return ", ".join(sorted(truth.states))


def _format_observation(observation: Observation) -> str:
    if observation.kind is TraitKind.BINARY:
        return _format_ternary(observation.state)
    if observation.kind in STATE_KINDS:
        if observation.label:
            return observation.label
        return ", ".join(
            state if answer is Ternary.YES else f"not {state}"
            for state, answer in observation.answers
        )
    if observation.kind is TraitKind.CONTINUOUS:
        return f"{observation.value:g}"
    return ", ".join(sorted(observation.states))


_OUTCOME_WORDS = {
    TraitOutcome.MATCH: "match",
    TraitOutcome.CONFLICT: "conflict",
    TraitOutcome.PARTIAL: "near miss",
    TraitOutcome.UNKNOWN: "no recorded value",
}


@dataclass
class TraitEvidence:
    """
    One observed trait as seen from one candidate.

    Every entry exposes:
    - outcome: match / conflict / near miss / unknown truth
    - contribution: the log-likelihood term added to the candidate
    - reason: human-readable explanation
    """
    trait_id: str
    name: str
    outcome: TraitOutcome
    contribution: float
    observed: str
    recorded: str
    matches: int = 0
    conflicts: int = 0

    @property
    def reason(self) -> str:
        return (
            f"{self.name}: observed {self.observed}, recorded {self.recorded} "
            f"({_OUTCOME_WORDS[self.outcome]}, {self.contribution:+.2f})"
        )


@dataclass
class TaxonJustification:
    """Per-trait evidence for one candidate plus the totals it adds up to."""
    taxon_index: int
    taxon: Taxon
    evidence: list[TraitEvidence] = field(default_factory=list)
    posterior: Optional[float] = None

    @property
    def total_log_likelihood(self) -> float:
        return sum(e.contribution for e in self.evidence)

    @property
    def stats(self) -> MatchStats:
        matches = sum(e.matches for e in self.evidence)
        conflicts = sum(e.conflicts for e in self.evidence)
        return MatchStats(matches=matches, conflicts=conflicts, support=matches + conflicts)

    def get_matches(self) -> list[TraitEvidence]:
        return [e for e in self.evidence if e.outcome is TraitOutcome.MATCH]

    def get_conflicts(self) -> list[TraitEvidence]:
        return [
            e for e in self.evidence
            if e.outcome in (TraitOutcome.CONFLICT, TraitOutcome.PARTIAL)
        ]

    def get_unknowns(self) -> list[TraitEvidence]:
        return [e for e in self.evidence if e.outcome is TraitOutcome.UNKNOWN]


def justify_taxon(
    taxon_index: int,
    taxon: Taxon,
    resolved: Sequence[ObservedTrait],
    params: LikelihoodParams,
    posterior: Optional[float] = None,
) -> TaxonJustification:
    evidence = []
    for item in resolved:
        truth = truth_for(taxon, item.trait)
        matches, conflicts = count_outcomes(truth, item.observation, params)
        evidence.append(TraitEvidence(
            trait_id=item.trait_id,
            name=item.trait.name or item.trait_id,
            outcome=classify(truth, item.observation, params),
            contribution=log_likelihood(truth, item.observation, params),
            observed=_format_observation(item.observation),
            recorded=_format_truth(truth),
            matches=matches,
            conflicts=conflicts,
        ))
    return TaxonJustification(
        taxon_index=taxon_index,
        taxon=taxon,
        evidence=evidence,
        posterior=posterior,
    )


def explain_taxon(
    matrix: Matrix,
    taxon_index: int,
    observations: Mapping[str, Any],
    options: Optional[AlgoOptions] = None,
    posterior: Optional[float] = None,
) -> TaxonJustification:
    """
    Build the per-trait justification for one candidate.

    Raises:
        IndexError: If taxon_index is outside matrix.taxa
    """
    if not 0 <= taxon_index < len(matrix.taxa):
        raise IndexError(f"taxon index {taxon_index} out of range")
    params = LikelihoodParams.from_options(options or AlgoOptions())
    resolved = resolve_observations(matrix, observations)
    return justify_taxon(taxon_index, matrix.taxa[taxon_index], resolved, params, posterior)


def format_justification(justification: TaxonJustification) -> str:
    """
    Plain-English view of a justification.

    This answers: "Why is this candidate ranked this way?"
    """
    name = justification.taxon.get_name_value()
    stats = justification.stats
    lines = []
    if justification.posterior is not None:
        lines.append(f"**{name}** has a posterior of {justification.posterior:.2%}.")
    else:
        lines.append(f"**{name}**")
    lines.append(
        f"{stats.matches} match(es), {stats.conflicts} conflict(s), "
        f"{stats.support} comparison(s) with recorded values."
    )

    if not justification.evidence:
        lines.append("")
        lines.append("No traits observed yet.")
        return "\n".join(lines)

    lines.append("")
    lines.append("**Evidence:**")
    for item in justification.evidence:
        lines.append(f"- {item.reason}")

    conflicts = justification.get_conflicts()
    if conflicts:
        lines.append("")
        lines.append("**Conflicts:** " + "; ".join(c.name for c in conflicts))

    unknowns = justification.get_unknowns()
    if unknowns:
        lines.append("")
        lines.append("**No recorded value:** " + "; ".join(u.name for u in unknowns))

    return "\n".join(lines)
