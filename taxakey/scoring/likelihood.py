"""
Likelihood Core for the TaxaKey Identification Engine.

Each (taxon, observed trait) pair contributes one log-likelihood term.
There is one formula family per trait kind:

    Binary            — error-rate model with a conflict blend
    Nominal/Ordinal   — one independent binary term per answered state
    Continuous        — inclusive range with a linear tolerance ramp
    Categorical multi — set match test reduced to the binary formula

Unknown truth always short-circuits to the gamma-penalised branch.
NotObserved contributes nothing.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ..domain import STATE_KINDS, ContinuousRange, Ternary, TraitKind
from ..evidence import Observation, Truth
from ..options import MAX_TOLERANCE_FACTOR, AlgoOptions

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Penalty base for a hard conflict
LARGE_NEGATIVE = -1e6

# Smallest continuous tolerance, in trait units
MIN_TOLERANCE = 0.05

# Log-likelihood lost across the full width of the tolerance band
CONTINUOUS_RAMP = 10.0


class TraitOutcome(Enum):
    """How one observation compares to one taxon's truth."""
    MATCH = "match"
    CONFLICT = "conflict"
    PARTIAL = "partial"          # continuous value inside the tolerance band
    UNKNOWN = "unknown"          # taxon has no recorded truth
    NOT_OBSERVED = "not_observed"


@dataclass(frozen=True)
class LikelihoodParams:
    """The subset of AlgoOptions the likelihood model reads."""
    alpha_fp: float
    beta_fn: float
    gamma_na_penalty: float
    conflict_penalty: float
    tolerance_factor: float
    categorical_algo: str
    jaccard_threshold: float

    @classmethod
    def from_options(cls, options: AlgoOptions) -> LikelihoodParams:
        opts = options.normalized()
        return cls(
            alpha_fp=opts.alpha_fp,
            beta_fn=opts.beta_fn,
            gamma_na_penalty=opts.gamma_na_penalty,
            conflict_penalty=opts.conflict_penalty,
            tolerance_factor=opts.tolerance_factor,
            categorical_algo=opts.categorical_algo,
            jaccard_threshold=opts.jaccard_threshold,
        )


# =============================================================================
# SET SIMILARITY
# =============================================================================

def jaccard_similarity(set1: Iterable[str], set2: Iterable[str]) -> float:
    """|A ∩ B| / |A ∪ B|, defined as 1.0 when both sets are empty."""
    a, b = set(set1), set(set2)
    union = a | b
    if not union:
        return 1.0
    return len(a & b) / len(union)


def has_intersection(set1: Iterable[str], set2: Iterable[str]) -> bool:
    return not set(set1).isdisjoint(set2)


def categorical_match(
    observed: Iterable[str],
    truth: Iterable[str],
    algo: str,
    threshold: float,
) -> bool:
    """Match test for a categorical-multi trait under the chosen algorithm."""
    if algo == "jaccard":
        return jaccard_similarity(observed, truth) >= threshold
    return has_intersection(observed, truth)


# =============================================================================
# PER-KIND FORMULAS
# =============================================================================

def log_prob_binary(
    obs_yes: bool,
    truth_yes: bool,
    alpha: float,
    beta: float,
    conflict_penalty: float,
) -> float:
    """
    Binary error-rate model.

    Agreement scores log(1-beta) for a Yes truth and log(1-alpha) for a
    No truth. A conflict blends the Bayesian term (log alpha for an
    observed Yes, log beta for an observed No) with LARGE_NEGATIVE in
    proportion to conflict_penalty.
    """
    if obs_yes != truth_yes:
        standard = math.log(alpha) if obs_yes else math.log(beta)
        return (1.0 - conflict_penalty) * standard + conflict_penalty * LARGE_NEGATIVE
    if truth_yes:
        return math.log(1.0 - beta)
    return math.log(1.0 - alpha)


def log_prob_unknown_binary(obs_yes: bool, alpha: float, beta: float, gamma: float) -> float:
    """Binary observation against unknown truth: marginalise over Yes/No, then apply gamma."""
    if obs_yes:
        p = 0.5 * (1.0 - beta) + 0.5 * alpha
    else:
        p = 0.5 * (1.0 - alpha) + 0.5 * beta
    return math.log(gamma) + math.log(p)


def continuous_tolerance(value_range: ContinuousRange, tolerance_factor: float) -> float:
    factor = max(0.0, min(MAX_TOLERANCE_FACTOR, tolerance_factor))
    return max(value_range.span * factor, MIN_TOLERANCE)


def log_prob_continuous(
    value: float,
    value_range: ContinuousRange,
    tolerance_factor: float,
) -> float:
    """
    Range test with a linear ramp.

    Inside [min, max] (inclusive) scores 0. Strictly within tolerance of
    the nearer boundary scores -(distance / tolerance) * 10. Anything
    further out scores LARGE_NEGATIVE.
    """
    if value_range.contains(value):
        return 0.0
    tolerance = continuous_tolerance(value_range, tolerance_factor)
    distance = value_range.distance(value)
    if distance < tolerance:
        return -(distance / tolerance) * CONTINUOUS_RAMP
    return LARGE_NEGATIVE


def log_prob_categorical(
    observed: Iterable[str],
    truth: Iterable[str],
    params: LikelihoodParams,
) -> float:
    """Set match test scored as the binary formula for an observed Yes."""
    observed, truth = frozenset(observed), frozenset(truth)
    matched = categorical_match(
        observed, truth, params.categorical_algo, params.jaccard_threshold,
    )
    logger.debug(
        "Categorical compare obs=%s truth=%s algo=%s -> match=%s",
        sorted(observed), sorted(truth), params.categorical_algo, matched,
    )
    return log_prob_binary(
        True, matched, params.alpha_fp, params.beta_fn, params.conflict_penalty,
    )


def log_prob_states(observation: Observation, truth: Truth, params: LikelihoodParams) -> float:
    """
    Nominal/ordinal trait as one binary trait per state.

    Each answered state is scored by the binary formula against whether
    the taxon has that state, or by the unknown-truth branch when the
    taxon's value for that state is not recorded.
    """
    total = 0.0
    for state, answer in observation.answers:
        obs_yes = answer is Ternary.YES
        recorded = truth.state_truth(state)
        if recorded.is_known:
            total += log_prob_binary(
                obs_yes, recorded is Ternary.YES,
                params.alpha_fp, params.beta_fn, params.conflict_penalty,
            )
        else:
            total += log_prob_unknown_binary(
                obs_yes, params.alpha_fp, params.beta_fn, params.gamma_na_penalty,
            )
    return total


def compare_states(truth: Truth, observation: Observation) -> list[TraitOutcome]:
    """Outcome of each answered state of a nominal/ordinal observation."""
    outcomes = []
    for state, answer in observation.answers:
        recorded = truth.state_truth(state)
        if not recorded.is_known:
            outcomes.append(TraitOutcome.UNKNOWN)
        elif recorded is answer:
            outcomes.append(TraitOutcome.MATCH)
        else:
            outcomes.append(TraitOutcome.CONFLICT)
    return outcomes


# =============================================================================
# DISPATCH
# =============================================================================

def classify(truth: Truth, observation: Observation, params: LikelihoodParams) -> TraitOutcome:
    """
    Compare one observation with one truth using the per-kind rules.

    This is the comparison shared by scoring and the match statistics.
    A nominal/ordinal trait conflicts when any answered state conflicts
    and is unknown when no answered state has a recorded value.
    """
    if not observation.observed:
        return TraitOutcome.NOT_OBSERVED
    if truth.unknown:
        return TraitOutcome.UNKNOWN

    kind = observation.kind
    if kind is TraitKind.BINARY:
        matched = observation.state is truth.state
    elif kind in STATE_KINDS:
        outcomes = compare_states(truth, observation)
        if TraitOutcome.CONFLICT in outcomes:
            return TraitOutcome.CONFLICT
        if TraitOutcome.MATCH in outcomes:
            return TraitOutcome.MATCH
        return TraitOutcome.UNKNOWN
    elif kind is TraitKind.CONTINUOUS:
        if truth.value_range.contains(observation.value):
            return TraitOutcome.MATCH
        tolerance = continuous_tolerance(truth.value_range, params.tolerance_factor)
        if truth.value_range.distance(observation.value) < tolerance:
            return TraitOutcome.PARTIAL
        return TraitOutcome.CONFLICT
    else:
        matched = categorical_match(
            observation.states, truth.states,
            params.categorical_algo, params.jaccard_threshold,
        )
    return TraitOutcome.MATCH if matched else TraitOutcome.CONFLICT


def log_likelihood(truth: Truth, observation: Observation, params: LikelihoodParams) -> float:
    """Log-likelihood contribution of one observed trait for one taxon."""
    if not observation.observed:
        return 0.0

    kind = observation.kind
    gamma = params.gamma_na_penalty

    if kind is TraitKind.BINARY:
        obs_yes = observation.state is Ternary.YES
        if truth.unknown:
            return log_prob_unknown_binary(obs_yes, params.alpha_fp, params.beta_fn, gamma)
        return log_prob_binary(
            obs_yes, truth.state is Ternary.YES,
            params.alpha_fp, params.beta_fn, params.conflict_penalty,
        )

    if kind in STATE_KINDS:
        return log_prob_states(observation, truth, params)

    if kind is TraitKind.CONTINUOUS:
        if truth.unknown:
            return math.log(gamma)
        return log_prob_continuous(observation.value, truth.value_range, params.tolerance_factor)

    if truth.unknown:
        return math.log(gamma)
    return log_prob_categorical(observation.states, truth.states, params)
