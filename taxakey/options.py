"""
Algorithm options for the TaxaKey Identification Engine.

Every tunable the likelihood model, the posterior aggregator and the
suggestion engine read lives here. Out-of-domain values are clamped or
defaulted at the call boundary rather than rejected, so a partially
configured options object from a UI still evaluates.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

DEFAULT_ALPHA_FP = 0.03
DEFAULT_BETA_FN = 0.07
DEFAULT_GAMMA_NA_PENALTY = 0.95
DEFAULT_KAPPA = 1.0
DEFAULT_EPSILON_CUT = 1e-6
DEFAULT_TOLERANCE_FACTOR = 0.1
DEFAULT_JACCARD_THRESHOLD = 0.5
DEFAULT_TAU = 0.01

MAX_TOLERANCE_FACTOR = 0.5
PROBABILITY_FLOOR = 1e-9

CATEGORICAL_ALGOS = ("binary", "jaccard")
RECOMMENDATION_STRATEGIES = ("expected_ig", "ecr", "max_ig")
ALGORITHMS = ("bayes", "heuristic")
MODES = ("lenient", "strict")

# camelCase keys used by the desktop front end
_JSON_KEYS = {
    "defaultAlphaFP": "alpha_fp",
    "defaultBetaFN": "beta_fn",
    "gammaNAPenalty": "gamma_na_penalty",
    "kappa": "kappa",
    "epsilonCut": "epsilon_cut",
    "conflictPenalty": "conflict_penalty",
    "toleranceFactor": "tolerance_factor",
    "categoricalAlgo": "categorical_algo",
    "jaccardThreshold": "jaccard_threshold",
    "wantInfoGain": "want_info_gain",
    "recommendationStrategy": "recommendation_strategy",
    "tau": "tau",
}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _finite(value: Any, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(number):
        return fallback
    return number


@dataclass(frozen=True)
class AlgoOptions:
    """
    Parameters of one evaluation.

    alpha_fp          — false-positive rate, (0, 1)
    beta_fn           — false-negative rate, (0, 1)
    gamma_na_penalty  — multiplicative penalty for unknown truth, (0, 1]
    kappa             — Dirichlet smoothing strength, >= 0
    epsilon_cut       — softmax noise floor, >= 0
    conflict_penalty  — 0 = Bayesian tolerance, 1 = near-hard exclusion
    tolerance_factor  — continuous slack as a fraction of range, [0, 0.5]
    categorical_algo  — "binary" (any overlap) or "jaccard"
    jaccard_threshold — minimum Jaccard similarity for a match, [0, 1]
    want_info_gain    — compute next-question suggestions
    recommendation_strategy — "expected_ig", "ecr" or "max_ig"
    tau               — posterior threshold for candidate counting
    """
    alpha_fp: float = DEFAULT_ALPHA_FP
    beta_fn: float = DEFAULT_BETA_FN
    gamma_na_penalty: float = DEFAULT_GAMMA_NA_PENALTY
    kappa: float = DEFAULT_KAPPA
    epsilon_cut: float = DEFAULT_EPSILON_CUT
    conflict_penalty: float = 0.0
    tolerance_factor: float = DEFAULT_TOLERANCE_FACTOR
    categorical_algo: str = "binary"
    jaccard_threshold: float = DEFAULT_JACCARD_THRESHOLD
    want_info_gain: bool = True
    recommendation_strategy: str = "expected_ig"
    tau: float = DEFAULT_TAU

    def normalized(self) -> AlgoOptions:
        """
        Return a copy with every value pulled into its documented domain.

        Non-positive error rates and invalid gamma fall back to defaults;
        negative kappa falls back to the default strength; the rest are
        clamped.
        """
        alpha = _finite(self.alpha_fp, DEFAULT_ALPHA_FP)
        if alpha <= 0:
            alpha = DEFAULT_ALPHA_FP
        beta = _finite(self.beta_fn, DEFAULT_BETA_FN)
        if beta <= 0:
            beta = DEFAULT_BETA_FN
        gamma = _finite(self.gamma_na_penalty, DEFAULT_GAMMA_NA_PENALTY)
        if gamma <= 0 or gamma > 1.0:
            gamma = DEFAULT_GAMMA_NA_PENALTY
        kappa = _finite(self.kappa, DEFAULT_KAPPA)
        if kappa < 0:
            kappa = DEFAULT_KAPPA

        algo = str(self.categorical_algo or "").strip().lower()
        if algo not in CATEGORICAL_ALGOS:
            algo = "binary"
        strategy = str(self.recommendation_strategy or "").strip().lower()
        if strategy not in RECOMMENDATION_STRATEGIES:
            strategy = "expected_ig"

        return replace(
            self,
            alpha_fp=_clamp(alpha, PROBABILITY_FLOOR, 1.0 - PROBABILITY_FLOOR),
            beta_fn=_clamp(beta, PROBABILITY_FLOOR, 1.0 - PROBABILITY_FLOOR),
            gamma_na_penalty=gamma,
            kappa=kappa,
            epsilon_cut=max(0.0, _finite(self.epsilon_cut, DEFAULT_EPSILON_CUT)),
            conflict_penalty=_clamp(_finite(self.conflict_penalty, 0.0), 0.0, 1.0),
            tolerance_factor=_clamp(
                _finite(self.tolerance_factor, DEFAULT_TOLERANCE_FACTOR),
                0.0, MAX_TOLERANCE_FACTOR,
            ),
            categorical_algo=algo,
            jaccard_threshold=_clamp(
                _finite(self.jaccard_threshold, DEFAULT_JACCARD_THRESHOLD), 0.0, 1.0,
            ),
            want_info_gain=bool(self.want_info_gain),
            recommendation_strategy=strategy,
            tau=_clamp(_finite(self.tau, DEFAULT_TAU), 0.0, 1.0),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AlgoOptions:
        """
        Build options from a mapping of snake_case or camelCase keys.

        Unknown keys are ignored; missing keys keep their defaults.
        """
        names = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _JSON_KEYS.get(key, key)
            if name in names and value is not None:
                values[name] = value
        return cls(**values).normalized()

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used by the front end."""
        return {json_key: getattr(self, name) for json_key, name in _JSON_KEYS.items()}
