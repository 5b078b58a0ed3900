"""
Tests for the likelihood core.

These tests verify that:
1. Each trait kind scores with its own formula
2. Unknown truth always takes the gamma-penalised branch
3. Conflicts are softened or hardened by the conflict penalty
"""

import math

import pytest

from taxakey.domain import ContinuousRange, Ternary, Trait, TraitKind
from taxakey.evidence import Observation, Truth
from taxakey.options import AlgoOptions
from taxakey.scoring.likelihood import (
    CONTINUOUS_RAMP,
    LARGE_NEGATIVE,
    MIN_TOLERANCE,
    LikelihoodParams,
    TraitOutcome,
    categorical_match,
    classify,
    compare_states,
    continuous_tolerance,
    jaccard_similarity,
    log_likelihood,
    log_prob_binary,
    log_prob_continuous,
    log_prob_unknown_binary,
)


ALPHA = 0.03
BETA = 0.07
GAMMA = 0.95

BILL = Trait("BILL", "Bill shape", TraitKind.NOMINAL, states=("hooked", "conical", "flat"))
SIZE = Trait("SIZE", "Size", TraitKind.ORDINAL, states=("small", "large"))


def make_params(**kwargs) -> LikelihoodParams:
    return LikelihoodParams.from_options(AlgoOptions(**kwargs))


def binary_truth(state: Ternary) -> Truth:
    return Truth(kind=TraitKind.BINARY, state=state)


def binary_obs(state: Ternary) -> Observation:
    return Observation(kind=TraitKind.BINARY, state=state)


# =============================================================================
# BINARY TESTS
# =============================================================================

class TestBinary:
    """Test the binary error-rate model."""

    def test_agreement_terms(self):
        assert log_prob_binary(True, True, ALPHA, BETA, 0.0) == pytest.approx(math.log(1 - BETA))
        assert log_prob_binary(False, False, ALPHA, BETA, 0.0) == pytest.approx(math.log(1 - ALPHA))

    def test_conflict_terms(self):
        assert log_prob_binary(True, False, ALPHA, BETA, 0.0) == pytest.approx(math.log(ALPHA))
        assert log_prob_binary(False, True, ALPHA, BETA, 0.0) == pytest.approx(math.log(BETA))

    def test_conflict_penalty_blends_towards_large_negative(self):
        half = log_prob_binary(True, False, ALPHA, BETA, 0.5)
        assert half == pytest.approx(0.5 * math.log(ALPHA) + 0.5 * LARGE_NEGATIVE)
        assert log_prob_binary(True, False, ALPHA, BETA, 1.0) == pytest.approx(LARGE_NEGATIVE)

    def test_conflict_penalty_does_not_touch_agreement(self):
        assert log_prob_binary(True, True, ALPHA, BETA, 1.0) == pytest.approx(math.log(1 - BETA))

    def test_unknown_truth_marginalises(self):
        yes = log_prob_unknown_binary(True, ALPHA, BETA, GAMMA)
        no = log_prob_unknown_binary(False, ALPHA, BETA, GAMMA)
        assert yes == pytest.approx(math.log(GAMMA) + math.log(0.5 * (1 - BETA) + 0.5 * ALPHA))
        assert no == pytest.approx(math.log(GAMMA) + math.log(0.5 * (1 - ALPHA) + 0.5 * BETA))

    def test_dispatch(self):
        params = make_params()
        obs = binary_obs(Ternary.YES)
        assert log_likelihood(binary_truth(Ternary.YES), obs, params) == pytest.approx(
            math.log(1 - BETA)
        )
        assert log_likelihood(Truth.unknown_for(TraitKind.BINARY), obs, params) == pytest.approx(
            log_prob_unknown_binary(True, ALPHA, BETA, GAMMA)
        )

    def test_not_observed_contributes_nothing(self):
        params = make_params()
        obs = Observation.not_observed(TraitKind.BINARY)
        assert log_likelihood(binary_truth(Ternary.NO), obs, params) == 0.0
        assert classify(binary_truth(Ternary.NO), obs, params) is TraitOutcome.NOT_OBSERVED


# =============================================================================
# NOMINAL TESTS
# =============================================================================

class TestNominal:
    """Test the one-binary-trait-per-state model."""

    def test_same_state_matches(self):
        params = make_params()
        truth = Truth(kind=TraitKind.NOMINAL, label="flat")
        obs = Observation.state_pick(BILL, "flat")
        expected = math.log(1 - BETA) + 2 * math.log(1 - ALPHA)
        assert log_likelihood(truth, obs, params) == pytest.approx(expected)
        assert classify(truth, obs, params) is TraitOutcome.MATCH

    def test_other_state_conflicts(self):
        params = make_params()
        truth = Truth(kind=TraitKind.NOMINAL, label="hooked")
        obs = Observation.state_pick(BILL, "flat")
        # hooked: No vs Yes, conical: No vs No, flat: Yes vs No
        expected = math.log(BETA) + math.log(1 - ALPHA) + math.log(ALPHA)
        assert log_likelihood(truth, obs, params) == pytest.approx(expected)
        assert classify(truth, obs, params) is TraitOutcome.CONFLICT

    def test_every_state_weighs_in(self):
        params = make_params()
        obs = Observation.state_pick(BILL, "flat")
        flat = log_likelihood(Truth(kind=TraitKind.NOMINAL, label="flat"), obs, params)
        hooked = log_likelihood(Truth(kind=TraitKind.NOMINAL, label="hooked"), obs, params)
        assert flat - hooked == pytest.approx(6.062788033933216)

    def test_state_pick_answers_every_state(self):
        obs = Observation.state_pick(BILL, "conical")
        assert obs.label == "conical"
        assert obs.answers == (
            ("hooked", Ternary.NO),
            ("conical", Ternary.YES),
            ("flat", Ternary.NO),
        )

    def test_unknown_state(self):
        params = make_params()
        obs = Observation.state_pick(SIZE, "small")
        expected = (
            log_prob_unknown_binary(True, ALPHA, BETA, GAMMA)
            + log_prob_unknown_binary(False, ALPHA, BETA, GAMMA)
        )
        assert log_likelihood(Truth.unknown_for(TraitKind.ORDINAL), obs, params) == pytest.approx(expected)

    def test_single_no_answer(self):
        params = make_params()
        obs = Observation(kind=TraitKind.NOMINAL, answers=(("hooked", Ternary.NO),))
        flat = Truth(kind=TraitKind.NOMINAL, label="flat")
        hooked = Truth(kind=TraitKind.NOMINAL, label="hooked")
        assert log_likelihood(flat, obs, params) == pytest.approx(math.log(1 - ALPHA))
        assert log_likelihood(hooked, obs, params) == pytest.approx(math.log(BETA))
        assert log_likelihood(Truth.unknown_for(TraitKind.NOMINAL), obs, params) == pytest.approx(
            log_prob_unknown_binary(False, ALPHA, BETA, GAMMA)
        )
        assert classify(hooked, obs, params) is TraitOutcome.CONFLICT

    def test_excluded_states_known_absent(self):
        params = make_params()
        truth = Truth(kind=TraitKind.NOMINAL, excluded=frozenset({"hooked"}))
        obs = Observation.state_pick(BILL, "flat")
        expected = (
            math.log(1 - ALPHA)
            + log_prob_unknown_binary(False, ALPHA, BETA, GAMMA)
            + log_prob_unknown_binary(True, ALPHA, BETA, GAMMA)
        )
        assert log_likelihood(truth, obs, params) == pytest.approx(expected)
        assert compare_states(truth, obs) == [
            TraitOutcome.MATCH, TraitOutcome.UNKNOWN, TraitOutcome.UNKNOWN,
        ]
        assert classify(truth, obs, params) is TraitOutcome.MATCH

    def test_no_recorded_answered_state_is_unknown(self):
        params = make_params()
        truth = Truth(kind=TraitKind.NOMINAL, excluded=frozenset({"conical"}))
        obs = Observation(kind=TraitKind.NOMINAL, answers=(("hooked", Ternary.YES),))
        assert classify(truth, obs, params) is TraitOutcome.UNKNOWN


# =============================================================================
# CONTINUOUS TESTS
# =============================================================================

class TestContinuous:
    """Test the inclusive range with a tolerance ramp."""

    RANGE = ContinuousRange(10.0, 20.0)

    @pytest.mark.parametrize("value", [10.0, 15.0, 20.0])
    def test_inside_range_scores_zero(self, value):
        assert log_prob_continuous(value, self.RANGE, 0.1) == 0.0

    def test_ramp_inside_tolerance(self):
        assert log_prob_continuous(20.5, self.RANGE, 0.1) == pytest.approx(-5.0)
        assert log_prob_continuous(9.5, self.RANGE, 0.1) == pytest.approx(-5.0)

    def test_beyond_tolerance(self):
        assert log_prob_continuous(25.0, self.RANGE, 0.1) == LARGE_NEGATIVE

    def test_band_edge_is_outside(self):
        assert log_prob_continuous(21.0, self.RANGE, 0.1) == LARGE_NEGATIVE

    def test_minimum_tolerance_for_degenerate_range(self):
        point = ContinuousRange(3.0, 3.0)
        assert continuous_tolerance(point, 0.1) == MIN_TOLERANCE
        assert log_prob_continuous(3.025, point, 0.1) == pytest.approx(-0.5 * CONTINUOUS_RAMP)

    def test_tolerance_factor_is_clamped(self):
        assert continuous_tolerance(self.RANGE, 5.0) == pytest.approx(5.0)
        assert continuous_tolerance(self.RANGE, -1.0) == MIN_TOLERANCE

    def test_classification(self):
        params = make_params()
        truth = Truth(kind=TraitKind.CONTINUOUS, value_range=self.RANGE)

        def outcome(value):
            return classify(truth, Observation(kind=TraitKind.CONTINUOUS, value=value), params)

        assert outcome(20.0) is TraitOutcome.MATCH
        assert outcome(20.5) is TraitOutcome.PARTIAL
        assert outcome(25.0) is TraitOutcome.CONFLICT

    def test_unknown_truth_scores_log_gamma(self):
        params = make_params()
        obs = Observation(kind=TraitKind.CONTINUOUS, value=1000.0)
        truth = Truth.unknown_for(TraitKind.CONTINUOUS)
        assert log_likelihood(truth, obs, params) == pytest.approx(math.log(GAMMA))
        assert classify(truth, obs, params) is TraitOutcome.UNKNOWN


# =============================================================================
# CATEGORICAL TESTS
# =============================================================================

class TestCategorical:
    """Test the set match test."""

    def test_jaccard_reflexive(self):
        assert jaccard_similarity({"a", "b"}, {"a", "b"}) == 1.0
        assert jaccard_similarity(set(), set()) == 1.0

    def test_jaccard_partial(self):
        assert jaccard_similarity({"red"}, {"red", "blue"}) == pytest.approx(0.5)
        assert jaccard_similarity({"red"}, {"blue"}) == 0.0

    def test_binary_algo_matches_on_overlap(self):
        assert categorical_match({"red"}, {"red", "blue"}, "binary", 0.6)
        assert not categorical_match({"green"}, {"red", "blue"}, "binary", 0.6)

    def test_jaccard_algo_uses_threshold(self):
        assert not categorical_match({"red"}, {"red", "blue"}, "jaccard", 0.6)
        assert categorical_match({"red"}, {"red", "blue"}, "jaccard", 0.5)

    def test_algorithms_agree_on_equal_and_disjoint_sets(self):
        for algo in ("binary", "jaccard"):
            assert categorical_match({"a", "b"}, {"a", "b"}, algo, 0.5)
            assert not categorical_match({"a"}, {"b"}, algo, 0.5)

    def test_overlap_scores_like_binary_match(self):
        truth = Truth(kind=TraitKind.CATEGORICAL_MULTI, states=frozenset({"red", "blue"}))
        obs = Observation(kind=TraitKind.CATEGORICAL_MULTI, states=frozenset({"red"}))

        binary = make_params()
        assert log_likelihood(truth, obs, binary) == pytest.approx(math.log(1 - BETA))
        assert classify(truth, obs, binary) is TraitOutcome.MATCH

        jaccard = make_params(categorical_algo="jaccard", jaccard_threshold=0.6)
        assert log_likelihood(truth, obs, jaccard) == pytest.approx(math.log(ALPHA))
        assert classify(truth, obs, jaccard) is TraitOutcome.CONFLICT

    def test_unknown_truth_scores_log_gamma(self):
        params = make_params(gamma_na_penalty=0.5)
        obs = Observation(kind=TraitKind.CATEGORICAL_MULTI, states=frozenset({"red"}))
        truth = Truth.unknown_for(TraitKind.CATEGORICAL_MULTI)
        assert log_likelihood(truth, obs, params) == pytest.approx(math.log(0.5))
