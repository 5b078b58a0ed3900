"""
Tests for algorithm options.

These tests verify that:
1. Defaults match the documented model parameters
2. Out-of-domain values are clamped, never rejected
3. Front-end camelCase keys are understood
"""

import math

import pytest

from taxakey.options import (
    DEFAULT_ALPHA_FP,
    DEFAULT_BETA_FN,
    DEFAULT_GAMMA_NA_PENALTY,
    DEFAULT_KAPPA,
    MAX_TOLERANCE_FACTOR,
    PROBABILITY_FLOOR,
    AlgoOptions,
)


class TestDefaults:
    """Test documented defaults."""

    def test_default_values(self):
        options = AlgoOptions()
        assert options.alpha_fp == 0.03
        assert options.beta_fn == 0.07
        assert options.gamma_na_penalty == 0.95
        assert options.kappa == 1.0
        assert options.epsilon_cut == 1e-6
        assert options.conflict_penalty == 0.0
        assert options.categorical_algo == "binary"
        assert options.recommendation_strategy == "expected_ig"
        assert options.want_info_gain is True

    def test_defaults_survive_normalization(self):
        assert AlgoOptions().normalized() == AlgoOptions()


class TestNormalization:
    """Test clamping into each parameter's domain."""

    def test_non_positive_error_rates_fall_back(self):
        options = AlgoOptions(alpha_fp=0.0, beta_fn=-0.2).normalized()
        assert options.alpha_fp == DEFAULT_ALPHA_FP
        assert options.beta_fn == DEFAULT_BETA_FN

    def test_error_rates_clamped_below_one(self):
        options = AlgoOptions(alpha_fp=1.0, beta_fn=3.0).normalized()
        assert options.alpha_fp == 1.0 - PROBABILITY_FLOOR
        assert options.beta_fn == 1.0 - PROBABILITY_FLOOR

    @pytest.mark.parametrize("gamma", [0.0, -1.0, 1.5, math.nan])
    def test_invalid_gamma_falls_back(self, gamma):
        assert AlgoOptions(gamma_na_penalty=gamma).normalized().gamma_na_penalty == DEFAULT_GAMMA_NA_PENALTY

    def test_gamma_of_one_is_allowed(self):
        assert AlgoOptions(gamma_na_penalty=1.0).normalized().gamma_na_penalty == 1.0

    def test_negative_kappa_falls_back(self):
        assert AlgoOptions(kappa=-2).normalized().kappa == DEFAULT_KAPPA
        assert AlgoOptions(kappa=0).normalized().kappa == 0.0

    def test_ranges_clamped(self):
        options = AlgoOptions(
            conflict_penalty=4.0,
            tolerance_factor=2.0,
            jaccard_threshold=-1.0,
            tau=3.0,
            epsilon_cut=-1.0,
        ).normalized()
        assert options.conflict_penalty == 1.0
        assert options.tolerance_factor == MAX_TOLERANCE_FACTOR
        assert options.jaccard_threshold == 0.0
        assert options.tau == 1.0
        assert options.epsilon_cut == 0.0

    def test_unknown_choices_fall_back(self):
        options = AlgoOptions(categorical_algo="cosine", recommendation_strategy="random").normalized()
        assert options.categorical_algo == "binary"
        assert options.recommendation_strategy == "expected_ig"

    def test_choices_are_case_insensitive(self):
        options = AlgoOptions(categorical_algo="Jaccard", recommendation_strategy="ECR").normalized()
        assert options.categorical_algo == "jaccard"
        assert options.recommendation_strategy == "ecr"


class TestSerialization:
    """Test mapping to and from front-end dictionaries."""

    def test_from_camel_case(self):
        options = AlgoOptions.from_dict({
            "defaultAlphaFP": 0.1,
            "gammaNAPenalty": 0.8,
            "categoricalAlgo": "jaccard",
            "wantInfoGain": False,
            "somethingElse": 42,
        })
        assert options.alpha_fp == 0.1
        assert options.gamma_na_penalty == 0.8
        assert options.categorical_algo == "jaccard"
        assert options.want_info_gain is False

    def test_from_snake_case(self):
        assert AlgoOptions.from_dict({"kappa": 0.25}).kappa == 0.25

    def test_missing_values_keep_defaults(self):
        assert AlgoOptions.from_dict({"kappa": None}) == AlgoOptions()

    def test_to_dict_uses_camel_case(self):
        data = AlgoOptions().to_dict()
        assert data["defaultAlphaFP"] == 0.03
        assert data["recommendationStrategy"] == "expected_ig"
        assert AlgoOptions.from_dict(data) == AlgoOptions()
