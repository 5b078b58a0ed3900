"""
Tests for the match-statistics evaluator and candidate justifications.

These tests verify that:
1. Matches, conflicts and support are counted per candidate
2. Unknown truth never counts towards support
3. Justifications add up to the score they explain
"""

import pytest

from taxakey.domain import Matrix, Taxon, Ternary, Trait, TraitKind
from taxakey.evidence import Observation, ObservedTrait, resolve_observations
from taxakey.options import AlgoOptions
from taxakey.scoring.likelihood import LikelihoodParams, TraitOutcome
from taxakey.scoring.match_stats import (
    MatchStats,
    compute_all_match_stats,
    explain_taxon,
    format_justification,
)
from taxakey.scoring.posterior import log_posteriors


def make_matrix() -> Matrix:
    return Matrix(
        traits=(
            Trait("WEB", "Webbed feet"),
            Trait("BILL", "Bill shape", TraitKind.NOMINAL, states=("hooked", "flat")),
            Trait("WING", "Wing length", TraitKind.CONTINUOUS),
            Trait("COLOR", "Colours", TraitKind.CATEGORICAL_MULTI, states=("grey", "brown")),
        ),
        taxa=(
            Taxon("duck", "Duck", traits={"WEB": 1}, nominal_traits={"BILL": "flat"},
                  continuous_traits={"WING": (26, 30)}, categorical_traits={"COLOR": ["brown"]}),
            Taxon("hawk", "Hawk", traits={"WEB": -1}, nominal_traits={"BILL": "hooked"},
                  continuous_traits={"WING": (20, 25)}, categorical_traits={"COLOR": ["grey"]}),
            Taxon("mystery", "Mystery"),
        ),
    )


OBSERVATIONS = {"WEB": 1, "BILL": "flat", "WING": 25.8, "COLOR": ["brown"]}


def make_params() -> LikelihoodParams:
    return LikelihoodParams.from_options(AlgoOptions())


# =============================================================================
# COUNT TESTS
# =============================================================================

class TestMatchStats:
    """Test per-candidate match counting."""

    def test_counts_per_taxon(self):
        matrix = make_matrix()
        resolved = resolve_observations(matrix, OBSERVATIONS)
        duck, hawk, mystery = compute_all_match_stats(matrix, resolved, make_params())

        # 25.8 is just below the duck's 26-30 range: a near miss
        # BILL compares both states: hooked No and flat Yes
        assert duck == MatchStats(matches=4, conflicts=1, support=5)
        assert hawk == MatchStats(matches=0, conflicts=5, support=5)
        assert mystery == MatchStats(matches=0, conflicts=0, support=0)

    def test_each_answered_state_counts(self):
        matrix = make_matrix()
        answer = Observation(kind=TraitKind.NOMINAL, answers=(("hooked", Ternary.NO),))
        resolved = [ObservedTrait(matrix.trait("BILL"), answer)]
        duck, hawk, mystery = compute_all_match_stats(matrix, resolved, make_params())
        assert duck == MatchStats(matches=1, conflicts=0, support=1)
        assert hawk == MatchStats(matches=0, conflicts=1, support=1)
        assert mystery == MatchStats()

    def test_matches_plus_conflicts_is_support(self):
        matrix = make_matrix()
        resolved = resolve_observations(matrix, {"WEB": -1, "WING": 27})
        for stats in compute_all_match_stats(matrix, resolved, make_params()):
            assert stats.matches + stats.conflicts == stats.support

    def test_no_observations(self):
        matrix = make_matrix()
        stats = compute_all_match_stats(matrix, [], make_params())
        assert stats == [MatchStats()] * 3


# =============================================================================
# JUSTIFICATION TESTS
# =============================================================================

class TestJustification:
    """Test the per-trait explanation of a candidate."""

    def test_evidence_per_observed_trait(self):
        justification = explain_taxon(make_matrix(), 0, OBSERVATIONS)
        assert [e.trait_id for e in justification.evidence] == ["WEB", "BILL", "WING", "COLOR"]
        assert [e.outcome for e in justification.evidence] == [
            TraitOutcome.MATCH,
            TraitOutcome.MATCH,
            TraitOutcome.PARTIAL,
            TraitOutcome.MATCH,
        ]

    def test_total_matches_log_posterior(self):
        matrix = make_matrix()
        resolved = resolve_observations(matrix, OBSERVATIONS)
        expected = log_posteriors(matrix, resolved, make_params())
        for i in range(matrix.n_taxa):
            justification = explain_taxon(matrix, i, OBSERVATIONS)
            assert justification.total_log_likelihood == pytest.approx(expected[i])

    def test_stats_match_evaluator(self):
        matrix = make_matrix()
        resolved = resolve_observations(matrix, OBSERVATIONS)
        stats = compute_all_match_stats(matrix, resolved, make_params())
        for i in range(matrix.n_taxa):
            assert explain_taxon(matrix, i, OBSERVATIONS).stats == stats[i]

    def test_unknowns_listed(self):
        justification = explain_taxon(make_matrix(), 2, OBSERVATIONS)
        assert len(justification.get_unknowns()) == 4
        assert justification.get_conflicts() == []

    def test_reason_is_readable(self):
        justification = explain_taxon(make_matrix(), 1, {"WEB": 1})
        reason = justification.evidence[0].reason
        assert "Webbed feet" in reason
        assert "observed Yes" in reason
        assert "recorded No" in reason
        assert "conflict" in reason

    def test_index_out_of_range(self):
        with pytest.raises(IndexError):
            explain_taxon(make_matrix(), 3, OBSERVATIONS)

    def test_format_justification(self):
        justification = explain_taxon(make_matrix(), 1, OBSERVATIONS, posterior=0.125)
        text = format_justification(justification)
        assert "**Hawk** has a posterior of 12.50%." in text
        assert "**Conflicts:**" in text
        assert "Bill shape" in text

    def test_format_without_observations(self):
        text = format_justification(explain_taxon(make_matrix(), 0, {}))
        assert "No traits observed yet." in text
