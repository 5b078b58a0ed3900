"""
Tests for the evaluation entry point.

These tests verify that:
1. One call ranks candidates and suggests questions
2. Strict mode filters the display but not the suggestions
3. The heuristic algorithm ranks by match rate
4. Evaluation is deterministic and never mutates its inputs
"""

import pytest

from taxakey import AlgoOptions, EmptyMatrixError, Matrix, Taxon, Trait, TraitKind, evaluate


def make_matrix() -> Matrix:
    return Matrix(
        traits=(
            Trait("A", "Trait A"),
            Trait("B", "Trait B"),
            Trait("S", "Shape", TraitKind.NOMINAL, states=("round", "long")),
        ),
        taxa=(
            Taxon("T1", "Taxon 1", traits={"A": 1, "B": 1}, nominal_traits={"S": "round"}),
            Taxon("T2", "Taxon 2", traits={"A": -1, "B": 1}, nominal_traits={"S": "long"}),
            Taxon("T3", "Taxon 3", traits={"B": -1}),
        ),
        derived_index={"S_ROUND": ("S", "round"), "S_LONG": ("S", "long")},
    )


# =============================================================================
# BAYES EVALUATION TESTS
# =============================================================================

class TestEvaluate:
    """Test the default posterior evaluation."""

    def test_ranks_every_taxon(self):
        result = evaluate(make_matrix(), {"A": 1})
        assert [s.taxon.taxon_id for s in result.scores] == ["T1", "T3", "T2"]
        assert sum(s.posterior for s in result.scores) == pytest.approx(1.0)
        assert result.top.taxon.taxon_id == "T1"

    def test_no_observations(self):
        result = evaluate(make_matrix())
        assert [s.posterior for s in result.scores] == pytest.approx([1 / 3] * 3)
        assert result.used_trait_ids == []

    def test_match_counts(self):
        result = evaluate(make_matrix(), {"A": 1, "B": 1})
        t1, t2, t3 = (result.get_score(t) for t in ("T1", "T2", "T3"))
        assert (t1.match_count, t1.conflict_count, t1.support_count) == (2, 0, 2)
        assert (t2.match_count, t2.conflict_count, t2.support_count) == (1, 1, 2)
        assert (t3.match_count, t3.conflict_count, t3.support_count) == (0, 1, 1)
        assert t1.used_count == 2

    def test_suggestions_exclude_observed(self):
        result = evaluate(make_matrix(), {"A": 1})
        ids = [s.trait_id for s in result.suggestions]
        assert "A" not in ids
        assert set(ids) == {"B", "S"}

    def test_legacy_state_id_counts_as_observed(self):
        result = evaluate(make_matrix(), {"S_LONG": 1})
        assert result.used_trait_ids == ["S"]
        assert result.top.taxon.taxon_id == "T2"
        assert "S" not in [s.trait_id for s in result.suggestions]

    def test_suggestions_can_be_disabled(self):
        result = evaluate(make_matrix(), {"A": 1}, AlgoOptions(want_info_gain=False))
        assert result.suggestions == []

    def test_empty_matrix_raises(self):
        with pytest.raises(EmptyMatrixError):
            evaluate(Matrix(traits=(), taxa=()), {})

    def test_deterministic_and_pure(self):
        matrix = make_matrix()
        observations = {"A": 1, "S": "round"}
        first = evaluate(matrix, observations)
        second = evaluate(matrix, observations)
        assert first.to_dict() == second.to_dict()
        assert observations == {"A": 1, "S": "round"}

    def test_out_of_range_options_are_clamped(self):
        options = AlgoOptions(alpha_fp=-1, beta_fn=5, kappa=-3, conflict_penalty=7)
        result = evaluate(make_matrix(), {"A": 1}, options)
        assert sum(result.posterior) == pytest.approx(1.0)


# =============================================================================
# DISPLAY MODE TESTS
# =============================================================================

class TestStrictMode:
    """Test the strict display filter."""

    def test_strict_drops_conflicting_candidates(self):
        result = evaluate(make_matrix(), {"A": 1, "B": 1}, mode="strict")
        assert [s.taxon.taxon_id for s in result.scores] == ["T1"]
        assert result.scores[0].delta == 0.0

    def test_strict_keeps_full_posterior_for_suggestions(self):
        lenient = evaluate(make_matrix(), {"A": 1, "B": 1})
        strict = evaluate(make_matrix(), {"A": 1, "B": 1}, mode="strict")
        assert strict.posterior == lenient.posterior
        assert [s.trait_id for s in strict.suggestions] == [s.trait_id for s in lenient.suggestions]

    def test_strict_can_empty_the_list(self):
        result = evaluate(make_matrix(), {"A": 1, "B": 1, "S": "long"}, mode="strict")
        assert result.scores == []
        assert result.top is None


# =============================================================================
# HEURISTIC TESTS
# =============================================================================

class TestHeuristic:
    """Test the match-rate algorithm."""

    def test_scores_are_match_rates(self):
        result = evaluate(make_matrix(), {"A": 1, "B": 1}, algorithm="heuristic")
        assert result.get_score("T1").posterior == pytest.approx(1.0)
        assert result.get_score("T2").posterior == pytest.approx(0.5)
        assert result.get_score("T3").posterior == pytest.approx(0.0)

    def test_unsupported_candidates_score_zero_and_rank_by_conflicts(self):
        result = evaluate(make_matrix(), {"A": 1}, algorithm="heuristic")
        assert [s.taxon.taxon_id for s in result.scores] == ["T1", "T3", "T2"]
        assert result.get_score("T3").posterior == 0.0

    def test_suggestion_posterior_is_normalized(self):
        result = evaluate(make_matrix(), {"A": 1, "B": 1}, algorithm="heuristic")
        assert sum(result.posterior) == pytest.approx(1.0)
        assert result.posterior == pytest.approx([2 / 3, 1 / 3, 0.0])
