"""
TaxaKey CLI — Read-Only Interface for Interactive Identification.

Commands:
    taxakey rank              — Show ranked candidates
    taxakey suggest           — Show the best next questions
    taxakey explain <taxon>   — Show the per-trait justification for a candidate
    taxakey info              — Show a summary of the matrix

Every command takes the matrix (--matrix, defaults to the demo matrix)
and the observations made so far (--obs ID=VALUE ...). Nothing is
stored between invocations: the observation set is passed in full on
every call.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from ..domain import STATE_KINDS, Matrix, TaxaKeyError, TraitKind, iter_known_truths
from ..options import ALGORITHMS, DEFAULT_KAPPA, RECOMMENDATION_STRATEGIES, AlgoOptions
from ..scoring.match_stats import explain_taxon, format_justification
from ..scoring.posterior import TaxonScore
from ..suggestion.engine import TraitSuggestion
from .pipeline import IdentificationRun, run_identification


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def format_status_badge(score: TaxonScore) -> str:
    """Format a candidate's match status as a visual badge."""
    if score.support_count == 0:
        return "[UNTESTED]"
    if score.conflict_count == 0:
        return "[CONSISTENT]"
    return "[CONFLICT]"


def format_score_row(rank: int, score: TaxonScore) -> str:
    """Format a single ranked candidate for display."""
    badge = format_status_badge(score)
    return (
        f"{rank:>3}. {badge:<12} | {score.posterior:>7.2%} | "
        f"match {score.match_count}/{score.support_count} "
        f"conflicts {score.conflict_count} | "
        f"{score.name} ({score.taxon.taxon_id})"
    )


def format_suggestion_row(rank: int, suggestion: TraitSuggestion) -> str:
    """Format a single next-question suggestion for display."""
    outcomes = " / ".join(
        f"{o.state} {o.p:.0%}" for o in suggestion.outcome_distribution
    )
    return (
        f"{rank:>3}. IG {suggestion.information_gain:.3f} | "
        f"ECR {suggestion.expected_candidate_reduction:.2f} | "
        f"{suggestion.name} ({suggestion.trait_id}) | {outcomes}"
    )


def format_trait_row(matrix: Matrix, trait_id: str) -> str:
    trait = matrix.trait(trait_id)
    known = sum(1 for _ in iter_known_truths(matrix, trait))
    detail = ""
    if trait.kind in STATE_KINDS or trait.kind is TraitKind.CATEGORICAL_MULTI:
        detail = f" [{', '.join(trait.states)}]"
    elif trait.kind is TraitKind.CONTINUOUS and trait.value_range is not None:
        detail = f" [{trait.value_range.min:g}-{trait.value_range.max:g}]"
    return (
        f"  • {trait.trait_id}: {trait.name} ({trait.kind.value}){detail} "
        f"— recorded for {known}/{matrix.n_taxa} taxa"
    )


def _print_header(run: IdentificationRun) -> None:
    title = run.matrix.title or "Untitled matrix"
    print(f"TaxaKey Identification — {title}")
    print("=" * 50)
    used = run.result.used_trait_ids
    print(f"Observed traits: {', '.join(used) if used else 'none'}")
    print(f"Algorithm: {run.algorithm} | Mode: {run.mode}")
    print()


# =============================================================================
# CLI COMMANDS
# =============================================================================

def _options_from_args(args: argparse.Namespace) -> AlgoOptions:
    return AlgoOptions(
        kappa=args.kappa,
        conflict_penalty=args.conflict_penalty,
        recommendation_strategy=args.strategy,
    )


def _run_from_args(args: argparse.Namespace) -> IdentificationRun:
    return run_identification(
        matrix_path=args.matrix,
        observation_args=args.obs or [],
        options=_options_from_args(args),
        mode="strict" if args.strict else "lenient",
        algorithm=args.algorithm,
    )


def cmd_rank(args: argparse.Namespace) -> int:
    """Show ranked candidates."""
    run = _run_from_args(args)
    _print_header(run)

    scores = run.result.scores
    if not scores:
        print("No candidates remain. Try lenient mode or revisit an observation.")
        return 0

    print(f"Ranked Candidates ({len(scores)} total)")
    print("-" * 50)
    for rank, score in enumerate(scores[:args.limit], start=1):
        print(format_score_row(rank, score))
    return 0


def cmd_suggest(args: argparse.Namespace) -> int:
    """Show the best next questions."""
    run = _run_from_args(args)
    _print_header(run)

    suggestions = run.result.suggestions
    if not suggestions:
        print("No further questions to ask.")
        return 0

    print(f"Suggested Questions (strategy: {run.options.recommendation_strategy})")
    print("-" * 50)
    for rank, suggestion in enumerate(suggestions[:args.limit], start=1):
        print(format_suggestion_row(rank, suggestion))
    return 0


def cmd_explain(args: argparse.Namespace) -> int:
    """Show the per-trait justification for one candidate."""
    run = _run_from_args(args)
    index = run.matrix.taxon_index(args.taxon_id)
    if index is None:
        print(f"Taxon not found: {args.taxon_id}")
        return 1

    justification = explain_taxon(
        run.matrix,
        index,
        run.observations,
        run.options,
        posterior=run.posterior_for(args.taxon_id),
    )
    print(format_justification(justification))
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    """Show a summary of the matrix."""
    run = _run_from_args(args)
    matrix = run.matrix

    print(f"Matrix: {matrix.title or 'Untitled matrix'}")
    if matrix.version:
        print(f"Version: {matrix.version}")
    if matrix.authors:
        print(f"Authors: {', '.join(matrix.authors)}")
    print(f"Taxa: {matrix.n_taxa}")
    print(f"Traits: {len(matrix.traits)} ({len(matrix.question_traits())} askable)")
    print()
    print("TRAITS:")
    for trait in matrix.traits:
        print(format_trait_row(matrix, trait.trait_id))
    return 0


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--matrix",
        help="JSON matrix file (defaults to the built-in demo matrix)",
    )
    parser.add_argument(
        "--obs",
        nargs="+",
        action="extend",
        default=[],
        metavar="ID=VALUE",
        help="Observed traits, e.g. WEB=yes WING=27 COLOR=brown,grey BILL=flat",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Hide candidates with any conflict",
    )
    parser.add_argument(
        "--algorithm",
        choices=ALGORITHMS,
        default="bayes",
        help="Scoring algorithm",
    )
    parser.add_argument(
        "--strategy",
        choices=RECOMMENDATION_STRATEGIES,
        default="expected_ig",
        help="Next-question ranking strategy",
    )
    parser.add_argument(
        "--kappa",
        type=float,
        default=DEFAULT_KAPPA,
        help="Smoothing strength of the posterior",
    )
    parser.add_argument(
        "--conflict-penalty",
        type=float,
        default=0.0,
        help="0 tolerates conflicts as observation error, 1 nearly excludes",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum rows to print",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="taxakey",
        description="TaxaKey — Probabilistic Multi-Access Identification Key",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    # Rank command
    rank_parser = subparsers.add_parser(
        "rank",
        help="Show ranked candidates",
    )
    _add_common_arguments(rank_parser)
    rank_parser.set_defaults(func=cmd_rank)

    # Suggest command
    suggest_parser = subparsers.add_parser(
        "suggest",
        help="Show the best next questions",
    )
    _add_common_arguments(suggest_parser)
    suggest_parser.set_defaults(func=cmd_suggest)

    # Explain command
    explain_parser = subparsers.add_parser(
        "explain",
        help="Show the justification for a candidate",
    )
    explain_parser.add_argument(
        "taxon_id",
        help="Taxon ID to explain",
    )
    _add_common_arguments(explain_parser)
    explain_parser.set_defaults(func=cmd_explain)

    # Info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show a summary of the matrix",
    )
    _add_common_arguments(info_parser)
    info_parser.set_defaults(func=cmd_info)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except TaxaKeyError as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
