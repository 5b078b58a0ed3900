"""
Truth/Observation Adapter — canonical per-kind descriptors for scoring.

Two orthogonal notions of "missing":
    NotObserved — the user skipped the trait. It contributes nothing.
    Unknown     — the taxon has no recorded truth. If the trait was
                  observed, scoring takes the gamma-penalised branch.

A missing matrix entry and an explicit Ternary.UNKNOWN both become
Unknown truth. Observations are caller-owned raw values and are
translated fresh on every evaluation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from .domain import (
    STATE_KINDS,
    ContinuousRange,
    Matrix,
    Taxon,
    Ternary,
    Trait,
    TraitKind,
)

logger = logging.getLogger(__name__)


# =============================================================================
# DESCRIPTORS
# =============================================================================

@dataclass(frozen=True)
class Truth:
    """
    The recorded value of one trait for one taxon.

    Payload by kind:
        BINARY            — state is Ternary.YES or Ternary.NO
        NOMINAL / ORDINAL — label is the recorded state, or excluded
                            holds the states known to be absent
        CONTINUOUS        — value_range
        CATEGORICAL_MULTI — states (non-empty)
    """
    kind: TraitKind
    unknown: bool = False
    state: Ternary = Ternary.UNKNOWN
    label: Optional[str] = None
    value_range: Optional[ContinuousRange] = None
    states: frozenset[str] = frozenset()
    excluded: frozenset[str] = frozenset()

    @classmethod
    def unknown_for(cls, kind: TraitKind) -> Truth:
        return cls(kind=kind, unknown=True)

    def state_truth(self, state: str) -> Ternary:
        """Whether one state of a nominal/ordinal trait is present."""
        if self.label:
            return Ternary.YES if state == self.label else Ternary.NO
        if state in self.excluded:
            return Ternary.NO
        return Ternary.UNKNOWN


@dataclass(frozen=True)
class Observation:
    """
    The value a user supplied for one trait.

    Payload by kind:
        BINARY            — state is Ternary.YES or Ternary.NO
        NOMINAL / ORDINAL — answers pairs each answered state with
                            Ternary.YES or Ternary.NO; label is the
                            selected state when one was picked
        CONTINUOUS        — value (a literal measurement)
        CATEGORICAL_MULTI — states (the selected set, non-empty)
    """
    kind: TraitKind
    observed: bool = True
    state: Ternary = Ternary.UNKNOWN
    label: Optional[str] = None
    value: Optional[float] = None
    states: frozenset[str] = frozenset()
    answers: tuple[tuple[str, Ternary], ...] = ()

    @classmethod
    def not_observed(cls, kind: TraitKind) -> Observation:
        return cls(kind=kind, observed=False)

    @classmethod
    def state_pick(cls, trait: Trait, label: str) -> Observation:
        """Selecting one state answers Yes for it and No for every other state."""
        answers = tuple(
            (state, Ternary.YES if state == label else Ternary.NO)
            for state in trait.states
        )
        return cls(kind=trait.kind, label=label, answers=answers)


@dataclass(frozen=True)
class ObservedTrait:
    """A trait paired with the user's (observed) value for it."""
    trait: Trait
    observation: Observation

    @property
    def trait_id(self) -> str:
        return self.trait.trait_id


# =============================================================================
# TRUTH
# =============================================================================

def truth_for(taxon: Taxon, trait: Trait) -> Truth:
    """Map (taxon, trait) to a Truth descriptor tagged with the trait kind."""
    tid = trait.trait_id
    kind = trait.kind

    if kind is TraitKind.BINARY:
        state = taxon.traits.get(tid, Ternary.UNKNOWN)
        if not state.is_known:
            return Truth.unknown_for(kind)
        return Truth(kind=kind, state=state)

    if kind in STATE_KINDS:
        label = taxon.nominal_traits.get(tid)
        if label:
            return Truth(kind=kind, label=label)
        excluded = taxon.excluded_states.get(tid)
        if excluded:
            return Truth(kind=kind, excluded=frozenset(excluded))
        return Truth.unknown_for(kind)

    if kind is TraitKind.CONTINUOUS:
        value_range = taxon.continuous_traits.get(tid)
        if value_range is None:
            return Truth.unknown_for(kind)
        return Truth(kind=kind, value_range=value_range)

    states = taxon.categorical_traits.get(tid)
    if not states:
        return Truth.unknown_for(kind)
    return Truth(kind=kind, states=frozenset(states))


# =============================================================================
# OBSERVATIONS
# =============================================================================

def _as_state_set(raw: Any) -> frozenset[str]:
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        raw = [raw]
    return frozenset(str(s).strip() for s in raw if str(s).strip())


def observation_for(trait: Trait, raw: Any) -> Observation:
    """
    Translate a raw caller value into an Observation for trait.

    Binary values of 0/None/UNKNOWN, empty categorical selections, blank
    or undefined nominal states and non-numeric continuous values all
    become NotObserved. A continuous value of 0 is a real measurement.
    """
    kind = trait.kind

    if kind is TraitKind.BINARY:
        try:
            state = Ternary.coerce(raw)
        except TypeError:
            logger.debug("Ignoring uninterpretable value %r for trait %s", raw, trait.trait_id)
            return Observation.not_observed(kind)
        if not state.is_known:
            return Observation.not_observed(kind)
        return Observation(kind=kind, state=state)

    if kind in STATE_KINDS:
        label = "" if raw is None else str(raw).strip()
        if label not in trait.states:
            if label:
                logger.debug("State %r is not defined on trait %s", label, trait.trait_id)
            return Observation.not_observed(kind)
        return Observation.state_pick(trait, label)

    if kind is TraitKind.CONTINUOUS:
        if raw is None or isinstance(raw, bool):
            return Observation.not_observed(kind)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring non-numeric value %r for trait %s", raw, trait.trait_id)
            return Observation.not_observed(kind)
        if math.isnan(value):
            return Observation.not_observed(kind)
        return Observation(kind=kind, value=value)

    states = _as_state_set(raw)
    if not states:
        return Observation.not_observed(kind)
    return Observation(kind=kind, states=states)


def resolve_observations(
    matrix: Matrix,
    observations: Mapping[str, Any],
) -> list[ObservedTrait]:
    """
    Resolve a caller observation mapping against matrix.

    Returns the observed traits in matrix order. Trait IDs absent from the
    matrix are ignored. Legacy per-state IDs (see Matrix.derived_index)
    answered Yes or No become per-state answers on their parent state
    group; an explicit value on the parent takes precedence.
    """
    by_id: dict[str, Observation] = {}
    derived_answers: dict[str, dict[str, Ternary]] = {}

    for trait_id, raw in observations.items():
        trait = matrix.trait(trait_id)
        if trait is not None:
            observation = observation_for(trait, raw)
            if observation.observed:
                by_id[trait_id] = observation
            continue

        derived = matrix.resolve_derived(trait_id)
        if derived is None:
            logger.debug("Ignoring observation for unknown trait %s", trait_id)
            continue
        try:
            answer = Ternary.coerce(raw)
        except TypeError:
            logger.debug("Ignoring uninterpretable value %r for %s", raw, trait_id)
            continue
        if answer.is_known:
            parent_id, state = derived
            derived_answers.setdefault(parent_id, {}).setdefault(state, answer)

    for parent_id, answered in derived_answers.items():
        if parent_id in by_id:
            continue
        parent = matrix.trait(parent_id)
        answers = tuple((s, answered[s]) for s in parent.states if s in answered)
        by_id[parent_id] = Observation(kind=parent.kind, answers=answers)

    return [
        ObservedTrait(trait=trait, observation=by_id[trait.trait_id])
        for trait in matrix.traits
        if trait.trait_id in by_id
    ]


def observed_trait_ids(resolved: Iterable[ObservedTrait]) -> frozenset[str]:
    return frozenset(o.trait_id for o in resolved)
