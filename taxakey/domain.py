"""
Core Domain Objects for the TaxaKey Identification Engine.

All domain objects are immutable once constructed. The engine is a
read-only consumer: nothing mutates a Matrix during an identification
session.

Domain Objects:
    Trait   — A characteristic that can be observed (one of five kinds)
    Taxon   — A candidate entity with its recorded trait truths
    Matrix  — The ordered trait list plus the taxa it describes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional


# =============================================================================
# ERRORS
# =============================================================================

class MatrixRule(Enum):
    """
    Structural rules a Matrix must satisfy.

    Any of these triggers a hard failure at construction time:
    M1: Duplicate trait ID
    M2: Continuous range with min > max
    M3: Empty categorical state set on a taxon
    M4: State-bearing trait without states
    M5: Derived entry or recorded state that is not a state of its group
    M6: Missing identifier
    """
    M1_DUPLICATE_TRAIT_ID = "duplicate_trait_id"
    M2_INVALID_RANGE = "invalid_range"
    M3_EMPTY_STATE_SET = "empty_state_set"
    M4_MISSING_STATES = "missing_states"
    M5_BAD_DERIVED_REFERENCE = "bad_derived_reference"
    M6_MISSING_ID = "missing_id"


class TaxaKeyError(Exception):
    """Base class for every error raised by the engine."""
    pass


class MatrixValidationError(TaxaKeyError, ValueError):
    """Raised when a domain object violates a structural invariant."""

    def __init__(self, rule: MatrixRule, reason: str, subject_id: Optional[str] = None):
        self.rule = rule
        self.reason = reason
        self.subject_id = subject_id
        super().__init__(f"[{rule.value}] {reason}")


class MatrixFormatError(TaxaKeyError, ValueError):
    """Raised when a serialized matrix document cannot be interpreted."""
    pass


class EmptyMatrixError(TaxaKeyError):
    """Raised when an evaluation is requested against a matrix with no taxa."""

    def __init__(self, reason: str = "no taxa"):
        super().__init__(reason)


# =============================================================================
# TERNARY VALUES
# =============================================================================

_YES_TOKENS = frozenset({"1", "+", "y", "yes", "true", "present", "x", "✓"})
_NO_TOKENS = frozenset({"-1", "-", "n", "no", "false", "absent"})


class Ternary(Enum):
    """Recorded or observed presence of a binary trait."""
    NO = -1
    UNKNOWN = 0
    YES = 1

    @classmethod
    def coerce(cls, value: Any) -> Ternary:
        """
        Interpret ints, bools, strings and None as a Ternary.

        Positive numbers are YES, negative numbers NO, zero UNKNOWN.
        Unrecognised strings are UNKNOWN, matching how blank or
        free-text cells are read from a trait matrix.
        """
        if isinstance(value, Ternary):
            return value
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, bool):
            return cls.YES if value else cls.NO
        if isinstance(value, (int, float)):
            if value > 0:
                return cls.YES
            if value < 0:
                return cls.NO
            return cls.UNKNOWN
        if isinstance(value, str):
            text = value.strip().lower()
            if text in _YES_TOKENS:
                return cls.YES
            if text in _NO_TOKENS:
                return cls.NO
            return cls.UNKNOWN
        raise TypeError(f"Cannot interpret {value!r} as a ternary value")

    @property
    def is_known(self) -> bool:
        return self is not Ternary.UNKNOWN


# =============================================================================
# TRAITS
# =============================================================================

class TraitKind(Enum):
    """
    The kinds of trait the likelihood model understands.

    NOMINAL and ORDINAL are single fields holding one of N states. They
    score identically; ORDINAL only promises that `states` is ordered.
    """
    BINARY = "binary"
    NOMINAL = "nominal"
    ORDINAL = "ordinal"
    CONTINUOUS = "continuous"
    CATEGORICAL_MULTI = "categorical_multi"


STATE_KINDS = frozenset({TraitKind.NOMINAL, TraitKind.ORDINAL})
QUESTION_KINDS = frozenset({TraitKind.BINARY, TraitKind.NOMINAL, TraitKind.ORDINAL})

DEFAULT_DIFFICULTY = 1.0
DEFAULT_RISK = 0.5


@dataclass(frozen=True)
class ContinuousRange:
    """An inclusive [min, max] interval recorded for a continuous trait."""
    min: float
    max: float

    def __post_init__(self):
        if self.min > self.max:
            raise MatrixValidationError(
                MatrixRule.M2_INVALID_RANGE,
                f"range min {self.min} is greater than max {self.max}",
            )

    @classmethod
    def coerce(cls, value: Any) -> ContinuousRange:
        """Build a range from a ContinuousRange, a number, a pair, or a {min, max} mapping."""
        if isinstance(value, ContinuousRange):
            return value
        if isinstance(value, Mapping):
            return cls(float(value["min"]), float(value["max"]))
        if isinstance(value, (int, float)):
            return cls(float(value), float(value))
        low, high = value
        return cls(float(low), float(high))

    @property
    def span(self) -> float:
        return self.max - self.min

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def distance(self, value: float) -> float:
        """Distance from value to the nearer boundary, 0 when inside."""
        if value < self.min:
            return self.min - value
        if value > self.max:
            return value - self.max
        return 0.0


@dataclass(frozen=True)
class Dependency:
    """
    Advisory link from a trait to the parent state that makes it applicable.

    Carried for display only; scoring never consults it.
    """
    parent_trait_id: str
    required_state: str


@dataclass(frozen=True)
class Trait:
    """
    A single observable characteristic.

    Required fields:
        - trait_id (unique within a Matrix)
        - name

    Kind-specific fields:
        - states: ordered labels for NOMINAL, ORDINAL and CATEGORICAL_MULTI
        - value_range, integer_only: CONTINUOUS only
    """
    trait_id: str
    name: str
    kind: TraitKind = TraitKind.BINARY
    group: str = ""
    states: tuple[str, ...] = ()
    value_range: Optional[ContinuousRange] = None
    integer_only: bool = False
    parent: Optional[str] = None
    dependency: Optional[Dependency] = None
    difficulty: float = DEFAULT_DIFFICULTY
    risk: float = DEFAULT_RISK
    help_text: str = ""

    def __post_init__(self):
        if not self.trait_id:
            raise MatrixValidationError(MatrixRule.M6_MISSING_ID, "trait_id is required")
        object.__setattr__(self, "states", tuple(self.states))
        if self.value_range is not None:
            object.__setattr__(self, "value_range", ContinuousRange.coerce(self.value_range))

        if self.kind in STATE_KINDS or self.kind is TraitKind.CATEGORICAL_MULTI:
            if not self.states:
                raise MatrixValidationError(
                    MatrixRule.M4_MISSING_STATES,
                    f"{self.kind.value} trait requires at least one state",
                    self.trait_id,
                )
            if len(set(self.states)) != len(self.states):
                raise MatrixValidationError(
                    MatrixRule.M4_MISSING_STATES,
                    f"trait states must be unique, got {list(self.states)}",
                    self.trait_id,
                )

    @property
    def is_question(self) -> bool:
        """Whether the suggestion engine can ask about this trait."""
        return self.kind in QUESTION_KINDS

    @property
    def has_states(self) -> bool:
        return self.kind in STATE_KINDS

    def outcome_labels(self) -> tuple[str, ...]:
        """Possible answers when this trait is asked as a question."""
        if self.kind is TraitKind.BINARY:
            return ("Yes", "No")
        if self.kind in STATE_KINDS:
            return self.states
        return ()


# =============================================================================
# TAXA
# =============================================================================

@dataclass(frozen=True)
class Taxon:
    """
    A candidate entity and its recorded trait truths.

    A missing entry and an explicit Ternary.UNKNOWN both mean the truth is
    unknown. Categorical sets, when present, must be non-empty.

    For a nominal or ordinal trait, nominal_traits holds the recorded
    state. excluded_states holds states recorded as absent when the
    present one is not known (legacy matrices mark each state Yes/No).
    """
    taxon_id: str
    name: str
    traits: Mapping[str, Ternary] = field(default_factory=dict)
    continuous_traits: Mapping[str, ContinuousRange] = field(default_factory=dict)
    categorical_traits: Mapping[str, frozenset[str]] = field(default_factory=dict)
    nominal_traits: Mapping[str, str] = field(default_factory=dict)
    excluded_states: Mapping[str, frozenset[str]] = field(default_factory=dict)
    description: str = ""
    references: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.taxon_id:
            raise MatrixValidationError(MatrixRule.M6_MISSING_ID, "taxon_id is required")

        categorical = {}
        for trait_id, states in self.categorical_traits.items():
            state_set = frozenset(states)
            if not state_set:
                raise MatrixValidationError(
                    MatrixRule.M3_EMPTY_STATE_SET,
                    f"categorical trait '{trait_id}' has an empty state set",
                    self.taxon_id,
                )
            categorical[trait_id] = state_set

        object.__setattr__(self, "traits", MappingProxyType(
            {k: Ternary.coerce(v) for k, v in self.traits.items()}
        ))
        object.__setattr__(self, "continuous_traits", MappingProxyType(
            {k: ContinuousRange.coerce(v) for k, v in self.continuous_traits.items()}
        ))
        object.__setattr__(self, "categorical_traits", MappingProxyType(categorical))
        object.__setattr__(self, "nominal_traits", MappingProxyType(
            {k: str(v) for k, v in self.nominal_traits.items() if v not in (None, "")}
        ))
        object.__setattr__(self, "excluded_states", MappingProxyType({
            k: frozenset(str(s) for s in v)
            for k, v in self.excluded_states.items()
            if v and k not in self.nominal_traits
        }))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def get_name_value(self) -> str:
        return self.name or self.taxon_id


# =============================================================================
# MATRIX
# =============================================================================

@dataclass(frozen=True)
class Matrix:
    """
    The identification matrix: ordered traits plus the taxa they describe.

    INVARIANTS:
        - trait IDs are unique
        - every derived_index entry maps a legacy per-state trait ID to
          exactly one state of exactly one NOMINAL/ORDINAL trait
        - every state a taxon records (present or excluded) is defined on
          a NOMINAL/ORDINAL trait of the matrix
    """
    traits: tuple[Trait, ...]
    taxa: tuple[Taxon, ...]
    title: str = ""
    version: str = ""
    authors: tuple[str, ...] = ()
    derived_index: Mapping[str, tuple[str, str]] = field(default_factory=dict)

    _trait_map: Mapping[str, Trait] = field(
        init=False, repr=False, compare=False, default_factory=dict,
    )

    def __post_init__(self):
        object.__setattr__(self, "traits", tuple(self.traits))
        object.__setattr__(self, "taxa", tuple(self.taxa))
        object.__setattr__(self, "authors", tuple(self.authors))

        trait_map: dict[str, Trait] = {}
        for trait in self.traits:
            if trait.trait_id in trait_map:
                raise MatrixValidationError(
                    MatrixRule.M1_DUPLICATE_TRAIT_ID,
                    f"trait ID '{trait.trait_id}' appears more than once",
                    trait.trait_id,
                )
            trait_map[trait.trait_id] = trait
        object.__setattr__(self, "_trait_map", MappingProxyType(trait_map))

        self._validate_derived_index(trait_map)
        object.__setattr__(self, "derived_index", MappingProxyType(
            {k: (p, s) for k, (p, s) in self.derived_index.items()}
        ))
        for taxon in self.taxa:
            self._validate_recorded_states(taxon, trait_map)

    @staticmethod
    def _validate_recorded_states(taxon: Taxon, trait_map: Mapping[str, Trait]) -> None:
        recorded = [(tid, (label,)) for tid, label in taxon.nominal_traits.items()]
        recorded.extend(taxon.excluded_states.items())
        for trait_id, states in recorded:
            trait = trait_map.get(trait_id)
            if trait is None or not trait.has_states:
                raise MatrixValidationError(
                    MatrixRule.M5_BAD_DERIVED_REFERENCE,
                    f"taxon records a state for '{trait_id}', which is not a "
                    f"nominal or ordinal trait",
                    taxon.taxon_id,
                )
            for state in states:
                if state not in trait.states:
                    raise MatrixValidationError(
                        MatrixRule.M5_BAD_DERIVED_REFERENCE,
                        f"taxon records state '{state}' not defined on '{trait_id}'",
                        taxon.taxon_id,
                    )

    def _validate_derived_index(self, trait_map: Mapping[str, Trait]) -> None:
        for derived_id, (parent_id, state) in self.derived_index.items():
            if derived_id in trait_map:
                raise MatrixValidationError(
                    MatrixRule.M5_BAD_DERIVED_REFERENCE,
                    f"derived ID '{derived_id}' collides with a trait ID",
                    derived_id,
                )
            parent = trait_map.get(parent_id)
            if parent is None or not parent.has_states:
                raise MatrixValidationError(
                    MatrixRule.M5_BAD_DERIVED_REFERENCE,
                    f"derived ID '{derived_id}' references unknown state group '{parent_id}'",
                    derived_id,
                )
            if state not in parent.states:
                raise MatrixValidationError(
                    MatrixRule.M5_BAD_DERIVED_REFERENCE,
                    f"derived ID '{derived_id}' references state '{state}' "
                    f"not defined on '{parent_id}'",
                    derived_id,
                )

    @property
    def trait_map(self) -> Mapping[str, Trait]:
        return self._trait_map

    @property
    def n_taxa(self) -> int:
        return len(self.taxa)

    def trait(self, trait_id: str) -> Optional[Trait]:
        return self._trait_map.get(trait_id)

    def question_traits(self) -> list[Trait]:
        """Traits that can be asked as questions, in matrix order."""
        return [t for t in self.traits if t.is_question]

    def resolve_derived(self, trait_id: str) -> Optional[tuple[str, str]]:
        """Map a legacy per-state ID to (parent_trait_id, state)."""
        return self.derived_index.get(trait_id)

    def derived_children(self, parent_id: str) -> list[str]:
        return [k for k, (p, _) in self.derived_index.items() if p == parent_id]

    def taxon_index(self, taxon_id: str) -> Optional[int]:
        for i, taxon in enumerate(self.taxa):
            if taxon.taxon_id == taxon_id:
                return i
        return None


def iter_known_truths(matrix: Matrix, trait: Trait) -> Iterable[tuple[int, Taxon]]:
    """Yield (index, taxon) pairs for taxa holding known truth for trait."""
    for i, taxon in enumerate(matrix.taxa):
        if trait.kind is TraitKind.BINARY:
            if taxon.traits.get(trait.trait_id, Ternary.UNKNOWN).is_known:
                yield i, taxon
        elif trait.kind in STATE_KINDS:
            if trait.trait_id in taxon.nominal_traits or trait.trait_id in taxon.excluded_states:
                yield i, taxon
        elif trait.kind is TraitKind.CONTINUOUS:
            if trait.trait_id in taxon.continuous_traits:
                yield i, taxon
        elif trait.trait_id in taxon.categorical_traits:
            yield i, taxon
