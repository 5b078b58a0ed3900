"""
JSON Matrix Mapping for the TaxaKey Identification Engine.

Reads a trait matrix serialized as JSON into an immutable Matrix, and
writes one back out.

Two trait layouts are accepted:
    native — "nominal"/"ordinal" traits carry their "states"; taxa give
             the selected state in "nominalTraits"
    legacy — a "nominal_parent" record plus one "derived" binary record
             per state; taxa mark the applicable state's derived ID Yes

Legacy documents are collapsed into the native model on load. The
derived IDs are kept in Matrix.derived_index so observations keyed by
them still resolve.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from ..domain import (
    DEFAULT_DIFFICULTY,
    DEFAULT_RISK,
    STATE_KINDS,
    ContinuousRange,
    Dependency,
    Matrix,
    MatrixFormatError,
    TaxaKeyError,
    Taxon,
    Ternary,
    Trait,
    TraitKind,
)

logger = logging.getLogger(__name__)


# =============================================================================
# FIELD PARSING
# =============================================================================

# "T001=Yes", 'T001[note]="Yes"', "T002=orange"
_DEPENDENCY_PATTERN = re.compile(
    r'^([A-Za-z0-9_]+)(?:\[.*?\])?\s*=\s*(?:"([^"]+)"|([^"\s=]+))$'
)

_DIFFICULTY_WORDS = {"easy": 0.5, "normal": 1.0, "hard": 2.0, "very hard": 3.0}
_RISK_WORDS = {"lowest": 0.0, "low": 0.2, "medium": 0.5, "high": 0.8, "highest": 1.0}

_KIND_NAMES = {
    "binary": TraitKind.BINARY,
    "nominal": TraitKind.NOMINAL,
    "ordinal": TraitKind.ORDINAL,
    "continuous": TraitKind.CONTINUOUS,
    "categorical_multi": TraitKind.CATEGORICAL_MULTI,
}

LEGACY_PARENT = "nominal_parent"
LEGACY_DERIVED = "derived"


class ObservationFormatError(TaxaKeyError, ValueError):
    """Raised when a command-line observation cannot be parsed."""
    pass


def parse_dependency(value: Any) -> Optional[Dependency]:
    """Parse a dependency given as "PARENT=STATE" or a mapping."""
    if not value:
        return None
    if isinstance(value, Mapping):
        parent = value.get("parentTraitId") or value.get("parent_trait_id")
        state = value.get("requiredState") or value.get("required_state")
        if not parent or state is None:
            logger.warning("Ignoring incomplete dependency %r", value)
            return None
        return Dependency(str(parent), str(state))

    match = _DEPENDENCY_PATTERN.match(str(value).strip())
    if not match:
        logger.warning("Ignoring invalid dependency format %r", value)
        return None
    state = match.group(2) or match.group(3)
    return Dependency(match.group(1), state)


def parse_difficulty(value: Any) -> float:
    if value is None or value == "":
        return DEFAULT_DIFFICULTY
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else DEFAULT_DIFFICULTY
    text = str(value).strip().lower()
    if text in _DIFFICULTY_WORDS:
        return _DIFFICULTY_WORDS[text]
    try:
        number = float(text)
    except ValueError:
        return DEFAULT_DIFFICULTY
    return number if number > 0 else DEFAULT_DIFFICULTY


def parse_risk(value: Any) -> float:
    if value is None or value == "":
        return DEFAULT_RISK
    if isinstance(value, (int, float)):
        return float(value) if 0.0 <= value <= 1.0 else DEFAULT_RISK
    text = str(value).strip().lower()
    if text in _RISK_WORDS:
        return _RISK_WORDS[text]
    try:
        number = float(text)
    except ValueError:
        return DEFAULT_RISK
    return number if 0.0 <= number <= 1.0 else DEFAULT_RISK


def _require_list(data: Mapping[str, Any], key: str) -> list:
    value = data.get(key)
    if not isinstance(value, list):
        raise MatrixFormatError(f"matrix document requires a '{key}' list")
    return value


def _trait_kind(raw: Mapping[str, Any]) -> str:
    return str(raw.get("type") or "binary").strip().lower()


# =============================================================================
# TRAITS
# =============================================================================

def _build_trait(raw: Mapping[str, Any], kind: TraitKind, states: Iterable[str] = ()) -> Trait:
    trait_id = str(raw.get("id") or "").strip()
    value_range = None
    if kind is TraitKind.CONTINUOUS and (
        raw.get("minValue") is not None or raw.get("maxValue") is not None
    ):
        low = 0.0 if raw.get("minValue") is None else float(raw["minValue"])
        high = low if raw.get("maxValue") is None else float(raw["maxValue"])
        value_range = ContinuousRange(min(low, high), max(low, high))

    return Trait(
        trait_id=trait_id,
        name=str(raw.get("name") or trait_id),
        kind=kind,
        group=str(raw.get("group") or ""),
        states=tuple(states) or tuple(str(s) for s in raw.get("states") or ()),
        value_range=value_range,
        integer_only=bool(raw.get("isInteger", False)),
        parent=(str(raw["parent"]).strip() or None) if raw.get("parent") else None,
        dependency=parse_dependency(raw.get("dependency")),
        difficulty=parse_difficulty(raw.get("difficulty")),
        risk=parse_risk(raw.get("risk")),
        help_text=str(raw.get("helpText") or ""),
    )


def _derived_label(raw: Mapping[str, Any]) -> str:
    return str(raw.get("state") or raw.get("name") or raw.get("id"))


def _collect_traits(
    raw_traits: list,
) -> tuple[list[Trait], dict[str, tuple[str, str]], dict[str, list[tuple[str, str]]]]:
    """
    Build traits, collapsing legacy parent/derived records.

    Returns (traits, derived_index, children_by_parent) where
    children_by_parent maps a nominal trait ID to its (derived_id, state)
    pairs in declaration order.
    """
    parents = {}
    for raw in raw_traits:
        if _trait_kind(raw) == LEGACY_PARENT:
            parents[str(raw.get("id")).strip()] = raw
            if raw.get("name"):
                parents.setdefault(str(raw["name"]).strip(), raw)

    children: dict[str, list[tuple[str, str]]] = {}
    orphans = set()
    for raw in raw_traits:
        if _trait_kind(raw) != LEGACY_DERIVED:
            continue
        parent_key = str(raw.get("parent") or "").strip()
        parent = parents.get(parent_key)
        derived_id = str(raw.get("id")).strip()
        if parent is None:
            logger.warning("Derived trait %s has no state group; keeping it as binary", derived_id)
            orphans.add(derived_id)
            continue
        parent_id = str(parent.get("id")).strip()
        children.setdefault(parent_id, []).append((derived_id, _derived_label(raw)))

    traits = []
    derived_index = {}
    for raw in raw_traits:
        type_name = _trait_kind(raw)
        trait_id = str(raw.get("id") or "").strip()

        if type_name == LEGACY_DERIVED:
            if trait_id in orphans:
                traits.append(_build_trait(raw, TraitKind.BINARY))
            continue

        if type_name == LEGACY_PARENT:
            kids = children.get(trait_id, [])
            if kids:
                states = [label for _, label in kids]
                traits.append(_build_trait(raw, TraitKind.NOMINAL, states))
                for derived_id, label in kids:
                    derived_index[derived_id] = (trait_id, label)
            elif raw.get("states"):
                traits.append(_build_trait(raw, TraitKind.NOMINAL))
            else:
                logger.warning("State group %s has no states; treating it as binary", trait_id)
                traits.append(_build_trait(raw, TraitKind.BINARY))
            continue

        kind = _KIND_NAMES.get(type_name)
        if kind is None:
            raise MatrixFormatError(f"trait '{trait_id}' has unknown type '{type_name}'")
        traits.append(_build_trait(raw, kind))

    return traits, derived_index, children


# =============================================================================
# TAXA
# =============================================================================

def _legacy_nominal_state(
    taxon_id: str,
    parent_id: str,
    raw_traits: Mapping[str, Any],
    kids: list[tuple[str, str]],
) -> tuple[Optional[str], frozenset[str]]:
    """(present state, states recorded absent) from a taxon's per-state columns."""
    answers = [(label, Ternary.coerce(raw_traits.get(derived_id))) for derived_id, label in kids]
    picked = [label for label, answer in answers if answer is Ternary.YES]
    if len(picked) > 1:
        logger.warning(
            "Taxon %s marks several states of %s as Yes (%s); using %s",
            taxon_id, parent_id, picked, picked[0],
        )
    if picked:
        return picked[0], frozenset()
    return None, frozenset(label for label, answer in answers if answer is Ternary.NO)


def _build_taxon(
    raw: Mapping[str, Any],
    trait_map: Mapping[str, Trait],
    children: Mapping[str, list[tuple[str, str]]],
) -> Taxon:
    taxon_id = str(raw.get("id") or "").strip()
    raw_traits = raw.get("traits") or {}

    binary = {}
    for trait_id, value in raw_traits.items():
        trait = trait_map.get(trait_id)
        if trait is not None and trait.kind is TraitKind.BINARY:
            binary[trait_id] = Ternary.coerce(value)

    nominal = {str(k): str(v) for k, v in (raw.get("nominalTraits") or {}).items() if v}
    excluded = {
        str(k): frozenset(str(s) for s in v)
        for k, v in (raw.get("excludedStates") or {}).items()
        if v
    }
    for parent_id, kids in children.items():
        if parent_id in nominal or parent_id in excluded:
            continue
        state, absent = _legacy_nominal_state(taxon_id, parent_id, raw_traits, kids)
        if state is not None:
            nominal[parent_id] = state
        elif absent:
            excluded[parent_id] = absent

    continuous = {
        trait_id: ContinuousRange.coerce(value)
        for trait_id, value in (raw.get("continuousTraits") or {}).items()
    }
    categorical = {
        trait_id: frozenset(str(s) for s in values)
        for trait_id, values in (raw.get("categoricalTraits") or {}).items()
        if values
    }

    metadata = {
        key: value for key, value in raw.items()
        if key not in {
            "id", "name", "traits", "continuousTraits", "categoricalTraits",
            "nominalTraits", "excludedStates", "description", "references",
        }
    }

    return Taxon(
        taxon_id=taxon_id,
        name=str(raw.get("name") or taxon_id),
        traits=binary,
        continuous_traits=continuous,
        categorical_traits=categorical,
        nominal_traits=nominal,
        excluded_states=excluded,
        description=str(raw.get("description") or ""),
        references=str(raw.get("references") or ""),
        metadata=metadata,
    )


# =============================================================================
# DOCUMENTS
# =============================================================================

def matrix_from_dict(data: Mapping[str, Any]) -> Matrix:
    """
    Build a Matrix from a decoded JSON document.

    Raises:
        MatrixFormatError: If the document is not a matrix
        MatrixValidationError: If the matrix violates a domain invariant
    """
    if not isinstance(data, Mapping):
        raise MatrixFormatError("matrix document must be a JSON object")
    raw_traits = _require_list(data, "traits")
    raw_taxa = _require_list(data, "taxa")

    if not all(isinstance(raw, Mapping) for raw in raw_traits):
        raise MatrixFormatError("each trait must be a JSON object")
    try:
        traits, derived_index, children = _collect_traits(raw_traits)
    except TaxaKeyError:
        raise
    except (TypeError, ValueError) as e:
        raise MatrixFormatError(f"trait list has a malformed value: {e}")
    trait_map = {t.trait_id: t for t in traits}

    taxa = []
    for raw in raw_taxa:
        if not isinstance(raw, Mapping):
            raise MatrixFormatError("each taxon must be a JSON object")
        try:
            taxa.append(_build_taxon(raw, trait_map, children))
        except TaxaKeyError:
            raise
        except (TypeError, ValueError, KeyError) as e:
            raise MatrixFormatError(f"taxon '{raw.get('id')}' has a malformed value: {e}")

    for derived_id, ref in (data.get("derivedIndex") or {}).items():
        if not isinstance(ref, Mapping) or "parent" not in ref or "state" not in ref:
            raise MatrixFormatError(f"derived entry '{derived_id}' needs a parent and a state")
        derived_index.setdefault(str(derived_id), (str(ref["parent"]), str(ref["state"])))

    authors = data.get("authors") or ()
    if isinstance(authors, str):
        authors = [a.strip() for a in authors.split(",") if a.strip()]

    logger.debug("Loaded matrix with %d traits and %d taxa", len(traits), len(taxa))
    return Matrix(
        traits=tuple(traits),
        taxa=tuple(taxa),
        title=str(data.get("title") or data.get("name") or ""),
        version=str(data.get("version") or ""),
        authors=tuple(authors),
        derived_index=derived_index,
    )


def _trait_to_dict(trait: Trait) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": trait.trait_id,
        "name": trait.name,
        "group": trait.group,
        "type": trait.kind.value,
    }
    if trait.states:
        out["states"] = list(trait.states)
    if trait.value_range is not None:
        out["minValue"] = trait.value_range.min
        out["maxValue"] = trait.value_range.max
    if trait.integer_only:
        out["isInteger"] = True
    if trait.parent:
        out["parent"] = trait.parent
    if trait.dependency:
        out["dependency"] = {
            "parentTraitId": trait.dependency.parent_trait_id,
            "requiredState": trait.dependency.required_state,
        }
    if trait.difficulty != DEFAULT_DIFFICULTY:
        out["difficulty"] = trait.difficulty
    if trait.risk != DEFAULT_RISK:
        out["risk"] = trait.risk
    if trait.help_text:
        out["helpText"] = trait.help_text
    return out


def _taxon_to_dict(taxon: Taxon) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": taxon.taxon_id,
        "name": taxon.name,
        "traits": {k: v.value for k, v in taxon.traits.items()},
        "continuousTraits": {
            k: {"min": v.min, "max": v.max} for k, v in taxon.continuous_traits.items()
        },
        "categoricalTraits": {k: sorted(v) for k, v in taxon.categorical_traits.items()},
        "nominalTraits": dict(taxon.nominal_traits),
        "excludedStates": {k: sorted(v) for k, v in taxon.excluded_states.items()},
    }
    if taxon.description:
        out["description"] = taxon.description
    if taxon.references:
        out["references"] = taxon.references
    out.update(taxon.metadata)
    return out


def matrix_to_dict(matrix: Matrix) -> dict[str, Any]:
    """Serialize a Matrix in the native layout."""
    return {
        "title": matrix.title,
        "version": matrix.version,
        "authors": list(matrix.authors),
        "traits": [_trait_to_dict(t) for t in matrix.traits],
        "taxa": [_taxon_to_dict(t) for t in matrix.taxa],
        "derivedIndex": {
            derived_id: {"parent": parent_id, "state": state}
            for derived_id, (parent_id, state) in matrix.derived_index.items()
        },
    }


def load_matrix(path: Union[str, Path]) -> Matrix:
    """
    Read a matrix from a JSON file.

    Raises:
        MatrixFormatError: If the file is not valid JSON or not a matrix
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as e:
        raise MatrixFormatError(f"Invalid JSON in {path}: {e}")
    except OSError as e:
        raise MatrixFormatError(f"Cannot read {path}: {e.strerror or e}")
    return matrix_from_dict(data)


# =============================================================================
# COMMAND-LINE OBSERVATIONS
# =============================================================================

def parse_observation_args(items: Iterable[str], matrix: Matrix) -> dict[str, Any]:
    """
    Parse "ID=VALUE" strings into an observation mapping.

    Binary:      T1=yes, T1=no, T1=1, T1=-1
    Continuous:  LEN=12.5
    Categorical: COLOR=red,blue
    Nominal:     SHAPE=round
    Legacy per-state IDs take a binary value.

    Raises:
        ObservationFormatError: If an item is malformed or a value does not fit its trait
    """
    observations: dict[str, Any] = {}
    for item in items:
        if "=" not in item:
            raise ObservationFormatError(f"expected ID=VALUE, got '{item}'")
        trait_id, value = (part.strip() for part in item.split("=", 1))
        if not trait_id:
            raise ObservationFormatError(f"missing trait ID in '{item}'")

        trait = matrix.trait(trait_id)
        if trait is None:
            if matrix.resolve_derived(trait_id) is not None:
                observations[trait_id] = Ternary.coerce(value).value
            else:
                logger.warning("Observation for unknown trait %s will be ignored", trait_id)
                observations[trait_id] = value
            continue

        if trait.kind is TraitKind.BINARY:
            state = Ternary.coerce(value)
            if not state.is_known:
                raise ObservationFormatError(f"'{value}' is not a yes/no value for {trait_id}")
            observations[trait_id] = state.value
        elif trait.kind is TraitKind.CONTINUOUS:
            try:
                observations[trait_id] = float(value)
            except ValueError:
                raise ObservationFormatError(f"'{value}' is not a number for {trait_id}")
        elif trait.kind in STATE_KINDS:
            if value not in trait.states:
                raise ObservationFormatError(
                    f"'{value}' is not a state of {trait_id} (states: {', '.join(trait.states)})"
                )
            observations[trait_id] = value
        else:
            observations[trait_id] = [s.strip() for s in value.split(",") if s.strip()]

    return observations
