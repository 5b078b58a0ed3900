"""
Identification Run Orchestrator for the TaxaKey Identification Engine.

Ties the command-line inputs to a single evaluation:

    1. Matrix loading (JSON file, or the built-in demo matrix)
    2. Observation parsing ("ID=VALUE" arguments)
    3. Evaluation (ranking + next-question suggestions)

The run is read-only and deterministic. No session state survives it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..domain import Matrix
from ..evaluation import EvalResult, evaluate
from ..ingestion.json_matrix import load_matrix, matrix_from_dict, parse_observation_args
from ..options import AlgoOptions

logger = logging.getLogger(__name__)


# =============================================================================
# RUN RESULT
# =============================================================================

@dataclass
class IdentificationRun:
    """
    Complete result of one command-line identification.

    Exposes:
    - the matrix that was scored
    - the parsed observations
    - the evaluation result
    """
    matrix: Matrix
    observations: dict[str, Any]
    result: EvalResult
    options: AlgoOptions = field(default_factory=AlgoOptions)
    mode: str = "lenient"
    algorithm: str = "bayes"

    def posterior_for(self, taxon_id: str) -> Optional[float]:
        index = self.matrix.taxon_index(taxon_id)
        if index is None or not self.result.posterior:
            return None
        return self.result.posterior[index]


# =============================================================================
# SAMPLE DATA (For Demo Purposes)
# =============================================================================

# Written in the legacy spreadsheet-export layout: bill shape is a
# "nominal_parent" with one "derived" Yes/No column per state.
SAMPLE_MATRIX = {
    "name": "Garden and Shore Birds (demo)",
    "version": "1.0",
    "authors": "TaxaKey Contributors",
    "traits": [
        {"id": "WEB", "name": "Webbed feet", "group": "Legs", "type": "binary",
         "difficulty": "easy"},
        {"id": "CREST", "name": "Head crest", "group": "Head", "type": "binary"},
        {"id": "BILL", "name": "Bill shape", "group": "Head", "type": "nominal_parent",
         "difficulty": "normal", "risk": "low"},
        {"id": "BILL_HOOK", "name": "Bill hooked", "group": "Head", "type": "derived",
         "parent": "BILL", "state": "hooked"},
        {"id": "BILL_CONE", "name": "Bill conical", "group": "Head", "type": "derived",
         "parent": "BILL", "state": "conical"},
        {"id": "BILL_FLAT", "name": "Bill flat", "group": "Head", "type": "derived",
         "parent": "BILL", "state": "flat"},
        {"id": "WING", "name": "Wing length (cm)", "group": "Size", "type": "continuous",
         "minValue": 5, "maxValue": 60, "difficulty": "hard"},
        {"id": "COLOR", "name": "Plumage colours", "group": "Colour",
         "type": "categorical_multi",
         "states": ["black", "white", "brown", "red", "blue", "yellow", "grey"]},
    ],
    "taxa": [
        {"id": "mallard", "name": "Mallard",
         "traits": {"WEB": 1, "CREST": -1, "BILL_HOOK": -1, "BILL_CONE": -1, "BILL_FLAT": 1},
         "continuousTraits": {"WING": {"min": 26, "max": 30}},
         "categoricalTraits": {"COLOR": ["brown", "grey", "blue"]}},
        {"id": "kestrel", "name": "Common Kestrel",
         "traits": {"WEB": -1, "CREST": -1, "BILL_HOOK": 1, "BILL_CONE": -1, "BILL_FLAT": -1},
         "continuousTraits": {"WING": {"min": 23, "max": 27}},
         "categoricalTraits": {"COLOR": ["brown", "grey"]}},
        {"id": "cardinal", "name": "Northern Cardinal",
         "traits": {"WEB": -1, "CREST": 1, "BILL_HOOK": -1, "BILL_CONE": 1, "BILL_FLAT": -1},
         "continuousTraits": {"WING": {"min": 8, "max": 10}},
         "categoricalTraits": {"COLOR": ["red", "black"]}},
        {"id": "bluejay", "name": "Blue Jay",
         "traits": {"WEB": -1, "CREST": 1},
         "continuousTraits": {"WING": {"min": 12, "max": 14}},
         "categoricalTraits": {"COLOR": ["blue", "white", "black"]}},
        {"id": "gull", "name": "Herring Gull",
         "traits": {"WEB": 1, "CREST": -1, "BILL_HOOK": 1, "BILL_CONE": -1, "BILL_FLAT": -1},
         "continuousTraits": {"WING": {"min": 41, "max": 48}},
         "categoricalTraits": {"COLOR": ["white", "grey"]}},
        {"id": "goldfinch", "name": "American Goldfinch",
         "traits": {"WEB": -1, "BILL_CONE": 1},
         "continuousTraits": {"WING": {"min": 7, "max": 8}},
         "categoricalTraits": {"COLOR": ["yellow", "black"]}},
    ],
}


def load_demo_matrix() -> Matrix:
    return matrix_from_dict(SAMPLE_MATRIX)


# =============================================================================
# RUN EXECUTION
# =============================================================================

def run_identification(
    matrix_path: Optional[str] = None,
    observation_args: Iterable[str] = (),
    options: Optional[AlgoOptions] = None,
    mode: str = "lenient",
    algorithm: str = "bayes",
) -> IdentificationRun:
    """
    Load a matrix, parse observations and evaluate.

    Args:
        matrix_path: JSON matrix file (uses the demo matrix if None)
        observation_args: "ID=VALUE" strings
        options: Algorithm options
        mode: "lenient" or "strict"
        algorithm: "bayes" or "heuristic"
    """
    matrix = load_matrix(matrix_path) if matrix_path else load_demo_matrix()
    observations = parse_observation_args(observation_args, matrix)
    opts = (options or AlgoOptions()).normalized()
    logger.debug("Running identification with %d observation(s)", len(observations))

    result = evaluate(matrix, observations, opts, mode=mode, algorithm=algorithm)
    return IdentificationRun(
        matrix=matrix,
        observations=observations,
        result=result,
        options=opts,
        mode=mode,
        algorithm=algorithm,
    )
