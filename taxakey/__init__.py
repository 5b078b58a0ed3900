# TaxaKey Identification Engine
# Probabilistic multi-access identification key

"""
Core invariant: the engine is a pure function of (Matrix, observations,
options). No session state is held between evaluations.

This package exposes the data model, the likelihood and posterior
machinery, and the next-question suggestion engine.
"""

from .domain import (
    ContinuousRange,
    Dependency,
    EmptyMatrixError,
    Matrix,
    MatrixFormatError,
    MatrixValidationError,
    TaxaKeyError,
    Taxon,
    Ternary,
    Trait,
    TraitKind,
)
from .evaluation import EvalResult, evaluate
from .options import AlgoOptions

__version__ = "0.1.0"

__all__ = [
    "AlgoOptions",
    "ContinuousRange",
    "Dependency",
    "EmptyMatrixError",
    "EvalResult",
    "Matrix",
    "MatrixFormatError",
    "MatrixValidationError",
    "TaxaKeyError",
    "Taxon",
    "Ternary",
    "Trait",
    "TraitKind",
    "evaluate",
]
