"""
Mesh Simplification using Quadric Error Metrics (QEM)
=====================================================

Iterative edge contraction over a half-edge mesh, following
"Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997).
"""

import logging

from .config import SimplificationConfig
from .halfedge import HalfEdgeMesh, IndexedMesh, ContractionResult
from .qem import QuadricStore, MissingQuadricError
from .candidates import CandidateSet, EdgeCandidate, collapse_cost
from .mesh_decimator import (
    MeshDecimator,
    DecimatorState,
    TerminationReason,
    SimplificationResult,
    ContractionRecord,
    simplify,
)
from .evaluation import MeshEvaluator
from .logging_utils import configure_logging, get_logger

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "1.0.0"
__all__ = [
    "SimplificationConfig",
    "HalfEdgeMesh",
    "IndexedMesh",
    "ContractionResult",
    "QuadricStore",
    "MissingQuadricError",
    "CandidateSet",
    "EdgeCandidate",
    "collapse_cost",
    "MeshDecimator",
    "DecimatorState",
    "TerminationReason",
    "SimplificationResult",
    "ContractionRecord",
    "simplify",
    "MeshEvaluator",
    "configure_logging",
    "get_logger",
]
