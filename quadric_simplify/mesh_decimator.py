"""
Mesh Decimator
==============

Main mesh simplification class that performs iterative edge contraction
using Quadric Error Metrics with a priority queue.

A run moves through three states. While INITIALIZING, quadrics are built
for every vertex and one candidate is queued per topological edge. While
CONTRACTING, the cheapest candidate is contracted and the quadrics and
candidates around the merged vertex are refreshed. The run is TERMINATED
when the target face count is reached, no candidate is left, the attempt
bound is hit or the caller asks it to stop.
"""

import enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

import numpy as np

from .candidates import CandidateSet, EdgeCandidate
from .config import SimplificationConfig
from .halfedge import HalfEdgeMesh, IndexedMesh
from .logging_utils import get_logger
from .qem import QuadricStore, compute_vertex_quadric

logger = get_logger(__name__)


class DecimatorState(enum.Enum):
    INITIALIZING = "initializing"
    CONTRACTING = "contracting"
    TERMINATED = "terminated"


class TerminationReason(enum.Enum):
    TARGET_REACHED = "target_reached"
    ALREADY_AT_TARGET = "already_at_target"
    NO_CANDIDATES = "no_candidates"
    MAX_CONTRACTIONS = "max_contractions"
    CANCELLED = "cancelled"


@dataclass
class ContractionRecord:
    """One performed contraction."""
    edge: int
    endpoints: Tuple[int, int]
    vertex: Optional[int]
    position: np.ndarray = field(repr=False)
    cost: float
    faces_after: int


@dataclass
class SimplificationResult:
    """Output mesh plus a summary of how the run ended."""
    mesh: IndexedMesh
    reason: TerminationReason
    initial_faces: int
    target_faces: int
    contractions: int = 0
    rejected: int = 0
    attempts: int = 0
    history: List[ContractionRecord] = field(default_factory=list)

    @property
    def faces_requested(self) -> int:
        return max(0, self.initial_faces - self.target_faces)

    @property
    def faces_removed(self) -> int:
        return self.initial_faces - self.mesh.face_count

    def to_trimesh(self):
        from .utils import to_trimesh
        return to_trimesh(self.mesh)

    def summary(self) -> str:
        return (f"{self.initial_faces} -> {self.mesh.face_count} faces "
                f"(target {self.target_faces}), {self.contractions} contractions, "
                f"{self.rejected} rejected, {self.faces_removed}/{self.faces_requested} "
                f"faces removed, stopped: {self.reason.value}")


class MeshDecimator:
    """
    Mesh simplification using Quadric Error Metrics (QEM).

    Implements iterative edge contraction with:
    - Priority queue based on midpoint collapse error
    - Incremental quadric and cost updates around each merged vertex
    - Manifold contraction validation (link condition)
    - A face-count floor and optional target / attempt bounds

    The quadric store and candidate set are owned by the decimator for
    the duration of a run and must not be modified from outside.
    """

    def __init__(self, config: Optional[SimplificationConfig] = None):
        """
        Initialize the mesh decimator.

        Args:
            config: Simplification options (defaults to SimplificationConfig())
        """
        self.config = config or SimplificationConfig()

        # State variables (initialized per decimation)
        self.state = DecimatorState.INITIALIZING
        self.termination_reason: Optional[TerminationReason] = None
        self.graph: Optional[HalfEdgeMesh] = None
        self.quadrics: Optional[QuadricStore] = None
        self.candidates: Optional[CandidateSet] = None
        self.contractions = 0
        self.rejected = 0
        self.attempts = 0
        self._history: List[ContractionRecord] = []

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def decimate(self, mesh,
                 target_faces: Optional[int] = None,
                 target_ratio: Optional[float] = None,
                 progress_callback: Optional[Callable[[float], None]] = None,
                 should_stop: Optional[Callable[[], bool]] = None) -> SimplificationResult:
        """
        Decimate the mesh to a target face count or ratio.

        Args:
            mesh: Input IndexedMesh or trimesh.Trimesh
            target_faces: Target number of faces (overrides the config)
            target_ratio: Target ratio of faces to keep (overrides the config)
            progress_callback: Optional callback receiving progress in [0, 1]
            should_stop: Optional callable polled between contractions;
                         returning True ends the run with the mesh in its
                         last consistent state

        Returns:
            SimplificationResult holding the simplified mesh
        """
        config = self.config.with_overrides(target_faces=target_faces,
                                            target_ratio=target_ratio)
        indexed = _as_indexed(mesh)
        initial_faces = indexed.face_count
        target = config.resolve_target(initial_faces)

        if initial_faces <= target:
            logger.info("Mesh already has %d faces (target %d); nothing to do",
                        initial_faces, target)
            self.state = DecimatorState.TERMINATED
            self.termination_reason = TerminationReason.ALREADY_AT_TARGET
            return SimplificationResult(mesh=indexed.copy(),
                                        reason=TerminationReason.ALREADY_AT_TARGET,
                                        initial_faces=initial_faces,
                                        target_faces=target)

        graph = HalfEdgeMesh.from_indexed(indexed, weld=config.weld_vertices)
        self.initialize(graph)

        logger.info("Starting decimation: %d -> %d faces", graph.face_count(), target)

        reason = self.run(target, max_contractions=config.max_contractions,
                          progress_callback=progress_callback, should_stop=should_stop)

        output = graph.to_mesh(config.output_name, share_vertices=config.share_vertices)
        result = SimplificationResult(mesh=output,
                                      reason=reason,
                                      initial_faces=initial_faces,
                                      target_faces=target,
                                      contractions=self.contractions,
                                      rejected=self.rejected,
                                      attempts=self.attempts,
                                      history=self.get_collapse_history())
        logger.info("Decimation complete: %s", result.summary())
        return result

    def initialize(self, graph: HalfEdgeMesh):
        """Build quadrics and queue one candidate per topological edge."""
        self.state = DecimatorState.INITIALIZING
        self.termination_reason = None
        self.graph = graph
        self.contractions = 0
        self.rejected = 0
        self.attempts = 0
        self._history = []

        self.quadrics = QuadricStore.build_initial(graph)
        self.candidates = CandidateSet()
        for key in graph.edge_keys():
            self._insert_candidate(key)

        logger.debug("Initialized %d quadrics and %d candidates",
                     len(self.quadrics), len(self.candidates))
        self.state = DecimatorState.CONTRACTING

    def run(self, target_faces: int,
            max_contractions: Optional[int] = None,
            progress_callback: Optional[Callable[[float], None]] = None,
            should_stop: Optional[Callable[[], bool]] = None) -> TerminationReason:
        """
        Contract edges until a stopping condition holds.

        Returns:
            Why the run stopped
        """
        if self.state is not DecimatorState.CONTRACTING:
            raise RuntimeError(f"Cannot run decimator in state {self.state.value}")

        target_faces = max(self.config.min_faces, target_faces)
        faces_to_remove = max(1, self.graph.face_count() - target_faces)
        start_faces = self.graph.face_count()
        last_progress = 0.0

        while True:
            if self.graph.face_count() <= target_faces:
                return self._terminate(TerminationReason.TARGET_REACHED)
            if max_contractions is not None and self.attempts >= max_contractions:
                return self._terminate(TerminationReason.MAX_CONTRACTIONS)
            if should_stop is not None and should_stop():
                return self._terminate(TerminationReason.CANCELLED)

            record = self.step()

            if self.state is DecimatorState.TERMINATED:
                return self.termination_reason

            if record is not None and progress_callback is not None:
                progress = (start_faces - self.graph.face_count()) / faces_to_remove
                if progress - last_progress >= 0.05:  # Update every 5%
                    progress_callback(min(1.0, progress))
                    last_progress = progress

    def step(self) -> Optional[ContractionRecord]:
        """
        Attempt one contraction of the cheapest candidate.

        Returns:
            The contraction performed, or None when the candidate was
            rejected or the candidate set is exhausted (in which case the
            decimator moves to TERMINATED)
        """
        if self.state is not DecimatorState.CONTRACTING:
            raise RuntimeError(f"Cannot step decimator in state {self.state.value}")

        candidate = self.candidates.extract_min()
        if candidate is None:
            logger.info("No more valid edges to collapse (%d faces left)",
                        self.graph.face_count())
            self._terminate(TerminationReason.NO_CANDIDATES)
            return None

        self.attempts += 1
        graph = self.graph
        h = candidate.edge_key

        if not graph.can_contract(h):
            self.rejected += 1
            logger.debug("Rejected edge %d: contraction would break the manifold", h)
            return None
        if graph.face_count() - graph.faces_removed_by(h) < self.config.min_faces:
            self.rejected += 1
            logger.debug("Rejected edge %d: contraction would go below %d faces",
                         h, self.config.min_faces)
            return None

        return self._contract(candidate)

    # ------------------------------------------------------------------
    # Contraction and incremental updates
    # ------------------------------------------------------------------

    def _contract(self, candidate: EdgeCandidate) -> ContractionRecord:
        graph = self.graph
        h = candidate.edge_key
        endpoints = (graph.tail(h), graph.head(h))

        # Every edge of the triangle(s) about to disappear
        stale_keys = set()
        sides = [h] if graph.opposite(h) is None else [h, graph.opposite(h)]
        for e in sides:
            for k in graph.face_half_edges(graph.face_of(e)):
                stale_keys.add(graph.edge_key(k))

        result = graph.contract(h, candidate.position)

        for key in stale_keys:
            self.candidates.remove(key)

        for v in result.removed_vertices:
            # a merged vertex left without faces never received a quadric
            if v in endpoints or v in self.quadrics:
                self.quadrics.remove(v)
        for v in result.affected_vertices:
            self.quadrics.refresh(graph, v, new=(v == result.vertex))

        for key in sorted(self._incident_edge_keys(result.affected_vertices)):
            if key in self.candidates:
                self._update_candidate(key)
            else:
                self._insert_candidate(key)

        self.contractions += 1
        record = ContractionRecord(edge=h,
                                   endpoints=endpoints,
                                   vertex=result.vertex,
                                   position=candidate.position.copy(),
                                   cost=candidate.cost,
                                   faces_after=graph.face_count())
        if self.config.record_history:
            self._history.append(record)
        return record

    def _incident_edge_keys(self, vertices) -> Set[int]:
        graph = self.graph
        keys = set()
        for v in vertices:
            for e in graph.edges_into(v):
                keys.add(graph.edge_key(e))
                keys.add(graph.edge_key(graph.next(e)))
        return keys

    def _candidate_args(self, key: int):
        graph = self.graph
        v1, v2 = graph.tail(key), graph.head(key)
        return (key, v1, v2, graph.position(v1), graph.position(v2),
                self.quadrics.get(v1), self.quadrics.get(v2))

    def _insert_candidate(self, key: int):
        self.candidates.insert(*self._candidate_args(key))

    def _update_candidate(self, key: int):
        self.candidates.update(*self._candidate_args(key))

    def _terminate(self, reason: TerminationReason) -> TerminationReason:
        self.state = DecimatorState.TERMINATED
        self.termination_reason = reason
        if reason is TerminationReason.NO_CANDIDATES:
            logger.info("Stopped early after %d contractions (%d rejected)",
                        self.contractions, self.rejected)
        return reason

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_collapse_history(self) -> List[ContractionRecord]:
        """Get the history of edge contractions performed."""
        return list(self._history)

    def get_vertex_errors(self) -> np.ndarray:
        """
        Quadric error of every live vertex at its current position.

        Useful for error visualization after decimation; values are in
        the same order as the vertices of the shared-vertex output mesh.
        """
        graph = self.graph
        return np.array([self.quadrics.error(v, graph.position(v))
                         for v in graph.vertices()], dtype=np.float64)

    def check_invariants(self, atol: float = 1e-9):
        """
        Verify the quadric store and candidate set against the graph.

        Raises:
            AssertionError: if any stored quadric differs from the one
                            recomputed from scratch, or if a candidate
                            references a removed edge or vertex
        """
        graph = self.graph
        live = set(graph.vertices())
        stored = set(self.quadrics)
        if stored != live:
            raise AssertionError(
                f"Quadric store out of sync: missing {sorted(live - stored)}, "
                f"stale {sorted(stored - live)}")

        for v in live:
            expected = compute_vertex_quadric(graph, v)
            if not np.allclose(self.quadrics.get(v), expected, atol=atol):
                raise AssertionError(f"Quadric of vertex {v} differs from its recomputed value")

        for candidate in self.candidates:
            key = candidate.edge_key
            if not graph.has_half_edge(key):
                raise AssertionError(f"Candidate {key} references a removed edge")
            if graph.edge_key(key) != key:
                raise AssertionError(f"Candidate {key} is not canonical")
            if candidate.endpoints != (graph.tail(key), graph.head(key)):
                raise AssertionError(f"Candidate {key} has stale endpoints {candidate.endpoints}")
            if candidate.v1 not in live or candidate.v2 not in live:
                raise AssertionError(f"Candidate {key} references a removed vertex")


def _as_indexed(mesh) -> IndexedMesh:
    if isinstance(mesh, IndexedMesh):
        return mesh
    if hasattr(mesh, "vertices") and hasattr(mesh, "faces"):
        return IndexedMesh(np.asarray(mesh.vertices), np.asarray(mesh.faces),
                           name=getattr(mesh, "name", None) or "mesh")
    raise TypeError(f"Expected an IndexedMesh or trimesh.Trimesh, got {type(mesh).__name__}")


def simplify(vertices, faces,
             config: Optional[SimplificationConfig] = None,
             **overrides) -> IndexedMesh:
    """
    Simplify an indexed triangle mesh.

    Args:
        vertices: (N, 3) vertex positions
        faces: (M, 3) vertex indices per triangle
        config: Base configuration
        **overrides: SimplificationConfig fields to override

    Returns:
        Simplified IndexedMesh
    """
    config = (config or SimplificationConfig()).with_overrides(**overrides)
    return MeshDecimator(config).decimate(IndexedMesh(vertices, faces)).mesh
