"""
Quadric Error Metrics (QEM)
===========================

Per-vertex error quadrics for mesh simplification.

The fundamental quadric Kp for a plane ax + by + cz + d = 0 is the 4x4
matrix Kp = p * p^T with p = [a, b, c, d]^T. A vertex quadric Q is the sum
of Kp over the triangles around the vertex, and the error of a position
v = [x, y, z, 1]^T is v^T * Q * v, the sum of squared distances to those
planes.

Based on: "Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997)
"""

from typing import Dict, Iterator, Optional

import numpy as np

from .halfedge import HalfEdgeMesh
from .logging_utils import get_logger

logger = get_logger(__name__)

# Triangles whose normal is shorter than this have no usable plane
DEGENERATE_NORMAL_EPS = 1e-12


class MissingQuadricError(LookupError):
    """A live vertex has no registered quadric (bookkeeping is out of sync)."""


def compute_face_plane(v0: np.ndarray, v1: np.ndarray, v2: np.ndarray) -> Optional[np.ndarray]:
    """
    Compute the plane equation coefficients for a triangle face.

    The plane equation is: ax + by + cz + d = 0
    where [a, b, c] is the unit normal and d = -dot(normal, point_on_plane)

    Args:
        v0, v1, v2: Triangle vertices as 3D points

    Returns:
        Plane coefficients [a, b, c, d], or None for a degenerate triangle
    """
    normal = np.cross(v1 - v0, v2 - v0)
    norm_length = np.linalg.norm(normal)

    if not norm_length >= DEGENERATE_NORMAL_EPS:
        return None

    normal = normal / norm_length
    d = -np.dot(normal, v0)

    return np.array([normal[0], normal[1], normal[2], d], dtype=np.float64)


def compute_fundamental_quadric(plane: np.ndarray) -> np.ndarray:
    """Kp = p * p^T for plane coefficients p = [a, b, c, d]."""
    return np.outer(plane, plane)


def compute_face_quadric(graph: HalfEdgeMesh, face: int) -> Optional[np.ndarray]:
    """Fundamental quadric of a live face, or None when it is degenerate."""
    plane = compute_face_plane(*graph.face_positions(face))
    if plane is None:
        logger.debug("Face %d is degenerate; skipping its quadric contribution", face)
        return None
    return compute_fundamental_quadric(plane)


def compute_vertex_quadric(graph: HalfEdgeMesh, vertex: int) -> np.ndarray:
    """
    Sum the fundamental quadrics of every triangle around a vertex.

    Triangles are visited through the half-edges pointing into the vertex,
    in index order so the floating point summation is reproducible.
    Degenerate triangles contribute nothing.
    """
    Q = np.zeros((4, 4), dtype=np.float64)
    for h in sorted(graph.edges_into(vertex)):
        Kp = compute_face_quadric(graph, graph.face_of(h))
        if Kp is not None:
            Q += Kp
    return Q


def compute_error(Q: np.ndarray, v: np.ndarray) -> float:
    """
    Compute the quadric error for a vertex position.

    error = v^T * Q * v where v is [x, y, z, 1]

    Args:
        Q: 4x4 quadric matrix
        v: 3D vertex position

    Returns:
        Quadric error value; NaN or inf is passed through unclamped
    """
    v_homo = np.array([v[0], v[1], v[2], 1.0])
    error = float(v_homo @ Q @ v_homo)
    if not np.isfinite(error):
        return error
    return max(0.0, error)  # Clamp to non-negative


class QuadricStore:
    """
    Mapping from vertex id to its accumulated error quadric.

    Exactly one quadric is held per live vertex. The decimator removes the
    quadrics of both contracted endpoints before inserting the merged
    vertex's quadric.
    """

    def __init__(self):
        self._quadrics: Dict[int, np.ndarray] = {}
        self.degenerate_faces = 0

    @classmethod
    def build_initial(cls, graph: HalfEdgeMesh) -> "QuadricStore":
        """
        Compute initial error quadrics for all vertices.

        Each triangle's Kp is added once to each of its three vertices,
        giving every vertex the sum over its own triangle fan.

        Args:
            graph: Connectivity graph of the input mesh

        Returns:
            Populated store
        """
        store = cls()
        quadrics = {v: np.zeros((4, 4), dtype=np.float64) for v in graph.vertices()}

        for f in graph.faces():
            Kp = compute_face_quadric(graph, f)
            if Kp is None:
                store.degenerate_faces += 1
                continue
            for v in graph.face_vertices(f):
                quadrics[v] += Kp

        if store.degenerate_faces:
            logger.warning("Skipped %d degenerate face(s) while building quadrics",
                           store.degenerate_faces)

        store._quadrics = quadrics
        return store

    def get(self, vertex: int) -> np.ndarray:
        try:
            return self._quadrics[vertex]
        except KeyError:
            raise MissingQuadricError(
                f"No quadric registered for vertex {vertex}; "
                "connectivity and quadric bookkeeping are out of sync") from None

    def insert(self, vertex: int, Q: np.ndarray):
        if vertex in self._quadrics:
            raise ValueError(f"Vertex {vertex} already has a quadric")
        self._quadrics[vertex] = self._checked(vertex, Q)

    def update(self, vertex: int, Q: np.ndarray):
        if vertex not in self._quadrics:
            raise MissingQuadricError(f"Cannot update quadric of unknown vertex {vertex}")
        self._quadrics[vertex] = self._checked(vertex, Q)

    def remove(self, vertex: int):
        if self._quadrics.pop(vertex, None) is None:
            raise MissingQuadricError(f"Cannot remove quadric of unknown vertex {vertex}")

    def refresh(self, graph: HalfEdgeMesh, vertex: int, new: bool = False) -> np.ndarray:
        """
        Recompute a vertex quadric from its current triangle fan and store it.

        Args:
            graph: Connectivity graph the vertex lives in
            vertex: Vertex to refresh
            new: The vertex was just created and has no quadric yet;
                 otherwise a missing quadric raises MissingQuadricError

        Returns:
            The stored quadric
        """
        Q = compute_vertex_quadric(graph, vertex)
        if new:
            self.insert(vertex, Q)
        else:
            self.update(vertex, Q)
        return Q

    @staticmethod
    def _checked(vertex: int, Q: np.ndarray) -> np.ndarray:
        Q = np.asarray(Q, dtype=np.float64)
        if Q.shape != (4, 4):
            raise ValueError(f"Quadric for vertex {vertex} must be 4x4, got {Q.shape}")
        if not np.all(np.isfinite(Q)):
            raise ValueError(f"Quadric for vertex {vertex} contains non-finite values")
        return Q

    def error(self, vertex: int, position: np.ndarray) -> float:
        return compute_error(self.get(vertex), position)

    def __contains__(self, vertex: int) -> bool:
        return vertex in self._quadrics

    def __len__(self) -> int:
        return len(self._quadrics)

    def __iter__(self) -> Iterator[int]:
        return iter(self._quadrics)
