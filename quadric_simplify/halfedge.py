"""
Half-Edge Connectivity
======================

Oriented half-edge representation of a triangle mesh, used by the
decimator to traverse neighbourhoods and to perform edge contractions.

Half-edges, faces and vertices are stored in parallel arenas (plain
Python lists) and referenced by integer index. A half-edge points *to*
its head vertex; its tail is the head of its previous half-edge. Boundary
half-edges have ``opposite`` set to ``None``. Removed entries stay in the
arenas, flagged dead, so indices remain stable for the whole run.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

import numpy as np

from .logging_utils import get_logger

logger = get_logger(__name__)


@dataclass
class IndexedMesh:
    """Plain indexed triangle mesh: positions plus faces of vertex indices."""
    vertices: np.ndarray
    faces: np.ndarray
    name: str = "mesh"

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    def copy(self, name: Optional[str] = None) -> "IndexedMesh":
        return IndexedMesh(self.vertices.copy(), self.faces.copy(),
                           name=self.name if name is None else name)


@dataclass
class ContractionResult:
    """Outcome of :meth:`HalfEdgeMesh.contract`."""
    vertex: Optional[int]
    removed_vertices: List[int] = field(default_factory=list)
    removed_faces: List[int] = field(default_factory=list)
    removed_half_edges: List[int] = field(default_factory=list)
    affected_vertices: List[int] = field(default_factory=list)


class HalfEdgeMesh:
    """
    Half-edge connectivity graph over integer-indexed arenas.

    Use :meth:`from_arrays`, :meth:`from_indexed` or :meth:`from_trimesh`
    to construct one; they weld coincident positions (optional), build
    the face loops and pair opposite half-edges.
    """

    def __init__(self):
        # Half-edge arena
        self._he_head: List[int] = []
        self._he_next: List[int] = []
        self._he_prev: List[int] = []
        self._he_face: List[int] = []
        self._he_opp: List[Optional[int]] = []
        self._he_alive: List[bool] = []

        # Face arena
        self._face_edge: List[int] = []
        self._face_alive: List[bool] = []

        # Vertex arena
        self._positions: List[np.ndarray] = []
        self._incoming: List[Set[int]] = []
        self._vert_alive: List[bool] = []

        self._n_half_edges = 0
        self._n_faces = 0
        self._n_vertices = 0

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_arrays(cls, vertices, faces, weld: bool = True) -> "HalfEdgeMesh":
        """
        Build the connectivity graph from an indexed triangle mesh.

        Args:
            vertices: (N, 3) vertex positions
            faces: (M, 3) vertex indices per triangle
            weld: Merge vertices that share exactly the same position

        Returns:
            Connected half-edge mesh
        """
        vertices = np.asarray(vertices, dtype=np.float64)
        faces = np.asarray(faces)

        if vertices.ndim != 2 or vertices.shape[1] != 3:
            raise ValueError(f"vertices must have shape (N, 3), got {vertices.shape}")
        if faces.size == 0:
            faces = faces.reshape(0, 3)
        if faces.ndim != 2 or faces.shape[1] != 3:
            raise ValueError(f"faces must have shape (M, 3), got {faces.shape}")
        if not np.issubdtype(faces.dtype, np.integer):
            raise ValueError(f"faces must hold integer indices, got dtype {faces.dtype}")
        if len(faces) and (faces.min() < 0 or faces.max() >= len(vertices)):
            raise ValueError("faces reference vertex indices outside the vertex array")
        if not np.all(np.isfinite(vertices)):
            raise ValueError("vertices contain non-finite coordinates")

        graph = cls()
        graph._build(vertices, faces.astype(np.int64), weld)
        graph.connect_opposites()
        return graph

    @classmethod
    def from_indexed(cls, mesh: IndexedMesh, weld: bool = True) -> "HalfEdgeMesh":
        return cls.from_arrays(mesh.vertices, mesh.faces, weld=weld)

    @classmethod
    def from_trimesh(cls, mesh, weld: bool = True) -> "HalfEdgeMesh":
        return cls.from_arrays(np.asarray(mesh.vertices), np.asarray(mesh.faces), weld=weld)

    def _build(self, vertices: np.ndarray, faces: np.ndarray, weld: bool):
        """Create vertex, face and half-edge records (opposites left unpaired)."""
        if weld and len(vertices):
            # Vertex ids follow first appearance in the input
            _, first, inverse = np.unique(vertices, axis=0,
                                          return_index=True, return_inverse=True)
            inverse = inverse.reshape(-1)
            order = np.argsort(first)
            rank = np.empty_like(order)
            rank[order] = np.arange(len(order))
            canonical = first[order]
            remap = rank[inverse]
        else:
            canonical = np.arange(len(vertices))
            remap = np.arange(len(vertices))

        faces = remap[faces]
        valid = ((faces[:, 0] != faces[:, 1]) &
                 (faces[:, 1] != faces[:, 2]) &
                 (faces[:, 0] != faces[:, 2]))
        dropped = int(np.count_nonzero(~valid))
        if dropped:
            logger.warning("Dropped %d face(s) that reference the same vertex twice", dropped)
        faces = faces[valid]

        # Only vertices referenced by a kept face get an id, in input order
        vertex_id: Dict[int, int] = {}
        for source in np.unique(faces):
            vertex_id[int(source)] = self._new_vertex(vertices[canonical[source]])

        for a, b, c in faces.tolist():
            self._new_face(vertex_id[a], vertex_id[b], vertex_id[c])

    def _new_vertex(self, position) -> int:
        self._positions.append(np.array(position, dtype=np.float64))
        self._incoming.append(set())
        self._vert_alive.append(True)
        self._n_vertices += 1
        return len(self._positions) - 1

    def _new_face(self, a: int, b: int, c: int) -> int:
        f = len(self._face_edge)
        base = len(self._he_head)
        # Half-edge base+i runs from corner i to corner i+1
        heads = (b, c, a)
        for i in range(3):
            self._he_head.append(heads[i])
            self._he_next.append(base + (i + 1) % 3)
            self._he_prev.append(base + (i + 2) % 3)
            self._he_face.append(f)
            self._he_opp.append(None)
            self._he_alive.append(True)
            self._incoming[heads[i]].add(base + i)
        self._face_edge.append(base)
        self._face_alive.append(True)
        self._n_half_edges += 3
        self._n_faces += 1
        return f

    def connect_opposites(self) -> int:
        """
        Pair every half-edge a->b with the half-edge b->a.

        A pair is made only when exactly one half-edge runs in each
        direction; edges shared by more than two faces, or by two faces
        with inconsistent winding, stay unpaired and behave as boundary.

        Returns:
            Number of pairs connected
        """
        by_endpoints: Dict[Tuple[int, int], List[int]] = {}
        for h in self.half_edges():
            self._he_opp[h] = None
            by_endpoints.setdefault((self.tail(h), self._he_head[h]), []).append(h)

        pairs = 0
        for (a, b), forward in by_endpoints.items():
            if a > b:
                continue
            backward = by_endpoints.get((b, a), [])
            if len(forward) == 1 and len(backward) == 1:
                h, g = forward[0], backward[0]
                self._he_opp[h] = g
                self._he_opp[g] = h
                pairs += 1
        return pairs

    # ------------------------------------------------------------------
    # Sizes and iteration
    # ------------------------------------------------------------------

    def face_count(self) -> int:
        return self._n_faces

    def vertex_count(self) -> int:
        return self._n_vertices

    def half_edge_count(self) -> int:
        return self._n_half_edges

    def edge_count(self) -> int:
        """Number of topological edges (an opposite pair counts once)."""
        paired = sum(1 for h in self.half_edges() if self._he_opp[h] is not None)
        return self._n_half_edges - paired // 2

    def vertices(self) -> Iterator[int]:
        return (v for v, alive in enumerate(self._vert_alive) if alive)

    def faces(self) -> Iterator[int]:
        return (f for f, alive in enumerate(self._face_alive) if alive)

    def half_edges(self) -> Iterator[int]:
        return (h for h, alive in enumerate(self._he_alive) if alive)

    def edge_keys(self) -> Iterator[int]:
        """One canonical half-edge per topological edge, in index order."""
        return (h for h in self.half_edges() if self.edge_key(h) == h)

    def has_vertex(self, v: int) -> bool:
        return 0 <= v < len(self._vert_alive) and self._vert_alive[v]

    def has_face(self, f: int) -> bool:
        return 0 <= f < len(self._face_alive) and self._face_alive[f]

    def has_half_edge(self, h: int) -> bool:
        return 0 <= h < len(self._he_alive) and self._he_alive[h]

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def head(self, h: int) -> int:
        return self._he_head[h]

    def tail(self, h: int) -> int:
        return self._he_head[self._he_prev[h]]

    def next(self, h: int) -> int:
        return self._he_next[h]

    def prev(self, h: int) -> int:
        return self._he_prev[h]

    def opposite(self, h: int) -> Optional[int]:
        return self._he_opp[h]

    def face_of(self, h: int) -> int:
        return self._he_face[h]

    def edge_key(self, h: int) -> int:
        """Canonical identifier of the topological edge containing ``h``."""
        g = self._he_opp[h]
        return h if g is None else min(h, g)

    def position(self, v: int) -> np.ndarray:
        return self._positions[v]

    def face_half_edges(self, f: int) -> Tuple[int, int, int]:
        h = self._face_edge[f]
        n = self._he_next[h]
        return h, n, self._he_next[n]

    def face_vertices(self, f: int) -> Tuple[int, int, int]:
        h, n, nn = self.face_half_edges(f)
        # Corner order matches the input winding
        return self._he_head[nn], self._he_head[h], self._he_head[n]

    def face_positions(self, f: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        a, b, c = self.face_vertices(f)
        return self._positions[a], self._positions[b], self._positions[c]

    def edges_into(self, v: int) -> Set[int]:
        """Set of live half-edges whose head is ``v``."""
        return set(self._incoming[v])

    def faces_around(self, v: int) -> Set[int]:
        # Every face touching v owns exactly one half-edge pointing into v
        return {self._he_face[h] for h in self._incoming[v]}

    def neighbors(self, v: int) -> Set[int]:
        result = set()
        for h in self._incoming[v]:
            result.add(self.tail(h))
            result.add(self._he_head[self._he_next[h]])
        return result

    def is_boundary_vertex(self, v: int) -> bool:
        return any(self._he_opp[h] is None or self._he_opp[self._he_next[h]] is None
                   for h in self._incoming[v])

    def is_boundary_edge(self, h: int) -> bool:
        return self._he_opp[h] is None

    # ------------------------------------------------------------------
    # Contraction
    # ------------------------------------------------------------------

    def faces_removed_by(self, h: int) -> int:
        """Number of triangles that contracting ``h`` removes."""
        return 1 if self._he_opp[h] is None else 2

    def can_contract(self, h: int) -> bool:
        """
        Check whether contracting ``h`` keeps the surface manifold.

        Uses the link condition: the endpoints may only share the apex
        vertices of the triangles adjacent to the edge. An interior edge
        joining two boundary vertices would pinch the surface, and an
        interior apex of degree 3 would be left with a doubled face.
        """
        if not self.has_half_edge(h):
            return False

        a, b = self.tail(h), self._he_head[h]
        g = self._he_opp[h]

        apexes = {self._he_head[self._he_next[h]]}
        if g is not None:
            apexes.add(self._he_head[self._he_next[g]])

        if self.neighbors(a) & self.neighbors(b) != apexes:
            return False

        if g is not None and self.is_boundary_vertex(a) and self.is_boundary_vertex(b):
            return False

        for apex in apexes:
            if not self.is_boundary_vertex(apex) and len(self.neighbors(apex)) <= 3:
                return False

        return True

    def contract(self, h: int, position) -> ContractionResult:
        """
        Merge both endpoints of ``h`` into a new vertex at ``position``.

        The triangle(s) adjacent to the edge are removed and the outer
        neighbours of each removed triangle become opposites of one
        another. Every surviving half-edge that pointed into either
        endpoint is re-routed to the new vertex. Vertices left without
        any face are removed as well.

        The caller is responsible for checking :meth:`can_contract` first;
        this method only rejects dead half-edges.

        Args:
            h: Half-edge to contract
            position: Position of the merged vertex

        Returns:
            ContractionResult describing what changed
        """
        if not self.has_half_edge(h):
            raise ValueError(f"Cannot contract removed half-edge {h}")

        a, b = self.tail(h), self._he_head[h]
        g = self._he_opp[h]

        sides = [h] if g is None else [h, g]
        doomed_faces = [self._he_face[e] for e in sides]

        doomed_edges: List[int] = []
        for f in doomed_faces:
            doomed_edges.extend(self.face_half_edges(f))
        doomed = set(doomed_edges)

        apexes = []
        for e in sides:
            n = self._he_next[e]
            nn = self._he_next[n]
            apexes.append(self._he_head[n])
            on, onn = self._he_opp[n], self._he_opp[nn]
            on = None if on in doomed else on
            onn = None if onn in doomed else onn
            if on is not None:
                self._he_opp[on] = onn
            if onn is not None:
                self._he_opp[onn] = on

        for e in doomed_edges:
            self._incoming[self._he_head[e]].discard(e)
            self._he_alive[e] = False
            self._he_opp[e] = None
        for f in doomed_faces:
            self._face_alive[f] = False
        self._n_half_edges -= len(doomed_edges)
        self._n_faces -= len(doomed_faces)

        m = self._new_vertex(position)
        merged = self._incoming[a] | self._incoming[b]
        for e in merged:
            self._he_head[e] = m
        self._incoming[m] = merged

        removed_vertices = []
        for v in (a, b):
            self._kill_vertex(v)
            removed_vertices.append(v)

        for v in [m] + apexes:
            if self._vert_alive[v] and not self._incoming[v]:
                self._kill_vertex(v)
                removed_vertices.append(v)

        vertex = m if self._vert_alive[m] else None
        affected = set()
        if vertex is not None:
            affected.add(vertex)
            affected.update(self.neighbors(vertex))
        affected.update(v for v in apexes if self._vert_alive[v])

        return ContractionResult(
            vertex=vertex,
            removed_vertices=removed_vertices,
            removed_faces=doomed_faces,
            removed_half_edges=doomed_edges,
            affected_vertices=sorted(affected),
        )

    def _kill_vertex(self, v: int):
        self._vert_alive[v] = False
        self._incoming[v] = set()
        self._n_vertices -= 1

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def to_mesh(self, name: str = "mesh", share_vertices: bool = True) -> IndexedMesh:
        """
        Convert the live part of the graph back to an indexed mesh.

        Args:
            name: Name of the output mesh
            share_vertices: If True, faces share vertices through the index
                            buffer; otherwise each face gets three vertices
                            of its own.

        Returns:
            IndexedMesh with compacted indices
        """
        live_faces = list(self.faces())

        if not share_vertices:
            vertices = [p for f in live_faces for p in self.face_positions(f)]
            faces = np.arange(3 * len(live_faces), dtype=np.int64).reshape(-1, 3)
            return IndexedMesh(np.array(vertices).reshape(-1, 3), faces, name=name)

        remap = {}
        vertices = []
        for v in self.vertices():
            remap[v] = len(vertices)
            vertices.append(self._positions[v])

        faces = [[remap[v] for v in self.face_vertices(f)] for f in live_faces]
        return IndexedMesh(np.array(vertices).reshape(-1, 3),
                           np.array(faces, dtype=np.int64).reshape(-1, 3), name=name)
