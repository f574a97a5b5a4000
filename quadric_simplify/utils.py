"""
Utility Functions
=================

Mesh loading and saving, conversions between trimesh and IndexedMesh,
and sample mesh creation.
"""

from pathlib import Path
from typing import Optional, Union

import numpy as np
import trimesh

from .halfedge import IndexedMesh
from .logging_utils import get_logger

logger = get_logger(__name__)

SAMPLE_MESHES = ("octahedron", "tetrahedron", "sphere", "torus", "cube", "cylinder", "grid")


def load_mesh(path: Union[str, Path]) -> IndexedMesh:
    """
    Load a mesh from file.

    Supports: OBJ, PLY, STL, OFF, and other formats supported by trimesh.
    Scenes are flattened into a single mesh.

    Args:
        path: Path to mesh file

    Returns:
        Loaded mesh
    """
    mesh = trimesh.load(str(path), force='mesh', process=False)

    if isinstance(mesh, trimesh.Scene):
        meshes = [g for g in mesh.geometry.values() if isinstance(g, trimesh.Trimesh)]
        if not meshes:
            raise ValueError(f"No valid meshes found in {path}")
        mesh = trimesh.util.concatenate(meshes)

    return from_trimesh(mesh, name=Path(path).stem)


def save_mesh(mesh: Union[IndexedMesh, trimesh.Trimesh], path: Union[str, Path]):
    """
    Save a mesh to file; the format follows the file extension.

    Args:
        mesh: Mesh to save
        path: Output path
    """
    if isinstance(mesh, IndexedMesh):
        mesh = to_trimesh(mesh)
    mesh.export(str(path))
    logger.info("Saved mesh to: %s", path)


def to_trimesh(mesh: IndexedMesh) -> trimesh.Trimesh:
    """Wrap an IndexedMesh without letting trimesh merge or reorder anything."""
    return trimesh.Trimesh(vertices=mesh.vertices, faces=mesh.faces, process=False)


def from_trimesh(mesh: trimesh.Trimesh, name: Optional[str] = None) -> IndexedMesh:
    return IndexedMesh(np.asarray(mesh.vertices, dtype=np.float64),
                       np.asarray(mesh.faces, dtype=np.int64),
                       name=name or "mesh")


def create_octahedron(radius: float = 1.0) -> IndexedMesh:
    """Regular octahedron: 6 vertices on the axes, 8 outward-facing triangles."""
    vertices = radius * np.array([
        [1, 0, 0], [-1, 0, 0],
        [0, 1, 0], [0, -1, 0],
        [0, 0, 1], [0, 0, -1],
    ], dtype=np.float64)
    faces = np.array([
        [0, 2, 4], [2, 1, 4], [1, 3, 4], [3, 0, 4],
        [2, 0, 5], [1, 2, 5], [3, 1, 5], [0, 3, 5],
    ], dtype=np.int64)
    return IndexedMesh(vertices, faces, name="octahedron")


def create_tetrahedron() -> IndexedMesh:
    vertices = np.array([
        [1, 1, 1], [1, -1, -1], [-1, 1, -1], [-1, -1, 1],
    ], dtype=np.float64)
    faces = np.array([[0, 1, 2], [0, 3, 1], [0, 2, 3], [1, 3, 2]], dtype=np.int64)
    return IndexedMesh(vertices, faces, name="tetrahedron")


def create_grid_surface(rows: int = 20, cols: int = 20,
                        noise: float = 0.0,
                        seed: Optional[int] = None) -> IndexedMesh:
    """
    Create a wavy open surface (a mesh with boundary).

    Args:
        rows: Number of rows in the grid
        cols: Number of columns in the grid
        noise: Standard deviation of random vertex jitter
        seed: Seed for the jitter

    Returns:
        Open surface mesh
    """
    x = np.linspace(-1, 1, cols)
    y = np.linspace(-1, 1, rows)
    X, Y = np.meshgrid(x, y)
    Z = 0.2 * np.sin(3 * X) * np.cos(3 * Y)

    vertices = np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])

    # Two triangles per grid cell
    faces = []
    for i in range(rows - 1):
        for j in range(cols - 1):
            idx = i * cols + j
            faces.append([idx, idx + 1, idx + cols])
            faces.append([idx + 1, idx + cols + 1, idx + cols])

    if noise > 0:
        rng = np.random.default_rng(seed)
        vertices = vertices + rng.normal(scale=noise, size=vertices.shape)

    return IndexedMesh(vertices, np.array(faces, dtype=np.int64), name="grid")


def create_sample_mesh(mesh_type: str = "sphere") -> IndexedMesh:
    """
    Create a sample mesh for testing.

    Args:
        mesh_type: One of SAMPLE_MESHES

    Returns:
        Generated mesh
    """
    if mesh_type == "octahedron":
        return create_octahedron()
    if mesh_type == "tetrahedron":
        return create_tetrahedron()
    if mesh_type == "grid":
        return create_grid_surface()

    if mesh_type == "sphere":
        mesh = trimesh.creation.icosphere(subdivisions=3, radius=1.0)
    elif mesh_type == "torus":
        mesh = trimesh.creation.torus(major_radius=1.0, minor_radius=0.3,
                                      major_sections=48, minor_sections=24)
    elif mesh_type == "cube":
        mesh = trimesh.creation.box(extents=[1, 1, 1])
        for _ in range(3):
            mesh = mesh.subdivide()
    elif mesh_type == "cylinder":
        mesh = trimesh.creation.cylinder(radius=0.5, height=2.0, sections=48)
    else:
        raise ValueError(f"Unknown sample mesh {mesh_type!r}; choose from {SAMPLE_MESHES}")

    logger.debug("Created %s mesh: %d vertices, %d faces",
                 mesh_type, len(mesh.vertices), len(mesh.faces))
    return from_trimesh(mesh, name=mesh_type)


def get_mesh_info(mesh: Union[IndexedMesh, trimesh.Trimesh]) -> dict:
    """
    Get basic information about a mesh.

    Args:
        mesh: Input mesh

    Returns:
        Dictionary of mesh properties
    """
    if isinstance(mesh, IndexedMesh):
        mesh = to_trimesh(mesh)

    info = {
        'vertices': len(mesh.vertices),
        'faces': len(mesh.faces),
        'is_watertight': bool(mesh.is_watertight),
        'area': float(mesh.area),
    }
    info['volume'] = float(mesh.volume) if mesh.is_watertight else None

    counts = np.zeros(0, dtype=np.int64)
    if len(mesh.faces):
        edges = np.sort(mesh.edges, axis=1)
        _, counts = np.unique(edges, axis=0, return_counts=True)
    info['edges'] = int(len(counts))
    info['boundary_edges'] = int(np.sum(counts == 1))

    return info
