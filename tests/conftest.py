import logging

import numpy as np
import pytest

from quadric_simplify.halfedge import HalfEdgeMesh, IndexedMesh
from quadric_simplify.logging_utils import ROOT_LOGGER_NAME
from quadric_simplify.utils import (
    create_grid_surface,
    create_octahedron,
    create_sample_mesh,
    create_tetrahedron,
)


@pytest.fixture
def octahedron():
    return create_octahedron()


@pytest.fixture
def tetrahedron():
    return create_tetrahedron()


@pytest.fixture
def sphere():
    return create_sample_mesh("sphere")


@pytest.fixture
def grid():
    return create_grid_surface(rows=8, cols=8, noise=0.01, seed=3)


@pytest.fixture
def two_triangles():
    # unit square split along its diagonal; open surface
    vertices = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=float)
    faces = np.array([[0, 1, 2], [0, 2, 3]])
    return IndexedMesh(vertices, faces, name="square")


@pytest.fixture
def octahedron_graph(octahedron):
    return HalfEdgeMesh.from_indexed(octahedron)


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    # configure_logging() detaches the package logger from the root; undo it
    # so caplog keeps seeing records in later tests
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if not isinstance(handler, logging.NullHandler):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True
