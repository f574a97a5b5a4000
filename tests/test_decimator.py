import subprocess
import sys
import textwrap
from pathlib import Path

import numpy as np
import pytest
import trimesh

from quadric_simplify import (
    DecimatorState,
    MeshDecimator,
    SimplificationConfig,
    TerminationReason,
    simplify,
)
from quadric_simplify.halfedge import HalfEdgeMesh, IndexedMesh
from quadric_simplify.qem import MissingQuadricError
from quadric_simplify.utils import to_trimesh


def run_checked(decimator, graph, target_faces):
    """Step manually, verifying the bookkeeping after every attempt."""
    decimator.initialize(graph)
    decimator.check_invariants()
    while decimator.state is DecimatorState.CONTRACTING and graph.face_count() > target_faces:
        decimator.step()
        decimator.check_invariants()


def test_octahedron_reduces_to_tetrahedron(octahedron):
    result = MeshDecimator().decimate(octahedron)

    assert result.reason is TerminationReason.TARGET_REACHED
    assert result.mesh.face_count == 4
    assert result.mesh.vertex_count == 4
    assert result.contractions == 2
    assert result.faces_removed == 4
    assert to_trimesh(result.mesh).is_watertight
    assert "stopped: target_reached" in result.summary()


def test_each_contraction_takes_the_cheapest_candidate(sphere):
    decimator = MeshDecimator()
    graph = HalfEdgeMesh.from_indexed(sphere)
    decimator.initialize(graph)

    for _ in range(100):
        cheapest = min(c.cost for c in decimator.candidates)
        record = decimator.step()
        if record is not None:
            assert record.cost == pytest.approx(cheapest)


def test_bookkeeping_stays_consistent_on_closed_mesh():
    graph = HalfEdgeMesh.from_trimesh(trimesh.creation.icosphere(subdivisions=1))
    decimator = MeshDecimator()
    run_checked(decimator, graph, target_faces=20)
    assert decimator.contractions > 0
    assert graph.face_count() < 80


def test_bookkeeping_stays_consistent_on_open_mesh(grid):
    graph = HalfEdgeMesh.from_indexed(grid)
    decimator = MeshDecimator()
    run_checked(decimator, graph, target_faces=30)
    assert decimator.contractions > 0


def test_face_count_decreases_and_respects_floor(grid):
    config = SimplificationConfig(min_faces=10)
    result = MeshDecimator(config).decimate(grid, target_faces=0)

    faces = [grid.face_count] + [r.faces_after for r in result.history]
    steps = np.diff(faces)
    assert np.all((steps == -1) | (steps == -2))
    assert result.mesh.face_count >= 10
    assert all(r.faces_after >= 10 for r in result.history)


def test_results_are_deterministic(sphere):
    first = MeshDecimator().decimate(sphere, target_faces=200)
    second = MeshDecimator().decimate(sphere, target_faces=200)

    assert [r.edge for r in first.history] == [r.edge for r in second.history]
    assert [r.cost for r in first.history] == [r.cost for r in second.history]
    np.testing.assert_array_equal(first.mesh.vertices, second.mesh.vertices)
    np.testing.assert_array_equal(first.mesh.faces, second.mesh.faces)


def test_target_ratio_on_sphere(sphere):
    result = MeshDecimator().decimate(sphere, target_ratio=0.25)
    assert result.target_faces == 320
    assert result.reason is TerminationReason.TARGET_REACHED
    # every contraction on a closed surface removes two faces
    assert result.mesh.face_count == 320
    assert to_trimesh(result.mesh).is_watertight


def test_accepts_trimesh_input():
    mesh = trimesh.creation.icosphere(subdivisions=2)
    result = MeshDecimator().decimate(mesh, target_ratio=0.5)
    assert result.initial_faces == 320
    assert result.mesh.face_count == 160
    assert isinstance(result.to_trimesh(), trimesh.Trimesh)


def test_rejects_unsupported_input():
    with pytest.raises(TypeError):
        MeshDecimator().decimate("not a mesh")


def test_degenerate_input_produces_finite_output():
    vertices = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0], [0, 0, 0]], dtype=float)
    faces = np.array([[0, 1, 2], [0, 2, 3], [0, 4, 1]])
    config = SimplificationConfig(min_faces=1, weld_vertices=False)
    decimator = MeshDecimator(config)
    result = decimator.decimate(IndexedMesh(vertices, faces))

    assert result.mesh.face_count >= 1
    assert np.all(np.isfinite(result.mesh.vertices))
    assert all(np.isfinite(r.cost) for r in result.history)
    decimator.check_invariants()


def test_mesh_at_target_is_returned_unchanged(tetrahedron):
    result = MeshDecimator().decimate(tetrahedron)

    assert result.reason is TerminationReason.ALREADY_AT_TARGET
    assert result.contractions == 0
    assert result.mesh is not tetrahedron
    np.testing.assert_array_equal(result.mesh.vertices, tetrahedron.vertices)
    np.testing.assert_array_equal(result.mesh.faces, tetrahedron.faces)


def test_stops_when_no_contraction_is_valid(tetrahedron):
    config = SimplificationConfig(min_faces=1)
    result = MeshDecimator(config).decimate(tetrahedron)

    assert result.reason is TerminationReason.NO_CANDIDATES
    assert result.contractions == 0
    assert result.rejected == 6
    assert result.mesh.face_count == 4


def test_max_contractions_bounds_attempts(sphere):
    config = SimplificationConfig(max_contractions=3)
    result = MeshDecimator(config).decimate(sphere, target_faces=100)

    assert result.reason is TerminationReason.MAX_CONTRACTIONS
    assert result.attempts == 3
    assert result.mesh.face_count < sphere.face_count


def test_cancellation_leaves_consistent_state(sphere):
    calls = []

    def should_stop():
        calls.append(1)
        return len(calls) > 5

    decimator = MeshDecimator()
    result = decimator.decimate(sphere, target_faces=100, should_stop=should_stop)

    assert result.reason is TerminationReason.CANCELLED
    assert decimator.state is DecimatorState.TERMINATED
    assert result.attempts == 5
    decimator.check_invariants()


def test_progress_is_reported(sphere):
    progress = []
    MeshDecimator().decimate(sphere, target_faces=320, progress_callback=progress.append)

    assert progress
    assert all(0.0 <= p <= 1.0 for p in progress)
    assert progress == sorted(progress)


def test_history_can_be_disabled(octahedron):
    result = MeshDecimator(SimplificationConfig(record_history=False)).decimate(octahedron)
    assert result.contractions == 2
    assert result.history == []


def test_vertex_errors_match_output(sphere):
    decimator = MeshDecimator()
    result = decimator.decimate(sphere, target_faces=400)
    errors = decimator.get_vertex_errors()

    assert errors.shape == (result.mesh.vertex_count,)
    assert np.all(errors >= 0.0)
    assert errors.max() > 0.0


def test_missing_quadric_fails_loudly(octahedron_graph):
    decimator = MeshDecimator()
    decimator.initialize(octahedron_graph)
    candidate = decimator.candidates.peek()
    decimator.quadrics.remove(candidate.v1)

    with pytest.raises(MissingQuadricError):
        decimator.step()


def test_check_invariants_detects_stale_quadric(octahedron_graph):
    decimator = MeshDecimator()
    decimator.initialize(octahedron_graph)
    decimator.quadrics.update(0, np.zeros((4, 4)))

    with pytest.raises(AssertionError):
        decimator.check_invariants()


def test_run_requires_initialization():
    with pytest.raises(RuntimeError):
        MeshDecimator().run(10)


def test_step_after_termination_raises(tetrahedron):
    decimator = MeshDecimator(SimplificationConfig(min_faces=1))
    decimator.decimate(tetrahedron)
    with pytest.raises(RuntimeError):
        decimator.step()


def test_simplify_function(sphere):
    out = simplify(sphere.vertices, sphere.faces, target_faces=200)
    assert isinstance(out, IndexedMesh)
    assert out.face_count == 200
    assert out.name == "Simplified mesh"

    out = simplify(sphere.vertices, sphere.faces,
                   config=SimplificationConfig(output_name="low"), target_ratio=0.5)
    assert out.face_count == 640
    assert out.name == "low"


def test_missing_neighbour_quadric_fails_loudly(octahedron_graph):
    decimator = MeshDecimator()
    decimator.initialize(octahedron_graph)
    candidate = decimator.candidates.peek()
    apex = octahedron_graph.head(octahedron_graph.next(candidate.edge_key))
    decimator.quadrics.remove(apex)

    with pytest.raises(MissingQuadricError):
        decimator.step()


def test_check_invariants_runs_under_optimized_python():
    script = textwrap.dedent("""
        import numpy as np
        from quadric_simplify import HalfEdgeMesh, MeshDecimator
        from quadric_simplify.utils import create_octahedron

        decimator = MeshDecimator()
        decimator.initialize(HalfEdgeMesh.from_indexed(create_octahedron()))
        decimator.quadrics.update(0, np.zeros((4, 4)))
        try:
            decimator.check_invariants()
        except AssertionError:
            raise SystemExit(0)
        raise SystemExit(1)
    """)
    completed = subprocess.run([sys.executable, "-O", "-c", script],
                               cwd=Path(__file__).resolve().parents[1])
    assert completed.returncode == 0
