import numpy as np
import trimesh

from main import main
from quadric_simplify.utils import (
    create_grid_surface,
    create_octahedron,
    get_mesh_info,
    load_mesh,
    save_mesh,
)


def test_simplifies_sample_mesh_and_saves(tmp_path, capsys):
    output = tmp_path / "out" / "octahedron.ply"
    assert main(["--sample", "octahedron", "--output", str(output)]) == 0

    assert output.exists()
    saved = trimesh.load(output, process=False)
    assert len(saved.faces) == 4
    out = capsys.readouterr().out
    assert "MESH SIMPLIFICATION" in out
    assert "target_reached" in out
    assert "Watertight:     Yes" in out


def test_loads_mesh_from_file(tmp_path, capsys):
    path = tmp_path / "input.obj"
    save_mesh(create_octahedron(), path)

    assert main(["--mesh", str(path), "--target-faces", "6", "--evaluate"]) == 0
    out = capsys.readouterr().out
    assert "Hausdorff Distance" in out


def test_invalid_options_exit_with_error(capsys):
    assert main(["--sample", "octahedron", "--min-faces", "0"]) == 2
    assert "Invalid options" in capsys.readouterr().err


def test_load_mesh_uses_file_stem(tmp_path):
    path = tmp_path / "shape.ply"
    save_mesh(create_octahedron(), path)
    mesh = load_mesh(path)
    assert mesh.name == "shape"
    assert mesh.face_count == 8
    assert np.all(np.isfinite(mesh.vertices))


def test_mesh_info_reports_topology(octahedron):
    info = get_mesh_info(octahedron)
    assert info['vertices'] == 6
    assert info['faces'] == 8
    assert info['edges'] == 12
    assert info['boundary_edges'] == 0
    assert info['is_watertight']
    assert info['volume'] > 0.0

    open_info = get_mesh_info(create_grid_surface(rows=4, cols=4))
    assert open_info['boundary_edges'] == 12
    assert not open_info['is_watertight']
    assert open_info['volume'] is None
