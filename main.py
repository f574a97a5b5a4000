"""
QEM Mesh Simplification - Command Line
======================================

Loads a mesh (or builds a sample one), simplifies it with Quadric Error
Metrics edge contraction, optionally evaluates the result and writes the
simplified mesh to disk.
"""

import argparse
import sys
import time
from pathlib import Path

from quadric_simplify import MeshDecimator, MeshEvaluator, SimplificationConfig, configure_logging
from quadric_simplify.utils import (
    SAMPLE_MESHES,
    create_sample_mesh,
    get_mesh_info,
    load_mesh,
    save_mesh,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Mesh simplification using Quadric Error Metrics (QEM)"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--mesh", "-m", type=str, default=None,
        help="Path to input mesh file"
    )
    source.add_argument(
        "--sample", "-s", choices=SAMPLE_MESHES, default="sphere",
        help="Sample mesh to use when no --mesh is given (default: sphere)"
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--target-faces", "-t", type=int, default=None,
        help="Target number of faces"
    )
    target.add_argument(
        "--ratio", "-r", type=float, default=None,
        help="Target ratio of faces to keep, e.g. 0.25"
    )
    parser.add_argument(
        "--min-faces", type=int, default=4,
        help="Face-count floor (default: 4)"
    )
    parser.add_argument(
        "--max-contractions", type=int, default=None,
        help="Safety bound on contraction attempts"
    )
    parser.add_argument(
        "--no-weld", action="store_true",
        help="Do not merge coincident input vertices"
    )
    parser.add_argument(
        "--output", "-o", type=str, default=None,
        help="Output mesh path (format from extension, e.g. .ply, .obj)"
    )
    parser.add_argument(
        "--evaluate", "-e", action="store_true",
        help="Compute Hausdorff/Chamfer metrics against the input"
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        help="Logging level for the simplifier (default: WARNING)"
    )
    return parser


def print_mesh_info(info: dict):
    print(f"  Vertices:       {info['vertices']}")
    print(f"  Faces:          {info['faces']}")
    print(f"  Boundary edges: {info['boundary_edges']}")
    print(f"  Watertight:     {'Yes' if info['is_watertight'] else 'No'}")


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = SimplificationConfig(
            min_faces=args.min_faces,
            target_faces=args.target_faces,
            target_ratio=args.ratio,
            max_contractions=args.max_contractions,
            weld_vertices=not args.no_weld,
        )
    except ValueError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 2

    print("=" * 60)
    print("MESH SIMPLIFICATION")
    print("Using Quadric Error Metrics (QEM)")
    print("=" * 60)

    if args.mesh:
        print(f"\nLoading mesh from: {args.mesh}")
        mesh = load_mesh(args.mesh)
    else:
        print(f"\nNo mesh specified, creating sample mesh: {args.sample}")
        mesh = create_sample_mesh(args.sample)

    print_mesh_info(get_mesh_info(mesh))

    decimator = MeshDecimator(config)
    start_time = time.time()
    result = decimator.decimate(mesh)
    runtime = time.time() - start_time

    print(f"\n{result.summary()}")
    print(f"  Runtime:  {runtime:.3f}s")
    print_mesh_info(get_mesh_info(result.mesh))

    if args.evaluate:
        evaluator = MeshEvaluator(seed=0)
        metrics = evaluator.compute_all_metrics(mesh, result.mesh)
        metrics['runtime'] = runtime
        print("\n" + evaluator.generate_report(metrics, "QEM"))

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        save_mesh(result.mesh, output_path)
        print(f"Saved: {output_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
