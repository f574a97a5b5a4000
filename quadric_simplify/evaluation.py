"""
Mesh Evaluation Module
======================

Quantitative evaluation of a simplification result:
- Hausdorff distance
- Chamfer distance
- Vertex/Face count statistics
- Surface area change
- Boundary preservation
"""

from typing import Dict, Optional, Tuple, Union

import numpy as np
import trimesh
from scipy.spatial import cKDTree

from .halfedge import IndexedMesh
from .utils import to_trimesh

MeshLike = Union[IndexedMesh, trimesh.Trimesh]


def _as_trimesh(mesh: MeshLike) -> trimesh.Trimesh:
    return to_trimesh(mesh) if isinstance(mesh, IndexedMesh) else mesh


class MeshEvaluator:
    """
    Evaluation tools for assessing mesh simplification quality.

    Surface distances are estimated from uniformly sampled surface points,
    so results vary slightly between runs unless a seed is given.
    """

    def __init__(self, sample_points: int = 10000, seed: Optional[int] = None):
        """
        Initialize evaluator.

        Args:
            sample_points: Number of points to sample for distance metrics
            seed: Seed for surface sampling
        """
        if sample_points <= 0:
            raise ValueError(f"sample_points must be positive, got {sample_points}")
        self.sample_points = sample_points
        self.seed = seed

    def _sample(self, mesh: trimesh.Trimesh) -> np.ndarray:
        if len(mesh.faces) == 0 or mesh.area <= 0:
            return np.asarray(mesh.vertices)
        points, _ = trimesh.sample.sample_surface(mesh, self.sample_points, seed=self.seed)
        return points

    def _nearest_distances(self, mesh1: MeshLike,
                           mesh2: MeshLike) -> Tuple[np.ndarray, np.ndarray]:
        points1 = self._sample(_as_trimesh(mesh1))
        points2 = self._sample(_as_trimesh(mesh2))
        if len(points1) == 0 or len(points2) == 0:
            raise ValueError("Cannot compare meshes without vertices")

        forward, _ = cKDTree(points2).query(points1)
        backward, _ = cKDTree(points1).query(points2)
        return forward, backward

    def hausdorff_distance(self, mesh1: MeshLike,
                           mesh2: MeshLike) -> Tuple[float, float, float]:
        """
        Compute symmetric Hausdorff distance between two meshes.

        Returns:
            Tuple of (symmetric_hausdorff, forward, backward) distances
        """
        forward, backward = self._nearest_distances(mesh1, mesh2)
        hausdorff_forward = float(np.max(forward))
        hausdorff_backward = float(np.max(backward))
        return max(hausdorff_forward, hausdorff_backward), hausdorff_forward, hausdorff_backward

    def chamfer_distance(self, mesh1: MeshLike, mesh2: MeshLike) -> float:
        """Symmetric Chamfer distance: sum of mean squared nearest-neighbour distances."""
        forward, backward = self._nearest_distances(mesh1, mesh2)
        return float(np.mean(forward ** 2) + np.mean(backward ** 2))

    def area_metrics(self, original: MeshLike, simplified: MeshLike) -> Dict[str, float]:
        original, simplified = _as_trimesh(original), _as_trimesh(simplified)
        original_area = float(original.area)
        simplified_area = float(simplified.area)
        return {
            'original_area': original_area,
            'simplified_area': simplified_area,
            'area_error': abs(simplified_area - original_area) / max(original_area, 1e-10),
        }

    def boundary_metrics(self, original: MeshLike, simplified: MeshLike) -> Dict[str, float]:
        """
        Compute metrics for boundary preservation.

        Returns:
            Dictionary of boundary edge counts, lengths and watertightness
        """
        original, simplified = _as_trimesh(original), _as_trimesh(simplified)
        orig_count, orig_length = self._boundary_stats(original)
        simp_count, simp_length = self._boundary_stats(simplified)

        return {
            'original_boundary_edges': orig_count,
            'simplified_boundary_edges': simp_count,
            'original_boundary_length': orig_length,
            'simplified_boundary_length': simp_length,
            'boundary_length_change': (abs(simp_length - orig_length) / orig_length
                                       if orig_length > 0 else 0.0),
            'original_is_watertight': int(original.is_watertight),
            'simplified_is_watertight': int(simplified.is_watertight),
        }

    @staticmethod
    def _boundary_stats(mesh: trimesh.Trimesh) -> Tuple[int, float]:
        if len(mesh.faces) == 0:
            return 0, 0.0
        edges = np.sort(mesh.edges, axis=1)
        unique, counts = np.unique(edges, axis=0, return_counts=True)
        boundary = unique[counts == 1]
        if len(boundary) == 0:
            return 0, 0.0
        vertices = np.asarray(mesh.vertices)
        lengths = np.linalg.norm(vertices[boundary[:, 1]] - vertices[boundary[:, 0]], axis=1)
        return int(len(boundary)), float(lengths.sum())

    def compute_all_metrics(self, original: MeshLike,
                            simplified: MeshLike) -> Dict[str, float]:
        """
        Compute all available metrics.

        Args:
            original: Original high-resolution mesh
            simplified: Simplified mesh

        Returns:
            Dictionary of metric names to values
        """
        original, simplified = _as_trimesh(original), _as_trimesh(simplified)
        metrics = {
            'original_faces': len(original.faces),
            'simplified_faces': len(simplified.faces),
            'original_vertices': len(original.vertices),
            'simplified_vertices': len(simplified.vertices),
            'face_reduction_ratio': len(simplified.faces) / max(len(original.faces), 1),
            'vertex_reduction_ratio': len(simplified.vertices) / max(len(original.vertices), 1),
        }

        forward, backward = self._nearest_distances(original, simplified)
        metrics['hausdorff_forward'] = float(np.max(forward))
        metrics['hausdorff_backward'] = float(np.max(backward))
        metrics['hausdorff_distance'] = max(metrics['hausdorff_forward'],
                                            metrics['hausdorff_backward'])
        metrics['chamfer_distance'] = float(np.mean(forward ** 2) + np.mean(backward ** 2))

        metrics.update(self.area_metrics(original, simplified))
        metrics.update(self.boundary_metrics(original, simplified))
        return metrics

    def generate_report(self, metrics: Dict[str, float],
                        method_name: str = "QEM") -> str:
        """
        Generate a human-readable evaluation report.

        Args:
            metrics: Dictionary from compute_all_metrics
            method_name: Label for the report header

        Returns:
            Formatted report string
        """
        lines = [
            "=" * 60,
            f"Mesh Simplification Report - {method_name}",
            "=" * 60,
            "",
            "MESH STATISTICS",
            "-" * 40,
            f"  Original:    {metrics.get('original_faces', 'N/A'):>8} faces, "
            f"{metrics.get('original_vertices', 'N/A'):>8} vertices",
            f"  Simplified:  {metrics.get('simplified_faces', 'N/A'):>8} faces, "
            f"{metrics.get('simplified_vertices', 'N/A'):>8} vertices",
            f"  Reduction:   {metrics.get('face_reduction_ratio', 0) * 100:>7.2f}% of original faces",
            "",
            "GEOMETRIC ACCURACY",
            "-" * 40,
            f"  Hausdorff Distance:    {metrics.get('hausdorff_distance', np.nan):>12.6f}",
            f"    Forward:             {metrics.get('hausdorff_forward', np.nan):>12.6f}",
            f"    Backward:            {metrics.get('hausdorff_backward', np.nan):>12.6f}",
            f"  Chamfer Distance:      {metrics.get('chamfer_distance', np.nan):>12.6f}",
            f"  Area Error:            {metrics.get('area_error', 0) * 100:>11.4f}%",
            "",
            "BOUNDARY PRESERVATION",
            "-" * 40,
            f"  Original Boundaries:   {metrics.get('original_boundary_edges', 0):>8} edges",
            f"  Simplified Boundaries: {metrics.get('simplified_boundary_edges', 0):>8} edges",
            f"  Length Change:         {metrics.get('boundary_length_change', 0) * 100:>11.4f}%",
            f"  Simplified Watertight: {'Yes' if metrics.get('simplified_is_watertight') else 'No'}",
            "",
            "=" * 60,
        ]

        if 'runtime' in metrics:
            lines.insert(-1, f"  Runtime:               {metrics['runtime']:>11.4f} seconds")

        return "\n".join(lines)
