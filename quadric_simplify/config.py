"""
Simplification Configuration
============================

Stopping criteria and output options for a decimation run.
"""

from dataclasses import dataclass, replace
from typing import Optional

# A closed triangular manifold cannot have fewer faces than a tetrahedron.
DEFAULT_MIN_FACES = 4


@dataclass(frozen=True)
class SimplificationConfig:
    """
    Options recognised by :class:`~quadric_simplify.mesh_decimator.MeshDecimator`.

    Attributes:
        min_faces: Face-count floor; no contraction may go below it.
        target_faces: Stop once the face count is at or below this value.
        target_ratio: Fraction of the input faces to keep (0, 1].
                      Mutually exclusive with ``target_faces``.
        max_contractions: Safety bound on contraction attempts
                          (``None`` = unbounded).
        weld_vertices: Merge coincident input positions into one vertex.
        record_history: Keep a record of every contraction performed.
        output_name: Name given to the output mesh.
        share_vertices: Deduplicate vertices in the output index buffer.
    """
    min_faces: int = DEFAULT_MIN_FACES
    target_faces: Optional[int] = None
    target_ratio: Optional[float] = None
    max_contractions: Optional[int] = None
    weld_vertices: bool = True
    record_history: bool = True
    output_name: str = "Simplified mesh"
    share_vertices: bool = True

    def __post_init__(self):
        if isinstance(self.min_faces, bool) or not isinstance(self.min_faces, int):
            raise ValueError(f"min_faces must be an integer, got {self.min_faces!r}")
        if self.min_faces < 1:
            raise ValueError(f"min_faces must be >= 1, got {self.min_faces}")

        if self.target_faces is not None and self.target_ratio is not None:
            raise ValueError("Specify either target_faces or target_ratio, not both")
        if self.target_faces is not None and self.target_faces < 0:
            raise ValueError(f"target_faces must be >= 0, got {self.target_faces}")
        if self.target_ratio is not None and not 0.0 < self.target_ratio <= 1.0:
            raise ValueError(f"target_ratio must be in (0, 1], got {self.target_ratio}")

        if self.max_contractions is not None and self.max_contractions < 0:
            raise ValueError(f"max_contractions must be >= 0, got {self.max_contractions}")

    def resolve_target(self, initial_faces: int) -> int:
        """
        Face count at which the run stops, never below ``min_faces``.

        Args:
            initial_faces: Face count of the input mesh

        Returns:
            Target face count
        """
        if self.target_faces is not None:
            target = self.target_faces
        elif self.target_ratio is not None:
            target = int(initial_faces * self.target_ratio)
        else:
            target = self.min_faces
        return max(self.min_faces, target)

    def with_overrides(self, **overrides) -> "SimplificationConfig":
        """Return a copy with the given fields replaced (``None`` values are ignored)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        # Setting one target clears the other so overrides never conflict.
        if "target_faces" in changes:
            changes.setdefault("target_ratio", None)
        elif "target_ratio" in changes:
            changes.setdefault("target_faces", None)
        return replace(self, **changes)
