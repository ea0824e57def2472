"""
Mesh container for scanned surfaces.

`ColorMesh` keeps positions, normals, triangle indices and the optional
per-vertex packed colors together in one value. Every processing step in
`blockmesh` takes a `ColorMesh` and returns a new one, so a mesh and its
colors are always derived in lockstep and can never drift apart in length or
order. ``colors is None`` means color capture is disabled for the pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import trimesh

from .color import pack_channels, unpack_channels

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

AXES = {"x": 0, "y": 1, "z": 2}

# Sensor frame -> display frame: Y and Z are sign-flipped
SENSOR_FLIP = np.array([1.0, -1.0, -1.0], dtype=np.float64)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extrema of a mesh."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float
    max_z: float

    @staticmethod
    def from_points(points: np.ndarray) -> "BoundingBox":
        P = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if P.shape[0] == 0:
            raise ValueError("Cannot compute bounds of an empty point set")
        lo = P.min(axis=0)
        hi = P.max(axis=0)
        return BoundingBox(
            float(lo[0]), float(hi[0]), float(lo[1]), float(hi[1]), float(lo[2]), float(hi[2])
        )

    def axis_range(self, axis: str) -> Tuple[float, float]:
        if axis not in AXES:
            raise ValueError("axis must be 'x', 'y' or 'z'")
        return self.as_dict()[axis]

    def as_dict(self) -> Dict[str, Tuple[float, float]]:
        return {
            "x": (self.min_x, self.max_x),
            "y": (self.min_y, self.max_y),
            "z": (self.min_z, self.max_z),
        }

    @property
    def extents(self) -> np.ndarray:
        return np.array(
            [self.max_x - self.min_x, self.max_y - self.min_y, self.max_z - self.min_z],
            dtype=np.float64,
        )


@dataclass
class ColorMesh:
    """
    Triangle mesh with optional per-vertex packed colors.

    Attributes:
        positions: (N, 3) float64 vertex positions
        normals: (N, 3) float64 vertex normals, aligned with positions
        faces: (M, 3) int64 vertex indices
        colors: (N,) uint32 packed 0xRRGGBB colors, or None when color
            capture is disabled
    """

    positions: np.ndarray
    normals: np.ndarray
    faces: np.ndarray
    colors: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
        n = self.positions.shape[0]
        if self.normals is None:
            self.normals = np.zeros((n, 3), dtype=np.float64)
        self.normals = np.asarray(self.normals, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)
        if self.normals.shape[0] != n:
            raise ValueError(
                f"normals length {self.normals.shape[0]} does not match vertex count {n}"
            )
        if self.colors is not None:
            colors = np.asarray(self.colors, dtype=np.int64).reshape(-1)
            if colors.size and (colors.min() < 0 or colors.max() > 0xFFFFFF):
                raise ValueError("Vertex colors must be packed 0xRRGGBB values in 0..0xFFFFFF")
            self.colors = colors.astype(np.uint32)
            if self.colors.shape[0] != n:
                raise ValueError(
                    f"colors length {self.colors.shape[0]} does not match vertex count {n}"
                )
        if self.faces.size and (self.faces.min() < 0 or self.faces.max() >= n):
            raise ValueError("Triangle index out of range for vertex count %d" % n)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @staticmethod
    def from_arrays(
        vertices: np.ndarray,
        normals: Optional[np.ndarray],
        triangles: np.ndarray,
        colors: Optional[np.ndarray] = None,
    ) -> "ColorMesh":
        """
        Build a mesh from parallel arrays.

        `triangles` may be an (M, 3) array or a flat sequence of 3*M indices.
        """
        tri = np.asarray(triangles, dtype=np.int64).reshape(-1)
        if tri.size % 3 != 0:
            raise ValueError(f"Triangle index count {tri.size} is not a multiple of 3")
        return ColorMesh(positions=vertices, normals=normals, faces=tri.reshape(-1, 3), colors=colors)

    @staticmethod
    def from_sensor(
        vertices: np.ndarray,
        normals: np.ndarray,
        triangles: np.ndarray,
        colors: Optional[np.ndarray] = None,
    ) -> "ColorMesh":
        """
        Ingest a mesh in the sensor coordinate frame.

        Y and Z of both positions and normals are sign-flipped to match the
        display convention.
        """
        V = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        N = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
        if N.shape[0] != V.shape[0]:
            raise ValueError(
                f"normals length {N.shape[0]} does not match vertex count {V.shape[0]}"
            )
        return ColorMesh.from_arrays(V * SENSOR_FLIP, N * SENSOR_FLIP, triangles, colors)

    @staticmethod
    def empty(with_colors: bool = False) -> "ColorMesh":
        return ColorMesh(
            positions=np.zeros((0, 3)),
            normals=np.zeros((0, 3)),
            faces=np.zeros((0, 3), dtype=np.int64),
            colors=np.zeros(0, dtype=np.uint32) if with_colors else None,
        )

    # ------------------------------------------------------------------
    # Basic properties
    # ------------------------------------------------------------------
    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def face_count(self) -> int:
        return int(self.faces.shape[0])

    @property
    def has_colors(self) -> bool:
        return self.colors is not None

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0

    def copy(self) -> "ColorMesh":
        return ColorMesh(
            positions=self.positions.copy(),
            normals=self.normals.copy(),
            faces=self.faces.copy(),
            colors=None if self.colors is None else self.colors.copy(),
        )

    def without_colors(self) -> "ColorMesh":
        return ColorMesh(self.positions, self.normals, self.faces, None)

    def bounds(self) -> BoundingBox:
        return BoundingBox.from_points(self.positions)

    def centroid(self) -> np.ndarray:
        """Mean of the vertex positions."""
        if self.is_empty:
            raise ValueError("Empty mesh has no centroid")
        return self.positions.mean(axis=0)

    # ------------------------------------------------------------------
    # Normals
    # ------------------------------------------------------------------
    def face_normals(self) -> np.ndarray:
        """Unit normals from triangle winding; degenerate faces get zeros."""
        if self.face_count == 0:
            return np.zeros((0, 3), dtype=np.float64)
        crosses = trimesh.triangles.cross(self.positions[self.faces])
        return trimesh.util.unitize(crosses)

    def with_flat_normals(self) -> "ColorMesh":
        """
        Copy of this mesh with normals recomputed from face geometry.

        Each vertex normal is the area-weighted mean of its incident face
        normals. Vertices not used by any face get a zero normal.
        """
        normals = np.zeros_like(self.positions)
        if self.face_count:
            crosses = trimesh.triangles.cross(self.positions[self.faces])
            for k in range(3):
                np.add.at(normals, self.faces[:, k], crosses)
            normals = trimesh.util.unitize(normals)
        return ColorMesh(
            self.positions.copy(),
            normals,
            self.faces.copy(),
            None if self.colors is None else self.colors.copy(),
        )

    # ------------------------------------------------------------------
    # Interop
    # ------------------------------------------------------------------
    def to_trimesh(self) -> trimesh.Trimesh:
        """Convert to `trimesh.Trimesh` without merging or reordering anything."""
        kwargs = {}
        if self.colors is not None:
            rgb = unpack_channels(self.colors)
            alpha = np.full((rgb.shape[0], 1), 255, dtype=np.uint8)
            kwargs["vertex_colors"] = np.hstack([rgb, alpha])
        return trimesh.Trimesh(
            vertices=self.positions.copy(),
            faces=self.faces.copy(),
            vertex_normals=self.normals.copy(),
            process=False,
            **kwargs,
        )

    @staticmethod
    def from_trimesh(mesh: trimesh.Trimesh, with_colors: bool = True) -> "ColorMesh":
        if not isinstance(mesh, trimesh.Trimesh):
            raise TypeError(f"Expected trimesh.Trimesh, got {type(mesh)}")
        colors = None
        if with_colors:
            visual = getattr(mesh, "visual", None)
            if visual is not None and getattr(visual, "kind", None) == "vertex":
                colors = pack_channels(np.asarray(visual.vertex_colors)[:, :3])
            else:
                colors = np.full(len(mesh.vertices), 0xFFFFFF, dtype=np.uint32)
        return ColorMesh(
            positions=np.asarray(mesh.vertices, dtype=np.float64),
            normals=np.asarray(mesh.vertex_normals, dtype=np.float64),
            faces=np.asarray(mesh.faces, dtype=np.int64),
            colors=colors,
        )

    def __repr__(self) -> str:
        return (
            f"ColorMesh(vertices={self.vertex_count}, faces={self.face_count}, "
            f"colors={'yes' if self.has_colors else 'no'})"
        )
