"""
Recombination of display blocks into one exportable mesh.

All segment meshes are placed in world space, concatenated with their
triangle indices offset by a running vertex base, and passed through the
deduplicator once more: adjacent blocks share the vertices their common cut
produced, and those are merged back together here.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import trimesh

from .color import unpack_channels
from .dedupe import deduplicate
from .mesh import ColorMesh
from .segmentation import Segment

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass
class FlatMesh:
    """
    Flat exportable mesh, with no metadata attached.

    Attributes:
        vertices: (N, 3) float32 positions
        normals: (N, 3) float32 normals
        colors: (N,) uint32 packed colors, or None when color was not captured
        triangle_indices: (3M,) int32, three consecutive indices per triangle
    """

    vertices: np.ndarray
    normals: np.ndarray
    colors: Optional[np.ndarray]
    triangle_indices: np.ndarray

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def triangle_count(self) -> int:
        return int(self.triangle_indices.shape[0] // 3)

    def faces(self) -> np.ndarray:
        return self.triangle_indices.reshape(-1, 3)

    @staticmethod
    def from_mesh(mesh: ColorMesh) -> "FlatMesh":
        return FlatMesh(
            vertices=mesh.positions.astype(np.float32),
            normals=mesh.normals.astype(np.float32),
            colors=None if mesh.colors is None else mesh.colors.astype(np.uint32),
            triangle_indices=mesh.faces.reshape(-1).astype(np.int32),
        )

    def to_trimesh(self) -> trimesh.Trimesh:
        """Hand-off for serialization (e.g. ``flat.to_trimesh().export("scan.ply")``)."""
        kwargs = {}
        if self.colors is not None:
            rgb = unpack_channels(self.colors)
            kwargs["vertex_colors"] = np.hstack(
                [rgb, np.full((rgb.shape[0], 1), 255, dtype=np.uint8)]
            )
        return trimesh.Trimesh(
            vertices=self.vertices.astype(np.float64),
            faces=self.faces().astype(np.int64),
            vertex_normals=self.normals.astype(np.float64),
            process=False,
            **kwargs,
        )


def merge_segments(segments: Iterable[Segment], capture_color: bool = True) -> ColorMesh:
    """
    Concatenate the world-space meshes of `segments` without merging anything.

    Raises:
        TypeError: if an item is not a Segment
        ValueError: if `capture_color` is set and a segment has no colors
    """
    positions: List[np.ndarray] = []
    normals: List[np.ndarray] = []
    faces: List[np.ndarray] = []
    colors: List[np.ndarray] = []
    base = 0
    for seg in segments:
        if not isinstance(seg, Segment):
            raise TypeError(f"Expected Segment, got {type(seg)}")
        m = seg.world_mesh()
        if capture_color and m.colors is None:
            raise ValueError(f"Segment {seg.id!r} has no vertex colors but color capture is on")
        positions.append(m.positions)
        normals.append(m.normals)
        faces.append(m.faces + base)
        if capture_color:
            colors.append(m.colors)
        base += m.vertex_count

    if not positions:
        return ColorMesh.empty(with_colors=capture_color)
    return ColorMesh(
        np.vstack(positions),
        np.vstack(normals),
        np.vstack(faces),
        np.concatenate(colors) if capture_color else None,
    )


def export_segments(
    segments: Iterable[Segment],
    capture_color: bool = True,
    tolerance: float = 0.0,
) -> FlatMesh:
    """
    Combine all segments into one deduplicated FlatMesh.

    Args:
        segments: Display blocks to export, in any order
        capture_color: Carry per-vertex colors; every segment must have them
        tolerance: Vertex merge tolerance passed to the deduplicator

    Returns:
        FlatMesh ready for serialization.
    """
    t0 = time.perf_counter()
    logger.info("Starting to export mesh")
    merged = merge_segments(segments, capture_color=capture_color)
    logger.info(
        "Combined %d vertices, %d triangles (%.3fs)",
        merged.vertex_count,
        merged.face_count,
        time.perf_counter() - t0,
    )
    t1 = time.perf_counter()
    merged = deduplicate(merged, tolerance=tolerance)
    logger.info("Optimized export mesh (%.3fs)", time.perf_counter() - t1)
    return FlatMesh.from_mesh(merged)
