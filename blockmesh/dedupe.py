"""
Removal of duplicate vertices and triangles.

Vertex pass: vertices at the same position collapse onto the first one seen.
The comparison is exact by default (x, y and z all equal), which keeps sharp
seams intact; a positive `tolerance` instead buckets positions onto a grid of
that pitch. Normals and colors of the surviving vertex are the ones from its
first occurrence.

Triangle pass: indices are remapped through the vertex pass; triangles with
two equal indices are degenerate and dropped, and a triangle whose sorted
index triple was already emitted is a duplicate regardless of winding.

Output order is first-occurrence order for both vertices and triangles, so
running the pass twice on the same input gives identical results and running
it on its own output changes nothing.
"""

from __future__ import annotations

import logging
import time
from typing import Tuple

import numpy as np

from .mesh import ColorMesh

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _first_occurrence_groups(keys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Group equal rows of `keys`.

    Returns:
        (representatives, remap): indices of the first row of each group in
        order of appearance, and for every row the rank of its group.
    """
    if keys.shape[0] == 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    order = np.argsort(first, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(order.size)
    return first[order], rank[inverse]


def _vertex_keys(positions: np.ndarray, tolerance: float) -> np.ndarray:
    if tolerance > 0:
        return np.floor(positions / tolerance + 0.5).astype(np.int64)
    # +0.0 folds -0.0 onto 0.0 so both compare equal
    return positions + 0.0


def deduplicate(mesh: ColorMesh, tolerance: float = 0.0) -> ColorMesh:
    """
    Merge coincident vertices and drop degenerate or repeated triangles.

    Args:
        mesh: Source mesh (not modified)
        tolerance: 0 for exact position equality; > 0 to merge positions
            falling in the same grid cell of this size

    Returns:
        New ColorMesh with colors carried alongside vertices.
    """
    tolerance = float(tolerance)
    if not np.isfinite(tolerance) or tolerance < 0:
        raise ValueError(f"tolerance must be a finite value >= 0, got {tolerance}")

    t0 = time.perf_counter()
    kept, remap = _first_occurrence_groups(_vertex_keys(mesh.positions, tolerance))
    positions = mesh.positions[kept]
    normals = mesh.normals[kept]
    colors = None if mesh.colors is None else mesh.colors[kept]
    t1 = time.perf_counter()
    logger.info(
        "Vertices: %d -> %d (%.3fs)", mesh.vertex_count, positions.shape[0], t1 - t0
    )

    faces = remap[mesh.faces] if mesh.face_count else np.zeros((0, 3), dtype=np.int64)
    if faces.shape[0]:
        degenerate = (
            (faces[:, 0] == faces[:, 1])
            | (faces[:, 0] == faces[:, 2])
            | (faces[:, 1] == faces[:, 2])
        )
        faces = faces[~degenerate]
    if faces.shape[0]:
        first_faces, _ = _first_occurrence_groups(np.sort(faces, axis=1))
        faces = faces[first_faces]
    logger.info(
        "Triangles: %d -> %d (%.3fs)",
        mesh.face_count,
        faces.shape[0],
        time.perf_counter() - t1,
    )
    return ColorMesh(positions, normals, faces, colors)
