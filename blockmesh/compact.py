"""
Removal of unreferenced vertices.

Plane cuts leave vertices behind that no triangle uses any more; they skew
centroids and bounding boxes of the cut blocks, so every block is compacted
before display.
"""

from __future__ import annotations

import logging

import numpy as np

from .mesh import ColorMesh

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def referenced_vertices(mesh: ColorMesh) -> np.ndarray:
    """Boolean mask of vertices used by at least one triangle."""
    used = np.zeros(mesh.vertex_count, dtype=bool)
    if mesh.face_count:
        used[mesh.faces.reshape(-1)] = True
    return used


def compact(mesh: ColorMesh) -> ColorMesh:
    """
    Drop vertices no triangle references and renumber the triangles.

    Surviving vertices keep their relative order. Colors follow the vertices
    when the mesh has them; a color-less mesh compacts the same way.
    """
    used = referenced_vertices(mesh)
    remap = np.cumsum(used, dtype=np.int64) - 1
    faces = remap[mesh.faces] if mesh.face_count else np.zeros((0, 3), dtype=np.int64)
    out = ColorMesh(
        mesh.positions[used],
        mesh.normals[used],
        faces,
        None if mesh.colors is None else mesh.colors[used],
    )
    logger.debug("Compacted %d -> %d vertices", mesh.vertex_count, out.vertex_count)
    return out
