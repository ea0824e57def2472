"""
Plane cutting of triangle meshes.

A cut keeps the half-space the plane normal points into. Triangles entirely
on the kept side pass through (indices remapped), triangles entirely on the
other side are dropped, and triangles straddling the plane are clipped: one
vertex is synthesized on every crossing edge by linear interpolation of
position, normal and color, and the retained 3- or 4-gon is re-triangulated
with the original winding.

Classification uses the signed distance ``d = (p - plane_point) . normal``:

- all ``d >= 0`` with at least one ``d > 0``: kept whole
- all ``d <= 0`` with at least one ``d < 0``: dropped
- all ``d == 0`` (triangle lies in the plane): by default kept only if its
  face normal points against the cut normal, so of two opposite cuts exactly
  one keeps it; zero-area triangles in the plane are never kept
- otherwise: clipped; vertices with ``d == 0`` are retained as they are

Crossing-edge vertices are computed from the edge endpoints in ascending index
order. Cutting the same source with opposite normals therefore yields
bit-identical boundary vertices on both halves.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

import numpy as np
import trimesh

from .color import lerp_colors
from .mesh import ColorMesh

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

COPLANAR_MODES = ("facing", "keep", "drop")


def _plane(plane_point: Sequence[float], plane_normal: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    q = np.asarray(plane_point, dtype=np.float64).reshape(3)
    n = np.asarray(plane_normal, dtype=np.float64).reshape(3)
    if not np.all(np.isfinite(q)) or not np.all(np.isfinite(n)):
        raise ValueError("Plane point and normal must be finite")
    if float(np.linalg.norm(n)) == 0.0:
        raise ValueError("Plane normal must be non-zero")
    return q, n


def cut_by_plane(
    mesh: ColorMesh,
    plane_point: Sequence[float],
    plane_normal: Sequence[float],
    coplanar: str = "facing",
) -> ColorMesh:
    """
    Keep the part of `mesh` on the side of the plane the normal points to.

    Args:
        mesh: Source mesh (not modified)
        plane_point: Any point on the cutting plane
        plane_normal: Plane normal; need not be unit length
        coplanar: What to do with triangles lying in the plane: "facing"
            (keep those whose face normal points against the cut normal),
            "keep" or "drop"

    Returns:
        New ColorMesh. Colors are carried (and interpolated at the cut) when
        the source has colors.
    """
    q, n = _plane(plane_point, plane_normal)
    d = (mesh.positions - q) @ n
    return _cut_with_distances(mesh, d, n, coplanar)


def split_by_plane(
    mesh: ColorMesh, plane_point: Sequence[float], plane_normal: Sequence[float]
) -> Tuple[ColorMesh, ColorMesh]:
    """
    Split `mesh` into the halves behind and in front of the plane.

    Both halves are cut from the same source, so they agree exactly on the
    vertices synthesized along the plane.

    Returns:
        (negative_side, positive_side) relative to `plane_normal`.
    """
    q, n = _plane(plane_point, plane_normal)
    d = (mesh.positions - q) @ n
    negative = _cut_with_distances(mesh, -d, -n)
    positive = _cut_with_distances(mesh, d, n)
    return negative, positive


def _cut_with_distances(mesh: ColorMesh, d: np.ndarray, n: np.ndarray, coplanar: str = "facing") -> ColorMesh:
    if coplanar not in COPLANAR_MODES:
        raise ValueError(f"coplanar must be one of {COPLANAR_MODES}, got {coplanar!r}")
    P = mesh.positions
    F = mesh.faces
    if mesh.face_count == 0:
        keep_v = d >= 0
        return ColorMesh(
            P[keep_v],
            mesh.normals[keep_v],
            np.zeros((0, 3), dtype=np.int64),
            None if mesh.colors is None else mesh.colors[keep_v],
        )

    df = d[F]
    npos = (df > 0).sum(axis=1)
    nneg = (df < 0).sum(axis=1)

    keep_whole = (nneg == 0) & (npos > 0)
    in_plane = (nneg == 0) & (npos == 0)
    if in_plane.any() and coplanar != "drop":
        crosses = trimesh.triangles.cross(P[F[in_plane]])
        if coplanar == "keep":
            selected = np.linalg.norm(crosses, axis=1) > 0
        else:
            selected = crosses @ n < 0
        keep_whole[np.flatnonzero(in_plane)[selected]] = True
    clipped = np.flatnonzero((npos > 0) & (nneg > 0))

    keep_v = d >= 0
    remap = np.full(mesh.vertex_count, -1, dtype=np.int64)
    remap[keep_v] = np.arange(int(keep_v.sum()), dtype=np.int64)
    base = int(keep_v.sum())

    faces_out: List[np.ndarray] = [remap[F[keep_whole]]]

    edge_index: Dict[Tuple[int, int], int] = {}
    edge_pairs: List[Tuple[int, int]] = []

    def edge_vertex(i: int, j: int) -> int:
        key = (i, j) if i < j else (j, i)
        idx = edge_index.get(key)
        if idx is None:
            idx = base + len(edge_pairs)
            edge_index[key] = idx
            edge_pairs.append(key)
        return idx

    new_tris: List[Tuple[int, int, int]] = []
    for f in clipped:
        tri = F[f]
        poly: List[int] = []
        for k in range(3):
            cur = int(tri[k])
            nxt = int(tri[(k + 1) % 3])
            if d[cur] >= 0:
                poly.append(int(remap[cur]))
            if (d[cur] > 0 and d[nxt] < 0) or (d[cur] < 0 and d[nxt] > 0):
                poly.append(edge_vertex(cur, nxt))
        # fan triangulation keeps the source winding
        for k in range(1, len(poly) - 1):
            new_tris.append((poly[0], poly[k], poly[k + 1]))

    if new_tris:
        faces_out.append(np.asarray(new_tris, dtype=np.int64))

    positions = P[keep_v]
    normals = mesh.normals[keep_v]
    colors = None if mesh.colors is None else mesh.colors[keep_v]

    if edge_pairs:
        pairs = np.asarray(edge_pairs, dtype=np.int64)
        a = pairs[:, 0]
        b = pairs[:, 1]
        t = d[a] / (d[a] - d[b])
        tt = t[:, None]
        new_pos = P[a] + tt * (P[b] - P[a])
        new_nrm = trimesh.util.unitize(mesh.normals[a] + tt * (mesh.normals[b] - mesh.normals[a]))
        positions = np.vstack([positions, new_pos])
        normals = np.vstack([normals, new_nrm])
        if colors is not None:
            colors = np.concatenate([colors, lerp_colors(mesh.colors[a], mesh.colors[b], t)])

    faces = np.vstack(faces_out) if faces_out else np.zeros((0, 3), dtype=np.int64)
    logger.debug(
        "Plane cut: %d -> %d faces (%d clipped, %d new vertices)",
        mesh.face_count,
        faces.shape[0],
        clipped.size,
        len(edge_pairs),
    )
    return ColorMesh(positions, normals, faces, colors)
