"""
Grid segmentation of a scanned mesh into display blocks.

Important terminology:
- "Boundary": a plane of constant x, y or z at which the mesh is cut. Along
    each axis the boundaries are ``lo, lo + b, lo + 2b, ...`` for as long as
    they stay below ``hi + b`` (b = block size), so the last partial slab is
    never lost.
- "Slab": the part of a mesh between two adjacent boundaries of one axis.
- "Block" / "Segment": the leaf left after cutting along x, then y within each
    x-slab, then z within each xy-slab. Blocks are the unit of display and of
    coloring.
- "Wall": an optional first slab carved off below ``min_z + wall_sensitivity``.
    This is a heuristic for scans looking straight at a background surface
    (which then faces -z after ingestion); it does not detect planes in
    general.

The algorithm follows these steps:

1. Optionally isolate the wall with one plane split; the remainder is what
    gets gridded.
2. `split_along_axis` folds a mesh over an ordered list of boundaries: each
    split divides the current remainder into the slab below the boundary and
    the new remainder above it, and only the remainder is carried on. Every
    cut therefore sees exactly the mesh its predecessor produced. This is
    applied to x, then y per x-slab, then z per xy-slab.
3. Each non-empty leaf gets flat normals (the blended normals at cut faces
    are meaningless), is compacted, and receives a display color: the
    per-channel average of its vertex colors, or a gray shaded by depth.

EXAMPLE:
    A closed unit cube spanning [0, 1]^3 with block_size = 0.5 has boundaries
    0, 0.5, 1.0 on each axis. The slabs below 0 are empty, so exactly 8 blocks
    of 0.5^3 come out, each holding its corner's share of the cube surface.
"""

from __future__ import annotations

import logging
import math
import time
import warnings
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .color import PackedColor, average_color
from .compact import compact
from .cutter import cut_by_plane, split_by_plane
from .mesh import AXES, BoundingBox, ColorMesh
from .object3d import Object3D

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

SURFACE_GRAY = PackedColor.from_rgb(169, 169, 169)
WALL_COLOR = PackedColor.from_rgb(255, 0, 0)
WHOLE_MESH_COLOR = PackedColor.from_rgb(0, 0, 255)


# ============================================================================
# Data model
# ============================================================================


class Segment(Object3D):
    """
    One display block: a mesh, its display color and a placement transform.

    Attributes:
        id: Identifier, ``"wall"`` or ``"block_<ix>_<iy>_<iz>"``
        mesh: Compacted block mesh (local coordinates)
        color: Flat display color, applied to front and back faces alike
        is_wall: Whether this is the isolated wall block
        index: Grid cell (ix, iy, iz) or None
    """

    def __init__(
        self,
        id: str,
        mesh: ColorMesh,
        color: PackedColor,
        *,
        is_wall: bool = False,
        index: Optional[Tuple[int, int, int]] = None,
    ) -> None:
        super().__init__()
        self.id = id
        self.mesh = mesh
        self.color = color
        self.is_wall = bool(is_wall)
        self.index = index

    @property
    def back_color(self) -> PackedColor:
        return self.color

    @property
    def vertex_count(self) -> int:
        return self.mesh.vertex_count

    def set_color(self, color: PackedColor) -> None:
        if not isinstance(color, PackedColor):
            color = PackedColor(int(color))
        self.color = color

    def centroid(self) -> np.ndarray:
        """Centroid of the block in world coordinates."""
        return self.to_world_points(self.mesh.centroid()[None, :])[0]

    def world_mesh(self) -> ColorMesh:
        """The block mesh with its placement transform applied."""
        return ColorMesh(
            self.to_world_points(self.mesh.positions),
            self.to_world_normals(self.mesh.normals),
            self.mesh.faces.copy(),
            None if self.mesh.colors is None else self.mesh.colors.copy(),
        )

    def __repr__(self) -> str:
        return f"Segment(id={self.id!r}, vertices={self.vertex_count}, color={self.color.hex()})"


# ============================================================================
# Grid traversal
# ============================================================================


def _check_block_size(block_size: float) -> float:
    b = float(block_size)
    if not math.isfinite(b) or b <= 0:
        raise ValueError(f"block_size must be a finite value > 0, got {block_size}")
    return b


def grid_boundaries(lo: float, hi: float, block_size: float) -> Iterator[float]:
    """
    Boundaries ``lo, lo + b, ...`` strictly below ``hi + b``.

    The last boundary is never below ``hi``: accumulated rounding can leave
    it an ulp short, which would clip vertices lying exactly at ``hi``.
    """
    b = _check_block_size(block_size)
    hi = float(hi)
    v = float(lo)
    stop = hi + b
    while v < stop:
        nxt = v + b
        if nxt >= stop and v < hi:
            v = hi
        yield v
        v = nxt


def _axis_normal(axis: str) -> np.ndarray:
    if axis not in AXES:
        raise ValueError("axis must be 'x', 'y' or 'z'")
    n = np.zeros(3, dtype=np.float64)
    n[AXES[axis]] = 1.0
    return n


def split_along_axis(mesh: ColorMesh, axis: str, boundaries: Sequence[float]) -> List[ColorMesh]:
    """
    Cut `mesh` into slabs along `axis`.

    Returns one slab per boundary, in order: slab ``k`` is the part of the
    mesh between boundary ``k - 1`` and boundary ``k`` (below the first
    boundary for ``k = 0``). Whatever lies beyond the last boundary is
    discarded, except triangles lying exactly in the last boundary plane,
    which stay with the last slab.
    """
    normal = _axis_normal(axis)
    slabs: List[ColorMesh] = []
    remainder = mesh
    boundaries = list(boundaries)
    for k, b in enumerate(boundaries):
        if remainder.face_count == 0:
            slabs.append(ColorMesh.empty(with_colors=mesh.has_colors))
            continue
        point = normal * float(b)
        if k == len(boundaries) - 1:
            slabs.append(cut_by_plane(remainder, point, -normal, coplanar="keep"))
        else:
            slab, remainder = split_by_plane(remainder, point, normal)
            slabs.append(slab)
    return slabs


# ============================================================================
# Coloring
# ============================================================================


def depth_shade(z: float, min_z: float, max_z: float, base: PackedColor = SURFACE_GRAY) -> PackedColor:
    """
    Gray scaled by ``(z + |min_z|) / (max_z + |min_z|)``, channels truncated.
    """
    denom = max_z + abs(min_z)
    factor = (z + abs(min_z)) / denom if denom != 0 else 0.0
    r, g, b = (min(255, max(0, int(c * factor))) for c in base.rgb())
    return PackedColor.from_rgb(r, g, b)


# ============================================================================
# Segmentation
# ============================================================================


def isolate_wall(mesh: ColorMesh, wall_z: float) -> Tuple[ColorMesh, ColorMesh]:
    """
    Split off everything below ``z = wall_z``.

    Returns:
        (wall, remainder)
    """
    return split_by_plane(mesh, (0.0, 0.0, float(wall_z)), (0.0, 0.0, 1.0))


def _finish_leaf(leaf: ColorMesh) -> ColorMesh:
    return compact(leaf.with_flat_normals())


def segment_mesh(
    mesh: ColorMesh,
    block_size: float,
    split_wall: bool = False,
    interpolate_color: bool = False,
    wall_sensitivity: float = 0.2,
    bounds: Optional[BoundingBox] = None,
    base_color: PackedColor = SURFACE_GRAY,
) -> List[Segment]:
    """
    Segment a mesh into a grid of blocks.

    Args:
        mesh: Mesh to segment (not modified)
        block_size: Edge length of a grid cell; must be > 0
        split_wall: Carve off the wall slab first
        interpolate_color: Color blocks by their average vertex color instead
            of depth-shaded gray (needs a mesh with colors)
        wall_sensitivity: Wall slab thickness above min z
        bounds: Grid extent; defaults to the bounds of `mesh`
        base_color: Gray used for depth shading

    Returns:
        Non-empty segments in traversal order, wall first when present.
    """
    block_size = _check_block_size(block_size)
    if mesh.is_empty:
        logger.info("Nothing to segment: mesh is empty")
        return []
    if bounds is None:
        bounds = mesh.bounds()
    if interpolate_color and not mesh.has_colors:
        msg = "Color interpolation requested for a mesh without colors; using depth shading"
        warnings.warn(msg, RuntimeWarning)
        logger.warning(msg)
        interpolate_color = False

    t0 = time.perf_counter()
    logger.info("Cutting mesh into blocks of size %g", block_size)
    segments: List[Segment] = []

    if split_wall:
        wall, mesh = isolate_wall(mesh, bounds.min_z + float(wall_sensitivity))
        wall = _finish_leaf(wall)
        if not wall.is_empty:
            segments.append(Segment("wall", wall, WALL_COLOR, is_wall=True))
        else:
            logger.info("Wall cut at z=%g produced no geometry", bounds.min_z + wall_sensitivity)

    xb = list(grid_boundaries(bounds.min_x, bounds.max_x, block_size))
    yb = list(grid_boundaries(bounds.min_y, bounds.max_y, block_size))
    zb = list(grid_boundaries(bounds.min_z, bounds.max_z, block_size))

    raw_vertices = 0
    kept_vertices = 0
    for ix, x_slab in enumerate(split_along_axis(mesh, "x", xb)):
        if x_slab.face_count == 0:
            continue
        for iy, y_slab in enumerate(split_along_axis(x_slab, "y", yb)):
            if y_slab.face_count == 0:
                continue
            for iz, (z, leaf) in enumerate(zip(zb, split_along_axis(y_slab, "z", zb))):
                raw_vertices += leaf.vertex_count
                if leaf.face_count == 0:
                    continue
                leaf = _finish_leaf(leaf)
                if leaf.is_empty:
                    continue
                kept_vertices += leaf.vertex_count
                if interpolate_color:
                    color = average_color(leaf.colors)
                else:
                    color = depth_shade(z, bounds.min_z, bounds.max_z, base_color)
                segments.append(
                    Segment(f"block_{ix}_{iy}_{iz}", leaf, color, index=(ix, iy, iz))
                )

    logger.info("Segmentation produced %d segments (%.3fs)", len(segments), time.perf_counter() - t0)
    logger.info("Vertex count after segmentation: %d raw, %d compacted", raw_vertices, kept_vertices)
    return segments
