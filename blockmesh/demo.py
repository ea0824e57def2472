"""
Demo mesh generation for blockmesh.

Provides small synthetic inputs for tutorials and tests: a closed cube and a
depth-scan-like surface (a background wall with a box standing in front of
it) in the sensor coordinate frame.
"""

from typing import Optional, Tuple

import numpy as np
import trimesh

from .color import PackedColor, pack_channels
from .mesh import ColorMesh


def create_cube_mesh(
    size: float = 1.0,
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0),
    color: Optional[PackedColor] = None,
) -> ColorMesh:
    """
    Create a closed cube with outward winding.

    Args:
        size: Edge length
        origin: Minimum corner; the cube spans [origin, origin + size]
        color: Uniform vertex color; None for a color-less mesh

    Returns:
        ColorMesh with 8 vertices and 12 triangles
    """
    box = trimesh.creation.box(extents=[size, size, size])
    box.apply_translation(np.asarray(origin, dtype=float) + size / 2.0)
    mesh = ColorMesh.from_trimesh(box, with_colors=False)
    if color is not None:
        mesh.colors = np.full(mesh.vertex_count, color.value, dtype=np.uint32)
    return mesh


def random_vertex_colors(n: int, seed: Optional[int] = 0) -> np.ndarray:
    """(n,) random packed colors."""
    rng = np.random.default_rng(seed)
    return pack_channels(rng.integers(0, 256, size=(n, 3)))


def create_scan_mesh(
    width: float = 1.0,
    height: float = 1.0,
    resolution: int = 20,
    wall_depth: float = 2.0,
    object_depth: float = 0.5,
    object_extent: Tuple[float, float, float, float] = (0.3, 0.7, 0.3, 0.7),
    shared_vertices: bool = False,
    wall_color: PackedColor = PackedColor.from_rgb(200, 200, 190),
    object_color: PackedColor = PackedColor.from_rgb(40, 90, 200),
) -> ColorMesh:
    """
    Create a depth-scan-like surface in the sensor frame.

    The sensor looks along +Z: a wall fills the view at ``Z = wall_depth``
    and a box region at ``Z = wall_depth - object_depth`` stands in front of
    it. Like fused scanner output, every triangle gets its own three vertices
    unless `shared_vertices` is set, so the mesh is full of exact duplicates.

    Args:
        width: Extent along X
        height: Extent along Y
        resolution: Grid cells per side
        wall_depth: Sensor distance of the wall
        object_depth: How far the box stands out of the wall
        object_extent: (x0, x1, y0, y1) of the box as fractions of the view
        shared_vertices: Share grid vertices between triangles
        wall_color: Vertex color of the wall
        object_color: Vertex color of the box

    Returns:
        ColorMesh (sensor frame, with colors)
    """
    if resolution < 1:
        raise ValueError("resolution must be >= 1")
    xs = np.linspace(0.0, width, resolution + 1)
    ys = np.linspace(0.0, height, resolution + 1)
    X, Y = np.meshgrid(xs, ys, indexing="ij")
    fx = X / width
    fy = Y / height
    x0, x1, y0, y1 = object_extent
    on_object = (fx >= x0) & (fx <= x1) & (fy >= y0) & (fy <= y1)
    Z = np.where(on_object, wall_depth - object_depth, wall_depth)

    grid = np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])
    grid_colors = np.where(on_object.ravel(), object_color.value, wall_color.value).astype(np.uint32)

    def vid(i: int, j: int) -> int:
        return i * (resolution + 1) + j

    tris = []
    for i in range(resolution):
        for j in range(resolution):
            a, b, c, d = vid(i, j), vid(i + 1, j), vid(i + 1, j + 1), vid(i, j + 1)
            # wound to face the sensor, like the vertex normals
            tris.append((a, c, b))
            tris.append((a, d, c))
    faces = np.asarray(tris, dtype=np.int64)

    if shared_vertices:
        positions = grid
        colors = grid_colors
    else:
        positions = grid[faces.reshape(-1)]
        colors = grid_colors[faces.reshape(-1)]
        faces = np.arange(positions.shape[0], dtype=np.int64).reshape(-1, 3)

    # facing the sensor (-Z in the sensor frame)
    normals = np.tile([0.0, 0.0, -1.0], (positions.shape[0], 1))
    return ColorMesh(positions, normals, faces, colors)
