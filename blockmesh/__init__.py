"""
blockmesh: block segmentation of scanned surface meshes

A Python package for cleaning a fused 3D scan (duplicate removal), cutting it
into a grid of display blocks with an optional background wall split, and
recombining the blocks into one exportable mesh.
"""

__version__ = "0.1.0"

# Colors
from .color import PackedColor, average_color, lerp_colors, pack_channels, unpack_channels

# Mesh container and processing steps
from .compact import compact, referenced_vertices
from .cutter import cut_by_plane, split_by_plane
from .dedupe import deduplicate
from .mesh import BoundingBox, ColorMesh

# Demo meshes
from .demo import create_cube_mesh, create_scan_mesh, random_vertex_colors

# Segmentation and export
from .export import FlatMesh, export_segments, merge_segments
from .object3d import Object3D, Transform
from .pipeline import MeshPipeline, PipelineOptions
from .segmentation import (
    SURFACE_GRAY,
    WALL_COLOR,
    WHOLE_MESH_COLOR,
    Segment,
    depth_shade,
    grid_boundaries,
    isolate_wall,
    segment_mesh,
    split_along_axis,
)

__all__ = [
    # Colors
    "PackedColor",
    "average_color",
    "lerp_colors",
    "pack_channels",
    "unpack_channels",
    # Mesh processing
    "ColorMesh",
    "BoundingBox",
    "cut_by_plane",
    "split_by_plane",
    "deduplicate",
    "compact",
    "referenced_vertices",
    # Placement
    "Object3D",
    "Transform",
    # Segmentation
    "Segment",
    "segment_mesh",
    "split_along_axis",
    "grid_boundaries",
    "isolate_wall",
    "depth_shade",
    "SURFACE_GRAY",
    "WALL_COLOR",
    "WHOLE_MESH_COLOR",
    # Export
    "FlatMesh",
    "export_segments",
    "merge_segments",
    # Pipeline
    "PipelineOptions",
    "MeshPipeline",
    # Demo meshes
    "create_cube_mesh",
    "create_scan_mesh",
    "random_vertex_colors",
]
