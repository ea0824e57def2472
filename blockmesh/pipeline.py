"""
End-to-end processing of a scanned mesh into display blocks.

`MeshPipeline` takes the raw arrays delivered by the scanning pipeline
(positions, normals, packed colors and triangle indices in the sensor frame)
and runs: ingestion (Y/Z flip), optional deduplication, then either grid
segmentation or a single whole-mesh block. The resulting segments can be
recolored, queried for the wall block, and exported back into one mesh.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from .color import PackedColor
from .dedupe import deduplicate
from .export import FlatMesh, export_segments
from .mesh import BoundingBox, ColorMesh
from .segmentation import WHOLE_MESH_COLOR, Segment, segment_mesh

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
@dataclass
class PipelineOptions:
    reduce_vertices: bool = True  # deduplicate before segmentation
    segment_mesh: bool = True  # grid segmentation vs. one block
    segment_wall: bool = True  # carve off the wall slab first
    block_size: float = 0.20  # grid cell edge length (mesh units)
    wall_sensitivity: float = 0.20  # wall slab thickness above min z
    interpolate_color: bool = False  # average vertex color vs. depth-shaded gray
    capture_color: bool = False  # carry per-vertex colors at all
    # 0 merges only exactly equal positions; > 0 merges within this grid pitch
    dedupe_tolerance: float = 0.0
    verbose: bool = False

    def validate(self) -> None:
        """Raise ValueError for settings that cannot be processed."""
        b = float(self.block_size)
        if not math.isfinite(b) or b <= 0:
            raise ValueError(f"block_size must be a finite value > 0, got {self.block_size}")
        if not math.isfinite(float(self.wall_sensitivity)):
            raise ValueError("wall_sensitivity must be finite")
        tol = float(self.dedupe_tolerance)
        if not math.isfinite(tol) or tol < 0:
            raise ValueError(f"dedupe_tolerance must be a finite value >= 0, got {tol}")
        if self.interpolate_color and not self.capture_color:
            logger.warning("interpolate_color has no effect without capture_color")


class MeshPipeline:
    """
    Turns a raw scanned mesh into a list of display segments.

    Attributes:
        options: PipelineOptions in effect
        segments: Segments from the last `build`
        wall_segment: The wall segment, if one was isolated
        bounds: Bounds of the ingested mesh (display frame)
        stats: Counts and timings from the last `build`
    """

    def __init__(self, options: Optional[PipelineOptions] = None):
        self.options = options if options is not None else PipelineOptions()
        self.segments: List[Segment] = []
        self.wall_segment: Optional[Segment] = None
        self.bounds: Optional[BoundingBox] = None
        self.stats: Dict[str, Any] = {}

    def _log(self, msg: str, *args: Any) -> None:
        if self.options.verbose:
            logger.info(msg, *args)
        else:
            logger.debug(msg, *args)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def ingest(
        self,
        vertices: np.ndarray,
        normals: np.ndarray,
        triangles: np.ndarray,
        colors: Optional[np.ndarray] = None,
    ) -> ColorMesh:
        """Convert sensor-frame arrays into a display-frame ColorMesh."""
        if self.options.capture_color:
            if colors is None:
                raise ValueError("capture_color is enabled but no colors were provided")
        else:
            colors = None
        mesh = ColorMesh.from_sensor(vertices, normals, triangles, colors)
        if mesh.is_empty:
            raise ValueError("Input mesh has no vertices")
        return mesh

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------
    def build(
        self,
        vertices: np.ndarray,
        normals: np.ndarray,
        triangles: np.ndarray,
        colors: Optional[np.ndarray] = None,
    ) -> List[Segment]:
        """
        Run the full pipeline on sensor-frame arrays.

        Args:
            vertices: (N, 3) positions in the sensor frame
            normals: (N, 3) normals in the sensor frame
            triangles: (M, 3) or flat (3M,) vertex indices
            colors: (N,) packed 0xRRGGBB colors; required with capture_color

        Returns:
            The list of display segments (also kept on `self.segments`).
        """
        opts = self.options
        opts.validate()
        t0 = time.perf_counter()

        mesh = self.ingest(vertices, normals, triangles, colors)
        self.bounds = mesh.bounds()
        self.stats = {"input_vertices": mesh.vertex_count, "input_triangles": mesh.face_count}
        self._log("Ingested mesh: %d vertices, %d triangles", mesh.vertex_count, mesh.face_count)
        self._log("Bounds: %s", self.bounds.as_dict())

        if opts.reduce_vertices:
            mesh = deduplicate(mesh, tolerance=opts.dedupe_tolerance)
            self.stats["deduplicated_vertices"] = mesh.vertex_count
            self.stats["deduplicated_triangles"] = mesh.face_count
            self._log("Deduplicated mesh: %d vertices, %d triangles", mesh.vertex_count, mesh.face_count)

        self.wall_segment = None
        if opts.segment_mesh:
            self.segments = segment_mesh(
                mesh,
                opts.block_size,
                split_wall=opts.segment_wall,
                interpolate_color=opts.interpolate_color,
                wall_sensitivity=opts.wall_sensitivity,
                bounds=self.bounds,
            )
            for seg in self.segments:
                if seg.is_wall:
                    self.wall_segment = seg
                    break
        else:
            self.segments = [Segment("mesh", mesh, WHOLE_MESH_COLOR)]

        self.stats["segments"] = len(self.segments)
        self.stats["segment_vertices"] = int(sum(s.vertex_count for s in self.segments))
        self.stats["elapsed_s"] = time.perf_counter() - t0
        self._log(
            "Built %d segments with %d vertices in %.3fs",
            len(self.segments),
            self.stats["segment_vertices"],
            self.stats["elapsed_s"],
        )
        return self.segments

    def build_from_mesh(self, mesh: ColorMesh) -> List[Segment]:
        """Run the pipeline on a mesh that is still in the sensor frame."""
        return self.build(mesh.positions, mesh.normals, mesh.faces, mesh.colors)

    # ------------------------------------------------------------------
    # Queries and edits
    # ------------------------------------------------------------------
    def is_wall(self, segment: Segment) -> bool:
        return self.wall_segment is not None and segment is self.wall_segment

    def change_material(self, color: PackedColor) -> None:
        """Give every segment the same display color; vertex colors are kept."""
        for seg in self.segments:
            seg.set_color(color)

    def export(self) -> FlatMesh:
        """Combine all current segments into one exportable mesh."""
        return export_segments(
            self.segments,
            capture_color=self.options.capture_color,
            tolerance=self.options.dedupe_tolerance,
        )

    def describe(self) -> Dict[str, Any]:
        """Options and stats of the last build, for reports."""
        return {"options": asdict(self.options), "stats": dict(self.stats)}
