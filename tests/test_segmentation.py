"""
Tests for grid segmentation.
"""

import itertools

import numpy as np
import pytest

from blockmesh.color import PackedColor
from blockmesh.demo import create_cube_mesh, create_scan_mesh
from blockmesh.mesh import ColorMesh
from blockmesh.segmentation import (
    SURFACE_GRAY,
    WALL_COLOR,
    Segment,
    depth_shade,
    grid_boundaries,
    isolate_wall,
    segment_mesh,
    split_along_axis,
)


def _total_area(meshes):
    return sum(float(m.to_trimesh().area) for m in meshes if m.face_count)


@pytest.fixture
def cube():
    return create_cube_mesh(size=1.0)


class TestGridBoundaries:
    """Test boundary generation along one axis."""

    def test_covers_last_partial_slab(self):
        assert list(grid_boundaries(0.0, 1.0, 0.5)) == [0.0, 0.5, 1.0]
        assert list(grid_boundaries(0.0, 1.0, 0.4)) == pytest.approx([0.0, 0.4, 0.8, 1.2])

    def test_last_boundary_reaches_max(self):
        lo, hi = -0.30144841125278266, 0.29855158874721743
        bounds = list(grid_boundaries(lo, hi, 0.1))
        assert len(bounds) == 7
        assert bounds[-1] == hi

    def test_last_boundary_never_short(self):
        rng = np.random.default_rng(7)
        for lo, span, size in zip(rng.uniform(-5, 5, 500), rng.uniform(0, 3, 500), rng.uniform(0.05, 0.5, 500)):
            bounds = list(grid_boundaries(lo, lo + span, size))
            assert bounds[-1] >= lo + span
            assert all(a < b for a, b in zip(bounds, bounds[1:]))

    def test_flat_range(self):
        assert list(grid_boundaries(2.0, 2.0, 1.0)) == [2.0]

    @pytest.mark.parametrize("size", [0.0, -0.5, float("nan"), float("inf")])
    def test_invalid_block_size(self, size):
        with pytest.raises(ValueError):
            list(grid_boundaries(0.0, 1.0, size))


class TestSplitAlongAxis:
    """Test the slab fold along one axis."""

    def test_one_slab_per_boundary(self, cube):
        slabs = split_along_axis(cube, "x", [0.0, 0.5, 1.0])
        assert len(slabs) == 3
        assert slabs[0].face_count == 0
        assert slabs[1].face_count > 0 and slabs[2].face_count > 0
        np.testing.assert_allclose(_total_area(slabs), 6.0)

    def test_slabs_stay_between_boundaries(self, cube):
        slabs = split_along_axis(cube, "y", [0.0, 0.5, 1.0])
        assert slabs[1].positions[slabs[1].faces.reshape(-1), 1].max() <= 0.5
        assert slabs[2].positions[slabs[2].faces.reshape(-1), 1].min() >= 0.5

    def test_beyond_last_boundary_is_dropped(self, cube):
        slabs = split_along_axis(cube, "z", [0.0, 0.5])
        np.testing.assert_allclose(_total_area(slabs), 3.0)

    def test_input_untouched(self, cube):
        before = cube.copy()
        split_along_axis(cube, "x", [0.0, 0.5, 1.0])
        np.testing.assert_array_equal(cube.positions, before.positions)
        np.testing.assert_array_equal(cube.faces, before.faces)

    def test_bad_axis(self, cube):
        with pytest.raises(ValueError):
            split_along_axis(cube, "w", [0.0])


class TestDepthShade:
    """Test depth-based gray shading."""

    def test_scales_gray(self):
        assert depth_shade(1.0, 0.0, 1.0) == SURFACE_GRAY
        assert depth_shade(0.5, 0.0, 1.0).rgb() == (84, 84, 84)
        assert depth_shade(0.0, 0.0, 1.0).rgb() == (0, 0, 0)

    def test_negative_range(self):
        assert depth_shade(-1.0, -2.0, 0.0).rgb() == (84, 84, 84)

    def test_clamped(self):
        assert depth_shade(5.0, 0.0, 1.0) == PackedColor.from_rgb(255, 255, 255)

    def test_zero_denominator(self):
        assert depth_shade(0.0, 0.0, 0.0).rgb() == (0, 0, 0)


class TestSegmentMesh:
    """Test full grid segmentation."""

    def test_cube_gives_eight_blocks(self, cube):
        segments = segment_mesh(cube, 0.5)
        assert len(segments) == 8
        assert {s.index for s in segments} == set(itertools.product([1, 2], repeat=3))
        for seg in segments:
            assert isinstance(seg, Segment)
            assert seg.vertex_count > 0
            assert seg.mesh.face_count > 0
            assert np.all(seg.mesh.bounds().extents <= 0.5 + 1e-12)
            assert seg.is_identity
        np.testing.assert_allclose(_total_area(s.mesh for s in segments), 6.0)

    def test_no_empty_segments(self, cube):
        """Interior cells hold no surface and are skipped."""
        segments = segment_mesh(cube, 0.4)
        assert len(segments) == 26
        assert all(s.vertex_count > 0 for s in segments)
        np.testing.assert_allclose(_total_area(s.mesh for s in segments), 6.0)

    def test_blocks_are_compacted(self, cube):
        for seg in segment_mesh(cube, 0.5):
            assert seg.mesh.vertex_count == len(np.unique(seg.mesh.faces))

    def test_depth_shading(self, cube):
        segments = segment_mesh(cube, 0.5)
        shades = {s.index[2]: s.color for s in segments}
        assert shades[1].rgb() == (84, 84, 84)
        assert shades[2] == SURFACE_GRAY
        for seg in segments:
            assert seg.back_color == seg.color

    def test_interpolated_color_per_channel(self):
        """Red and green vertices average to 0x7F7F00."""
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
        colors = np.array([0xFF0000, 0xFF0000, 0x00FF00, 0x00FF00], dtype=np.uint32)
        quad = ColorMesh(positions, None, [[0, 1, 2], [0, 2, 3]], colors)
        segments = segment_mesh(quad, 10.0, interpolate_color=True)
        assert len(segments) == 1
        assert segments[0].color.value == 0x7F7F00

    def test_interpolate_without_colors_falls_back(self, cube):
        with pytest.warns(RuntimeWarning):
            segments = segment_mesh(cube, 0.5, interpolate_color=True)
        assert len(segments) == 8

    def test_uniform_colors_survive(self):
        cube = create_cube_mesh(color=PackedColor(0x3366CC))
        for seg in segment_mesh(cube, 0.5, interpolate_color=True):
            assert seg.color.value == 0x3366CC
            assert seg.mesh.colors.shape[0] == seg.vertex_count

    def test_invalid_block_size_rejected(self, cube):
        with pytest.raises(ValueError):
            segment_mesh(cube, 0.0)
        with pytest.raises(ValueError):
            segment_mesh(cube, -1.0)

    def test_empty_mesh(self):
        assert segment_mesh(ColorMesh.empty(), 0.5) == []


class TestWallIsolation:
    """Test the wall pre-pass."""

    @pytest.fixture
    def scan(self):
        # sensor frame -> display frame, as the pipeline ingests it
        raw = create_scan_mesh(resolution=10, shared_vertices=True)
        return ColorMesh.from_sensor(raw.positions, raw.normals, raw.faces, raw.colors)

    def test_isolate_wall(self, scan):
        wall, rest = isolate_wall(scan, scan.bounds().min_z + 0.2)
        assert wall.face_count > 0
        assert rest.face_count > 0
        assert wall.positions[:, 2].max() <= -1.8 + 1e-9
        assert rest.positions[:, 2].min() >= -1.8 - 1e-9

    def test_wall_segment_first(self, scan):
        segments = segment_mesh(scan, 0.25, split_wall=True, wall_sensitivity=0.2)
        wall = segments[0]
        assert wall.is_wall
        assert wall.id == "wall"
        assert wall.color == WALL_COLOR
        assert not any(s.is_wall for s in segments[1:])
        assert all(s.mesh.positions[:, 2].min() >= -1.8 - 1e-9 for s in segments[1:])

    def test_area_preserved(self, scan):
        segments = segment_mesh(scan, 0.25, split_wall=True)
        np.testing.assert_allclose(
            _total_area(s.mesh for s in segments), scan.to_trimesh().area, rtol=1e-9
        )


class TestSegment:
    """Test the Segment display block."""

    def test_world_mesh_applies_placement(self, cube):
        seg = Segment("block", cube, SURFACE_GRAY)
        seg.translate([2.0, 0.0, 0.0])
        world = seg.world_mesh()
        np.testing.assert_allclose(world.positions, cube.positions + [2.0, 0.0, 0.0])
        np.testing.assert_array_equal(seg.mesh.positions, cube.positions)
        np.testing.assert_allclose(seg.centroid(), [2.5, 0.5, 0.5])

    def test_set_color(self, cube):
        seg = Segment("block", cube, SURFACE_GRAY)
        seg.set_color(0x00FF00)
        assert seg.color == PackedColor(0x00FF00)
