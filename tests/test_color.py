"""
Tests for packed color handling.
"""

import numpy as np
import pytest

from blockmesh.color import PackedColor, average_color, lerp_colors, pack_channels, unpack_channels
from blockmesh.demo import random_vertex_colors


class TestPackedColor:
    """Test the PackedColor value type."""

    def test_channels(self):
        """Red is the most significant byte."""
        c = PackedColor(0x123456)
        assert c.r == 0x12
        assert c.g == 0x34
        assert c.b == 0x56
        assert c.rgb() == (0x12, 0x34, 0x56)
        assert c.hex() == "#123456"

    def test_from_rgb(self):
        assert PackedColor.from_rgb(255, 0, 0).value == 0xFF0000
        assert PackedColor.from_rgb(0, 0, 255) == PackedColor(0x0000FF)

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            PackedColor.from_rgb(256, 0, 0)
        with pytest.raises(ValueError):
            PackedColor.from_rgb(0, -1, 0)
        with pytest.raises(ValueError):
            PackedColor(0x1000000)

    def test_average_is_per_channel(self):
        """Red and green average to 0x7F7F00, not to a blend of the packed ints."""
        avg = PackedColor.average([PackedColor(0xFF0000), PackedColor(0x00FF00)])
        assert avg.value == 0x7F7F00
        # a naive average of the packed integers would give a different color
        assert avg.value != (0xFF0000 + 0x00FF00) // 2

    def test_average_truncates(self):
        avg = PackedColor.average([0x010101, 0x020202])
        assert avg.rgb() == (1, 1, 1)

    def test_average_empty(self):
        with pytest.raises(ValueError):
            PackedColor.average([])

    def test_rgba_float(self):
        assert PackedColor(0xFF0000).to_rgba_float(0.5) == (1.0, 0.0, 0.0, 0.5)


class TestColorArrays:
    """Test the vectorized helpers."""

    def test_unpack_and_pack(self):
        packed = np.array([0xFF0000, 0x00FF00, 0x0000FF, 0x123456], dtype=np.uint32)
        ch = unpack_channels(packed)
        assert ch.shape == (4, 3)
        assert ch[3].tolist() == [0x12, 0x34, 0x56]
        np.testing.assert_array_equal(pack_channels(ch), packed)

    def test_lerp_midpoint(self):
        a = np.array([0x000000], dtype=np.uint32)
        b = np.array([0xC86400], dtype=np.uint32)  # (200, 100, 0)
        out = lerp_colors(a, b, np.array([0.5]))
        assert out.tolist() == [0x643200]

    def test_lerp_endpoints(self):
        a = np.array([0x102030, 0xAABBCC], dtype=np.uint32)
        b = np.array([0x405060, 0x000000], dtype=np.uint32)
        np.testing.assert_array_equal(lerp_colors(a, b, np.zeros(2)), a)
        np.testing.assert_array_equal(lerp_colors(a, b, np.ones(2)), b)

    def test_average_color(self):
        colors = np.array([0xFF0000, 0x00FF00, 0x0000FF], dtype=np.uint32)
        assert average_color(colors).rgb() == (85, 85, 85)

    def test_random_vertex_colors(self):
        colors = random_vertex_colors(50, seed=3)
        assert colors.shape == (50,)
        assert colors.dtype == np.uint32
        assert colors.max() <= 0xFFFFFF
        np.testing.assert_array_equal(colors, random_vertex_colors(50, seed=3))
