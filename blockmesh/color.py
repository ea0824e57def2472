"""
Packed 24-bit RGB colors.

Scanned meshes carry one color per vertex encoded as a single integer
``0xRRGGBB`` (red in the most significant byte). `PackedColor` wraps one such
value so channel math never happens on the packed integer directly; the
module-level helpers do the same work vectorized over numpy arrays of packed
colors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_CHANNEL_SHIFTS = np.array([16, 8, 0], dtype=np.uint32)


@dataclass(frozen=True)
class PackedColor:
    """A single 0xRRGGBB color."""

    value: int

    def __post_init__(self) -> None:
        v = int(self.value)
        if v < 0 or v > 0xFFFFFF:
            raise ValueError(f"Packed color out of range: {self.value!r}")
        object.__setattr__(self, "value", v)

    @staticmethod
    def from_rgb(r: int, g: int, b: int) -> "PackedColor":
        for name, c in (("r", r), ("g", g), ("b", b)):
            if int(c) < 0 or int(c) > 255:
                raise ValueError(f"Channel {name} must be in 0..255, got {c}")
        return PackedColor((int(r) << 16) | (int(g) << 8) | int(b))

    @property
    def r(self) -> int:
        return (self.value >> 16) & 0xFF

    @property
    def g(self) -> int:
        return (self.value >> 8) & 0xFF

    @property
    def b(self) -> int:
        return self.value & 0xFF

    def rgb(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)

    def hex(self) -> str:
        return f"#{self.value:06x}"

    def to_rgba_float(self, alpha: float = 1.0) -> Tuple[float, float, float, float]:
        """Channels scaled to 0..1, as plotting libraries expect."""
        return (self.r / 255.0, self.g / 255.0, self.b / 255.0, float(alpha))

    @staticmethod
    def average(colors: Iterable[Union["PackedColor", int]]) -> "PackedColor":
        """
        Average a collection of colors channel by channel.

        Each channel is averaged independently and truncated toward zero, so
        {0xFF0000, 0x00FF00} averages to 0x7F7F00.
        """
        values = [c.value if isinstance(c, PackedColor) else int(c) for c in colors]
        if not values:
            raise ValueError("Cannot average an empty collection of colors")
        return average_color(np.asarray(values, dtype=np.uint32))

    def __int__(self) -> int:
        return self.value


def unpack_channels(colors: np.ndarray) -> np.ndarray:
    """Split an (N,) array of packed colors into an (N, 3) uint8 array of R, G, B."""
    arr = np.asarray(colors, dtype=np.uint32).reshape(-1)
    return ((arr[:, None] >> _CHANNEL_SHIFTS[None, :]) & 0xFF).astype(np.uint8)


def pack_channels(channels: np.ndarray) -> np.ndarray:
    """Inverse of `unpack_channels`; channels are clipped to 0..255."""
    ch = np.clip(np.asarray(channels), 0, 255).astype(np.uint32).reshape(-1, 3)
    return (ch[:, 0] << 16) | (ch[:, 1] << 8) | ch[:, 2]


def lerp_colors(a: np.ndarray, b: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Interpolate packed colors per channel: ``a + t * (b - a)``.

    Args:
        a: (N,) packed colors at t = 0
        b: (N,) packed colors at t = 1
        t: (N,) interpolation weights

    Returns:
        (N,) packed colors, channels rounded to nearest.
    """
    ca = unpack_channels(a).astype(np.float64)
    cb = unpack_channels(b).astype(np.float64)
    w = np.asarray(t, dtype=np.float64).reshape(-1, 1)
    mixed = np.rint(ca + w * (cb - ca))
    return pack_channels(mixed)


def average_color(colors: np.ndarray) -> PackedColor:
    """Per-channel truncated average of an (N,) packed color array."""
    arr = np.asarray(colors, dtype=np.uint32).reshape(-1)
    if arr.size == 0:
        raise ValueError("Cannot average an empty color array")
    sums = unpack_channels(arr).astype(np.int64).sum(axis=0)
    # integer division truncates toward zero for non-negative sums
    r, g, b = (int(s) // arr.size for s in sums)
    return PackedColor.from_rgb(r, g, b)
