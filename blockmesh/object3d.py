"""
Placement transform tracking for display blocks.

`Object3D` records the transforms applied to an object (a stack of named 4x4
matrices) and keeps the composite local->world matrix and its inverse. Unlike
a geometry edit, recording a placement never touches the underlying vertices:
consumers such as the exporter ask for world-space data through
`to_world_points` / `to_world_normals`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

import numpy as np
import trimesh

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass
class Transform:
    name: str
    M: np.ndarray  # 4x4 homogeneous
    params: Optional[Dict[str, Any]]
    timestamp: datetime


class Object3D:
    """
    Base class for objects placed in the display scene.

    The composite matrix starts as identity; segments produced by the
    segmenter are never re-positioned, but a caller (e.g. an interactive
    viewer) may move them and the exporter honors that placement.
    """

    def __init__(self) -> None:
        self.transform_stack: list[Transform] = []
        self.M_world_from_local: np.ndarray = np.eye(4, dtype=float)
        self.M_local_from_world: np.ndarray = np.eye(4, dtype=float)

    def _record_transform(
        self,
        name: str,
        M: np.ndarray,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        M = np.asarray(M, dtype=float)
        if M.shape != (4, 4):
            raise ValueError("Transform matrix must be 4x4")

        self.M_world_from_local = M @ self.M_world_from_local
        try:
            self.M_local_from_world = np.linalg.inv(self.M_world_from_local)
        except np.linalg.LinAlgError:
            # Keep previous inverse if singular; still record transform
            logger.debug("Composite transform of %r is singular", self)

        self.transform_stack.append(
            Transform(
                name=name,
                M=M.copy(),
                params=None if params is None else dict(params),
                timestamp=datetime.now(),
            )
        )

    def apply_transform(
        self,
        M: np.ndarray,
        *,
        name: str = "custom",
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record an arbitrary 4x4 placement transform."""
        self._record_transform(name, M, params=params)

    def translate(self, t: Iterable[float]) -> None:
        tx, ty, tz = [float(c) for c in t]
        T = trimesh.transformations.translation_matrix([tx, ty, tz])
        self._record_transform("translate", T, params={"t": [tx, ty, tz]})

    def scale(self, s: float) -> None:
        sf = float(s)
        S = np.diag([sf, sf, sf, 1.0])
        self._record_transform("scale", S, params={"scale": sf})

    def rotate(self, angle: float, axis: Iterable[float], point: Optional[Iterable[float]] = None) -> None:
        """Rotate by `angle` radians around `axis` through `point` (origin by default)."""
        axis = [float(a) for a in axis]
        R = trimesh.transformations.rotation_matrix(float(angle), axis, point)
        self._record_transform("rotate", R, params={"angle": float(angle), "axis": axis})

    def undo_last_transform(self) -> None:
        if not self.transform_stack:
            return
        self.transform_stack.pop()
        M = np.eye(4, dtype=float)
        for t in self.transform_stack:
            M = t.M @ M
        self.M_world_from_local = M
        try:
            self.M_local_from_world = np.linalg.inv(M)
        except np.linalg.LinAlgError:
            logger.debug("Composite transform of %r is singular after undo", self)

    def reset_transforms(self) -> None:
        self.transform_stack.clear()
        self.M_world_from_local = np.eye(4, dtype=float)
        self.M_local_from_world = np.eye(4, dtype=float)

    @property
    def is_identity(self) -> bool:
        return bool(np.array_equal(self.M_world_from_local, np.eye(4)))

    def get_composite_matrix(self) -> np.ndarray:
        """Return the cumulative 4x4 matrix mapping local->world (applied order)."""
        return self.M_world_from_local.copy()

    def get_inverse_matrix(self) -> np.ndarray:
        """Return the inverse composite 4x4 matrix (world->local)."""
        return self.M_local_from_world.copy()

    # ---- world-space helpers --------------------------------------------
    def to_world_points(self, points: np.ndarray) -> np.ndarray:
        P = np.asarray(points, dtype=float).reshape(-1, 3)
        if self.is_identity or P.shape[0] == 0:
            return P.copy()
        return trimesh.transformations.transform_points(P, self.M_world_from_local)

    def to_world_normals(self, normals: np.ndarray) -> np.ndarray:
        """Transform normals by the inverse-transpose of the linear part."""
        N = np.asarray(normals, dtype=float).reshape(-1, 3)
        if self.is_identity or N.shape[0] == 0:
            return N.copy()
        L = self.M_world_from_local[:3, :3]
        try:
            normal_matrix = np.linalg.inv(L).T
        except np.linalg.LinAlgError:
            normal_matrix = L
        return trimesh.util.unitize(N @ normal_matrix.T)
