"""
Display helpers for segmented meshes.

Renders a list of segments, each in its flat display color, with either
plotly (interactive, default) or matplotlib. Segments are drawn in world
space, i.e. with their placement transforms applied.
"""

import logging
from typing import List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import plotly.graph_objects as go
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from .segmentation import Segment

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def visualize_segments(
    segments: Sequence[Segment],
    title: str = "Segmented Mesh",
    backend: str = "plotly",
    opacity: float = 1.0,
    show_wireframe: bool = False,
    hide_wall: bool = False,
) -> Optional[object]:
    """
    Visualize display segments.

    Args:
        segments: Segments to draw
        title: Plot title
        backend: 'plotly' or 'matplotlib'
        opacity: Face opacity (0-1)
        show_wireframe: Draw triangle edges (matplotlib only)
        hide_wall: Skip the wall segment

    Returns:
        plotly Figure or matplotlib Figure; None if nothing is drawable
    """
    drawn = [s for s in segments if not (hide_wall and s.is_wall) and s.mesh.face_count]
    if not drawn:
        logger.info("No segments to visualize")
        return None
    if backend == "plotly":
        return _visualize_plotly(drawn, title, opacity)
    elif backend == "matplotlib":
        return _visualize_matplotlib(drawn, title, opacity, show_wireframe)
    else:
        raise ValueError(f"Unknown backend: {backend}")


def _visualize_plotly(segments: List[Segment], title: str, opacity: float):
    traces = []
    for seg in segments:
        m = seg.world_mesh()
        traces.append(
            go.Mesh3d(
                x=m.positions[:, 0],
                y=m.positions[:, 1],
                z=m.positions[:, 2],
                i=m.faces[:, 0],
                j=m.faces[:, 1],
                k=m.faces[:, 2],
                color=seg.color.hex(),
                opacity=opacity,
                flatshading=True,
                name=seg.id,
            )
        )
    fig = go.Figure(data=traces)
    fig.update_layout(
        title=title,
        scene=dict(
            xaxis_title="X",
            yaxis_title="Y",
            zaxis_title="Z",
            aspectmode="data",
        ),
        width=800,
        height=600,
    )
    return fig


def _visualize_matplotlib(segments: List[Segment], title: str, opacity: float, show_wireframe: bool):
    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection="3d")

    lo = np.full(3, np.inf)
    hi = np.full(3, -np.inf)
    for seg in segments:
        m = seg.world_mesh()
        poly3d = Poly3DCollection(
            m.positions[m.faces],
            facecolor=seg.color.to_rgba_float(opacity),
            edgecolor="black" if show_wireframe else None,
        )
        ax.add_collection3d(poly3d)
        lo = np.minimum(lo, m.positions.min(axis=0))
        hi = np.maximum(hi, m.positions.max(axis=0))

    ax.set_xlim(lo[0], hi[0])
    ax.set_ylim(lo[1], hi[1])
    ax.set_zlim(lo[2], hi[2])
    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_zlabel("Z")
    ax.set_title(title)
    plt.tight_layout()
    return fig
