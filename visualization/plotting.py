import logging
from typing import Any, Mapping, Optional

import matplotlib.pyplot as plt
import numpy as np
from mpl_toolkits.mplot3d.art3d import Line3DCollection

from runtime.host import HostData, HostModel

logger = logging.getLogger("solid_elasticity")


def _edge_segments(plugins: Mapping[int, Any], xpos: np.ndarray) -> np.ndarray:
    segments = []
    for plugin in plugins.values():
        mesh = getattr(plugin, "mesh", None)
        bodies = getattr(plugin, "bodies", None)
        if mesh is None or bodies is None or mesh.n_edges == 0:
            continue
        segments.append(xpos[bodies.bodies(mesh.edges)])
    if not segments:
        return np.zeros((0, 2, 3))
    return np.concatenate(segments, axis=0)


def plot_solid(
    model: HostModel,
    data: HostData,
    plugins: Optional[Mapping[int, Any]] = None,
    *,
    ax=None,
    draw_edges: bool = True,
    draw_forces: bool = True,
    force_scale: Optional[float] = None,
    edge_color: Any = "k",
    force_color: Any = "r",
    show_indices: bool = False,
    no_axes: bool = False,
    title: str = "Passive forces",
    show: bool = True,
):
    """
    Draw plugin tetrahedra as a wireframe with passive-force arrows.

    Parameters
    ----------
    model, data :
        Host arrays; positions come from ``data.xpos`` and forces from
        ``data.qfrc_passive``.
    plugins : mapping, optional
        ``{instance: plugin}`` map (e.g. ``PluginInstanceManager.instances``).
        Plugins exposing ``mesh`` and ``bodies`` contribute their edges.
    force_scale : float, optional
        Arrow length per unit force. By default the largest arrow is 20% of
        the bounding box size.
    show : bool, optional
        If ``True`` (default), call :func:`matplotlib.pyplot.show`. Set to
        ``False`` with non-interactive backends or when saving the figure.

    Returns the Matplotlib 3D axis.
    """
    if ax is None:
        fig = plt.figure()
        ax = fig.add_subplot(111, projection="3d")

    if model.nbody <= 1:
        logger.warning("Scene has no bodies to visualize.")
        return ax

    xpos = data.xpos[1:]

    if draw_edges and plugins:
        segments = _edge_segments(plugins, data.xpos)
        if len(segments):
            ax.add_collection3d(
                Line3DCollection(list(segments), colors=edge_color, linewidths=0.8)
            )

    ax.scatter(xpos[:, 0], xpos[:, 1], xpos[:, 2], color="b", s=12)

    mins = xpos.min(axis=0)
    maxs = xpos.max(axis=0)
    max_range = float((maxs - mins).max()) or 1.0

    if draw_forces:
        forces = data.body_forces(model)[1:]
        magnitude = np.linalg.norm(forces, axis=1)
        if magnitude.max() > 0.0:
            scale = force_scale
            if scale is None:
                scale = 0.2 * max_range / magnitude.max()
            F = forces * scale
            ax.quiver(
                xpos[:, 0], xpos[:, 1], xpos[:, 2],
                F[:, 0], F[:, 1], F[:, 2],
                color=force_color,
            )

    if show_indices:
        for b, p in enumerate(xpos, start=1):
            ax.text(*p, f"{b}", color="k", fontsize=8)

    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_zlabel("Z")
    ax.set_title(title)

    mid = 0.5 * (maxs + mins)
    ax.set_xlim(mid[0] - max_range / 2, mid[0] + max_range / 2)
    ax.set_ylim(mid[1] - max_range / 2, mid[1] + max_range / 2)
    ax.set_zlim(mid[2] - max_range / 2, mid[2] + max_range / 2)

    if no_axes:
        ax.set_axis_off()

    plt.tight_layout()

    if show:
        plt.show()
    return ax
