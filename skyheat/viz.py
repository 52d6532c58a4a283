"""
VISUALIZATION: TEMPERATURE HISTORY AND NODAL FIELD
==================================================

Two plots for solved analyses, both written straight to file:

- plot_temperature_history: T(t) of selected free nodes from a dynamic run
  (needs keep_history=True), handy for checking that a transient settles.
- plot_nodal_field: node positions coloured by temperature, with the
  element outlines and the Dirichlet nodes marked.
"""

import os
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from .post import TemperatureResults


def _ensure_dir(outpath: str) -> None:
    directory = os.path.dirname(outpath)
    if directory:
        os.makedirs(directory, exist_ok=True)


def plot_temperature_history(
    results: TemperatureResults,
    outpath: str,
    node_ids: Optional[Sequence[int]] = None,
    title: str = "Nodal Temperature History",
) -> None:
    """
    Plot temperature against time for free nodes.

    Parameters:
    -----------
    results : TemperatureResults
        From ThermalDynamicAnalyzer.results() with keep_history=True
    outpath : str
        Image path (.png, .pdf, .svg); the directory is created if needed
    node_ids : sequence of int, optional
        Free nodes to plot; all free nodes when omitted
    """
    if results.history is None:
        raise ValueError("Results carry no history; run the analyzer with keep_history=True")

    frame = results.to_frame()
    if node_ids is not None:
        missing = [n for n in node_ids if n not in frame.columns]
        if missing:
            raise ValueError(f"Nodes {missing} are not free nodes of this model")
        frame = frame[list(node_ids)]

    fig, ax = plt.subplots(figsize=(8, 5))
    for node_id in frame.columns:
        ax.plot(frame.index, frame[node_id], label=f"node {node_id}", linewidth=1.5)

    ax.set_xlabel("time")
    ax.set_ylabel("temperature")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    ax.legend(loc="best", fontsize=8)

    _ensure_dir(outpath)
    plt.savefig(outpath, dpi=150, bbox_inches='tight')
    plt.close(fig)


def plot_nodal_field(
    results: TemperatureResults,
    outpath: str,
    title: str = "Nodal Temperatures",
    cmap: str = "inferno",
) -> None:
    """Scatter the full nodal temperature field over the mesh outline."""
    model = results.model
    xy = np.array([[n.x, n.y] for n in model.nodes], dtype=float)
    field = results.nodal_temperatures()

    fig, ax = plt.subplots(figsize=(7, 6))
    for element in model.elements:
        ring = list(element.node_ids) + [element.node_ids[0]]
        ax.plot(xy[ring, 0], xy[ring, 1], color="0.6", linewidth=0.8, zorder=1)

    points = ax.scatter(xy[:, 0], xy[:, 1], c=field, cmap=cmap, s=60, zorder=2)
    fixed = sorted({c.node_id for c in model.constraints})
    if fixed:
        ax.scatter(xy[fixed, 0], xy[fixed, 1], marker="s", facecolors="none",
                   edgecolors="tab:blue", s=140, zorder=3, label="fixed temperature")
        ax.legend(loc="best", fontsize=8)

    fig.colorbar(points, ax=ax, label="temperature")
    ax.set_aspect("equal")
    ax.set_title(title)

    _ensure_dir(outpath)
    plt.savefig(outpath, dpi=150, bbox_inches='tight')
    plt.close(fig)
