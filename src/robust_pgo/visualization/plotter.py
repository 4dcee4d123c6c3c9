"""Plotting functions for multi-robot pose graphs."""

from typing import Collection, Dict, List

import gtsam
import matplotlib.pyplot as plt
import numpy as np
import numpy.typing as npt
from matplotlib.collections import LineCollection

from ..outlier.consistency import POSE2, POSE3, PoseTraits
from ..pose_graph.edge import (
    FactorType,
    classify_factor,
    factor_keys,
    factor_measurement,
    symbol_index,
    symbol_prefix,
)
from ..pose_graph.graph import FactorsLike, as_factor_list


def _pose_traits(factors: List[gtsam.NonlinearFactor]) -> PoseTraits:
    """Guess the pose type from the first factor with a pose measurement."""
    for factor in factors:
        measured = factor_measurement(factor)
        if isinstance(measured, gtsam.Pose3):
            return POSE3
        if isinstance(measured, gtsam.Pose2):
            return POSE2
    return POSE2


def _xy(traits: PoseTraits, values: gtsam.Values, key: int) -> npt.NDArray[np.float64]:
    pose = traits.value_at(values, key)
    return np.array([pose.x(), pose.y()])


def plot_solver_graph(
    factors: FactorsLike,
    values: gtsam.Values,
    special_symbols: Collection[str] = (),
    title: str = "Robust Pose Graph",
    show: bool = True,
) -> plt.Figure:
    """Plot the trajectories, landmarks and loop closures of a pose graph.

    Poses are projected on the x/y plane, so 3D graphs are shown from above.

    Args:
        factors: Factors of the graph, e.g. ``RobustSolver.get_factors()``.
        values: Estimates of the variables.
        special_symbols: Prefixes denoting landmarks.
        title: Plot title.
        show: Whether to display the plot.

    Returns:
        Matplotlib figure.
    """
    fig, ax = plt.subplots(figsize=(12, 9))

    factor_list = as_factor_list(factors)
    traits = _pose_traits(factor_list)

    # Group pose keys by robot prefix
    trajectories: Dict[str, Dict[int, int]] = {}
    landmarks = set()
    intra_segments = []
    inter_segments = []
    for factor in factor_list:
        keys = [key for key in factor_keys(factor) if values.exists(key)]
        for key in keys:
            prefix = symbol_prefix(key)
            if prefix in special_symbols:
                landmarks.add(key)
            else:
                trajectories.setdefault(prefix, {})[symbol_index(key)] = key

        if len(keys) != 2:
            continue
        factor_type = classify_factor(factor, special_symbols)
        segment = [_xy(traits, values, key) for key in keys]
        if factor_type is FactorType.LOOP_CLOSURE:
            intra_segments.append(segment)
        elif factor_type is FactorType.INTER_LOOP_CLOSURE:
            inter_segments.append(segment)

    if not trajectories and not landmarks:
        print("No poses to plot")
        return fig

    colors = plt.cm.tab10.colors
    for i, prefix in enumerate(sorted(trajectories)):
        keys = [trajectories[prefix][index] for index in sorted(trajectories[prefix])]
        positions = np.array([_xy(traits, values, key) for key in keys])
        color = colors[i % len(colors)]
        ax.plot(positions[:, 0], positions[:, 1], "-", color=color, linewidth=2, label=prefix)
        ax.scatter(positions[0, 0], positions[0, 1], color=color, s=80, marker="o", zorder=10)

    if intra_segments:
        ax.add_collection(
            LineCollection(intra_segments, colors="g", linewidths=1, alpha=0.6, label="Loop closures")
        )
    if inter_segments:
        ax.add_collection(
            LineCollection(
                inter_segments, colors="r", linewidths=1, alpha=0.6, label="Inter-robot loop closures"
            )
        )
    if landmarks:
        positions = np.array([_xy(traits, values, key) for key in sorted(landmarks)])
        ax.scatter(positions[:, 0], positions[:, 1], c="k", s=60, marker="*", label="Landmarks")

    ax.autoscale()
    ax.set_xlabel("X (m)")
    ax.set_ylabel("Y (m)")
    ax.set_title(title)
    ax.legend()
    ax.grid(True)
    ax.set_aspect("equal")

    if show:
        plt.show()

    return fig
