"""Input/Output utilities for g2o pose graph files."""

from pathlib import Path
from typing import List, Tuple, Union

import gtsam

from ..pose_graph.graph import FactorsLike, as_factor_list


def save_g2o(
    factors: FactorsLike, values: gtsam.Values, filepath: Union[str, Path]
) -> None:
    """Save factors and values to a g2o file.

    Only factor types g2o can express (2D/3D between factors) are written.

    Args:
        factors: Factors to save.
        values: Estimates of the variables.
        filepath: Output file path.
    """
    graph = gtsam.NonlinearFactorGraph()
    for factor in as_factor_list(factors):
        graph.add(factor)
    gtsam.writeG2o(graph, values, str(filepath))


def load_g2o(
    filepath: Union[str, Path], is_3d: bool = False
) -> Tuple[List[gtsam.NonlinearFactor], gtsam.Values]:
    """Load factors and initial values from a g2o file.

    Args:
        filepath: Path to the g2o file.
        is_3d: Whether the file holds SE(3) vertices and edges.

    Returns:
        Tuple of (factors, values).
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Pose graph file not found: {filepath}")

    graph, values = gtsam.readG2o(str(filepath), is_3d)
    return as_factor_list(graph), values
