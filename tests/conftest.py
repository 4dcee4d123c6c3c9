"""Pytest configuration and fixtures."""

from typing import Callable, List, Tuple

import gtsam
import numpy as np
import pytest

from robust_pgo import RobustSolverParams, Verbosity
from robust_pgo.pose_graph import GraphOptimizer, create_noise_model_diagonal

Chain = Tuple[List[gtsam.NonlinearFactor], gtsam.Values]


class CountingOptimizer(GraphOptimizer):
    """Optimizer backend that records how often it was called."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def optimize(self, graph, initial, params):
        self.calls += 1
        return super().optimize(graph, initial, params)


@pytest.fixture
def noise_2d() -> gtsam.noiseModel.Diagonal:
    """Pose2 noise model with 0.1 sigmas."""
    return create_noise_model_diagonal(np.array([0.1, 0.1, 0.1]))


@pytest.fixture
def prior_noise_2d() -> gtsam.noiseModel.Diagonal:
    """Tight Pose2 prior noise model."""
    return create_noise_model_diagonal(np.array([0.01, 0.01, 0.01]))


@pytest.fixture
def counting_optimizer() -> CountingOptimizer:
    return CountingOptimizer()


@pytest.fixture
def quiet_params() -> RobustSolverParams:
    """Levenberg-Marquardt solver without outlier rejection."""
    params = RobustSolverParams()
    params.set_no_rejection(Verbosity.QUIET)
    params.set_lm()
    return params


@pytest.fixture
def pcm_params() -> RobustSolverParams:
    """PCM 2D solver with loose Mahalanobis thresholds."""
    params = RobustSolverParams()
    params.set_pcm_2d_params(odom_threshold=5.0, lc_threshold=5.0, verbosity=Verbosity.QUIET)
    params.special_symbols = ["l"]
    return params


@pytest.fixture
def make_chain(noise_2d) -> Callable[..., Chain]:
    """Factory for straight-line odometry chains along x with unit steps.

    ``make_chain("a", 4, y=2.0)`` returns odometry factors a0->a1->a2->a3 and
    ground-truth values for a0..a3 at ``(i, y, 0)``.
    """

    def _make_chain(prefix: str, length: int, y: float = 0.0) -> Chain:
        factors = []
        values = gtsam.Values()
        for i in range(length):
            values.insert(gtsam.symbol(prefix, i), gtsam.Pose2(float(i), y, 0.0))
            if i > 0:
                factors.append(
                    gtsam.BetweenFactorPose2(
                        gtsam.symbol(prefix, i - 1),
                        gtsam.symbol(prefix, i),
                        gtsam.Pose2(1.0, 0.0, 0.0),
                        noise_2d,
                    )
                )
        return factors, values

    return _make_chain
