"""Noise models of pose measurements and their covariances."""

import gtsam
import numpy as np
import numpy.typing as npt


def create_noise_model_diagonal(sigmas: npt.NDArray[np.float64]) -> gtsam.noiseModel.Diagonal:
    """Build a diagonal measurement noise model.

    Args:
        sigmas: Per-axis standard deviations in tangent-space order
            (``x, y, theta`` for Pose2, ``rx, ry, rz, x, y, z`` for Pose3).
    """
    return gtsam.noiseModel.Diagonal.Sigmas(np.asarray(sigmas, dtype=np.float64))


def noise_covariance(factor: gtsam.NonlinearFactor, dim: int) -> npt.NDArray[np.float64]:
    """Extract the measurement covariance of a factor.

    Robust or otherwise non-Gaussian noise models fall back to identity.

    Args:
        factor: GTSAM noise model factor.
        dim: Dimension of the measurement.

    Returns:
        ``dim x dim`` covariance matrix.
    """
    noise_model = factor.noiseModel()
    if isinstance(noise_model, gtsam.noiseModel.Gaussian):
        return np.asarray(noise_model.covariance(), dtype=np.float64)
    return np.eye(dim)
