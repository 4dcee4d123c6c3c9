"""Pose algebra and consistency tests used by pairwise consistency maximization."""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import gtsam
import numpy as np
import numpy.typing as npt

from ..pose_graph.edge import Pose


@dataclass(frozen=True)
class PoseTraits:
    """Describes the pose type a strategy works with.

    ``rotation_dims`` and ``translation_dims`` index into the tangent vector
    returned by the pose type's Logmap.
    """

    name: str
    dim: int
    pose_type: type
    rotation_dims: slice
    translation_dims: slice

    def identity(self) -> Pose:
        return self.pose_type()

    def logmap(self, pose: Pose) -> npt.NDArray[np.float64]:
        return np.asarray(self.pose_type.Logmap(pose), dtype=np.float64)

    def value_at(self, values: gtsam.Values, key: int) -> Pose:
        return getattr(values, f"at{self.pose_type.__name__}")(key)


POSE2 = PoseTraits(
    name="2D",
    dim=3,
    pose_type=gtsam.Pose2,
    rotation_dims=slice(2, 3),
    translation_dims=slice(0, 2),
)
POSE3 = PoseTraits(
    name="3D",
    dim=6,
    pose_type=gtsam.Pose3,
    rotation_dims=slice(0, 3),
    translation_dims=slice(3, 6),
)


@dataclass
class PoseWithCovariance:
    pose: Pose
    covariance: npt.NDArray[np.float64]


class Trajectory:
    """Odometry-only trajectory of one robot.

    Poses are obtained by chaining odometry measurements from the first pose
    seen, which is anchored at the identity. Covariances accumulate
    additively along the chain.
    """

    def __init__(self, traits: PoseTraits) -> None:
        self.traits = traits
        self.poses: Dict[int, PoseWithCovariance] = {}

    def __contains__(self, index: int) -> bool:
        return index in self.poses

    def __len__(self) -> int:
        return len(self.poses)

    def extend(
        self,
        index_from: int,
        index_to: int,
        measured: Pose,
        covariance: npt.NDArray[np.float64],
    ) -> bool:
        """Chain an odometry measurement onto the trajectory.

        Args:
            index_from: Index of the pose the measurement starts from.
            index_to: Index of the new pose.
            measured: Relative pose from ``index_from`` to ``index_to``.
            covariance: Measurement covariance.

        Returns:
            False if ``index_from`` is not on the trajectory.
        """
        if not self.poses:
            self.poses[index_from] = PoseWithCovariance(
                self.traits.identity(), np.zeros((self.traits.dim, self.traits.dim))
            )
        start = self.poses.get(index_from)
        if start is None:
            return False
        self.poses[index_to] = PoseWithCovariance(
            start.pose.compose(measured), start.covariance + covariance
        )
        return True

    def between(self, index_from: int, index_to: int) -> Optional[PoseWithCovariance]:
        """Relative odometry pose between two indices, if both are known."""
        start = self.poses.get(index_from)
        end = self.poses.get(index_to)
        if start is None or end is None:
            return None
        # Covariance of the odometry edges separating the two poses
        if index_from <= index_to:
            covariance = end.covariance - start.covariance
        else:
            covariance = start.covariance - end.covariance
        return PoseWithCovariance(start.pose.between(end.pose), covariance)


class ConsistencyCheck:
    """Squared Mahalanobis distance test of a residual pose.

    A residual is consistent when ``r^T S^-1 r < threshold``, with ``r`` the
    Logmap of the residual and ``S`` its covariance.
    """

    def __init__(self, traits: PoseTraits, threshold: float) -> None:
        self.traits = traits
        self.threshold = threshold

    def __call__(
        self, residual: Pose, covariance: npt.NDArray[np.float64]
    ) -> Tuple[bool, float]:
        """Test a residual.

        Args:
            residual: Residual pose, identity when perfectly consistent.
            covariance: Covariance of the residual.

        Returns:
            Tuple of (consistent, error).
        """
        r = self.traits.logmap(residual)
        error = float(r @ np.linalg.pinv(covariance) @ r)
        return error < self.threshold, error


class DistanceCheck(ConsistencyCheck):
    """Translation and rotation magnitude test of a residual pose.

    The reported error is the larger of the two magnitudes relative to their
    thresholds, so a residual is consistent when the error is below one.
    """

    def __init__(
        self, traits: PoseTraits, trans_threshold: float, rot_threshold: float
    ) -> None:
        if trans_threshold <= 0 or rot_threshold <= 0:
            raise ValueError("Distance thresholds must be positive")
        super().__init__(traits, 1.0)
        self.trans_threshold = trans_threshold
        self.rot_threshold = rot_threshold

    def __call__(
        self, residual: Pose, covariance: npt.NDArray[np.float64]
    ) -> Tuple[bool, float]:
        r = self.traits.logmap(residual)
        translation = float(np.linalg.norm(r[self.traits.translation_dims]))
        rotation = float(np.linalg.norm(r[self.traits.rotation_dims]))
        consistent = translation < self.trans_threshold and rotation < self.rot_threshold
        error = max(translation / self.trans_threshold, rotation / self.rot_threshold)
        return consistent, error
