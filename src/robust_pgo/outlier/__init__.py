"""Outlier rejection strategies for incoming loop closures and landmarks."""

from .base import OutlierRemoval, RejectionStats
from .consistency import POSE2, POSE3, ConsistencyCheck, DistanceCheck, PoseTraits, Trajectory
from .pcm import ConsistencyGroup, PairwiseConsistencyMaximization, Pcm, PcmSimple

__all__ = [
    "POSE2",
    "POSE3",
    "ConsistencyCheck",
    "ConsistencyGroup",
    "DistanceCheck",
    "OutlierRemoval",
    "PairwiseConsistencyMaximization",
    "Pcm",
    "PcmSimple",
    "PoseTraits",
    "RejectionStats",
    "Trajectory",
]
