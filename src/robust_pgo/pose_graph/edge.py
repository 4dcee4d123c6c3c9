"""Factor classification and key helpers for GTSAM factors.

This module provides helpers for creating GTSAM factors keyed by
``(prefix, index)`` symbols and for classifying incoming factors by
provenance (odometry, loop closure, landmark measurement, prior).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Collection, Optional, Tuple, Union

import gtsam

Pose = Union[gtsam.Pose2, gtsam.Pose3]


class FactorType(Enum):
    """Provenance of a factor."""

    ODOMETRY = "odometry"  # Consecutive poses of one robot
    LOOP_CLOSURE = "loop_closure"  # Non-consecutive poses of one robot
    INTER_LOOP_CLOSURE = "inter_loop_closure"  # Poses of two different robots
    LANDMARK = "landmark"  # Pose to landmark measurement
    PRIOR = "prior"  # Unary constraint
    OTHER = "other"

    @property
    def is_loop_closure(self) -> bool:
        return self in (FactorType.LOOP_CLOSURE, FactorType.INTER_LOOP_CLOSURE)


def symbol_prefix(key: int) -> str:
    """Get the prefix character of a symbol key.

    Args:
        key: GTSAM key.

    Returns:
        Single character prefix.
    """
    return chr(gtsam.Symbol(key).chr())


def symbol_index(key: int) -> int:
    """Get the index of a symbol key.

    Args:
        key: GTSAM key.

    Returns:
        Symbol index.
    """
    return int(gtsam.Symbol(key).index())


def format_key(key: int) -> str:
    """Format a key as prefix followed by index, e.g. ``a12``."""
    return f"{symbol_prefix(key)}{symbol_index(key)}"


@dataclass(frozen=True)
class ObservationId:
    """Unordered pair of prefixes identifying a loop closure channel.

    ``ObservationId("a", "a")`` scopes intra-robot closures of robot ``a``;
    ``ObservationId("a", "b")`` (equal to ``ObservationId("b", "a")``)
    scopes closures between robots ``a`` and ``b``.
    """

    first: str
    second: str

    def __post_init__(self) -> None:
        """Validate and order the prefixes."""
        if len(self.first) != 1 or len(self.second) != 1:
            raise ValueError("Observation prefixes must be single characters")
        if self.second < self.first:
            first, second = self.second, self.first
            object.__setattr__(self, "first", first)
            object.__setattr__(self, "second", second)

    @classmethod
    def from_keys(cls, key_from: int, key_to: int) -> "ObservationId":
        return cls(symbol_prefix(key_from), symbol_prefix(key_to))

    @property
    def is_intra_robot(self) -> bool:
        return self.first == self.second

    def contains(self, prefix: str) -> bool:
        """Check whether a prefix takes part in this observation channel."""
        return prefix in (self.first, self.second)

    def __str__(self) -> str:
        return f"{self.first}-{self.second}"


def factor_keys(factor: gtsam.NonlinearFactor) -> Tuple[int, ...]:
    """Return the keys a factor constrains."""
    return tuple(int(key) for key in factor.keys())


def classify_factor(
    factor: gtsam.NonlinearFactor,
    special_symbols: Collection[str] = (),
) -> FactorType:
    """Classify a factor by the symbols it connects.

    Args:
        factor: GTSAM factor.
        special_symbols: Prefixes denoting landmarks rather than poses.

    Returns:
        The factor provenance.
    """
    keys = factor_keys(factor)
    if len(keys) == 1:
        return FactorType.PRIOR
    if len(keys) != 2:
        return FactorType.OTHER

    key_from, key_to = keys
    prefix_from = symbol_prefix(key_from)
    prefix_to = symbol_prefix(key_to)
    if prefix_from in special_symbols or prefix_to in special_symbols:
        return FactorType.LANDMARK
    if prefix_from != prefix_to:
        return FactorType.INTER_LOOP_CLOSURE
    if symbol_index(key_to) == symbol_index(key_from) + 1:
        return FactorType.ODOMETRY
    return FactorType.LOOP_CLOSURE


def factor_measurement(factor: gtsam.NonlinearFactor) -> Optional[Pose]:
    """Return the relative pose measured by a between factor, if any."""
    measured = getattr(factor, "measured", None)
    if measured is None:
        return None
    pose = measured()
    if isinstance(pose, (gtsam.Pose2, gtsam.Pose3)):
        return pose
    return None


def create_between_factor(
    key_from: int,
    key_to: int,
    relative_pose: Pose,
    noise_model: gtsam.noiseModel.Base,
) -> gtsam.NonlinearFactor:
    """Create a GTSAM between factor for a Pose2 or Pose3 measurement.

    Args:
        key_from: Source key.
        key_to: Target key.
        relative_pose: Relative transformation from source to target.
        noise_model: Noise model.

    Returns:
        GTSAM BetweenFactorPose2 or BetweenFactorPose3.
    """
    if isinstance(relative_pose, gtsam.Pose2):
        return gtsam.BetweenFactorPose2(key_from, key_to, relative_pose, noise_model)
    return gtsam.BetweenFactorPose3(key_from, key_to, relative_pose, noise_model)


def create_prior_factor(
    key: int,
    prior_pose: Pose,
    noise_model: gtsam.noiseModel.Base,
) -> gtsam.NonlinearFactor:
    """Create a GTSAM prior factor for a Pose2 or Pose3.

    Args:
        key: Key to constrain.
        prior_pose: Prior pose value.
        noise_model: Noise model.

    Returns:
        GTSAM PriorFactorPose2 or PriorFactorPose3.
    """
    if isinstance(prior_pose, gtsam.Pose2):
        return gtsam.PriorFactorPose2(key, prior_pose, noise_model)
    return gtsam.PriorFactorPose3(key, prior_pose, noise_model)
