"""Outlier rejection strategy interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

import gtsam

from ..pose_graph.edge import ObservationId
from ..pose_graph.graph import FactorsLike, GraphState


@dataclass
class RejectionStats:
    """Outlier rejection counters.

    Counters describe the measurements the strategy currently tracks, so a
    removed loop closure no longer counts. ``consistency_error`` only holds
    the values computed during the most recent update.
    """

    lc: int = 0
    good_lc: int = 0
    odom_consistent_lc: int = 0
    multirobot_lc: int = 0
    good_multirobot_lc: int = 0
    landmark_measurements: int = 0
    good_landmark_measurements: int = 0
    consistency_error: List[float] = field(default_factory=list)

    def counters(self) -> List[int]:
        """Return the integer counters in log order."""
        return [
            self.lc,
            self.good_lc,
            self.odom_consistent_lc,
            self.multirobot_lc,
            self.good_multirobot_lc,
            self.landmark_measurements,
            self.good_landmark_measurements,
        ]


class OutlierRemoval(ABC):
    """Pluggable policy deciding which measurements enter the graph.

    Every method that mutates the graph receives the solver's
    :class:`GraphState` for the duration of the call only; implementations
    must not keep a reference to it.
    """

    def __init__(self) -> None:
        self.debug = True

    def set_quiet(self) -> None:
        """Suppress informational output."""
        self.debug = False

    @abstractmethod
    def remove_outliers(
        self,
        new_factors: FactorsLike,
        new_values: Optional[gtsam.Values],
        graph: GraphState,
    ) -> bool:
        """Filter a batch of measurements into the graph.

        Args:
            new_factors: Incoming factors.
            new_values: Initial estimates of newly introduced variables.
            graph: Graph state to update in place.

        Returns:
            True if the graph should be re-optimized now.
        """

    @abstractmethod
    def remove_last_loop_closure(
        self,
        graph: GraphState,
        observation_id: Optional[ObservationId] = None,
    ) -> Optional[gtsam.NonlinearFactor]:
        """Detach the most recently accepted loop closure.

        Args:
            graph: Graph state to update in place.
            observation_id: Restrict the search to one observation channel.

        Returns:
            The removed factor, or None if there was nothing to remove.
        """

    @abstractmethod
    def ignore_loop_closure_with_prefix(self, prefix: str, graph: GraphState) -> None:
        """Disable every loop closure involving ``prefix``."""

    @abstractmethod
    def revive_loop_closure_with_prefix(self, prefix: str, graph: GraphState) -> None:
        """Re-enable loop closures involving ``prefix``."""

    @abstractmethod
    def get_ignored_prefixes(self) -> Set[str]:
        """Get the prefixes whose loop closures are currently ignored."""

    @abstractmethod
    def get_rejection_stats(self) -> RejectionStats:
        """Get the rejection counters and latest consistency errors."""

    @abstractmethod
    def save_data(self, folder: Path) -> None:
        """Persist auxiliary rejection data under ``folder``."""
