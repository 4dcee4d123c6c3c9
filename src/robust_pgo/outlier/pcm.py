"""Pairwise consistency maximization (PCM) outlier rejection.

Loop closures are grouped by observation channel (robot or robot pair) and
landmark measurements by landmark. Inside a group, two measurements are
connected when they agree with each other given the odometry; the accepted
measurements are the maximum clique of that consistency graph.
"""

import itertools
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Collection, Dict, Hashable, List, Optional, Set, Tuple

import gtsam
import networkx as nx
import numpy as np
import numpy.typing as npt
import pandas as pd

from ..pose_graph.edge import (
    FactorType,
    ObservationId,
    Pose,
    classify_factor,
    factor_keys,
    factor_measurement,
    format_key,
    symbol_index,
    symbol_prefix,
)
from ..pose_graph.graph import FactorsLike, GraphState, as_factor_list
from ..pose_graph.noise import noise_covariance
from .base import OutlierRemoval, RejectionStats
from .consistency import ConsistencyCheck, DistanceCheck, PoseTraits, Trajectory

logger = logging.getLogger("robust_pgo.pcm")

REJECTION_DATA_FILE = "outlier_rejection.csv"


@dataclass
class MeasurementRecord:
    """A loop closure or landmark measurement tracked by PCM."""

    seq: int
    factor: gtsam.NonlinearFactor
    factor_type: FactorType
    key_from: int
    key_to: int
    measured: Pose
    covariance: npt.NDArray[np.float64]
    odom_consistent: bool = True

    def reversed(self) -> "MeasurementRecord":
        """Same measurement expressed from ``key_to`` to ``key_from``.

        With ``T = T_hat Exp(xi)``, the inverse is ``T_hat^-1 Exp(-Ad(T_hat) xi)``,
        so the covariance moves into the new tangent space through the adjoint
        of the original measurement.
        """
        adjoint = np.asarray(self.measured.AdjointMap(), dtype=np.float64)
        return replace(
            self,
            key_from=self.key_to,
            key_to=self.key_from,
            measured=self.measured.inverse(),
            covariance=adjoint @ self.covariance @ adjoint.T,
        )


PairCheck = Callable[[MeasurementRecord, MeasurementRecord], Tuple[bool, Optional[float]]]


class ConsistencyGroup:
    """Measurements tested against each other for pairwise consistency."""

    def __init__(self) -> None:
        self.records: Dict[int, MeasurementRecord] = {}
        self.graph = nx.Graph()
        self.accepted: Set[int] = set()

    def add(self, record: MeasurementRecord, check_pair: PairCheck) -> Tuple[bool, List[float]]:
        """Add a measurement and recompute the accepted set.

        Measurements that failed the odometry check are tracked but never
        enter the consistency graph.

        Args:
            record: New measurement.
            check_pair: Pairwise consistency test.

        Returns:
            Tuple of (accepted set changed, consistency errors computed).
        """
        self.records[record.seq] = record
        errors: List[float] = []
        if not record.odom_consistent:
            return False, errors

        self.graph.add_node(record.seq)
        for seq in list(self.graph.nodes):
            if seq == record.seq:
                continue
            consistent, error = check_pair(self.records[seq], record)
            if error is not None:
                errors.append(error)
            if consistent:
                self.graph.add_edge(seq, record.seq)
        return self._update_max_clique(), errors

    def remove(self, seq: int) -> MeasurementRecord:
        """Forget a measurement without recomputing the accepted set."""
        record = self.records.pop(seq)
        if self.graph.has_node(seq):
            self.graph.remove_node(seq)
        self.accepted.discard(seq)
        return record

    def _is_clique(self, nodes: Set[int]) -> bool:
        if not all(self.graph.has_node(n) for n in nodes):
            return False
        return all(
            self.graph.has_edge(u, v) for u, v in itertools.combinations(sorted(nodes), 2)
        )

    def _update_max_clique(self) -> bool:
        clique, _ = nx.max_weight_clique(self.graph, weight=None)
        accepted = set(clique)
        # Keep the current selection on ties
        if len(accepted) == len(self.accepted) and self._is_clique(self.accepted):
            return False
        changed = accepted != self.accepted
        self.accepted = accepted
        return changed

    def accepted_records(self) -> List[MeasurementRecord]:
        return [self.records[seq] for seq in sorted(self.accepted)]


class PairwiseConsistencyMaximization(OutlierRemoval):
    """Outlier rejection by maximum sets of pairwise consistent measurements.

    Priors, odometry and unrecognised factors are always admitted. Odometry
    also builds one :class:`Trajectory` per robot prefix, which is used to
    check loop closures against each other. Loop closures whose channel
    involves an ignored prefix stay tracked but are left out of the graph.
    """

    def __init__(
        self,
        traits: PoseTraits,
        odom_check: ConsistencyCheck,
        lc_check: ConsistencyCheck,
        special_symbols: Collection[str] = (),
    ) -> None:
        """Initialize the strategy.

        Args:
            traits: Pose type handled by the strategy.
            odom_check: Test between a loop closure and the odometry.
            lc_check: Test between two loop closures or landmark measurements.
            special_symbols: Prefixes denoting landmarks.
        """
        super().__init__()
        self.traits = traits
        self.odom_check = odom_check
        self.lc_check = lc_check
        self.special_symbols = frozenset(special_symbols)

        self._seq = itertools.count()
        self._trajectories: Dict[str, Trajectory] = {}
        self._fixed: List[Tuple[int, gtsam.NonlinearFactor]] = []
        self._loop_closures: Dict[ObservationId, ConsistencyGroup] = {}
        self._landmarks: Dict[int, ConsistencyGroup] = {}
        self._ignored_prefixes: Set[str] = set()
        self._consistency_error: List[float] = []

    def remove_outliers(
        self,
        new_factors: FactorsLike,
        new_values: Optional[gtsam.Values],
        graph: GraphState,
    ) -> bool:
        self._consistency_error = []
        graph.add_values(new_values)

        do_optimize = False
        rebuild = False
        for factor in as_factor_list(new_factors):
            factor_type = classify_factor(factor, self.special_symbols)
            measured = self._measurement(factor)
            if measured is None:
                if factor_type not in (FactorType.PRIOR, FactorType.OTHER):
                    logger.debug("Admitting %s factor without a pose measurement", factor_type.value)
                self._add_fixed(factor, graph)
            elif factor_type is FactorType.ODOMETRY:
                self._add_odometry(factor, measured)
                self._add_fixed(factor, graph)
            elif factor_type.is_loop_closure:
                changed, active = self._add_loop_closure(factor, factor_type, measured)
                rebuild |= changed
                do_optimize |= changed and active
            elif factor_type is FactorType.LANDMARK:
                changed = self._add_landmark(factor, measured, graph.values)
                rebuild |= changed
                do_optimize |= changed
            else:
                self._add_fixed(factor, graph)

        # Fixed factors were appended in arrival order; only a changed
        # accepted set requires the full list
        if rebuild:
            graph.replace_factors(self._active_factors())
        return do_optimize

    def remove_last_loop_closure(
        self,
        graph: GraphState,
        observation_id: Optional[ObservationId] = None,
    ) -> Optional[gtsam.NonlinearFactor]:
        candidates = [
            (seq, observation)
            for observation, group in self._loop_closures.items()
            if (observation_id is None or observation == observation_id)
            and not self._is_ignored(observation)
            for seq in group.accepted
        ]
        if not candidates:
            if self.debug:
                logger.info("No loop closure to remove for %s", observation_id or "any robot")
            return None

        seq, observation = max(candidates, key=lambda candidate: candidate[0])
        record = self._loop_closures[observation].remove(seq)
        graph.replace_factors(self._active_factors())
        if self.debug:
            logger.info(
                "Removed loop closure %s -> %s",
                format_key(record.key_from),
                format_key(record.key_to),
            )
        return record.factor

    def ignore_loop_closure_with_prefix(self, prefix: str, graph: GraphState) -> None:
        self._ignored_prefixes.add(prefix)
        graph.replace_factors(self._active_factors())
        if self.debug:
            logger.info("Ignoring loop closures with prefix %s", prefix)

    def revive_loop_closure_with_prefix(self, prefix: str, graph: GraphState) -> None:
        self._ignored_prefixes.discard(prefix)
        graph.replace_factors(self._active_factors())
        if self.debug:
            logger.info("Reviving loop closures with prefix %s", prefix)

    def get_ignored_prefixes(self) -> Set[str]:
        return set(self._ignored_prefixes)

    def get_rejection_stats(self) -> RejectionStats:
        stats = RejectionStats(consistency_error=list(self._consistency_error))
        for observation, group in self._loop_closures.items():
            seen = len(group.records)
            good = len(group.accepted)
            stats.lc += seen
            stats.good_lc += good
            stats.odom_consistent_lc += sum(r.odom_consistent for r in group.records.values())
            if not observation.is_intra_robot:
                stats.multirobot_lc += seen
                stats.good_multirobot_lc += good
        for group in self._landmarks.values():
            stats.landmark_measurements += len(group.records)
            stats.good_landmark_measurements += len(group.accepted)
        return stats

    def save_data(self, folder: Path) -> None:
        """Write every tracked loop closure and landmark measurement to CSV.

        Args:
            folder: Output folder, created if missing.
        """
        rows = []
        groups: List[Tuple[Hashable, ConsistencyGroup]] = [
            *self._loop_closures.items(),
            *self._landmarks.items(),
        ]
        for group_id, group in groups:
            ignored = isinstance(group_id, ObservationId) and self._is_ignored(group_id)
            for seq, record in sorted(group.records.items()):
                rows.append(
                    {
                        "seq": seq,
                        "type": record.factor_type.value,
                        "key_from": format_key(record.key_from),
                        "key_to": format_key(record.key_to),
                        "odom_consistent": record.odom_consistent,
                        "accepted": seq in group.accepted,
                        "ignored": ignored,
                    }
                )

        folder = Path(folder)
        folder.mkdir(parents=True, exist_ok=True)
        columns = ["seq", "type", "key_from", "key_to", "odom_consistent", "accepted", "ignored"]
        df = pd.DataFrame(rows, columns=columns).sort_values("seq")
        df.to_csv(folder / REJECTION_DATA_FILE, index=False)

    def _measurement(self, factor: gtsam.NonlinearFactor) -> Optional[Pose]:
        measured = factor_measurement(factor)
        if isinstance(measured, self.traits.pose_type):
            return measured
        return None

    def _make_record(
        self, factor: gtsam.NonlinearFactor, factor_type: FactorType, measured: Pose
    ) -> MeasurementRecord:
        key_from, key_to = factor_keys(factor)
        return MeasurementRecord(
            seq=next(self._seq),
            factor=factor,
            factor_type=factor_type,
            key_from=key_from,
            key_to=key_to,
            measured=measured,
            covariance=noise_covariance(factor, self.traits.dim),
        )

    def _add_odometry(self, factor: gtsam.NonlinearFactor, measured: Pose) -> None:
        key_from, key_to = factor_keys(factor)
        prefix = symbol_prefix(key_from)
        trajectory = self._trajectories.setdefault(prefix, Trajectory(self.traits))
        covariance = noise_covariance(factor, self.traits.dim)
        if not trajectory.extend(symbol_index(key_from), symbol_index(key_to), measured, covariance):
            logger.warning(
                "Odometry %s -> %s does not continue the trajectory of %s",
                format_key(key_from),
                format_key(key_to),
                prefix,
            )

    def _add_fixed(self, factor: gtsam.NonlinearFactor, graph: GraphState) -> None:
        self._fixed.append((next(self._seq), factor))
        graph.add_factors([factor])

    def _add_loop_closure(
        self, factor: gtsam.NonlinearFactor, factor_type: FactorType, measured: Pose
    ) -> Tuple[bool, bool]:
        record = self._make_record(factor, factor_type, measured)
        observation = ObservationId.from_keys(record.key_from, record.key_to)
        if symbol_prefix(record.key_from) != observation.first:
            record = record.reversed()
        if factor_type is FactorType.LOOP_CLOSURE:
            record.odom_consistent = self._check_odometry(record)

        group = self._loop_closures.setdefault(observation, ConsistencyGroup())
        changed, errors = group.add(record, self._check_loop_closure_pair)
        self._consistency_error.extend(errors)
        if self.debug:
            logger.info(
                "Loop closure %s -> %s: %d of %d accepted for %s",
                format_key(record.key_from),
                format_key(record.key_to),
                len(group.accepted),
                len(group.records),
                observation,
            )
        return changed, not self._is_ignored(observation)

    def _add_landmark(
        self, factor: gtsam.NonlinearFactor, measured: Pose, values: gtsam.Values
    ) -> bool:
        record = self._make_record(factor, FactorType.LANDMARK, measured)
        if symbol_prefix(record.key_from) in self.special_symbols:
            record = record.reversed()

        group = self._landmarks.setdefault(record.key_to, ConsistencyGroup())
        changed, errors = group.add(
            record, lambda a, b: self._check_landmark_pair(a, b, values)
        )
        self._consistency_error.extend(errors)
        return changed

    def _check_odometry(self, record: MeasurementRecord) -> bool:
        trajectory = self._trajectories.get(symbol_prefix(record.key_from))
        odom = None
        if trajectory is not None:
            odom = trajectory.between(symbol_index(record.key_from), symbol_index(record.key_to))
        if odom is None:
            return True

        residual = odom.pose.between(record.measured)
        consistent, error = self.odom_check(residual, odom.covariance + record.covariance)
        self._consistency_error.append(error)
        return consistent

    def _check_loop_closure_pair(
        self, a: MeasurementRecord, b: MeasurementRecord
    ) -> Tuple[bool, Optional[float]]:
        trajectory_from = self._trajectories.get(symbol_prefix(a.key_from))
        trajectory_to = self._trajectories.get(symbol_prefix(a.key_to))
        if trajectory_from is None or trajectory_to is None:
            return False, None
        odom_from = trajectory_from.between(symbol_index(a.key_from), symbol_index(b.key_from))
        odom_to = trajectory_to.between(symbol_index(b.key_to), symbol_index(a.key_to))
        if odom_from is None or odom_to is None:
            return False, None

        # Identity when both closures agree with the odometry between them
        residual = (
            a.measured.inverse().compose(odom_from.pose).compose(b.measured).compose(odom_to.pose)
        )
        covariance = a.covariance + b.covariance + odom_from.covariance + odom_to.covariance
        return self.lc_check(residual, covariance)

    def _check_landmark_pair(
        self, a: MeasurementRecord, b: MeasurementRecord, values: gtsam.Values
    ) -> Tuple[bool, Optional[float]]:
        if not (values.exists(a.key_from) and values.exists(b.key_from)):
            return False, None
        landmark_a = self.traits.value_at(values, a.key_from).compose(a.measured)
        landmark_b = self.traits.value_at(values, b.key_from).compose(b.measured)
        return self.lc_check(landmark_a.between(landmark_b), a.covariance + b.covariance)

    def _is_ignored(self, observation: ObservationId) -> bool:
        return any(observation.contains(prefix) for prefix in self._ignored_prefixes)

    def _active_factors(self) -> List[gtsam.NonlinearFactor]:
        entries = list(self._fixed)
        for observation, group in self._loop_closures.items():
            if self._is_ignored(observation):
                continue
            entries.extend((record.seq, record.factor) for record in group.accepted_records())
        for group in self._landmarks.values():
            entries.extend((record.seq, record.factor) for record in group.accepted_records())
        entries.sort(key=lambda entry: entry[0])
        return [factor for _, factor in entries]


class Pcm(PairwiseConsistencyMaximization):
    """PCM with squared Mahalanobis distance thresholds."""

    def __init__(
        self,
        traits: PoseTraits,
        odom_threshold: float,
        lc_threshold: float,
        special_symbols: Collection[str] = (),
    ) -> None:
        super().__init__(
            traits,
            ConsistencyCheck(traits, odom_threshold),
            ConsistencyCheck(traits, lc_threshold),
            special_symbols,
        )


class PcmSimple(PairwiseConsistencyMaximization):
    """PCM with translation and rotation distance thresholds."""

    def __init__(
        self,
        traits: PoseTraits,
        trans_threshold: float,
        rot_threshold: float,
        special_symbols: Collection[str] = (),
    ) -> None:
        check = DistanceCheck(traits, trans_threshold, rot_threshold)
        super().__init__(traits, check, check, special_symbols)
