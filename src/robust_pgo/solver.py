"""Robust incremental solver.

The solver owns the graph state, routes every incoming batch of
measurements through an optional outlier rejection strategy, decides when
to re-optimize, and exposes the loop closure lifecycle operations (remove
last, ignore and revive by prefix).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Type, TypeVar, Union

import gtsam

from .exceptions import ConfigurationError
from .outlier import POSE2, POSE3, OutlierRemoval, Pcm, PcmSimple
from .pose_graph import (
    FactorType,
    GraphOptimizer,
    GraphState,
    ObservationId,
    SolverType,
    as_factor_list,
    classify_factor,
    make_optimizer_params,
)
from .pose_graph.graph import FactorsLike
from .stats import StatsLogger
from .utils.io import save_g2o

logger = logging.getLogger("robust_pgo.solver")

RESULT_FILE = "result.g2o"


class OutlierRemovalMethod(Enum):
    """Outlier rejection strategy selected at construction."""

    NONE = "none"
    PCM2D = "pcm2d"
    PCM3D = "pcm3d"
    PCM_SIMPLE2D = "pcm_simple2d"
    PCM_SIMPLE3D = "pcm_simple3d"


class Verbosity(Enum):
    """Amount of diagnostic output."""

    UPDATE = "update"  # Solver messages only
    QUIET = "quiet"  # Nothing but warnings
    VERBOSE = "verbose"  # Everything, including optimizer summaries


E = TypeVar("E", bound=Enum)


def _resolve_enum(enum_cls: Type[E], value: Union[E, str], setting: str) -> E:
    """Look up an enum member by member, value or name (case-insensitive)."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if value.lower() in (member.name.lower(), str(member.value).lower()):
                return member
    raise ConfigurationError(setting, value)


@dataclass
class RobustSolverParams:
    """Configuration of a :class:`RobustSolver`.

    Mahalanobis thresholds (``pcm_odom_threshold``, ``pcm_lc_threshold``) are
    bounds on the squared Mahalanobis distance; distance thresholds are in
    meters and radians.
    """

    solver: Union[SolverType, str] = SolverType.LM
    outlier_removal_method: Union[OutlierRemovalMethod, str] = OutlierRemovalMethod.PCM3D
    special_symbols: List[str] = field(default_factory=list)
    verbosity: Union[Verbosity, str] = Verbosity.UPDATE
    pcm_odom_threshold: float = 5.0
    pcm_lc_threshold: float = 5.0
    pcm_dist_trans_threshold: float = 0.05
    pcm_dist_rot_threshold: float = 0.005
    max_iterations: int = 100
    relative_error_tol: float = 1e-5
    absolute_error_tol: float = 1e-5
    log_folder: Optional[Path] = None

    def set_pcm_2d_params(
        self, odom_threshold: float, lc_threshold: float, verbosity: Verbosity = Verbosity.UPDATE
    ) -> None:
        self.outlier_removal_method = OutlierRemovalMethod.PCM2D
        self.pcm_odom_threshold = odom_threshold
        self.pcm_lc_threshold = lc_threshold
        self.verbosity = verbosity

    def set_pcm_3d_params(
        self, odom_threshold: float, lc_threshold: float, verbosity: Verbosity = Verbosity.UPDATE
    ) -> None:
        self.outlier_removal_method = OutlierRemovalMethod.PCM3D
        self.pcm_odom_threshold = odom_threshold
        self.pcm_lc_threshold = lc_threshold
        self.verbosity = verbosity

    def set_pcm_simple_2d_params(
        self, trans_threshold: float, rot_threshold: float, verbosity: Verbosity = Verbosity.UPDATE
    ) -> None:
        self.outlier_removal_method = OutlierRemovalMethod.PCM_SIMPLE2D
        self.pcm_dist_trans_threshold = trans_threshold
        self.pcm_dist_rot_threshold = rot_threshold
        self.verbosity = verbosity

    def set_pcm_simple_3d_params(
        self, trans_threshold: float, rot_threshold: float, verbosity: Verbosity = Verbosity.UPDATE
    ) -> None:
        self.outlier_removal_method = OutlierRemovalMethod.PCM_SIMPLE3D
        self.pcm_dist_trans_threshold = trans_threshold
        self.pcm_dist_rot_threshold = rot_threshold
        self.verbosity = verbosity

    def set_no_rejection(self, verbosity: Verbosity = Verbosity.UPDATE) -> None:
        self.outlier_removal_method = OutlierRemovalMethod.NONE
        self.verbosity = verbosity

    def set_lm(self) -> None:
        self.solver = SolverType.LM

    def set_gn(self) -> None:
        self.solver = SolverType.GN

    def log_output(self, folder: Union[str, Path]) -> None:
        """Enable the stats logs in ``folder`` when the solver is built."""
        self.log_folder = Path(folder)


_STRATEGIES: Dict[OutlierRemovalMethod, Callable[[RobustSolverParams], OutlierRemoval]] = {
    OutlierRemovalMethod.PCM2D: lambda p: Pcm(
        POSE2, p.pcm_odom_threshold, p.pcm_lc_threshold, p.special_symbols
    ),
    OutlierRemovalMethod.PCM3D: lambda p: Pcm(
        POSE3, p.pcm_odom_threshold, p.pcm_lc_threshold, p.special_symbols
    ),
    OutlierRemovalMethod.PCM_SIMPLE2D: lambda p: PcmSimple(
        POSE2, p.pcm_dist_trans_threshold, p.pcm_dist_rot_threshold, p.special_symbols
    ),
    OutlierRemovalMethod.PCM_SIMPLE3D: lambda p: PcmSimple(
        POSE3, p.pcm_dist_trans_threshold, p.pcm_dist_rot_threshold, p.special_symbols
    ),
}


def make_outlier_removal(params: RobustSolverParams) -> Optional[OutlierRemoval]:
    """Build the outlier rejection strategy a configuration asks for.

    Args:
        params: Solver configuration.

    Returns:
        The strategy, or None for :attr:`OutlierRemovalMethod.NONE`.

    Raises:
        ConfigurationError: If the method is unknown.
    """
    method = _resolve_enum(
        OutlierRemovalMethod, params.outlier_removal_method, "outlier removal method"
    )
    if method is OutlierRemovalMethod.NONE:
        return None
    return _STRATEGIES[method](params)


class RobustSolver:
    """Incremental pose graph solver with pluggable outlier rejection.

    Every public operation runs to completion, including any re-optimization,
    before returning. Instances are not thread-safe; callers sharing a solver
    across threads must serialize calls.
    """

    def __init__(
        self,
        params: Optional[RobustSolverParams] = None,
        optimizer: Optional[GraphOptimizer] = None,
    ) -> None:
        """Initialize the solver.

        Args:
            params: Solver configuration. Defaults to PCM 3D with
                Levenberg-Marquardt.
            optimizer: Optimizer backend. Defaults to :class:`GraphOptimizer`.

        Raises:
            ConfigurationError: If the solver type or outlier removal method
                is unknown.
        """
        self.params = params if params is not None else RobustSolverParams()
        self.solver_type = _resolve_enum(SolverType, self.params.solver, "solver type")
        self.special_symbols = frozenset(self.params.special_symbols)
        self.debug = True
        self.verbose = False

        self._graph = GraphState()
        self._optimizer = optimizer if optimizer is not None else GraphOptimizer()
        self._outlier_removal = make_outlier_removal(self.params)
        self._stats_logger: Optional[StatsLogger] = None

        self._apply_verbosity(self.params.verbosity)
        if self.params.log_folder is not None:
            self.enable_logging(self.params.log_folder)

    def _apply_verbosity(self, verbosity: Union[Verbosity, str]) -> None:
        try:
            verbosity = _resolve_enum(Verbosity, verbosity, "verbosity")
        except ConfigurationError:
            logger.warning("Unrecognized verbosity %r, using %s", verbosity, Verbosity.UPDATE.value)
            verbosity = Verbosity.UPDATE

        if verbosity is Verbosity.UPDATE:
            if self._outlier_removal is not None:
                self._outlier_removal.set_quiet()
        elif verbosity is Verbosity.QUIET:
            if self._outlier_removal is not None:
                self._outlier_removal.set_quiet()
            self.set_quiet()
        elif verbosity is Verbosity.VERBOSE:
            self.verbose = True
            logger.info("Starting RobustSolver.")

    @property
    def outlier_removal(self) -> Optional[OutlierRemoval]:
        return self._outlier_removal

    def set_quiet(self) -> None:
        """Suppress informational solver output."""
        self.debug = False
        self.verbose = False

    def update(self, factors: FactorsLike = None, values: Optional[gtsam.Values] = None) -> bool:
        """Ingest a batch of measurements.

        Args:
            factors: New factors.
            values: Initial estimates of newly introduced variables.

        Returns:
            True if the graph was re-optimized.
        """
        do_optimize = self._admit(factors, values)
        if do_optimize:
            self.optimize()
        if self._stats_logger is not None:
            self._log_stats(self._stats_logger)
        return do_optimize

    def force_update(
        self, factors: FactorsLike = None, values: Optional[gtsam.Values] = None
    ) -> None:
        """Ingest a batch of measurements and always re-optimize."""
        self._admit(factors, values)
        self.optimize()

    def remove_last_loop_closure(
        self, observation_id: Optional[ObservationId] = None
    ) -> Optional[gtsam.NonlinearFactor]:
        """Remove the most recently accepted loop closure and re-optimize.

        Without an outlier rejection strategy there is no loop closure
        bookkeeping, so the most recently added factor is removed instead and
        ``observation_id`` is ignored.

        Args:
            observation_id: Only consider loop closures of this channel.

        Returns:
            The removed factor, or None if nothing was removed.
        """
        if self._outlier_removal is not None:
            removed = self._outlier_removal.remove_last_loop_closure(self._graph, observation_id)
        else:
            removed = self._graph.remove_last_factor()

        self.optimize()
        return removed

    def ignore_prefix(self, prefix: str) -> None:
        """Disable loop closures involving ``prefix`` and re-optimize."""
        if self._outlier_removal is not None:
            self._outlier_removal.ignore_loop_closure_with_prefix(prefix, self._graph)
        else:
            logger.warning("'ignore_prefix' is not available without outlier rejection")

        self.optimize()

    def revive_prefix(self, prefix: str) -> None:
        """Re-enable loop closures involving ``prefix`` and re-optimize."""
        if self._outlier_removal is not None:
            self._outlier_removal.revive_loop_closure_with_prefix(prefix, self._graph)
        else:
            logger.warning("'revive_prefix' is not available without outlier rejection")

        self.optimize()

    def get_ignored_prefixes(self) -> Set[str]:
        """Get the prefixes whose loop closures are currently ignored."""
        if self._outlier_removal is not None:
            return self._outlier_removal.get_ignored_prefixes()
        logger.warning("Ignored prefixes are not tracked without outlier rejection")
        return set()

    def optimize(self) -> None:
        """Re-solve the graph and replace the value assignment.

        Values not referenced by any factor are carried over unchanged.
        """
        if self._graph.size() == 0:
            logger.debug("Graph is empty, nothing to optimize")
            return

        params = make_optimizer_params(
            self.solver_type,
            max_iterations=self.params.max_iterations,
            relative_error_tol=self.params.relative_error_tol,
            absolute_error_tol=self.params.absolute_error_tol,
            verbose=self.verbose,
        )
        if self.debug:
            logger.info("Running %s", self.solver_type.value)

        active, inactive = self._graph.split_values()
        result = self._optimizer.optimize(self._graph.factor_graph(), active, params)
        result.insert(inactive)
        self._graph.values = result

    def save_data(self, folder: Union[str, Path]) -> None:
        """Write the graph to ``result.g2o`` and the strategy's data to ``folder``."""
        folder = Path(folder)
        folder.mkdir(parents=True, exist_ok=True)
        save_g2o(self._graph.factors, self._graph.values, folder / RESULT_FILE)
        if self._outlier_removal is not None:
            self._outlier_removal.save_data(folder)

    def enable_logging(self, folder: Union[str, Path]) -> None:
        """Start writing per-update statistics to ``log.txt`` and ``error.txt``.

        Existing log files in ``folder`` are truncated.
        """
        self._stats_logger = StatsLogger(folder)
        if self._outlier_removal is None:
            logger.warning("Rejection statistics are only logged with outlier rejection enabled")

    def _admit(self, factors: FactorsLike, values: Optional[gtsam.Values]) -> bool:
        if self._outlier_removal is not None:
            return self._outlier_removal.remove_outliers(factors, values, self._graph)
        return self._add_and_check_if_optimize(factors, values)

    def _add_and_check_if_optimize(
        self, factors: FactorsLike, values: Optional[gtsam.Values]
    ) -> bool:
        new_factors = as_factor_list(factors)
        self._graph.add_factors(new_factors)
        self._graph.add_values(values)
        # Only non-odometry factors trigger optimization
        return any(
            classify_factor(factor, self.special_symbols) is not FactorType.ODOMETRY
            for factor in new_factors
        )

    def _log_stats(self, stats_logger: StatsLogger) -> None:
        if self._outlier_removal is None:
            logger.debug("No outlier rejection, skipping stats log")
            return
        try:
            stats_logger.write(self._outlier_removal.get_rejection_stats(), self._graph.error())
        except OSError as e:
            # The update itself already succeeded
            logger.warning("Failed to write rejection statistics to %s: %s", stats_logger.folder, e)

    def get_factors(self) -> gtsam.NonlinearFactorGraph:
        """Get a factor graph holding the current factors."""
        return self._graph.factor_graph()

    def get_values(self) -> gtsam.Values:
        """Get a copy of the current value assignment."""
        return gtsam.Values(self._graph.values)

    def get_error(self) -> float:
        """Get the total graph error at the current values."""
        return self._graph.error()

    def size(self) -> int:
        """Get the number of factors in the graph."""
        return self._graph.size()
