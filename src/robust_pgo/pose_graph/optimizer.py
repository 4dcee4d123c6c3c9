"""Batch nonlinear least-squares backend for the robust solver."""

import logging
from enum import Enum
from typing import Union

import gtsam

from ..exceptions import ConfigurationError

logger = logging.getLogger("robust_pgo.optimizer")

OptimizerParams = Union[gtsam.GaussNewtonParams, gtsam.LevenbergMarquardtParams]


class SolverType(Enum):
    """Nonlinear least-squares solver."""

    GN = "GaussNewton"
    LM = "LevenbergMarquardt"


def make_optimizer_params(
    solver: SolverType,
    max_iterations: int = 100,
    relative_error_tol: float = 1e-5,
    absolute_error_tol: float = 1e-5,
    verbose: bool = False,
) -> OptimizerParams:
    """Build GTSAM optimizer parameters for a solver type.

    Levenberg-Marquardt always uses diagonal damping so that rank-deficient
    updates stay well conditioned.

    Args:
        solver: Solver type.
        max_iterations: Maximum number of iterations.
        relative_error_tol: Relative error tolerance for convergence.
        absolute_error_tol: Absolute error tolerance for convergence.
        verbose: Print per-iteration optimizer summaries.

    Returns:
        Parameters for the matching GTSAM optimizer.
    """
    if solver is SolverType.LM:
        params = gtsam.LevenbergMarquardtParams()
        params.setDiagonalDamping(True)
        if verbose:
            params.setVerbosityLM("SUMMARY")
    elif solver is SolverType.GN:
        params = gtsam.GaussNewtonParams()
        if verbose:
            params.setVerbosity("ERROR")
    else:
        raise ConfigurationError("solver type", solver)

    params.setMaxIterations(max_iterations)
    params.setRelativeErrorTol(relative_error_tol)
    params.setAbsoluteErrorTol(absolute_error_tol)
    return params


class GraphOptimizer:
    """Runs GTSAM batch optimizers to convergence.

    Supports Levenberg-Marquardt and Gauss-Newton optimization, selected by
    the type of the parameters passed to :meth:`optimize`.
    """

    def optimize(
        self,
        graph: gtsam.NonlinearFactorGraph,
        initial: gtsam.Values,
        params: OptimizerParams,
    ) -> gtsam.Values:
        """Optimize a factor graph.

        A failed solve (e.g. an indeterminant linear system) is not fatal:
        the initial values are returned as the best available estimate.

        Args:
            graph: The factor graph to optimize.
            initial: Initial estimates for every key in the graph.
            params: Gauss-Newton or Levenberg-Marquardt parameters.

        Returns:
            The optimized values.
        """
        if isinstance(params, gtsam.LevenbergMarquardtParams):
            optimizer = gtsam.LevenbergMarquardtOptimizer(graph, initial, params)
        elif isinstance(params, gtsam.GaussNewtonParams):
            optimizer = gtsam.GaussNewtonOptimizer(graph, initial, params)
        else:
            raise ConfigurationError("optimizer parameters", type(params).__name__)

        try:
            return optimizer.optimize()
        except RuntimeError as e:
            logger.warning("Optimization failed, keeping previous estimate: %s", e)
            return gtsam.Values(initial)
