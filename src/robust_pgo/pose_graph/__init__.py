"""Pose graph core module using GTSAM.

This module provides the graph state, factor classification and optimizer
backend the robust solver is built on.
"""

from .edge import (
    FactorType,
    ObservationId,
    classify_factor,
    create_between_factor,
    create_prior_factor,
    format_key,
    symbol_index,
    symbol_prefix,
)
from .graph import GraphState, as_factor_list
from .noise import (
    create_noise_model_diagonal,
    noise_covariance,
)
from .optimizer import GraphOptimizer, SolverType, make_optimizer_params

__all__ = [
    "FactorType",
    "GraphOptimizer",
    "GraphState",
    "ObservationId",
    "SolverType",
    "as_factor_list",
    "classify_factor",
    "create_between_factor",
    "create_noise_model_diagonal",
    "create_prior_factor",
    "format_key",
    "make_optimizer_params",
    "noise_covariance",
    "symbol_index",
    "symbol_prefix",
]
