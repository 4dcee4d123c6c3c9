"""robust_pgo - Outlier-robust incremental pose graph optimization.

A Python library that maintains an incrementally growing pose/landmark
graph on top of GTSAM, filters incoming loop closures with pairwise
consistency maximization, and keeps the estimate up to date as new
measurements arrive.
"""

from .exceptions import ConfigurationError, RobustPgoError
from .solver import (
    OutlierRemovalMethod,
    RobustSolver,
    RobustSolverParams,
    Verbosity,
    make_outlier_removal,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "OutlierRemovalMethod",
    "RobustPgoError",
    "RobustSolver",
    "RobustSolverParams",
    "Verbosity",
    "__version__",
    "make_outlier_removal",
]
