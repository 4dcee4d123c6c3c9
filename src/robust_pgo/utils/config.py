import argparse
from pathlib import Path
from typing import List, Optional

from ..pose_graph import SolverType
from ..solver import OutlierRemovalMethod, RobustSolverParams, Verbosity


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Run robust pose graph optimization on a g2o file")

    # Input / output
    parser.add_argument("input", type=Path, help="Path to the input g2o file")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Folder for result.g2o and outlier rejection data",
    )
    parser.add_argument("--3d", dest="is_3d", action="store_true", help="Input holds SE(3) data")
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Write per-update rejection statistics to this folder",
    )
    parser.add_argument("--plot", action="store_true", help="Plot the optimized graph")

    # Outlier rejection
    parser.add_argument(
        "--method",
        type=str,
        default="pcm",
        choices=["none", "pcm", "pcm_simple"],
        help="Outlier rejection method",
    )
    parser.add_argument(
        "--odom-threshold",
        type=float,
        default=5.0,
        help="PCM odometry consistency threshold (squared Mahalanobis distance)",
    )
    parser.add_argument(
        "--lc-threshold",
        type=float,
        default=5.0,
        help="PCM pairwise consistency threshold (squared Mahalanobis distance)",
    )
    parser.add_argument(
        "--trans-threshold", type=float, default=0.05, help="PCM-simple translation threshold (m)"
    )
    parser.add_argument(
        "--rot-threshold", type=float, default=0.005, help="PCM-simple rotation threshold (rad)"
    )
    parser.add_argument(
        "--special-symbols",
        type=str,
        default="",
        help="Prefixes denoting landmarks, e.g. 'lL'",
    )

    # Solver
    parser.add_argument(
        "--solver",
        type=str,
        default="lm",
        choices=["lm", "gn"],
        help="Nonlinear least-squares solver",
    )
    parser.add_argument(
        "--verbosity",
        type=str,
        default="update",
        choices=[v.value for v in Verbosity],
        help="Amount of diagnostic output",
    )

    return parser.parse_args(argv)


def params_from_args(args: argparse.Namespace) -> RobustSolverParams:
    """Build solver parameters from parsed command-line arguments."""
    method = {
        ("none", False): OutlierRemovalMethod.NONE,
        ("none", True): OutlierRemovalMethod.NONE,
        ("pcm", False): OutlierRemovalMethod.PCM2D,
        ("pcm", True): OutlierRemovalMethod.PCM3D,
        ("pcm_simple", False): OutlierRemovalMethod.PCM_SIMPLE2D,
        ("pcm_simple", True): OutlierRemovalMethod.PCM_SIMPLE3D,
    }[(args.method, args.is_3d)]

    return RobustSolverParams(
        solver=SolverType.LM if args.solver == "lm" else SolverType.GN,
        outlier_removal_method=method,
        special_symbols=list(args.special_symbols),
        verbosity=Verbosity(args.verbosity),
        pcm_odom_threshold=args.odom_threshold,
        pcm_lc_threshold=args.lc_threshold,
        pcm_dist_trans_threshold=args.trans_threshold,
        pcm_dist_rot_threshold=args.rot_threshold,
        log_folder=args.log_dir,
    )
