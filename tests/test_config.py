"""Tests for command-line configuration."""

from pathlib import Path

from robust_pgo import OutlierRemovalMethod, Verbosity
from robust_pgo.pose_graph import SolverType
from robust_pgo.utils.config import params_from_args, parse_args


class TestConfig:
    """Test argument parsing into solver parameters."""

    def test_defaults(self) -> None:
        """Test the default command line."""
        args = parse_args(["input.g2o"])
        params = params_from_args(args)

        assert args.input == Path("input.g2o")
        assert args.output_dir == Path("output")
        assert not args.plot
        assert params.outlier_removal_method is OutlierRemovalMethod.PCM2D
        assert params.solver is SolverType.LM
        assert params.verbosity is Verbosity.UPDATE
        assert params.log_folder is None

    def test_3d_pcm_simple(self) -> None:
        """Test selecting the 3D distance-based strategy."""
        args = parse_args(
            [
                "input.g2o",
                "--3d",
                "--method",
                "pcm_simple",
                "--trans-threshold",
                "0.2",
                "--special-symbols",
                "lL",
                "--solver",
                "gn",
                "--verbosity",
                "quiet",
                "--log-dir",
                "logs",
            ]
        )
        params = params_from_args(args)

        assert params.outlier_removal_method is OutlierRemovalMethod.PCM_SIMPLE3D
        assert params.pcm_dist_trans_threshold == 0.2
        assert params.special_symbols == ["l", "L"]
        assert params.solver is SolverType.GN
        assert params.verbosity is Verbosity.QUIET
        assert params.log_folder == Path("logs")
