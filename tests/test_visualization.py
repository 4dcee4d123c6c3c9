"""Tests for pose graph plotting."""

import gtsam
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.collections import LineCollection  # noqa: E402

from robust_pgo.visualization import plot_solver_graph  # noqa: E402


class TestPlotSolverGraph:
    """Test plot_solver_graph function."""

    def test_two_robots(self, make_chain, noise_2d) -> None:
        """Test one trajectory line per robot plus inter-robot closures."""
        factors_a, values = make_chain("a", 4)
        factors_b, values_b = make_chain("b", 4, y=5.0)
        values.insert(values_b)
        inter = gtsam.BetweenFactorPose2(
            gtsam.symbol("a", 1), gtsam.symbol("b", 1), gtsam.Pose2(0.0, 5.0, 0.0), noise_2d
        )

        fig = plot_solver_graph([*factors_a, *factors_b, inter], values, show=False)

        ax = fig.axes[0]
        assert len(ax.lines) == 2
        assert sum(isinstance(c, LineCollection) for c in ax.collections) == 1
        plt.close(fig)

    def test_landmarks(self, make_chain, noise_2d) -> None:
        """Test that landmarks are not drawn as trajectories."""
        factors, values = make_chain("a", 3)
        landmark = gtsam.symbol("l", 0)
        values.insert(landmark, gtsam.Pose2(2.0, 1.0, 0.0))
        factors.append(
            gtsam.BetweenFactorPose2(gtsam.symbol("a", 1), landmark, gtsam.Pose2(1.0, 1.0, 0.0), noise_2d)
        )

        fig = plot_solver_graph(factors, values, special_symbols={"l"}, show=False)

        ax = fig.axes[0]
        assert len(ax.lines) == 1
        assert not any(isinstance(c, LineCollection) for c in ax.collections)
        plt.close(fig)

    def test_empty(self) -> None:
        """Test plotting an empty graph."""
        fig = plot_solver_graph([], gtsam.Values(), show=False)

        assert len(fig.axes[0].lines) == 0
        plt.close(fig)
