"""Visualization utilities for robust pose graphs."""

from .plotter import plot_solver_graph

__all__ = ["plot_solver_graph"]
