"""Utility functions and helpers for graph input/output."""

from .io import load_g2o, save_g2o

__all__ = [
    "load_g2o",
    "save_g2o",
]
