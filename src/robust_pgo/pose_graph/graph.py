"""Graph state: the cumulative factors and value estimates."""

from typing import Iterable, List, Optional, Set, Tuple, Union

import gtsam

from .edge import factor_keys

FactorsLike = Union[gtsam.NonlinearFactorGraph, Iterable[gtsam.NonlinearFactor], None]


def as_factor_list(factors: FactorsLike) -> List[gtsam.NonlinearFactor]:
    """Normalize a factor graph or iterable of factors into a list.

    Empty slots of a ``NonlinearFactorGraph`` are skipped.

    Args:
        factors: Factor graph, iterable of factors, or None.

    Returns:
        List of factors.
    """
    if factors is None:
        return []
    if isinstance(factors, gtsam.NonlinearFactorGraph):
        factor_list = [factors.at(i) for i in range(factors.size())]
        return [factor for factor in factor_list if factor is not None]
    return list(factors)


def copy_values(values: Optional[gtsam.Values]) -> gtsam.Values:
    """Copy a Values container, treating None as empty."""
    if values is None:
        return gtsam.Values()
    return gtsam.Values(values)


class GraphState:
    """Factors and variable estimates of the estimation graph.

    Factors are kept in arrival order in a Python list so single factors can
    be detached again; a fresh ``NonlinearFactorGraph`` is assembled whenever
    GTSAM needs one.
    """

    def __init__(self) -> None:
        """Initialize an empty graph state."""
        self.factors: List[gtsam.NonlinearFactor] = []
        self.values = gtsam.Values()

    def add_factors(self, factors: FactorsLike) -> int:
        """Append factors to the graph.

        Args:
            factors: Factors to append.

        Returns:
            Number of factors appended.
        """
        new_factors = as_factor_list(factors)
        self.factors.extend(new_factors)
        return len(new_factors)

    def add_values(self, values: Optional[gtsam.Values]) -> int:
        """Insert values for keys that are not estimated yet.

        Keys that already exist keep their current estimate.

        Args:
            values: Initial estimates of new variables.

        Returns:
            Number of values inserted.
        """
        new_values = copy_values(values)
        for key in list(new_values.keys()):
            if self.values.exists(key):
                new_values.erase(key)
        self.values.insert(new_values)
        return new_values.size()

    def replace_factors(self, factors: FactorsLike) -> None:
        """Replace the factor list, leaving the values untouched."""
        self.factors = as_factor_list(factors)

    def remove_last_factor(self) -> Optional[gtsam.NonlinearFactor]:
        """Detach the most recently appended factor.

        Returns:
            The removed factor, or None if the graph is empty.
        """
        if not self.factors:
            return None
        return self.factors.pop()

    def factor_graph(self) -> gtsam.NonlinearFactorGraph:
        """Assemble a GTSAM factor graph from the current factors."""
        graph = gtsam.NonlinearFactorGraph()
        for factor in self.factors:
            graph.add(factor)
        return graph

    def referenced_keys(self) -> Set[int]:
        """Get the keys referenced by at least one factor."""
        keys: Set[int] = set()
        for factor in self.factors:
            keys.update(factor_keys(factor))
        return keys

    def split_values(self) -> Tuple[gtsam.Values, gtsam.Values]:
        """Split the values into referenced and unreferenced copies.

        Returns:
            Tuple of (values referenced by factors, all other values).
        """
        referenced = self.referenced_keys()
        active = gtsam.Values(self.values)
        inactive = gtsam.Values(self.values)
        for key in list(self.values.keys()):
            if key in referenced:
                inactive.erase(key)
            else:
                active.erase(key)
        return active, inactive

    def error(self) -> float:
        """Get the total graph error at the current values."""
        if not self.factors:
            return 0.0
        return float(self.factor_graph().error(self.values))

    def size(self) -> int:
        """Get the number of factors in the graph."""
        return len(self.factors)

    def num_values(self) -> int:
        """Get the number of estimated variables."""
        return int(self.values.size())
