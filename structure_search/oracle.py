"""
Performance Oracle Interface

The searches never train or evaluate a model themselves. They talk to a
performance oracle that trains a model for a given configuration and reports
its training and selection (generalization) error. This module defines the
capability sets the searches consume, the value types exchanged with the
oracle, and the snapshot/restore helpers used around exploratory evaluations.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

FeatureMask = Tuple[bool, ...]


class ScalingMethod(str, Enum):
    """How a scaling layer normalizes each input."""

    NO_SCALING = "NoScaling"
    MINIMUM_MAXIMUM = "MinimumMaximum"
    MEAN_STANDARD_DEVIATION = "MeanStandardDeviation"


@dataclass(frozen=True)
class InputStatistics:
    """Descriptive statistics of one input variable."""

    minimum: float
    maximum: float
    mean: float
    standard_deviation: float

    @classmethod
    def from_column(cls, column: np.ndarray) -> 'InputStatistics':
        column = np.asarray(column, dtype=float)
        return cls(
            minimum=float(column.min()),
            maximum=float(column.max()),
            mean=float(column.mean()),
            standard_deviation=float(column.std()),
        )


@runtime_checkable
class PerformanceOracle(Protocol):
    """Trains a model for a configuration and reports its errors."""

    def evaluate(self, configuration: Any) -> Tuple[float, float]:
        """Return (training_error, selection_error) for the configuration."""
        ...

    def get_parameters(self) -> np.ndarray:
        ...

    def set_parameters(self, parameters: Sequence[float]) -> None:
        ...


@runtime_checkable
class FeatureOracle(PerformanceOracle, Protocol):
    """
    Oracle capabilities needed by selective pruning.

    Input indices always refer to positions in the original input list,
    whatever the current mask is.
    """

    def inputs_number(self) -> int:
        ...

    def active_input_count(self) -> int:
        ...

    def input_mask(self) -> FeatureMask:
        """Which original inputs are currently active."""
        ...

    def deactivate_input(self, index: int) -> None:
        ...

    def activate_input(self, index: int) -> None:
        ...

    def set_input_uses(self, mask: FeatureMask) -> None:
        """Write the mask into the variable-usage table."""
        ...

    def input_names(self) -> List[str]:
        ...

    def has_scaling_layer(self) -> bool:
        ...

    def per_input_statistics(self) -> List[InputStatistics]:
        """Statistics of the inputs the scaling layer currently covers."""
        ...

    def scaling_method(self) -> ScalingMethod:
        ...

    def set_scaling(self, statistics: Sequence[InputStatistics], method: ScalingMethod) -> None:
        ...


@runtime_checkable
class OrderOracle(PerformanceOracle, Protocol):
    """Oracle capabilities needed by the order search."""

    def rebuild_with_order(self, order: int) -> None:
        ...


@contextmanager
def preserved_parameters(oracle: PerformanceOracle) -> Iterator[np.ndarray]:
    """
    Snapshot the oracle's parameters and restore them on every exit path.

    Args:
        oracle: Oracle whose parameters may be mutated inside the block

    Yields:
        Copy of the parameter vector taken on entry
    """
    snapshot = np.array(oracle.get_parameters(), dtype=float, copy=True)
    try:
        yield snapshot
    finally:
        oracle.set_parameters(snapshot)


@contextmanager
def input_temporarily_deactivated(oracle: FeatureOracle, index: int) -> Iterator[None]:
    """
    Deactivate one input for the duration of the block.

    The input is reactivated and the parameters captured before the
    deactivation are restored afterwards, even if the block raises.
    """
    with preserved_parameters(oracle):
        oracle.deactivate_input(index)
        try:
            yield
        finally:
            oracle.activate_input(index)
