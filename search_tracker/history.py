"""
Search History

This module records what a selection algorithm did at every iteration: the
configuration it looked at, the errors the oracle reported, and optionally the
full parameter vector. Each field is kept only when its reserve flag is set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import numpy as np


@dataclass
class SearchRecord:
    """One iteration of a search. Unreserved fields are None."""

    iteration: int
    configuration: Any = None
    training_error: Optional[float] = None
    selection_error: Optional[float] = None
    parameters: Optional[np.ndarray] = None

    def to_dict(self) -> Dict[str, Any]:
        configuration = self.configuration
        if isinstance(configuration, tuple):
            configuration = list(configuration)
        return {
            "iteration": self.iteration,
            "configuration": configuration,
            "training_error": self.training_error,
            "selection_error": self.selection_error,
            "parameters": None if self.parameters is None else self.parameters.tolist(),
        }


class SearchHistory:
    """
    Append-only record of a search run.

    The history never rewrites an entry; it only grows by one record per
    iteration (iteration 0 being the initial evaluation).
    """

    def __init__(self, reserve_configuration: bool = True,
                 reserve_training_error: bool = True,
                 reserve_selection_error: bool = True,
                 reserve_parameters: bool = False) -> None:
        self.reserve_configuration = reserve_configuration
        self.reserve_training_error = reserve_training_error
        self.reserve_selection_error = reserve_selection_error
        self.reserve_parameters = reserve_parameters
        self._records: List[SearchRecord] = []

    @classmethod
    def from_config(cls, config) -> 'SearchHistory':
        """Build a history whose reserve flags follow a SearchConfig."""
        return cls(
            reserve_configuration=config.reserve_configuration_history,
            reserve_training_error=config.reserve_training_error_history,
            reserve_selection_error=config.reserve_selection_error_history,
            reserve_parameters=config.reserve_parameters_history,
        )

    def append(self, iteration: int, configuration: Any,
               training_error: float, selection_error: float,
               parameters: Optional[np.ndarray] = None) -> SearchRecord:
        """
        Record one iteration, keeping only the reserved fields.

        Args:
            iteration: Iteration number (0 for the initial evaluation)
            configuration: Mask tuple or order evaluated at this iteration
            training_error: Training error reported by the oracle
            selection_error: Selection error reported by the oracle
            parameters: Parameter vector after the iteration

        Returns:
            The stored record
        """
        if self._records and iteration < self._records[-1].iteration:
            raise ValueError(
                f"History is append-only: iteration {iteration} follows "
                f"{self._records[-1].iteration}"
            )

        record = SearchRecord(
            iteration=iteration,
            configuration=configuration if self.reserve_configuration else None,
            training_error=float(training_error) if self.reserve_training_error else None,
            selection_error=float(selection_error) if self.reserve_selection_error else None,
            parameters=(np.array(parameters, dtype=float, copy=True)
                        if self.reserve_parameters and parameters is not None else None),
        )
        self._records.append(record)
        return record

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SearchRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> SearchRecord:
        return self._records[index]

    def latest(self) -> Optional[SearchRecord]:
        return self._records[-1] if self._records else None

    @property
    def configurations(self) -> List[Any]:
        return [r.configuration for r in self._records if r.configuration is not None]

    @property
    def training_errors(self) -> List[float]:
        return [r.training_error for r in self._records if r.training_error is not None]

    @property
    def selection_errors(self) -> List[float]:
        return [r.selection_error for r in self._records if r.selection_error is not None]

    @property
    def parameters(self) -> List[np.ndarray]:
        return [r.parameters for r in self._records if r.parameters is not None]

    def as_arrays(self) -> Dict[str, np.ndarray]:
        """Error histories as float arrays, for plotting or analysis."""
        return {
            "iterations": np.array([r.iteration for r in self._records], dtype=int),
            "training_errors": np.array(self.training_errors, dtype=float),
            "selection_errors": np.array(self.selection_errors, dtype=float),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reserve_configuration": self.reserve_configuration,
            "reserve_training_error": self.reserve_training_error,
            "reserve_selection_error": self.reserve_selection_error,
            "reserve_parameters": self.reserve_parameters,
            "records": [r.to_dict() for r in self._records],
        }
