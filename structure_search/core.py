"""
Core Search Machinery

Shared pieces of the selection algorithms: the result object returned by
``run()``, and a small base class holding the oracle binding, the injected
random source, the wall clock, trial handling and verbosity-aware logging.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Union

import numpy as np

from search_tracker.history import SearchHistory

from .config import SearchConfig, SearchKind
from .exceptions import SearchPreconditionError
from .oracle import PerformanceOracle
from .stopping import StoppingReason

RandomSource = Union[None, int, np.random.Generator]


@dataclass
class SearchResult:
    """
    Outcome of one selection run.

    Attributes:
        algorithm: Which search produced the result
        optimal_configuration: Best input mask (tuple of bools) or best order
        final_training_error: Training error of the best configuration
        final_selection_error: Selection error of the best configuration
        elapsed_time: Wall-clock seconds spent in the search loop
        iterations_number: Number of iterations after the initial evaluation
        stopping_reason: Predicate that ended the search
        history: Per-iteration records gated by the reserve flags
        minimal_parameters: Parameters of the best configuration, if reserved
        optimal_input_names: Names of the surviving inputs (feature search)
        final_temperature: Temperature when the search stopped (order search)
    """

    algorithm: SearchKind
    optimal_configuration: Any = None
    final_training_error: float = float("inf")
    final_selection_error: float = float("inf")
    elapsed_time: float = 0.0
    iterations_number: int = 0
    stopping_reason: Optional[StoppingReason] = None
    history: SearchHistory = field(default_factory=SearchHistory)
    minimal_parameters: Optional[np.ndarray] = None
    optimal_input_names: List[str] = field(default_factory=list)
    final_temperature: Optional[float] = None

    def summary(self) -> Dict[str, Any]:
        """Get a compact summary without histories or parameters."""
        configuration = self.optimal_configuration
        if isinstance(configuration, tuple):
            configuration = [bool(v) for v in configuration]

        summary = {
            "algorithm": self.algorithm.value,
            "optimal_configuration": configuration,
            "final_training_error": self.final_training_error,
            "final_selection_error": self.final_selection_error,
            "elapsed_time": self.elapsed_time,
            "iterations_number": self.iterations_number,
            "stopping_reason": self.stopping_reason.value if self.stopping_reason else None,
        }
        if self.algorithm is SearchKind.FEATURE_SEARCH:
            summary["optimal_input_names"] = list(self.optimal_input_names)
        else:
            summary["final_temperature"] = self.final_temperature
        return summary

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation, histories included."""
        data = self.summary()
        data["history"] = self.history.to_dict()
        data["minimal_parameters"] = (
            None if self.minimal_parameters is None else self.minimal_parameters.tolist()
        )
        return data


class SelectionAlgorithm:
    """
    Base for the selection algorithms.

    Subclasses implement ``run()`` and ``finalize()``. A search owns its
    oracle exclusively while ``run()`` executes.
    """

    kind: ClassVar[SearchKind]
    config_class: ClassVar[type] = SearchConfig

    def __init__(self, oracle: Optional[PerformanceOracle] = None,
                 config: Optional[SearchConfig] = None,
                 rng: RandomSource = None,
                 clock: Callable[[], float] = time.time) -> None:
        """
        Args:
            oracle: Performance oracle the search trains and evaluates through
            config: Search configuration (defaults to the algorithm's defaults)
            rng: numpy Generator, an integer seed, or None to use config.random_seed
            clock: Wall-clock source in seconds
        """
        self.oracle = oracle
        self.config = config if config is not None else self.config_class()
        if not isinstance(self.config, self.config_class):
            raise SearchPreconditionError(
                f"{type(self).__name__} needs a {self.config_class.__name__}, "
                f"got {type(self.config).__name__}"
            )

        if isinstance(rng, np.random.Generator):
            self.rng = rng
        else:
            self.rng = np.random.default_rng(self.config.random_seed if rng is None else rng)

        self.clock = clock
        self.logger = logging.getLogger(type(self).__module__)
        self.history: Optional[SearchHistory] = None
        self.result: Optional[SearchResult] = None

    def set_oracle(self, oracle: PerformanceOracle) -> None:
        """Set or update the oracle instance."""
        self.oracle = oracle

    def run(self) -> SearchResult:
        raise NotImplementedError

    def finalize(self) -> None:
        raise NotImplementedError

    def _require_oracle(self, capability: type) -> Any:
        if self.oracle is None:
            raise SearchPreconditionError(f"{type(self).__name__} has no performance oracle bound")
        if not isinstance(self.oracle, capability):
            raise SearchPreconditionError(
                f"{type(self.oracle).__name__} does not implement {capability.__name__}"
            )
        return self.oracle

    def _log(self, verbosity: int, message: str) -> None:
        """Log at INFO when the configured verbosity asks for it, else DEBUG."""
        level = logging.INFO if self.config.verbosity >= verbosity else logging.DEBUG
        self.logger.log(level, message)

    def _best_of_trials(self, configuration: Any) -> Tuple[float, float, np.ndarray]:
        """
        Evaluate a configuration ``trials_number`` times and keep the best trial.

        Trials after the first start from re-randomized parameters when the
        oracle offers ``randomize_parameters()``. The oracle is left holding
        the parameters of the winning trial.

        Returns:
            (training_error, selection_error, parameters) of the winning trial
        """
        best: Optional[Tuple[float, float, np.ndarray]] = None

        for trial in range(self.config.trials_number):
            if trial > 0 and hasattr(self.oracle, "randomize_parameters"):
                self.oracle.randomize_parameters()

            training_error, selection_error = self.oracle.evaluate(configuration)
            parameters = np.array(self.oracle.get_parameters(), dtype=float, copy=True)

            if best is None or selection_error < best[1]:
                best = (float(training_error), float(selection_error), parameters)

        if self.config.trials_number > 1:
            self.oracle.set_parameters(best[2])

        return best
