"""
Stopping Criteria

Termination predicates for the selection algorithms. Each algorithm checks a
fixed, ordered list of predicates once per iteration; the first one that holds
determines the stopping reason.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .config import SelectivePruningConfig, SimulatedAnnealingConfig


class StoppingReason(str, Enum):
    """Why a search stopped."""

    MAXIMUM_TIME = "MaximumTime"
    SELECTION_PERFORMANCE_GOAL = "SelectionPerformanceGoal"
    MAXIMUM_ITERATIONS = "MaximumIterations"
    MINIMUM_INPUTS = "MinimumInputs"
    ALGORITHM_FINISHED = "AlgorithmFinished"
    MINIMUM_TEMPERATURE = "MinimumTemperature"
    GENERALIZATION_PERFORMANCE_GOAL = "GeneralizationPerformanceGoal"
    MAXIMUM_GENERALIZATION_FAILURES = "MaximumGeneralizationFailures"


@dataclass
class SearchState:
    """Loop state handed to the stopping predicates after each iteration."""

    elapsed_time: float = 0.0
    iterations: int = 0
    selection_error: float = math.inf
    best_selection_error: float = math.inf
    best_candidate_error: float = math.inf
    iteration_start_error: float = math.inf
    active_inputs: int = 0
    temperature: float = math.inf
    failures: int = 0


Predicate = Callable[[SearchState], bool]


class StoppingEvaluator:
    """Evaluates ordered termination predicates; the first true one wins."""

    def __init__(self, criteria: Sequence[Tuple[StoppingReason, Predicate]]) -> None:
        self.criteria: List[Tuple[StoppingReason, Predicate]] = list(criteria)

    @property
    def reasons(self) -> List[StoppingReason]:
        return [reason for reason, _ in self.criteria]

    def evaluate(self, state: SearchState) -> Optional[StoppingReason]:
        for reason, predicate in self.criteria:
            if predicate(state):
                return reason
        return None


def pruning_stopping_evaluator(config: SelectivePruningConfig) -> StoppingEvaluator:
    """Stopping rules for selective pruning, in priority order."""
    return StoppingEvaluator([
        (StoppingReason.MAXIMUM_TIME,
         lambda s: s.elapsed_time >= config.maximum_time),
        (StoppingReason.SELECTION_PERFORMANCE_GOAL,
         lambda s: s.selection_error < config.selection_performance_goal),
        (StoppingReason.MAXIMUM_ITERATIONS,
         lambda s: s.iterations >= config.maximum_iterations_number),
        (StoppingReason.MINIMUM_INPUTS,
         lambda s: s.active_inputs <= config.minimum_inputs_number),
        # No removal beats the error the iteration started from, or one input remains
        (StoppingReason.ALGORITHM_FINISHED,
         lambda s: s.active_inputs == 1 or s.best_candidate_error >= s.iteration_start_error),
    ])


def annealing_stopping_evaluator(config: SimulatedAnnealingConfig) -> StoppingEvaluator:
    """Stopping rules for simulated-annealing order search, in priority order."""
    return StoppingEvaluator([
        (StoppingReason.MINIMUM_TEMPERATURE,
         lambda s: s.temperature < config.minimum_temperature),
        (StoppingReason.MAXIMUM_TIME,
         lambda s: s.elapsed_time > config.maximum_time),
        (StoppingReason.GENERALIZATION_PERFORMANCE_GOAL,
         lambda s: s.best_selection_error < config.generalization_performance_goal),
        (StoppingReason.MAXIMUM_GENERALIZATION_FAILURES,
         lambda s: s.failures >= config.maximum_generalization_failures),
        (StoppingReason.MAXIMUM_ITERATIONS,
         lambda s: s.iterations >= config.maximum_iterations_number),
    ])
