"""
Selective Pruning

Greedy backward elimination of input variables. Every outer iteration scores
each remaining input by the selection error the model reaches without it, and
removes the best-scoring input as long as doing so lowers the selection error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

import numpy as np

from search_tracker.history import SearchHistory

from .config import SearchKind, SelectivePruningConfig
from .core import SearchResult, SelectionAlgorithm
from .exceptions import SearchPreconditionError
from .oracle import (
    FeatureMask,
    FeatureOracle,
    InputStatistics,
    ScalingMethod,
    input_temporarily_deactivated,
)
from .stopping import SearchState, pruning_stopping_evaluator


@dataclass
class _InputsState:
    """A committed input mask with the errors and parameters it produced."""

    mask: FeatureMask
    training_error: float
    selection_error: float
    parameters: np.ndarray


class SelectiveFeatureSearch(SelectionAlgorithm):
    """
    Backward feature elimination over the oracle's input mask.

    Exploratory evaluations run inside ``input_temporarily_deactivated`` so
    the live model always gets its input and its parameters back. Positions
    that were removed, or that were the best candidate but got rejected, are
    remembered in ``tried_this_pass`` and never scored again during the run.
    """

    kind = SearchKind.FEATURE_SEARCH
    config_class = SelectivePruningConfig

    def __init__(self, oracle: Optional[FeatureOracle] = None,
                 config: Optional[SelectivePruningConfig] = None, **kwargs) -> None:
        super().__init__(oracle, config, **kwargs)
        self.tried_this_pass: Set[int] = set()
        self.elimination_scores: Dict[int, float] = {}
        self._best: Optional[_InputsState] = None
        self._original_statistics: Optional[List[InputStatistics]] = None
        self._original_scaling_method: Optional[ScalingMethod] = None

    def run(self) -> SearchResult:
        """
        Perform the inputs selection.

        Returns:
            SearchResult whose optimal_configuration is the best input mask
        """
        oracle = self._require_oracle(FeatureOracle)
        config = self.config
        config.validate()

        inputs_number = oracle.inputs_number()
        if inputs_number <= 0:
            raise SearchPreconditionError("Selective pruning needs at least one candidate input")

        names = oracle.input_names()
        self.tried_this_pass = set()
        self.elimination_scores = {}

        self._log(1, "Performing selective pruning selection...")

        # Every input takes part in the initial evaluation
        for index, active in enumerate(oracle.input_mask()):
            if not active:
                oracle.activate_input(index)
        mask: List[bool] = [True] * inputs_number
        oracle.set_input_uses(tuple(mask))

        if oracle.has_scaling_layer():
            self._original_statistics = list(oracle.per_input_statistics())
            self._original_scaling_method = oracle.scaling_method()
        else:
            self._original_statistics = None
            self._original_scaling_method = None

        history = SearchHistory.from_config(config)
        self.history = history
        evaluator = pruning_stopping_evaluator(config)

        beginning_time = self.clock()

        training_error, selection_error, parameters = self._best_of_trials(tuple(mask))
        history.append(0, tuple(mask), training_error, selection_error, parameters)
        self._best = _InputsState(tuple(mask), training_error, selection_error, parameters)

        self._log(1, f"Initial values: {inputs_number} inputs, training error {training_error:.6g}, "
                     f"selection error {selection_error:.6g}")

        iterations = 0
        elapsed_time = 0.0
        stopping_reason = None

        while stopping_reason is None:
            iteration_start_error = selection_error
            self.elimination_scores = self._score_candidates(mask)

            if self.elimination_scores:
                # First minimum in ascending position order wins ties
                best_index = min(self.elimination_scores, key=lambda i: (self.elimination_scores[i], i))
                best_error = self.elimination_scores[best_index]
            else:
                best_index = None
                best_error = math.inf

            removed_index = None
            # Never drop below minimum_inputs_number active inputs
            can_remove = sum(mask) > config.minimum_inputs_number
            if best_index is not None and best_error < selection_error and can_remove:
                oracle.deactivate_input(best_index)
                mask[best_index] = False
                oracle.set_input_uses(tuple(mask))
                training_error, selection_error, parameters = self._best_of_trials(tuple(mask))
                removed_index = best_index

            if best_index is not None:
                self.tried_this_pass.add(best_index)

            iterations += 1
            elapsed_time = self.clock() - beginning_time
            history.append(iterations, tuple(mask), training_error, selection_error, parameters)

            if selection_error < self._best.selection_error:
                self._best = _InputsState(tuple(mask), training_error, selection_error, parameters)

            if removed_index is not None:
                self._log(2, f"Iteration {iterations}: removed input '{names[removed_index]}', "
                             f"{sum(mask)} inputs left, selection error {selection_error:.6g}")
            else:
                self._log(2, f"Iteration {iterations}: no input removed, "
                             f"best candidate error {best_error:.6g}")

            stopping_reason = evaluator.evaluate(SearchState(
                elapsed_time=elapsed_time,
                iterations=iterations,
                selection_error=selection_error,
                best_selection_error=self._best.selection_error,
                best_candidate_error=best_error,
                iteration_start_error=iteration_start_error,
                active_inputs=sum(mask),
            ))

        self._log(1, f"Selective pruning stopped: {stopping_reason.value}")

        self.finalize()

        best = self._best
        self.result = SearchResult(
            algorithm=self.kind,
            optimal_configuration=best.mask,
            final_training_error=best.training_error,
            final_selection_error=best.selection_error,
            elapsed_time=elapsed_time,
            iterations_number=iterations,
            stopping_reason=stopping_reason,
            history=history,
            minimal_parameters=best.parameters.copy() if config.reserve_minimal_parameters else None,
            optimal_input_names=[name for name, keep in zip(names, best.mask) if keep],
        )

        self._log(1, f"Optimal inputs: {self.result.optimal_input_names}")
        return self.result

    def _score_candidates(self, mask: List[bool]) -> Dict[int, float]:
        """
        Selection error reached with each untried active input removed.

        Args:
            mask: Current input mask

        Returns:
            Dictionary mapping input position to its elimination score
        """
        scores: Dict[int, float] = {}
        for index, active in enumerate(mask):
            if not active or index in self.tried_this_pass:
                continue
            candidate = list(mask)
            candidate[index] = False
            with input_temporarily_deactivated(self.oracle, index):
                _, scores[index], _ = self._best_of_trials(tuple(candidate))
        return scores

    def finalize(self) -> None:
        """
        Install the best input mask and parameters into the model.

        Commits the mask to the variable-usage table, restores the best
        parameters and, when the model scales its inputs, rebuilds the
        scaling layer from the surviving inputs' original statistics with
        the original method. On failure the model is put back as it was.
        """
        if self._best is None:
            raise SearchPreconditionError("finalize() called before run()")

        oracle = self.oracle
        best = self._best

        previous_mask = tuple(oracle.input_mask())
        previous_parameters = np.array(oracle.get_parameters(), dtype=float, copy=True)
        previous_statistics = None
        previous_method = None
        if self._original_statistics is not None:
            previous_statistics = list(oracle.per_input_statistics())
            previous_method = oracle.scaling_method()

        scaling_replaced = False
        try:
            self._apply_mask(best.mask)
            oracle.set_input_uses(best.mask)

            if self._original_statistics is not None:
                statistics = [s for s, keep in zip(self._original_statistics, best.mask) if keep]
                oracle.set_scaling(statistics, self._original_scaling_method)
                scaling_replaced = True

            oracle.set_parameters(best.parameters)
        except Exception:
            self.logger.error("Finalizing selective pruning failed; restoring previous model state")
            self._apply_mask(previous_mask)
            oracle.set_input_uses(previous_mask)
            oracle.set_parameters(previous_parameters)
            if scaling_replaced:
                oracle.set_scaling(previous_statistics, previous_method)
            raise

    def _apply_mask(self, target: FeatureMask) -> None:
        current = tuple(self.oracle.input_mask())
        # Activate first so the model never drops to zero inputs in between
        for index, (active, wanted) in enumerate(zip(current, target)):
            if wanted and not active:
                self.oracle.activate_input(index)
        for index, (active, wanted) in enumerate(zip(current, target)):
            if active and not wanted:
                self.oracle.deactivate_input(index)
