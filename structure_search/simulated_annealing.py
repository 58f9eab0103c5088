"""
Simulated Annealing Order Selection

Searches the hidden-unit count ("order") of a network with simulated
annealing. Candidate orders are drawn from a window around the current
optimum; worse candidates are accepted with the Boltzmann probability
``exp(-delta / temperature)`` and the temperature cools geometrically.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

import numpy as np

from search_tracker.history import SearchHistory

from .config import SearchKind, SimulatedAnnealingConfig
from .core import SearchResult, SelectionAlgorithm
from .exceptions import SearchPreconditionError
from .oracle import OrderOracle
from .stopping import SearchState, annealing_stopping_evaluator

# Consecutive draws equal to the optimum before the candidate is forced
MAXIMUM_RANDOM_FAILURES = 5


class SimulatedAnnealingOrderSearch(SelectionAlgorithm):
    """
    Annealed random walk over the order in [minimum_order, maximum_order].

    ``generalization_failures`` counts every rejected candidate over the whole
    run and is never reset on acceptance, so ``maximum_generalization_failures``
    caps total rejections rather than consecutive ones.
    """

    kind = SearchKind.ORDER_SEARCH
    config_class = SimulatedAnnealingConfig

    def __init__(self, oracle: Optional[OrderOracle] = None,
                 config: Optional[SimulatedAnnealingConfig] = None, **kwargs) -> None:
        super().__init__(oracle, config, **kwargs)
        self.optimal_order: Optional[int] = None
        self.temperature: Optional[float] = None
        self.generalization_failures = 0
        self.temperature_history: List[float] = []
        self._optimum: Optional[Tuple[float, float, np.ndarray]] = None
        self._evaluations: Dict[int, Tuple[float, float, np.ndarray]] = {}

    def run(self) -> SearchResult:
        """
        Perform the order selection.

        Returns:
            SearchResult whose optimal_configuration is the best order
        """
        oracle = self._require_oracle(OrderOracle)
        config = self.config
        config.validate()

        self._evaluations = {}
        self.generalization_failures = 0
        self.temperature_history = []

        history = SearchHistory.from_config(config)
        self.history = history
        evaluator = annealing_stopping_evaluator(config)

        self._log(1, "Performing order selection with simulated annealing method...")

        beginning_time = self.clock()

        optimal_order = int(self.rng.integers(config.minimum_order, config.maximum_order + 1))
        optimum = self._evaluate_order(optimal_order)
        temperature = optimum[1]
        self.temperature_history.append(temperature)

        history.append(0, optimal_order, optimum[0], optimum[1], optimum[2])

        self._log(1, f"Initial values: order {optimal_order}, training error {optimum[0]:.6g}, "
                     f"generalization error {optimum[1]:.6g}, temperature {temperature:.6g}")

        iterations = 0
        elapsed_time = 0.0
        stopping_reason = None

        while stopping_reason is None:
            current_order = self._draw_candidate(optimal_order)
            current = self._evaluate_order(current_order)

            if self._accept(current[1], optimum[1], current_order, optimal_order, temperature):
                optimal_order = current_order
                optimum = current
            else:
                self.generalization_failures += 1

            history.append(iterations + 1, current_order, current[0], current[1], current[2])

            temperature = config.cooling_rate * temperature
            self.temperature_history.append(temperature)
            iterations += 1
            elapsed_time = self.clock() - beginning_time

            self._log(2, f"Iteration {iterations}: candidate order {current_order} "
                         f"(generalization error {current[1]:.6g}), optimal order {optimal_order} "
                         f"(generalization error {optimum[1]:.6g}), temperature {temperature:.6g}")

            stopping_reason = evaluator.evaluate(SearchState(
                elapsed_time=elapsed_time,
                iterations=iterations,
                selection_error=current[1],
                best_selection_error=optimum[1],
                temperature=temperature,
                failures=self.generalization_failures,
            ))

        self._log(1, f"Simulated annealing stopped: {stopping_reason.value}")

        self.optimal_order = optimal_order
        self.temperature = temperature
        self._optimum = optimum

        self.finalize()

        self.result = SearchResult(
            algorithm=self.kind,
            optimal_configuration=optimal_order,
            final_training_error=optimum[0],
            final_selection_error=optimum[1],
            elapsed_time=elapsed_time,
            iterations_number=iterations,
            stopping_reason=stopping_reason,
            history=history,
            minimal_parameters=optimum[2].copy() if config.reserve_minimal_parameters else None,
            final_temperature=temperature,
        )

        self._log(1, f"Optimal order: {optimal_order}")
        return self.result

    def finalize(self) -> None:
        """Rebuild the network at the optimal order and install its parameters."""
        if self._optimum is None:
            raise SearchPreconditionError("finalize() called before run()")

        self.oracle.rebuild_with_order(self.optimal_order)
        self.oracle.set_parameters(self._optimum[2])

    def _evaluate_order(self, order: int) -> Tuple[float, float, np.ndarray]:
        """
        Train and measure the network at one order.

        When ``cache_evaluations`` is set an order already trained during
        this run is not trained again.
        """
        if self.config.cache_evaluations and order in self._evaluations:
            training_error, selection_error, parameters = self._evaluations[order]
            return training_error, selection_error, parameters.copy()

        evaluation = self._best_of_trials(order)
        if self.config.cache_evaluations:
            self._evaluations[order] = (evaluation[0], evaluation[1], evaluation[2].copy())
        return evaluation

    def _draw_candidate(self, optimal_order: int) -> int:
        """
        Draw a candidate order different from the optimum.

        The candidate is uniform over a window of radius
        ``(maximum_order - minimum_order) // 3`` around the optimum, clipped to
        the order bounds.
        """
        minimum_order = self.config.minimum_order
        maximum_order = self.config.maximum_order
        radius = (maximum_order - minimum_order) // 3

        lower_bound = max(minimum_order, optimal_order - radius)
        upper_bound = min(maximum_order, optimal_order + radius)

        for _ in range(MAXIMUM_RANDOM_FAILURES):
            candidate = int(self.rng.integers(lower_bound, upper_bound + 1))
            if candidate != optimal_order:
                return candidate

        if optimal_order != minimum_order:
            return optimal_order - 1
        return optimal_order + 1

    def _accept(self, candidate_error: float, optimum_error: float,
                candidate_order: int, optimal_order: int, temperature: float) -> bool:
        """
        Metropolis acceptance for minimization of the generalization error.

        A candidate within ``tolerance`` of the optimum is rejected when it is
        not smaller than the optimum, so ties never grow the network.
        """
        delta = candidate_error - optimum_error

        if delta <= 0:
            boltzmann_probability = 1.0
        elif temperature > 0:
            boltzmann_probability = math.exp(-delta / temperature)
        else:
            boltzmann_probability = 0.0

        random_uniform = float(self.rng.random())

        lateral_growth = abs(delta) <= self.config.tolerance and candidate_order >= optimal_order

        return random_uniform < boltzmann_probability and not lateral_growth
