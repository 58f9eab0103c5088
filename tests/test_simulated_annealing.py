import itertools
import math

import pytest

from conftest import FakeFeatureOracle, FakeOrderOracle, relevant_inputs_error
from structure_search.config import SimulatedAnnealingConfig
from structure_search.engine import run_search
from structure_search.exceptions import SearchPreconditionError
from structure_search.simulated_annealing import SimulatedAnnealingOrderSearch
from structure_search.stopping import StoppingReason

NO_FAILURE_LIMIT = 10 ** 6


def test_iteration_count_follows_cooling_schedule(order_oracle):
    config = SimulatedAnnealingConfig(minimum_order=1, maximum_order=10, cooling_rate=0.5,
                                      minimum_temperature=1e-3, random_seed=3,
                                      maximum_generalization_failures=NO_FAILURE_LIMIT,
                                      maximum_iterations_number=NO_FAILURE_LIMIT)
    result = SimulatedAnnealingOrderSearch(order_oracle, config).run()

    initial_temperature = result.history[0].selection_error
    expected = math.ceil(math.log(1e-3 / initial_temperature) / math.log(0.5))

    assert result.stopping_reason is StoppingReason.MINIMUM_TEMPERATURE
    assert result.iterations_number == expected
    assert len(result.history) == expected + 1
    assert result.final_temperature < 1e-3


def test_temperature_strictly_decreases(order_oracle):
    config = SimulatedAnnealingConfig(cooling_rate=0.7, random_seed=5,
                                      maximum_generalization_failures=NO_FAILURE_LIMIT)
    search = SimulatedAnnealingOrderSearch(order_oracle, config)
    search.run()

    temperatures = search.temperature_history
    initial = temperatures[0]
    assert all(later < earlier for earlier, later in zip(temperatures, temperatures[1:]))
    for k, temperature in enumerate(temperatures):
        assert temperature == pytest.approx(initial * 0.7 ** k)


def test_terminates_at_maximum_iterations(flat_order_oracle):
    config = SimulatedAnnealingConfig(minimum_temperature=0.0, maximum_iterations_number=7,
                                      maximum_generalization_failures=NO_FAILURE_LIMIT, random_seed=1)
    result = SimulatedAnnealingOrderSearch(flat_order_oracle, config).run()

    assert result.stopping_reason is StoppingReason.MAXIMUM_ITERATIONS
    assert result.iterations_number == 7
    assert len(result.history) == 8


def test_stops_at_generalization_goal():
    oracle = FakeOrderOracle(lambda order: (0.05 * order, 0.05 * order))
    config = SimulatedAnnealingConfig(minimum_temperature=0.0, generalization_performance_goal=0.2,
                                      maximum_generalization_failures=NO_FAILURE_LIMIT, random_seed=6)
    result = SimulatedAnnealingOrderSearch(oracle, config).run()

    assert result.stopping_reason is StoppingReason.GENERALIZATION_PERFORMANCE_GOAL
    assert result.optimal_configuration <= 3
    assert result.final_selection_error < 0.2
    assert oracle.rebuilt_orders[-1] == result.optimal_configuration


def test_time_limit_is_exceeded_not_reached(order_oracle):
    config = SimulatedAnnealingConfig(minimum_temperature=0.0, maximum_time=2.0,
                                      maximum_generalization_failures=NO_FAILURE_LIMIT, random_seed=0)
    search = SimulatedAnnealingOrderSearch(order_oracle, config, clock=itertools.count().__next__)
    result = search.run()

    # Elapsed time equal to the limit keeps the search going
    assert result.stopping_reason is StoppingReason.MAXIMUM_TIME
    assert result.iterations_number == 3
    assert result.elapsed_time == 3


def test_failures_are_counted_over_the_whole_run(flat_order_oracle):
    config = SimulatedAnnealingConfig(minimum_temperature=0.0, maximum_generalization_failures=3,
                                      random_seed=2)
    search = SimulatedAnnealingOrderSearch(flat_order_oracle, config)
    result = search.run()

    # With equal errors only smaller orders are accepted
    optimal = result.history[0].configuration
    rejections = 0
    for record in list(result.history)[1:]:
        if record.configuration < optimal:
            optimal = record.configuration
        else:
            rejections += 1

    assert result.stopping_reason is StoppingReason.MAXIMUM_GENERALIZATION_FAILURES
    assert search.generalization_failures == rejections == 3
    assert result.optimal_configuration == optimal


def test_finalize_installs_optimal_order(order_oracle):
    config = SimulatedAnnealingConfig(random_seed=4, maximum_generalization_failures=NO_FAILURE_LIMIT)
    result = SimulatedAnnealingOrderSearch(order_oracle, config).run()

    best = result.optimal_configuration
    assert order_oracle.rebuilt_orders[-1] == best
    assert order_oracle.parameters.tolist() == result.minimal_parameters.tolist()
    assert result.final_selection_error == pytest.approx(0.37 + 0.005 * abs(best - 4))


def test_initial_order_within_bounds(order_oracle):
    config = SimulatedAnnealingConfig(minimum_order=2, maximum_order=6, random_seed=9)
    result = SimulatedAnnealingOrderSearch(order_oracle, config).run()

    orders = result.history.configurations
    assert 2 <= orders[0] <= 6
    assert all(2 <= order <= 6 for order in orders)


def test_same_seed_reproduces_the_run():
    def make_oracle():
        return FakeOrderOracle(lambda order: (1.0, 0.5 + 0.1 * abs(order - 6)))

    config = SimulatedAnnealingConfig(random_seed=21)
    first = SimulatedAnnealingOrderSearch(make_oracle(), config).run()
    second = SimulatedAnnealingOrderSearch(make_oracle(), config).run()

    assert first.history.configurations == second.history.configurations
    assert first.optimal_configuration == second.optimal_configuration


def test_evaluation_cache(order_oracle):
    config = SimulatedAnnealingConfig(minimum_order=1, maximum_order=4, random_seed=0,
                                      maximum_generalization_failures=NO_FAILURE_LIMIT)
    result = SimulatedAnnealingOrderSearch(order_oracle, config).run()

    assert len(order_oracle.evaluated_orders) == len(set(order_oracle.evaluated_orders))
    assert len(order_oracle.evaluated_orders) <= 4
    assert result.iterations_number >= len(order_oracle.evaluated_orders) - 1


def test_without_cache_every_candidate_is_trained(order_oracle):
    config = SimulatedAnnealingConfig(random_seed=0, cache_evaluations=False,
                                      maximum_generalization_failures=NO_FAILURE_LIMIT)
    result = SimulatedAnnealingOrderSearch(order_oracle, config).run()

    assert len(order_oracle.evaluated_orders) == result.iterations_number + 1


@pytest.mark.parametrize("optimal_order, forced", [(1, 2), (2, 1), (3, 2)])
def test_candidate_forced_next_to_optimum(order_oracle, optimal_order, forced):
    # A window of radius zero always collides with the optimum
    config = SimulatedAnnealingConfig(minimum_order=1, maximum_order=3)
    search = SimulatedAnnealingOrderSearch(order_oracle, config, rng=0)

    assert search._draw_candidate(optimal_order) == forced


def test_candidates_stay_in_window(order_oracle):
    config = SimulatedAnnealingConfig(minimum_order=1, maximum_order=10)
    search = SimulatedAnnealingOrderSearch(order_oracle, config, rng=0)

    candidates = {search._draw_candidate(5) for _ in range(200)}
    assert 5 not in candidates
    assert candidates <= {2, 3, 4, 6, 7, 8}


def test_acceptance_rule(order_oracle):
    search = SimulatedAnnealingOrderSearch(order_oracle, SimulatedAnnealingConfig(tolerance=1e-3), rng=0)

    assert search._accept(0.4, 0.5, 7, 5, temperature=1.0)
    assert search._accept(0.5, 0.5, 4, 5, temperature=1.0)
    # Equal error toward a larger network is rejected
    assert not search._accept(0.5005, 0.5, 6, 5, temperature=1.0)
    assert not search._accept(0.5, 0.5, 6, 5, temperature=1.0)
    assert not search._accept(0.6, 0.5, 4, 5, temperature=0.0)


def test_equal_order_bounds_are_a_precondition_error(order_oracle):
    config = SimulatedAnnealingConfig(minimum_order=5, maximum_order=5)
    with pytest.raises(SearchPreconditionError):
        SimulatedAnnealingOrderSearch(order_oracle, config).run()
    assert order_oracle.evaluated_orders == []


def test_requires_order_capabilities():
    oracle = FakeFeatureOracle(3, relevant_inputs_error)
    with pytest.raises(SearchPreconditionError):
        SimulatedAnnealingOrderSearch(oracle).run()


def test_finalize_before_run(order_oracle):
    with pytest.raises(SearchPreconditionError):
        SimulatedAnnealingOrderSearch(order_oracle).finalize()


def test_run_search_by_kind(order_oracle):
    config = SimulatedAnnealingConfig(random_seed=0)
    result = run_search("order_search", order_oracle, config)

    assert 1 <= result.optimal_configuration <= 10
    assert result.summary()["algorithm"] == "order_search"
    assert "final_temperature" in result.summary()
