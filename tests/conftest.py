import numpy as np
import pytest

from structure_search.oracle import InputStatistics, ScalingMethod


class FakeFeatureOracle:
    """
    Deterministic feature oracle.

    Errors come from ``error_fn(mask)``. Every evaluation "trains" by adding
    the live mask to the parameter vector, so leaked parameters are visible.
    """

    def __init__(self, inputs_number, error_fn, with_scaling=True):
        self.error_fn = error_fn
        self._mask = [True] * inputs_number
        self.uses = ["Input"] * inputs_number
        self.parameters = np.zeros(inputs_number)
        self.evaluated_masks = []
        self.statistics = [InputStatistics(float(i), float(i) + 1.0, float(i) + 0.5, 0.25)
                           for i in range(inputs_number)]
        self.scaling = list(self.statistics) if with_scaling else None
        self.method = ScalingMethod.MEAN_STANDARD_DEVIATION
        self.fail_set_scaling = False
        self.failing_set_parameters = 0
        self.set_scaling_calls = 0

    def evaluate(self, configuration):
        if tuple(configuration) != tuple(self._mask):
            raise AssertionError(f"Evaluated {configuration} on live mask {self._mask}")
        self.evaluated_masks.append(tuple(configuration))
        self.parameters = self.parameters + np.array(self._mask, dtype=float)
        return self.error_fn(tuple(self._mask))

    def get_parameters(self):
        return self.parameters.copy()

    def set_parameters(self, parameters):
        if self.failing_set_parameters:
            self.failing_set_parameters -= 1
            raise RuntimeError("parameter vector rejected")
        self.parameters = np.array(parameters, dtype=float)

    def inputs_number(self):
        return len(self._mask)

    def active_input_count(self):
        return sum(self._mask)

    def input_mask(self):
        return tuple(self._mask)

    def deactivate_input(self, index):
        if not self._mask[index]:
            raise ValueError(f"Input {index} is already inactive")
        if self.scaling is not None:
            del self.scaling[sum(self._mask[:index])]
        self._mask[index] = False

    def activate_input(self, index):
        if self._mask[index]:
            raise ValueError(f"Input {index} is already active")
        if self.scaling is not None:
            self.scaling.insert(sum(self._mask[:index]), self.statistics[index])
        self._mask[index] = True

    def set_input_uses(self, mask):
        self.uses = ["Input" if keep else "Unused" for keep in mask]

    def input_names(self):
        return [f"x{i}" for i in range(len(self._mask))]

    def has_scaling_layer(self):
        return self.scaling is not None

    def per_input_statistics(self):
        return list(self.scaling)

    def scaling_method(self):
        return self.method

    def set_scaling(self, statistics, method):
        if self.fail_set_scaling:
            raise RuntimeError("scaling layer rejected the statistics")
        if len(statistics) != self.active_input_count():
            raise ValueError("statistics do not match the active inputs")
        self.set_scaling_calls += 1
        self.scaling = list(statistics)
        self.method = method


class FakeOrderOracle:
    """Order oracle whose errors come from ``error_fn(order)``."""

    def __init__(self, error_fn):
        self.error_fn = error_fn
        self.order = None
        self.parameters = np.zeros(1)
        self.evaluated_orders = []
        self.rebuilt_orders = []

    def evaluate(self, order):
        self.evaluated_orders.append(order)
        self.order = order
        self.parameters = np.full(order, float(order))
        return self.error_fn(order)

    def get_parameters(self):
        return self.parameters.copy()

    def set_parameters(self, parameters):
        self.parameters = np.array(parameters, dtype=float)

    def rebuild_with_order(self, order):
        self.order = order
        self.rebuilt_orders.append(order)


def relevant_inputs_error(mask):
    """Selection error = number of active inputs outside {0, 2}, plus one."""
    irrelevant = sum(1 for i, active in enumerate(mask) if active and i not in (0, 2))
    return 0.5 + irrelevant, 1.0 + irrelevant


@pytest.fixture
def feature_oracle():
    return FakeFeatureOracle(5, relevant_inputs_error)


@pytest.fixture
def order_oracle():
    # Smooth bowl around order 4
    return FakeOrderOracle(lambda order: (0.3 + 0.01 * order, 0.37 + 0.005 * abs(order - 4)))


@pytest.fixture
def flat_order_oracle():
    return FakeOrderOracle(lambda order: (0.5, 0.5))


@pytest.fixture
def regression_data():
    rng = np.random.default_rng(0)
    x = rng.normal(size=(60, 3))
    y = 2.0 * x[:, 0] - x[:, 2] + 0.05 * rng.normal(size=60)
    return x, y
