"""
Torch Performance Oracle

A small PyTorch multilayer perceptron wrapped in the oracle interface, so the
searches can run end-to-end on real data. Inputs are removed and restored by
rebuilding the first Linear layer with the kept weight columns, and the order
is changed by rebuilding both Linear layers around the kept hidden units.
"""

from __future__ import annotations

import logging
import math
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch
import torch.nn as nn
from torch.nn.utils import parameters_to_vector, vector_to_parameters

from .oracle import FeatureMask, InputStatistics, ScalingMethod


class ScalingLayer(nn.Module):
    """
    Normalizes each input column from its descriptive statistics.

    Offsets and scales are buffers, so they are not part of the parameter
    vector the searches snapshot and restore.
    """

    def __init__(self, statistics: Sequence[InputStatistics],
                 method: ScalingMethod = ScalingMethod.MINIMUM_MAXIMUM) -> None:
        super().__init__()
        self.statistics: List[InputStatistics] = list(statistics)
        self.method = ScalingMethod(method)

        offsets, scales = [], []
        for stats in self.statistics:
            if self.method is ScalingMethod.MINIMUM_MAXIMUM:
                offset = (stats.maximum + stats.minimum) / 2.0
                scale = (stats.maximum - stats.minimum) / 2.0
            elif self.method is ScalingMethod.MEAN_STANDARD_DEVIATION:
                offset = stats.mean
                scale = stats.standard_deviation
            else:
                offset, scale = 0.0, 1.0
            offsets.append(offset)
            scales.append(scale if scale > 0 else 1.0)

        self.register_buffer("offset", torch.tensor(offsets, dtype=torch.float32))
        self.register_buffer("scale", torch.tensor(scales, dtype=torch.float32))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return (x - self.offset) / self.scale


class MultilayerPerceptron(nn.Module):
    """Scaling layer -> Linear -> tanh -> Linear."""

    def __init__(self, inputs_number: int, order: int, outputs_number: int,
                 scaling: Optional[ScalingLayer] = None) -> None:
        super().__init__()
        self.scaling = scaling
        self.hidden = nn.Linear(inputs_number, order)
        self.output = nn.Linear(order, outputs_number)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if self.scaling is not None:
            x = self.scaling(x)
        return self.output(torch.tanh(self.hidden(x)))


class TorchPerformanceOracle:
    """
    Performance oracle backed by a PyTorch multilayer perceptron.

    Implements both the feature capability set (input masking, variable-usage
    table, scaling statistics) and the order capability set (rebuild at a new
    hidden-unit count). ``evaluate`` trains from the current parameters with
    Adam on the mean squared error and returns the training and selection
    mean squared errors.
    """

    def __init__(self, x: np.ndarray, y: np.ndarray,
                 hidden_units: int = 4,
                 selection_fraction: float = 0.2,
                 epochs: int = 200,
                 learning_rate: float = 0.01,
                 input_names: Optional[Sequence[str]] = None,
                 scaling_method: Optional[ScalingMethod] = ScalingMethod.MINIMUM_MAXIMUM,
                 seed: int = 0) -> None:
        """
        Initialize the oracle and split the data.

        Args:
            x: Input matrix of shape (samples, inputs)
            y: Targets of shape (samples,) or (samples, outputs)
            hidden_units: Initial order of the network
            selection_fraction: Fraction of samples held out for selection error
            epochs: Full-batch training epochs per evaluation
            learning_rate: Adam learning rate
            input_names: Names of the input variables
            scaling_method: Scaling method, or None for a network without scaling layer
            seed: Seed for the data split and weight initialization
        """
        x = np.asarray(x, dtype=np.float32)
        y = np.asarray(y, dtype=np.float32)
        if y.ndim == 1:
            y = y.reshape(-1, 1)
        if x.ndim != 2 or len(x) != len(y):
            raise ValueError(f"x must be 2-D with one row per target, got {x.shape} and {y.shape}")
        if not 0.0 < selection_fraction < 1.0:
            raise ValueError(f"selection_fraction must be between 0 and 1, got {selection_fraction}")
        if len(x) < 2:
            raise ValueError("At least two samples are needed to split training and selection data")

        self.logger = logging.getLogger(__name__)
        self.epochs = epochs
        self.learning_rate = learning_rate
        self.generator = torch.Generator().manual_seed(seed)

        permutation = np.random.default_rng(seed).permutation(len(x))
        selection_size = min(len(x) - 1, max(1, int(round(len(x) * selection_fraction))))
        selection_rows, training_rows = permutation[:selection_size], permutation[selection_size:]

        self.x_training = torch.from_numpy(x[training_rows])
        self.y_training = torch.from_numpy(y[training_rows])
        self.x_selection = torch.from_numpy(x[selection_rows])
        self.y_selection = torch.from_numpy(y[selection_rows])

        inputs_number = x.shape[1]
        self._input_names = (list(input_names) if input_names is not None
                             else [f"input_{i}" for i in range(inputs_number)])
        if len(self._input_names) != inputs_number:
            raise ValueError(f"Expected {inputs_number} input names, got {len(self._input_names)}")

        self._statistics = [InputStatistics.from_column(x[training_rows, j])
                            for j in range(inputs_number)]
        self._mask: List[bool] = [True] * inputs_number
        self._uses: List[str] = ["Input"] * inputs_number

        scaling = None
        if scaling_method is not None:
            scaling = ScalingLayer(self._statistics, scaling_method)

        self.model = MultilayerPerceptron(inputs_number, hidden_units, y.shape[1], scaling)
        self.randomize_parameters()

    # Feature capability set

    def inputs_number(self) -> int:
        return len(self._mask)

    def input_names(self) -> List[str]:
        return list(self._input_names)

    def input_mask(self) -> FeatureMask:
        return tuple(self._mask)

    def active_input_count(self) -> int:
        return sum(self._mask)

    def variable_uses(self) -> List[str]:
        """The variable-usage table: "Input" or "Unused" per original input."""
        return list(self._uses)

    def set_input_uses(self, mask: FeatureMask) -> None:
        if len(mask) != len(self._mask):
            raise ValueError(f"Mask has {len(mask)} entries, expected {len(self._mask)}")
        self._uses = ["Input" if keep else "Unused" for keep in mask]

    def deactivate_input(self, index: int) -> None:
        """
        Remove one input from the network.

        Args:
            index: Position of the input in the original input list
        """
        if not self._mask[index]:
            raise ValueError(f"Input {index} is already inactive")

        position = self._position(index)
        layer = self.model.hidden
        columns = [c for c in range(layer.in_features) if c != position]

        new_layer = self._new_linear(layer.in_features - 1, layer.out_features, like=layer)
        with torch.no_grad():
            columns_tensor = torch.tensor(columns, dtype=torch.long, device=layer.weight.device)
            new_layer.weight.copy_(layer.weight[:, columns_tensor])
            new_layer.bias.copy_(layer.bias)
        self.model.hidden = new_layer

        if self.model.scaling is not None:
            statistics = list(self.model.scaling.statistics)
            del statistics[position]
            self.model.scaling = ScalingLayer(statistics, self.model.scaling.method)

        self._mask[index] = False
        self.logger.debug(f"Removed input {index} ({self._input_names[index]}), {layer.in_features - 1} inputs left")

    def activate_input(self, index: int) -> None:
        """
        Add one input back to the network with freshly initialized weights.

        Args:
            index: Position of the input in the original input list
        """
        if self._mask[index]:
            raise ValueError(f"Input {index} is already active")

        position = self._position(index)
        layer = self.model.hidden

        new_layer = self._new_linear(layer.in_features + 1, layer.out_features, like=layer)
        with torch.no_grad():
            old_columns = [c for c in range(new_layer.in_features) if c != position]
            columns_tensor = torch.tensor(old_columns, dtype=torch.long, device=layer.weight.device)
            new_layer.weight[:, columns_tensor] = layer.weight
            new_layer.bias.copy_(layer.bias)
        self.model.hidden = new_layer

        if self.model.scaling is not None:
            statistics = list(self.model.scaling.statistics)
            statistics.insert(position, self._statistics[index])
            self.model.scaling = ScalingLayer(statistics, self.model.scaling.method)

        self._mask[index] = True

    def has_scaling_layer(self) -> bool:
        return self.model.scaling is not None

    def per_input_statistics(self) -> List[InputStatistics]:
        if self.model.scaling is None:
            return []
        return list(self.model.scaling.statistics)

    def scaling_method(self) -> ScalingMethod:
        if self.model.scaling is None:
            return ScalingMethod.NO_SCALING
        return self.model.scaling.method

    def set_scaling(self, statistics: Sequence[InputStatistics], method: ScalingMethod) -> None:
        if len(statistics) != self.active_input_count():
            raise ValueError(
                f"Scaling needs {self.active_input_count()} statistics, got {len(statistics)}"
            )
        self.model.scaling = ScalingLayer(statistics, method)

    # Order capability set

    @property
    def order(self) -> int:
        return self.model.hidden.out_features

    def rebuild_with_order(self, order: int) -> None:
        """
        Resize the hidden layer, keeping the weights of the first units.

        Args:
            order: New number of hidden units
        """
        if order <= 0:
            raise ValueError(f"Order must be positive, got {order}")

        hidden, output = self.model.hidden, self.model.output
        kept = min(order, hidden.out_features)

        new_hidden = self._new_linear(hidden.in_features, order, like=hidden)
        new_output = self._new_linear(order, output.out_features, like=output)
        with torch.no_grad():
            new_hidden.weight[:kept] = hidden.weight[:kept]
            new_hidden.bias[:kept] = hidden.bias[:kept]
            new_output.weight[:, :kept] = output.weight[:, :kept]
            new_output.bias.copy_(output.bias)

        self.model.hidden = new_hidden
        self.model.output = new_output
        self.logger.debug(f"Rebuilt hidden layer: {hidden.out_features} -> {order} units")

    # Parameters and evaluation

    def parameters_number(self) -> int:
        return sum(p.numel() for p in self.model.parameters())

    def get_parameters(self) -> np.ndarray:
        return parameters_to_vector(self.model.parameters()).detach().cpu().numpy().astype(float)

    def set_parameters(self, parameters: Sequence[float]) -> None:
        parameters = np.asarray(parameters, dtype=np.float32)
        if parameters.size != self.parameters_number():
            raise ValueError(
                f"Expected {self.parameters_number()} parameters, got {parameters.size}"
            )
        with torch.no_grad():
            vector_to_parameters(torch.from_numpy(parameters.copy()), self.model.parameters())

    def randomize_parameters(self) -> None:
        """Re-initialize every Linear layer from the oracle's generator."""
        for layer in (self.model.hidden, self.model.output):
            self._initialize(layer)

    def evaluate(self, configuration: Union[FeatureMask, int]) -> Tuple[float, float]:
        """
        Train the network for a configuration and measure it.

        Args:
            configuration: Input mask (sequence of bools) or order (int)

        Returns:
            (training_error, selection_error) as mean squared errors
        """
        self._apply_configuration(configuration)
        self._train()
        return self.calculate_errors()

    def calculate_errors(self) -> Tuple[float, float]:
        """Training and selection mean squared errors at the current parameters."""
        self.model.eval()
        with torch.no_grad():
            training_error = nn.functional.mse_loss(
                self.model(self._active_columns(self.x_training)), self.y_training).item()
            selection_error = nn.functional.mse_loss(
                self.model(self._active_columns(self.x_selection)), self.y_selection).item()
        return training_error, selection_error

    def _apply_configuration(self, configuration: Any) -> None:
        if isinstance(configuration, (tuple, list)):
            if len(configuration) != len(self._mask):
                raise ValueError(f"Mask has {len(configuration)} entries, expected {len(self._mask)}")
            for index, wanted in enumerate(configuration):
                if wanted and not self._mask[index]:
                    self.activate_input(index)
            for index, wanted in enumerate(configuration):
                if not wanted and self._mask[index]:
                    self.deactivate_input(index)
        elif isinstance(configuration, (int, np.integer)) and not isinstance(configuration, bool):
            if int(configuration) != self.order:
                self.rebuild_with_order(int(configuration))
        else:
            raise TypeError(f"Unsupported configuration type: {type(configuration).__name__}")

    def _train(self) -> None:
        self.model.train()
        optimizer = torch.optim.Adam(self.model.parameters(), lr=self.learning_rate)
        x = self._active_columns(self.x_training)

        for _ in range(self.epochs):
            optimizer.zero_grad()
            loss = nn.functional.mse_loss(self.model(x), self.y_training)
            loss.backward()
            optimizer.step()

    def _active_columns(self, x: torch.Tensor) -> torch.Tensor:
        active = [i for i, keep in enumerate(self._mask) if keep]
        return x[:, active]

    def _position(self, index: int) -> int:
        """Column of an original input within the active inputs."""
        return sum(self._mask[:index])

    def _new_linear(self, in_features: int, out_features: int, like: nn.Linear) -> nn.Linear:
        layer = nn.Linear(in_features, out_features,
                          device=like.weight.device, dtype=like.weight.dtype)
        self._initialize(layer)
        return layer

    def _initialize(self, layer: nn.Linear) -> None:
        bound = 1.0 / math.sqrt(layer.in_features) if layer.in_features > 0 else 0.0
        with torch.no_grad():
            layer.weight.uniform_(-bound, bound, generator=self.generator)
            layer.bias.uniform_(-bound, bound, generator=self.generator)
