"""
Model-Complexity Search Package

Selects the complexity of a neural network through a performance oracle:
greedy backward elimination of input variables (selective pruning) and
simulated annealing over the number of hidden units (order selection).
Includes a PyTorch reference oracle, YAML/JSON configuration, result
persistence and an end-to-end workflow.
"""

from __future__ import annotations

from .exceptions import ConfigurationError, SearchError, SearchPreconditionError
from .config import (
    SearchKind, SearchConfig, SelectivePruningConfig, SimulatedAnnealingConfig,
    LoggingConfig, CONFIG_CLASSES, load_from_env, create_default_pruning_config,
    create_default_annealing_config, create_quick_config
)
from .oracle import (
    FeatureMask, FeatureOracle, InputStatistics, OrderOracle, PerformanceOracle,
    ScalingMethod, input_temporarily_deactivated, preserved_parameters
)
from .stopping import SearchState, StoppingEvaluator, StoppingReason
from .core import SearchResult, SelectionAlgorithm
from .selective_pruning import SelectiveFeatureSearch
from .simulated_annealing import SimulatedAnnealingOrderSearch
from .engine import SEARCH_CLASSES, create_search, run_search
from .torch_oracle import MultilayerPerceptron, ScalingLayer, TorchPerformanceOracle
from .model_io import SearchResultSerializer, create_search_report, export_to_json
from .workflow import ModelSelectionWorkflow, create_simple_workflow

__version__ = "1.0.0"
__all__ = ["SearchError", "ConfigurationError", "SearchPreconditionError",
           "SearchKind", "SearchConfig", "SelectivePruningConfig", "SimulatedAnnealingConfig",
           "LoggingConfig", "load_from_env", "create_default_pruning_config",
           "create_default_annealing_config", "create_quick_config",
           "PerformanceOracle", "FeatureOracle", "OrderOracle", "ScalingMethod", "InputStatistics",
           "preserved_parameters", "input_temporarily_deactivated",
           "StoppingReason", "StoppingEvaluator", "SearchResult", "SelectionAlgorithm",
           "SelectiveFeatureSearch", "SimulatedAnnealingOrderSearch",
           "create_search", "run_search", "TorchPerformanceOracle",
           "SearchResultSerializer", "create_search_report", "export_to_json",
           "ModelSelectionWorkflow", "create_simple_workflow"]
