"""
Configuration System for Model-Complexity Searches

This module provides the configuration objects for selective pruning and
simulated-annealing order search, including per-field validation, YAML/JSON
persistence, environment overrides and logging setup.
"""

from __future__ import annotations

import json
import logging
import numbers
import os
from dataclasses import dataclass, asdict, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Union

import yaml

from .exceptions import ConfigurationError, SearchPreconditionError


class SearchKind(str, Enum):
    """The selection algorithms available in this package."""

    FEATURE_SEARCH = "feature_search"
    ORDER_SEARCH = "order_search"


def _is_int(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _positive_int(value: Any) -> bool:
    return _is_int(value) and value > 0


def _non_negative_int(value: Any) -> bool:
    return _is_int(value) and value >= 0


def _positive(value: Any) -> bool:
    return _is_number(value) and value > 0


def _non_negative(value: Any) -> bool:
    return _is_number(value) and value >= 0


def _open_unit_interval(value: Any) -> bool:
    return _is_number(value) and 0 < value < 1


def _boolean(value: Any) -> bool:
    return isinstance(value, bool)


def _optional_seed(value: Any) -> bool:
    return value is None or _non_negative_int(value)


Rule = Tuple[Callable[[Any], bool], str]


@dataclass
class LoggingConfig:
    """Configuration for logging and output."""

    # Logging levels: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = "INFO"
    log_to_console: bool = True
    log_to_file: bool = False
    log_file_path: str = "structure_search.log"

    def __post_init__(self):
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            raise ConfigurationError(f"log_level must be one of {valid_log_levels}")


@dataclass
class SearchConfig:
    """
    Settings shared by every selection algorithm.

    Each field is validated when it is assigned, so an out-of-range value
    raises ConfigurationError at the assignment site rather than mid-search.
    """

    trials_number: int = 1
    tolerance: float = 1e-3
    maximum_iterations_number: int = 1000
    maximum_time: float = 3600.0

    # History reservation flags
    reserve_configuration_history: bool = True
    reserve_training_error_history: bool = True
    reserve_selection_error_history: bool = True
    reserve_parameters_history: bool = False
    reserve_minimal_parameters: bool = True

    # 0 = quiet, 1 = start/stop messages, 2 = every iteration
    verbosity: int = 0
    random_seed: Optional[int] = None

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    _rules: ClassVar[Dict[str, Rule]] = {
        "trials_number": (_positive_int, "trials_number must be a positive integer"),
        "tolerance": (_non_negative, "tolerance must be equal or greater than 0"),
        "maximum_iterations_number": (_positive_int, "maximum_iterations_number must be a positive integer"),
        "maximum_time": (_positive, "maximum_time must be greater than 0"),
        "reserve_configuration_history": (_boolean, "reserve_configuration_history must be a bool"),
        "reserve_training_error_history": (_boolean, "reserve_training_error_history must be a bool"),
        "reserve_selection_error_history": (_boolean, "reserve_selection_error_history must be a bool"),
        "reserve_parameters_history": (_boolean, "reserve_parameters_history must be a bool"),
        "reserve_minimal_parameters": (_boolean, "reserve_minimal_parameters must be a bool"),
        "verbosity": (_non_negative_int, "verbosity must be a non-negative integer"),
        "random_seed": (_optional_seed, "random_seed must be None or a non-negative integer"),
    }

    _row_labels: ClassVar[List[Tuple[str, str]]] = [
        ("trials_number", "Trials number"),
        ("tolerance", "Tolerance"),
        ("maximum_iterations_number", "Maximum iterations number"),
        ("maximum_time", "Maximum time"),
        ("reserve_training_error_history", "Plot training error history"),
        ("reserve_selection_error_history", "Plot selection error history"),
    ]

    def __setattr__(self, name: str, value: Any) -> None:
        rule = self._rules.get(name)
        if rule is not None:
            check, message = rule
            if not check(value):
                raise ConfigurationError(f"{message}, got {value!r}")
            # Store numpy scalars as builtins so they serialize cleanly
            if _is_int(value):
                value = int(value)
            elif _is_number(value):
                value = float(value)
        elif name == "logging" and not isinstance(value, LoggingConfig):
            raise ConfigurationError(f"logging must be a LoggingConfig, got {type(value).__name__}")
        super().__setattr__(name, value)

    def validate(self) -> None:
        """Check cross-field preconditions before a search starts."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, indent=2, sort_keys=False)

    def to_rows(self) -> List[Tuple[str, str]]:
        """
        Describe the configuration as ordered (label, value) pairs.

        Returns:
            List of label/value string pairs suitable for a two-column table
        """
        return [(label, str(getattr(self, name))) for name, label in self._row_labels]

    def save(self, filepath: Union[str, Path], format: str = "auto") -> str:
        """
        Save configuration to file.

        Args:
            filepath: Path to save the configuration
            format: Format to save in ("json", "yaml", "auto")

        Returns:
            Path to saved file
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        if format == "auto":
            format = "yaml" if filepath.suffix.lower() in [".yml", ".yaml"] else "json"

        with open(filepath, 'w') as f:
            f.write(self.to_yaml() if format == "yaml" else self.to_json())

        return str(filepath)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'SearchConfig':
        """Create configuration from dictionary."""
        config_dict = dict(config_dict)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config_dict) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys for {cls.__name__}: {unknown}")

        if isinstance(config_dict.get('logging'), dict):
            config_dict['logging'] = LoggingConfig(**config_dict['logging'])

        return cls(**config_dict)

    @classmethod
    def from_json(cls, json_str: str) -> 'SearchConfig':
        """Create configuration from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_yaml(cls, yaml_str: str) -> 'SearchConfig':
        """Create configuration from YAML string."""
        return cls.from_dict(yaml.safe_load(yaml_str) or {})

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'SearchConfig':
        """
        Load configuration from file.

        Args:
            filepath: Path to configuration file

        Returns:
            Configuration instance of the calling class
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(filepath, 'r') as f:
            content = f.read()

        if filepath.suffix.lower() in [".yml", ".yaml"]:
            return cls.from_yaml(content)
        return cls.from_json(content)

    def update(self, **kwargs) -> 'SearchConfig':
        """
        Create a new configuration with updated values.

        Args:
            **kwargs: Values to update; nested keys use dots ("logging.log_level")

        Returns:
            New configuration instance with updates
        """
        config_dict = self.to_dict()

        for key, value in kwargs.items():
            if '.' in key:
                parts = key.split('.')
                current = config_dict
                for part in parts[:-1]:
                    current = current.setdefault(part, {})
                current[parts[-1]] = value
            else:
                config_dict[key] = value

        return self.from_dict(config_dict)

    def setup_logging(self) -> logging.Logger:
        """Set up the package logger based on configuration."""
        logger = logging.getLogger("structure_search")
        logger.setLevel(getattr(logging, self.logging.log_level))

        logger.handlers.clear()

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        if self.logging.log_to_console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(getattr(logging, self.logging.log_level))
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        if self.logging.log_to_file:
            log_path = Path(self.logging.log_file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(getattr(logging, self.logging.log_level))
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        return logger


@dataclass
class SelectivePruningConfig(SearchConfig):
    """Configuration for greedy backward input elimination."""

    selection_performance_goal: float = 0.0
    minimum_inputs_number: int = 1
    maximum_selection_failures: int = 3

    _rules: ClassVar[Dict[str, Rule]] = {
        **SearchConfig._rules,
        "selection_performance_goal": (_non_negative, "selection_performance_goal must be equal or greater than 0"),
        "minimum_inputs_number": (_positive_int, "minimum_inputs_number must be greater than 0"),
        "maximum_selection_failures": (_positive_int, "maximum_selection_failures must be greater than 0"),
    }

    _row_labels: ClassVar[List[Tuple[str, str]]] = [
        ("trials_number", "Trials number"),
        ("tolerance", "Tolerance"),
        ("selection_performance_goal", "Selection performance goal"),
        ("maximum_selection_failures", "Maximum selection failures"),
        ("minimum_inputs_number", "Minimum inputs number"),
        ("maximum_iterations_number", "Maximum iterations number"),
        ("maximum_time", "Maximum time"),
        ("reserve_training_error_history", "Plot training error history"),
        ("reserve_selection_error_history", "Plot selection error history"),
    ]


@dataclass
class SimulatedAnnealingConfig(SearchConfig):
    """Configuration for simulated-annealing search over the hidden-unit count."""

    generalization_performance_goal: float = 0.0
    minimum_order: int = 1
    maximum_order: int = 10
    cooling_rate: float = 0.5
    minimum_temperature: float = 1e-3
    maximum_generalization_failures: int = 3
    cache_evaluations: bool = True

    _rules: ClassVar[Dict[str, Rule]] = {
        **SearchConfig._rules,
        "generalization_performance_goal": (_non_negative, "generalization_performance_goal must be equal or greater than 0"),
        "minimum_order": (_positive_int, "minimum_order must be greater than 0"),
        "maximum_order": (_positive_int, "maximum_order must be greater than 0"),
        "cooling_rate": (_open_unit_interval, "cooling_rate must be greater than 0 and less than 1"),
        "minimum_temperature": (_non_negative, "minimum_temperature must be equal or greater than 0"),
        "maximum_generalization_failures": (_positive_int, "maximum_generalization_failures must be greater than 0"),
        "cache_evaluations": (_boolean, "cache_evaluations must be a bool"),
    }

    _row_labels: ClassVar[List[Tuple[str, str]]] = [
        ("minimum_order", "Minimum order"),
        ("maximum_order", "Maximum order"),
        ("trials_number", "Trials number"),
        ("tolerance", "Tolerance"),
        ("cooling_rate", "Cooling rate"),
        ("minimum_temperature", "Minimum temperature"),
        ("generalization_performance_goal", "Generalization performance goal"),
        ("maximum_generalization_failures", "Maximum generalization failures"),
        ("maximum_iterations_number", "Maximum iterations number"),
        ("maximum_time", "Maximum time"),
        ("reserve_training_error_history", "Plot training error history"),
        ("reserve_selection_error_history", "Plot generalization error history"),
    ]

    def validate(self) -> None:
        """Check that the order bounds leave room for at least one move."""
        if self.minimum_order >= self.maximum_order:
            raise SearchPreconditionError(
                f"minimum_order ({self.minimum_order}) must be less than "
                f"maximum_order ({self.maximum_order})"
            )


CONFIG_CLASSES: Dict[SearchKind, type] = {
    SearchKind.FEATURE_SEARCH: SelectivePruningConfig,
    SearchKind.ORDER_SEARCH: SimulatedAnnealingConfig,
}


def load_from_env(config: SearchConfig, prefix: str = "STRUCTURE_SEARCH_",
                  environ: Optional[Dict[str, str]] = None) -> SearchConfig:
    """
    Override configuration values from environment variables.

    STRUCTURE_SEARCH_COOLING_RATE=0.8 sets ``cooling_rate``; a double
    underscore addresses nested fields (STRUCTURE_SEARCH_LOGGING__LOG_LEVEL).

    Args:
        config: Configuration to start from
        prefix: Prefix for environment variables
        environ: Mapping to read instead of os.environ

    Returns:
        New configuration with overrides applied
    """
    environ = os.environ if environ is None else environ
    env_overrides: Dict[str, Any] = {}

    for key, value in environ.items():
        if not key.startswith(prefix):
            continue
        config_key = key[len(prefix):].lower().replace('__', '.')

        if value.lower() in ['true', 'false']:
            env_overrides[config_key] = value.lower() == 'true'
        elif value.lower() == 'none':
            env_overrides[config_key] = None
        else:
            try:
                env_overrides[config_key] = int(value)
            except ValueError:
                try:
                    env_overrides[config_key] = float(value)
                except ValueError:
                    env_overrides[config_key] = value

    if env_overrides:
        logging.getLogger(__name__).info(f"Applying {len(env_overrides)} environment overrides")
        return config.update(**env_overrides)

    return config


def create_default_pruning_config() -> SelectivePruningConfig:
    """Create a selective pruning configuration with default values."""
    return SelectivePruningConfig()


def create_default_annealing_config() -> SimulatedAnnealingConfig:
    """Create a simulated annealing configuration with default values."""
    return SimulatedAnnealingConfig()


def create_quick_config(kind: Union[SearchKind, str]) -> SearchConfig:
    """
    Create a configuration with small budgets for smoke runs.

    Args:
        kind: Which search the configuration is for

    Returns:
        Configuration instance for the requested search kind
    """
    kind = SearchKind(kind)
    if kind is SearchKind.FEATURE_SEARCH:
        return SelectivePruningConfig(maximum_iterations_number=10, maximum_time=60.0)
    return SimulatedAnnealingConfig(
        maximum_iterations_number=10,
        maximum_time=60.0,
        minimum_order=1,
        maximum_order=8,
        cooling_rate=0.7,
    )
