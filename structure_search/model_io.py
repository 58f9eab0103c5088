"""
Search Result Input/Output Operations

This module provides functionality for saving and loading selection results,
and for building report dictionaries that describe a finished search.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import torch.nn as nn

from .config import SearchConfig
from .core import SearchResult


def _to_serializable(value: Any) -> Any:
    """json.dump default hook for numpy values and enums."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if hasattr(value, "value"):
        return value.value
    return str(value)


class SearchResultSerializer:
    """
    Handles serialization and deserialization of search results.
    """

    @staticmethod
    def save(result: SearchResult,
             save_path: Union[str, Path],
             config: Optional[SearchConfig] = None,
             include_parameters: bool = True) -> Dict[str, str]:
        """
        Save a search result to disk.

        Args:
            result: SearchResult to save
            save_path: Base path for saving (without extension)
            config: Configuration the search ran with, stored next to the result
            include_parameters: Whether to store the minimal parameters

        Returns:
            Dictionary with paths of saved files
        """
        save_path = Path(save_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)

        saved_files = {}

        data = result.to_dict()
        if not include_parameters:
            data["minimal_parameters"] = None
        data["saved_at"] = time.time()

        result_path = save_path.with_suffix('.json')
        with open(result_path, 'w') as f:
            json.dump(data, f, indent=2, default=_to_serializable)
        saved_files["result"] = str(result_path)

        if config is not None:
            config_path = save_path.with_name(save_path.name + "_config").with_suffix('.yaml')
            saved_files["config"] = config.save(config_path, format="yaml")

        return saved_files

    @staticmethod
    def load(result_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load a saved search result.

        Args:
            result_path: Path to the JSON result file

        Returns:
            Result dictionary; ``minimal_parameters`` comes back as a numpy array
        """
        with open(result_path, 'r') as f:
            data = json.load(f)

        if data.get("minimal_parameters") is not None:
            data["minimal_parameters"] = np.asarray(data["minimal_parameters"], dtype=float)
        return data


def get_model_stats(model: nn.Module) -> Dict[str, Any]:
    """Parameter and neuron counts of every Linear layer in a model."""
    total_neurons = 0
    layer_info = {}

    for name, module in model.named_modules():
        if isinstance(module, nn.Linear):
            total_neurons += module.out_features
            layer_info[name] = {
                "type": "Linear",
                "in_features": module.in_features,
                "neurons": module.out_features,
                "parameters": module.weight.numel() + (module.bias.numel() if module.bias is not None else 0)
            }

    return {
        "total_parameters": sum(p.numel() for p in model.parameters()),
        "total_neurons": total_neurons,
        "layers": layer_info
    }


def create_search_report(result: SearchResult,
                         config: SearchConfig,
                         oracle: Optional[Any] = None) -> Dict[str, Any]:
    """
    Create a report dictionary for a finished search.

    Args:
        result: Result returned by the search
        config: Configuration the search ran with
        oracle: Oracle the search ran on; model statistics are added when it
            holds a torch model

    Returns:
        Report dictionary
    """
    arrays = result.history.as_arrays()

    report = {
        "timestamp": time.time(),
        "algorithm": result.algorithm.value,
        "configuration": dict(config.to_rows()),
        "result": result.summary(),
        "history": {key: values.tolist() for key, values in arrays.items()},
    }

    selection_errors = arrays["selection_errors"]
    if selection_errors.size > 0:
        initial_error = float(selection_errors[0])
        report["improvement"] = {
            "initial_selection_error": initial_error,
            "final_selection_error": result.final_selection_error,
            "absolute": initial_error - result.final_selection_error,
            "percentage": ((initial_error - result.final_selection_error) / initial_error * 100
                           if initial_error > 0 else 0.0)
        }

    model = getattr(oracle, "model", None)
    if isinstance(model, nn.Module):
        report["model"] = get_model_stats(model)

    return report


def export_to_json(data: Dict[str, Any], filepath: Union[str, Path], pretty: bool = True) -> str:
    """
    Export data to JSON file.

    Args:
        data: Data to export
        filepath: Output file path
        pretty: Whether to format JSON prettily

    Returns:
        Path to saved file
    """
    Path(filepath).parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        if pretty:
            json.dump(data, f, indent=2, default=_to_serializable)
        else:
            json.dump(data, f, default=_to_serializable)

    return str(filepath)
