"""
Model Selection Workflow

End-to-end workflow that runs the selection algorithms against one oracle and
writes their results and reports to an output directory.
"""

import dataclasses
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from search_tracker.reporter import SearchReporter

from .config import CONFIG_CLASSES, SearchConfig, SearchKind
from .core import SearchResult
from .engine import create_search
from .model_io import SearchResultSerializer, create_search_report, export_to_json
from .oracle import PerformanceOracle
from .torch_oracle import TorchPerformanceOracle


class ModelSelectionWorkflow:
    """
    Runs input selection and order selection with automatic output management.

    The pipeline is: select inputs -> select order -> save results and reports.
    """

    def __init__(self, oracle: PerformanceOracle, config: Optional[SearchConfig] = None,
                 outputs_dir="outputs"):
        """
        Initialize the workflow.

        Args:
            oracle: Oracle both searches train and evaluate through
            config: Shared settings (trials, budgets, reserve flags, logging)
                applied to every search that is not given its own configuration
            outputs_dir: Base directory for outputs
        """
        self.oracle = oracle
        self.config = config
        self.logger = logging.getLogger(__name__)

        if config is not None and config.logging.log_to_file:
            config.setup_logging()

        self.workflow_id = f"workflow_{int(time.time())}"
        self.outputs_dir = Path(outputs_dir) / self.workflow_id
        self.outputs_dir.mkdir(parents=True, exist_ok=True)

        self.results: Dict[str, SearchResult] = {}
        self.output_files: Dict[str, List[str]] = {}

        self.logger.info(f"Model selection workflow initialized with ID: {self.workflow_id}")

    def run_feature_search(self, config=None, rng=None) -> SearchResult:
        """
        Select the inputs of the model.

        Args:
            config: SelectivePruningConfig; built from the shared settings if None
            rng: numpy Generator or seed

        Returns:
            SearchResult of the feature search
        """
        return self._run(SearchKind.FEATURE_SEARCH, config, rng)

    def run_order_search(self, config=None, rng=None) -> SearchResult:
        """
        Select the hidden-unit count of the model.

        Args:
            config: SimulatedAnnealingConfig; built from the shared settings if None
            rng: numpy Generator or seed

        Returns:
            SearchResult of the order search
        """
        return self._run(SearchKind.ORDER_SEARCH, config, rng)

    def run_full_selection(self, feature_config=None, order_config=None, rng=None) -> Dict[str, Any]:
        """
        Select inputs first, then the order on the reduced model.

        Returns:
            Dictionary with both results, the workflow id and the output files
        """
        start_time = time.time()
        # Both searches draw from one generator
        if rng is not None and not isinstance(rng, np.random.Generator):
            rng = np.random.default_rng(rng)

        feature_result = self.run_feature_search(feature_config, rng)
        order_result = self.run_order_search(order_config, rng)

        results = {
            "workflow_id": self.workflow_id,
            "feature_search": feature_result,
            "order_search": order_result,
            "workflow_time_seconds": time.time() - start_time,
            "output_files": dict(self.output_files),
        }
        self.log_workflow_summary(results)
        return results

    def _run(self, kind: SearchKind, config: Optional[SearchConfig], rng) -> SearchResult:
        config = self._config_for(kind, config)
        self.logger.info(f"Running {kind.value}")

        search = create_search(kind, self.oracle, config, rng=rng)
        result = search.run()

        self.results[kind.value] = result
        self.output_files[kind.value] = self._save_outputs(kind, result, config)
        return result

    def _config_for(self, kind: SearchKind, config: Optional[SearchConfig]) -> SearchConfig:
        if config is not None:
            return config

        config = CONFIG_CLASSES[kind]()
        if self.config is None:
            return config

        shared = {f.name: getattr(self.config, f.name) for f in dataclasses.fields(SearchConfig)}
        return dataclasses.replace(config, **shared)

    def _save_outputs(self, kind: SearchKind, result: SearchResult, config: SearchConfig) -> List[str]:
        """Write the result JSON, its config, a JSON report and a text report."""
        base_path = self.outputs_dir / kind.value

        saved = SearchResultSerializer.save(result, base_path, config=config)
        files = list(saved.values())

        report = create_search_report(result, config, self.oracle)
        files.append(export_to_json(report, self.outputs_dir / f"{kind.value}_report.json"))

        reporter = SearchReporter(result, config)
        files.append(reporter.save_report_to_file(self.outputs_dir / f"{kind.value}_report.txt"))

        self.logger.info(f"{kind.value} outputs saved to: {self.outputs_dir}")
        return files

    def get_output_file_list(self) -> List[str]:
        """Get list of all output files generated by the workflow."""
        return sorted(str(f) for f in self.outputs_dir.glob("*"))

    def log_workflow_summary(self, results: Dict[str, Any]):
        """Log workflow summary."""
        self.logger.info("=" * 60)
        self.logger.info("WORKFLOW SUMMARY")
        self.logger.info("=" * 60)

        self.logger.info(f"Workflow ID: {results['workflow_id']}")
        self.logger.info(f"Total time: {results['workflow_time_seconds']:.2f}s")

        feature_result = results.get("feature_search")
        if feature_result:
            self.logger.info(f"Inputs selected: {feature_result.optimal_input_names}")
            self.logger.info(f"Feature search stopped: {feature_result.stopping_reason.value}")

        order_result = results.get("order_search")
        if order_result:
            self.logger.info(f"Order selected: {order_result.optimal_configuration}")
            self.logger.info(f"Order search stopped: {order_result.stopping_reason.value}")
            self.logger.info(f"Final selection error: {order_result.final_selection_error:.6g}")

        total_files = sum(len(files) for files in results.get("output_files", {}).values())
        self.logger.info(f"Output files generated: {total_files}")

        self.logger.info("=" * 60)


def create_simple_workflow(x, y, config: Optional[SearchConfig] = None,
                           outputs_dir="outputs", **oracle_kwargs) -> ModelSelectionWorkflow:
    """
    Create a workflow around a torch oracle built from data.

    Args:
        x: Input matrix of shape (samples, inputs)
        y: Targets
        config: Shared search settings
        outputs_dir: Output directory
        **oracle_kwargs: Passed to TorchPerformanceOracle (hidden_units, epochs, ...)

    Returns:
        ModelSelectionWorkflow ready to run
    """
    oracle = TorchPerformanceOracle(x, y, **oracle_kwargs)
    return ModelSelectionWorkflow(oracle, config=config, outputs_dir=outputs_dir)
