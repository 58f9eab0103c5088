import json

import numpy as np
import pytest

from search_tracker.reporter import SearchReporter, summarize_results
from structure_search.config import SelectivePruningConfig, SimulatedAnnealingConfig
from structure_search.model_io import SearchResultSerializer, create_search_report, export_to_json
from structure_search.selective_pruning import SelectiveFeatureSearch
from structure_search.simulated_annealing import SimulatedAnnealingOrderSearch


@pytest.fixture
def feature_result(feature_oracle):
    return SelectiveFeatureSearch(feature_oracle, SelectivePruningConfig()).run()


@pytest.fixture
def order_result(order_oracle):
    return SimulatedAnnealingOrderSearch(order_oracle, SimulatedAnnealingConfig(random_seed=0)).run()


def test_serializer_round_trip(tmp_path, feature_result):
    config = SelectivePruningConfig()
    saved = SearchResultSerializer.save(feature_result, tmp_path / "results" / "features", config=config)

    assert set(saved) == {"result", "config"}
    assert SelectivePruningConfig.load(saved["config"]) == config

    data = SearchResultSerializer.load(saved["result"])
    assert data["algorithm"] == "feature_search"
    assert data["optimal_configuration"] == [True, False, True, False, False]
    assert data["stopping_reason"] == "AlgorithmFinished"
    np.testing.assert_array_equal(data["minimal_parameters"], feature_result.minimal_parameters)
    assert len(data["history"]["records"]) == len(feature_result.history)


def test_serializer_can_skip_parameters(tmp_path, order_result):
    saved = SearchResultSerializer.save(order_result, tmp_path / "order", include_parameters=False)

    data = SearchResultSerializer.load(saved["result"])
    assert data["minimal_parameters"] is None
    assert data["final_temperature"] == pytest.approx(order_result.final_temperature)


def test_search_report_without_torch_model(feature_result):
    report = create_search_report(feature_result, SelectivePruningConfig())

    assert report["algorithm"] == "feature_search"
    assert report["configuration"]["Minimum inputs number"] == "1"
    assert report["history"]["selection_errors"][0] == 4.0
    assert report["improvement"]["absolute"] == pytest.approx(3.0)
    assert "model" not in report


def test_export_to_json_handles_numpy(tmp_path):
    path = export_to_json({"values": np.arange(3), "score": np.float64(0.5)}, tmp_path / "out" / "data.json")

    with open(path) as f:
        assert json.load(f) == {"values": [0, 1, 2], "score": 0.5}


def test_feature_summary(feature_result):
    text = SearchReporter(feature_result, SelectivePruningConfig()).format_summary()

    assert "FEATURE SEARCH REPORT" in text
    assert "Minimum inputs number" in text
    assert "AlgorithmFinished" in text
    assert "x0, x2" in text
    assert "2 of 5" in text


def test_order_summary_without_config(order_result):
    text = SearchReporter(order_result).format_summary()

    assert "Optimal order" in text
    assert "Final temperature" in text
    assert "CONFIGURATION" not in text


def test_history_table_truncates_to_recent_rows(feature_result):
    table = SearchReporter(feature_result).format_history_table(max_rows=2)

    assert "earlier iterations omitted" in table
    assert "10100" in table
    assert "11111" not in table


def test_save_report_to_file(tmp_path, order_result):
    path = SearchReporter(order_result).save_report_to_file(tmp_path / "reports" / "order.txt")

    with open(path) as f:
        content = f.read()
    assert "SEARCH HISTORY" in content
    assert "earlier iterations omitted" not in content


def test_summarize_results(feature_result, order_result):
    lines = summarize_results([feature_result, order_result]).splitlines()

    assert lines[0].startswith("feature_search:")
    assert lines[1].startswith("order_search:")
