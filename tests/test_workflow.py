from structure_search.config import SearchConfig, SelectivePruningConfig, SimulatedAnnealingConfig
from structure_search.core import SearchResult
from structure_search.model_io import SearchResultSerializer
from structure_search.workflow import ModelSelectionWorkflow, create_simple_workflow

KINDS = ("feature_search", "order_search")


def test_full_selection_writes_outputs(tmp_path, regression_data):
    x, y = regression_data
    shared = SearchConfig(maximum_iterations_number=2, random_seed=0)
    workflow = create_simple_workflow(x, y, config=shared, outputs_dir=tmp_path,
                                      hidden_units=3, epochs=5, seed=0)

    results = workflow.run_full_selection()

    assert isinstance(results["feature_search"], SearchResult)
    assert isinstance(results["order_search"], SearchResult)
    assert results["feature_search"].iterations_number <= 2
    assert results["order_search"].iterations_number <= 2
    assert set(workflow.results) == set(KINDS)

    for kind in KINDS:
        assert (workflow.outputs_dir / f"{kind}.json").exists()
        assert (workflow.outputs_dir / f"{kind}_config.yaml").exists()
        assert (workflow.outputs_dir / f"{kind}_report.json").exists()
        assert (workflow.outputs_dir / f"{kind}_report.txt").exists()
        assert len(results["output_files"][kind]) == 4

    saved = SearchResultSerializer.load(workflow.outputs_dir / "order_search.json")
    assert saved["algorithm"] == "order_search"
    assert saved["optimal_configuration"] == workflow.oracle.order

    config = SimulatedAnnealingConfig.load(workflow.outputs_dir / "order_search_config.yaml")
    assert config.maximum_iterations_number == 2
    assert len(workflow.get_output_file_list()) == 8


def test_explicit_config_takes_precedence(tmp_path, feature_oracle):
    workflow = ModelSelectionWorkflow(feature_oracle, config=SearchConfig(maximum_iterations_number=1),
                                      outputs_dir=tmp_path)

    result = workflow.run_feature_search(SelectivePruningConfig(minimum_inputs_number=2))

    assert result.iterations_number == 3
    assert result.optimal_input_names == ["x0", "x2"]


def test_shared_config_applies_to_each_search(tmp_path, feature_oracle):
    workflow = ModelSelectionWorkflow(feature_oracle, config=SearchConfig(maximum_iterations_number=1),
                                      outputs_dir=tmp_path)

    result = workflow.run_feature_search()

    assert result.iterations_number == 1
    assert workflow.outputs_dir.parent == tmp_path
    assert workflow.outputs_dir.name == workflow.workflow_id
