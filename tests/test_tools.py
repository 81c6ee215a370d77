import math

import pytest

from taskforce.config import ToolSpec
from taskforce.tasks.base import TaskResult
from taskforce.tools import FunctionTool, Tool, ToolDefinition, ToolParameter, ToolRegistry, ToolResult
from taskforce.tools.analytics import (
    DataAggregationTool,
    DataComparisonTool,
    DataFilteringTool,
    StatisticalAnalysisTool,
    TrendAnalysisTool,
    analytics_tools,
)


class ExplodingTool(Tool):
    """Always raises."""

    name = "explode"

    def run(self, params):
        raise RuntimeError("kaboom")


class GreetTool(Tool):
    """Says hello."""

    name = "greet"
    parameters = {
        "who": ToolParameter("string", "Name to greet", required=True),
        "punctuation": ToolParameter("string", "Trailing mark", default="!"),
    }

    def run(self, params):
        return ToolResult.ok(f"hello {params['who']}{params['punctuation']}")


def test_tool_result_invariants():
    with pytest.raises(ValueError):
        ToolResult(success=False, data={"x": 1}, error="bad")
    with pytest.raises(ValueError):
        ToolResult(success=False)
    with pytest.raises(ValueError):
        ToolResult(success=True, error="contradiction")

    failed = ToolResult.fail("bad")
    assert failed.data is None
    assert failed.to_dict() == {"success": False, "error": "bad"}


def test_unknown_tool_yields_failure():
    registry = ToolRegistry([GreetTool()])

    result = registry.execute("does_not_exist", {"x": 1})

    assert result.success is False
    assert "does_not_exist" in result.error


def test_tool_exceptions_are_converted():
    result = ToolRegistry([ExplodingTool()]).execute("explode", {})

    assert result.success is False
    assert result.error == "kaboom"


def test_required_parameters_and_defaults():
    tool = GreetTool()

    assert tool.execute({}).success is False
    assert tool.execute({"who": "Ada"}).data == "hello Ada!"
    assert tool.description == "Says hello."


def test_duplicate_tool_names_rejected():
    registry = ToolRegistry([GreetTool()])

    with pytest.raises(ValueError):
        registry.register_instance(GreetTool())
    registry.register_instance(GreetTool(), overwrite=True)
    assert registry.names() == ["greet"]


def test_function_schema_lists_required_parameters():
    schema = GreetTool().definition.to_function_schema()

    assert schema["type"] == "function"
    assert schema["function"]["name"] == "greet"
    assert schema["function"]["parameters"]["required"] == ["who"]
    assert schema["function"]["parameters"]["properties"]["punctuation"]["default"] == "!"


def test_function_tool_converts_task_results():
    definition = ToolDefinition(name="delegate", description="Hand off", parameters={})
    ok = FunctionTool(definition, lambda params: TaskResult(success=True, output="done", execution_time_ms=3.0))
    bad = FunctionTool(definition, lambda params: TaskResult.failure("nope"))

    assert ok.execute({}).data == "done"
    assert ok.execute({}).metadata == {"execution_time_ms": 3.0}
    assert bad.execute({}).error == "nope"


def test_register_from_spec_instantiates_lazily():
    registry = ToolRegistry()
    spec = ToolSpec(name="stats", type="taskforce.tools.analytics:StatisticalAnalysisTool")

    registry.register_from_spec(spec)

    assert "stats" in registry
    result = registry.execute("stats", {"data": [2, 4]})
    assert result.success
    assert result.data["mean"] == 3


def test_unloadable_tool_is_left_out_of_definitions():
    registry = ToolRegistry([GreetTool()])
    registry.register_from_spec(ToolSpec(name="ghost", type="nope.module:Tool"))

    assert registry.execute("ghost", {}).error.startswith("Tool ghost could not be loaded")
    assert "ghost" in registry

    assert [definition.name for definition in registry.definitions()] == ["greet"]
    assert "ghost" not in registry
    assert registry.execute("ghost", {}).error == "Unknown tool: ghost"


def test_statistical_analysis_scenario():
    result = StatisticalAnalysisTool().execute({"data": [1, 2, 3, 4, 5], "operations": ["mean", "median", "std"]})

    assert result.success
    assert result.data["mean"] == 3
    assert result.data["median"] == 3
    assert result.data["std"] == pytest.approx(math.sqrt(2))
    assert result.data["std"] == pytest.approx(1.4142, abs=1e-4)


def test_statistical_analysis_extras_and_validation():
    tool = StatisticalAnalysisTool()

    extras = tool.execute({"data": [1, 2, 2, 3, "x", 9], "operations": ["mode", "quartiles", "count"]})
    assert extras.data["mode"] == [2]
    assert extras.data["count"] == 5
    assert extras.data["q1"] == 2 and extras.data["q3"] == 3

    assert tool.execute({"data": []}).success is False
    assert tool.execute({"data": ["a", None]}).error == "No valid numeric values in data"


def test_trend_analysis_detects_direction():
    data = [
        {"date": "2024-01-03", "value": 30},
        {"date": "2024-01-01", "value": 10},
        {"date": "2024-01-02", "value": 20},
    ]

    result = TrendAnalysisTool().execute({"data": data})

    assert result.success
    assert result.data["trend_direction"] == "upward"
    assert result.data["start_date"] == "2024-01-01"
    assert result.data["total_change"] == 20
    assert result.data["percent_change"] == 200.0
    assert TrendAnalysisTool().execute({"data": [{"value": 1}]}).success is False


def test_data_comparison_modes():
    tool = DataComparisonTool()

    correlation = tool.execute({"dataset1": [1, 2, 3], "dataset2": [2, 4, 6], "comparison_type": "correlation"})
    assert correlation.data["correlation"] == 1.0
    assert correlation.data["correlation_strength"] == "strong"

    difference = tool.execute({"dataset1": [5, 5], "dataset2": [1, 2], "comparison_type": "difference"})
    assert difference.data["point_by_point_differences"] == [4, 3]

    statistical = tool.execute({"dataset1": [1, 2, 3], "dataset2": [1, 2, 3]})
    assert statistical.data["effect_size"] == 0
    assert statistical.data["effect_interpretation"] == "small"


def test_data_aggregation_groups_rows():
    rows = [
        {"region": "north", "sales": 10},
        {"region": "north", "sales": 30},
        {"region": "south", "sales": 5},
    ]

    result = DataAggregationTool().execute(
        {"data": rows, "group_by": "region", "aggregations": {"sales": ["sum", "avg"]}}
    )

    assert result.success
    north = next(row for row in result.data if row["region"] == "north")
    assert north == {"region": "north", "count": 2, "sales_sum": 40, "sales_avg": 20}
    assert result.metadata["group_count"] == 2


def test_data_filtering_combines_conditions():
    rows = [{"name": "Alpha", "score": 9}, {"name": "Beta", "score": 4}, {"name": "alphabet", "score": 2}]
    conditions = [{"field": "name", "operator": "starts_with", "value": "alp"}, {"field": "score", "operator": "gt", "value": 5}]

    both = DataFilteringTool().execute({"data": rows, "conditions": conditions})
    either = DataFilteringTool().execute({"data": rows, "conditions": conditions, "operator": "OR"})

    assert [row["name"] for row in both.data] == ["Alpha"]
    assert [row["name"] for row in either.data] == ["Alpha", "alphabet"]
    assert both.metadata["removed_count"] == 2


def test_analytics_tool_set():
    assert [tool.name for tool in analytics_tools()] == [
        "statistical_analysis",
        "trend_analysis",
        "data_comparison",
        "data_aggregation",
        "data_filtering",
    ]
