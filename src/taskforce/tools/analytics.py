"""Numerical analysis tools used by the analytics orchestrator."""

from __future__ import annotations

import math
import statistics
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Sequence

from .base import Tool, ToolParameter, ToolResult

DEFAULT_OPERATIONS = ["mean", "median", "std", "min", "max", "sum", "count"]


def _numbers(values: Iterable[Any]) -> List[float]:
    return [
        value
        for value in values
        if isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)
    ]


def _timestamp(value: Any) -> float | None:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).timestamp()
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


class StatisticalAnalysisTool(Tool):
    """Perform statistical analysis on numerical data including mean, median, mode, standard deviation, and variance"""

    name = "statistical_analysis"
    parameters = {
        "data": ToolParameter("array", "Array of numerical values to analyze", required=True),
        "operations": ToolParameter(
            "array",
            "Statistical operations to perform: mean, median, mode, std, variance, min, max, sum, count, quartiles",
            default=DEFAULT_OPERATIONS,
        ),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        data = params["data"]
        operations = list(params.get("operations") or DEFAULT_OPERATIONS)
        if not isinstance(data, list) or not data:
            return ToolResult.fail("Data must be a non-empty array of numbers")
        values = sorted(_numbers(data))
        if not values:
            return ToolResult.fail("No valid numeric values in data")

        n = len(values)
        total = math.fsum(values)
        mean = total / n
        results: Dict[str, Any] = {}
        if "count" in operations:
            results["count"] = n
        if "sum" in operations:
            results["sum"] = total
        if "mean" in operations:
            results["mean"] = mean
        if "min" in operations:
            results["min"] = values[0]
        if "max" in operations:
            results["max"] = values[-1]
        if "median" in operations:
            results["median"] = statistics.median(values)
        if "mode" in operations:
            results["mode"] = statistics.multimode(values)
        if "variance" in operations or "std" in operations:
            # Population variance, matching the std reported alongside it.
            variance = statistics.pvariance(values, mu=mean)
            results["variance"] = variance
            results["std"] = math.sqrt(variance)
        if "quartiles" in operations:
            results["q1"] = values[int(n * 0.25)]
            results["q3"] = values[int(n * 0.75)]
            results["iqr"] = results["q3"] - results["q1"]
        return ToolResult.ok(results, data_size=n, operations_performed=operations)


class TrendAnalysisTool(Tool):
    """Analyze trends in time series data, calculate growth rates, and detect patterns"""

    name = "trend_analysis"
    parameters = {
        "data": ToolParameter("array", "Array of objects with date and value fields", required=True),
        "date_field": ToolParameter("string", "Name of the date field", default="date"),
        "value_field": ToolParameter("string", "Name of the value field", default="value"),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        data = params["data"]
        date_field = params.get("date_field") or "date"
        value_field = params.get("value_field") or "value"
        if not isinstance(data, list) or len(data) < 2:
            return ToolResult.fail("Data must have at least 2 data points")
        if not all(isinstance(point, dict) for point in data):
            return ToolResult.fail("Each data point must be an object")

        # Points with unparseable dates keep their relative order at the end.
        stamps = [_timestamp(point.get(date_field)) for point in data]
        order = sorted(range(len(data)), key=lambda i: (stamps[i] is None, stamps[i] or 0.0, i))
        points = [data[i] for i in order]
        try:
            values = [float(point.get(value_field)) for point in points]
        except (TypeError, ValueError):
            return ToolResult.fail(f"Every data point needs a numeric '{value_field}'")

        n = len(values)
        first, last = values[0], values[-1]
        percent_change = (last - first) / abs(first) * 100 if first != 0 else 0.0
        growth_rates = [
            (values[i] - values[i - 1]) / abs(values[i - 1]) * 100 for i in range(1, n) if values[i - 1] != 0
        ]
        avg_growth = statistics.fmean(growth_rates) if growth_rates else 0.0

        x_mean = (n - 1) / 2
        y_mean = statistics.fmean(values)
        numerator = sum((i - x_mean) * (value - y_mean) for i, value in enumerate(values))
        denominator = sum((i - x_mean) ** 2 for i in range(n))
        slope = numerator / denominator if denominator else 0.0
        intercept = y_mean - slope * x_mean
        if abs(slope) < 0.01 * y_mean:
            direction = "stable"
        else:
            direction = "upward" if slope > 0 else "downward"

        std_dev = statistics.pstdev(values, mu=y_mean)
        variation = std_dev / abs(y_mean) * 100 if y_mean else 0.0
        window = min(7, n)
        recent = statistics.fmean(values[-window:])
        previous = statistics.fmean(values[:window])

        return ToolResult.ok(
            {
                "trend_direction": direction,
                "slope": slope,
                "intercept": intercept,
                "total_change": last - first,
                "percent_change": round(percent_change, 2),
                "avg_growth_rate": round(avg_growth, 2),
                "volatility": {
                    "standard_deviation": round(std_dev, 4),
                    "coefficient_of_variation": round(variation, 2),
                },
                "comparison": {
                    "recent_period_avg": recent,
                    "previous_period_avg": previous,
                    "period_change": recent - previous,
                },
                "data_points": n,
                "start_date": points[0].get(date_field),
                "end_date": points[-1].get(date_field),
            }
        )


class DataComparisonTool(Tool):
    """Compare two datasets and identify differences, correlations, and patterns"""

    name = "data_comparison"
    parameters = {
        "dataset1": ToolParameter("array", "First dataset", required=True),
        "dataset2": ToolParameter("array", "Second dataset", required=True),
        "comparison_type": ToolParameter(
            "string",
            "Type of comparison: statistical, correlation, difference",
            enum=["statistical", "correlation", "difference"],
            default="statistical",
        ),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        first, second = params["dataset1"], params["dataset2"]
        kind = params.get("comparison_type") or "statistical"
        if not isinstance(first, list) or not isinstance(second, list):
            return ToolResult.fail("Both datasets must be arrays")
        left, right = _numbers(first), _numbers(second)
        if not left or not right:
            return ToolResult.fail("Both datasets must contain numeric values")

        mean1, mean2 = statistics.fmean(left), statistics.fmean(right)
        results: Dict[str, Any] = {
            "dataset1_size": len(left),
            "dataset2_size": len(right),
            "dataset1_mean": mean1,
            "dataset2_mean": mean2,
            "mean_difference": mean1 - mean2,
        }
        if kind == "correlation":
            results.update(_correlation(left, right, mean1, mean2))
        elif kind == "difference":
            differences = [a - b for a, b in zip(left, right)]
            results["point_by_point_differences"] = differences
            results["avg_difference"] = statistics.fmean(differences)
            results["max_difference"] = max(differences)
            results["min_difference"] = min(differences)
        elif kind == "statistical":
            std1, std2 = statistics.pstdev(left, mu=mean1), statistics.pstdev(right, mu=mean2)
            results["dataset1_std_dev"] = round(std1, 4)
            results["dataset2_std_dev"] = round(std2, 4)
            n1, n2 = len(left), len(right)
            pooled = math.sqrt(((n1 - 1) * std1**2 + (n2 - 1) * std2**2) / (n1 + n2 - 2)) if n1 + n2 > 2 else 0.0
            effect = round((mean1 - mean2) / pooled, 4) if pooled else 0.0
            results["effect_size"] = effect
            results["effect_interpretation"] = "large" if abs(effect) > 0.8 else "medium" if abs(effect) > 0.5 else "small"
        else:
            return ToolResult.fail(f"Unknown comparison type: {kind}")
        return ToolResult.ok(results)


def _correlation(left: Sequence[float], right: Sequence[float], mean1: float, mean2: float) -> Dict[str, Any]:
    if len(left) != len(right):
        return {"correlation": None, "correlation_note": "Datasets differ in length"}
    n = len(left)
    std1, std2 = statistics.pstdev(left, mu=mean1), statistics.pstdev(right, mu=mean2)
    covariance = sum((a - mean1) * (b - mean2) for a, b in zip(left, right)) / n
    correlation = covariance / (std1 * std2) if std1 and std2 else 0.0
    strength = "strong" if abs(correlation) > 0.7 else "moderate" if abs(correlation) > 0.4 else "weak"
    return {
        "correlation": round(correlation, 4),
        "correlation_strength": strength,
        "correlation_direction": "positive" if correlation > 0 else "negative",
    }


_AGGREGATES = {
    "sum": math.fsum,
    "avg": statistics.fmean,
    "mean": statistics.fmean,
    "min": min,
    "max": max,
    "count": len,
}


class DataAggregationTool(Tool):
    """Aggregate data by grouping and calculating summary statistics"""

    name = "data_aggregation"
    parameters = {
        "data": ToolParameter("array", "Array of objects to aggregate", required=True),
        "group_by": ToolParameter("string", "Field to group by", required=True),
        "aggregations": ToolParameter(
            "object", "Map of field name to aggregation types (sum, avg, mean, min, max, count)", required=True
        ),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        data, group_by, aggregations = params["data"], params["group_by"], params["aggregations"]
        if not isinstance(data, list) or not data:
            return ToolResult.fail("Data must be a non-empty array")
        if not isinstance(aggregations, dict):
            return ToolResult.fail("Aggregations must map field names to lists of operations")

        groups: Dict[str, List[Dict[str, Any]]] = {}
        for item in data:
            if isinstance(item, dict):
                groups.setdefault(str(item.get(group_by)), []).append(item)

        rows = []
        for key, items in groups.items():
            row: Dict[str, Any] = {group_by: key, "count": len(items)}
            for field_name, operations in aggregations.items():
                values = _numbers(item.get(field_name) for item in items)
                if not values:
                    continue
                for operation in operations if isinstance(operations, list) else [operations]:
                    func = _AGGREGATES.get(operation)
                    if func is not None:
                        row[f"{field_name}_{operation}"] = func(values)
            rows.append(row)
        return ToolResult.ok(rows, total_records=len(data), group_count=len(rows), group_by_field=group_by)


def _matches(item: Dict[str, Any], condition: Dict[str, Any]) -> bool:
    actual = item.get(condition.get("field"))
    op, expected = condition.get("operator"), condition.get("value")
    if op == "eq":
        return actual == expected
    if op == "neq":
        return actual != expected
    if op in ("gt", "gte", "lt", "lte"):
        try:
            left, right = float(actual), float(expected)
        except (TypeError, ValueError):
            return False
        return {"gt": left > right, "gte": left >= right, "lt": left < right, "lte": left <= right}[op]
    text, needle = str(actual).lower(), str(expected).lower()
    if op == "contains":
        return needle in text
    if op == "starts_with":
        return text.startswith(needle)
    if op == "ends_with":
        return text.endswith(needle)
    return False


class DataFilteringTool(Tool):
    """Filter data based on conditions and criteria"""

    name = "data_filtering"
    parameters = {
        "data": ToolParameter("array", "Array of objects to filter", required=True),
        "conditions": ToolParameter(
            "array",
            "Filter conditions as {field, operator, value}; operators: eq, neq, gt, gte, lt, lte, "
            "contains, starts_with, ends_with",
            required=True,
        ),
        "operator": ToolParameter("string", "How to combine conditions: AND or OR", enum=["AND", "OR"], default="AND"),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        data, conditions = params["data"], params["conditions"]
        combine = all if str(params.get("operator") or "AND").upper() == "AND" else any
        if not isinstance(data, list):
            return ToolResult.fail("Data must be an array")
        if not isinstance(conditions, list) or not all(isinstance(c, dict) for c in conditions):
            return ToolResult.fail("Conditions must be an array of objects")

        kept = [
            item
            for item in data
            if isinstance(item, dict) and combine(_matches(item, condition) for condition in conditions)
        ]
        return ToolResult.ok(
            kept,
            original_count=len(data),
            filtered_count=len(kept),
            removed_count=len(data) - len(kept),
            conditions_applied=len(conditions),
        )


def analytics_tools() -> List[Tool]:
    return [
        StatisticalAnalysisTool(),
        TrendAnalysisTool(),
        DataComparisonTool(),
        DataAggregationTool(),
        DataFilteringTool(),
    ]
