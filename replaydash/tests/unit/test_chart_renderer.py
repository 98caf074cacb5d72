"""
Unit tests for the chart renderer.

Tests cover:
- Status precedence (error, unknown type, missing configuration, no data)
- Bar/pie category merging in row order
- Gauge defaults, table column fallback
- Histogram default bin count and exclusion of non-numeric values
- Line x parsing per axis type, heatmap and scatter domains
"""

import math

import pytest

from replaydash.charts.renderer import (
    BarData,
    GaugeData,
    HeatmapData,
    HistogramData,
    LineData,
    PieData,
    RenderStatus,
    ScatterData,
    TableData,
    parse_timestamp,
    render,
    to_number,
)
from replaydash.services.preview_scheduler import PreviewResult


def _result(rows, columns=None):
    return PreviewResult(rows=rows, columns=columns or (list(rows[0]) if rows else []))


class TestRenderStatus:
    """Tests for status selection."""

    def test_error_result(self):
        chart = render({"type": "table"}, PreviewResult(error="only SELECT queries are allowed"))
        assert chart.status == RenderStatus.ERROR
        assert chart.message == "only SELECT queries are allowed"
        assert chart.data is None

    def test_unknown_type(self):
        chart = render({"type": "sankey"}, _result([{"a": 1}]))
        assert chart.status == RenderStatus.UNKNOWN_TYPE

    @pytest.mark.parametrize("config", [{"type": {"a": 1}}, {"type": ["gauge"]}, ["gauge"]])
    def test_malformed_type_is_unknown(self, config):
        chart = render(config, _result([{"a": 1}]))
        assert chart.status == RenderStatus.UNKNOWN_TYPE
        assert chart.chart_type is None

    def test_missing_configuration(self):
        chart = render({"type": "gauge"}, _result([{"apm": 150}]))
        assert chart.status == RenderStatus.MISSING_CONFIGURATION
        assert chart.missing_fields == ("gauge_value_column",)

    def test_no_data(self):
        chart = render({"type": "bar_chart", "bar_label_column": "map", "bar_value_column": "wins"}, _result([]))
        assert chart.status == RenderStatus.NO_DATA

    def test_to_dict(self):
        chart = render({"type": "table"}, _result([{"a": 1}]))
        data = chart.to_dict()
        assert data["status"] == "ok"
        assert data["data"]["columns"] == ["a"]


class TestBarAndPie:
    """Tests for categorical charts."""

    def test_bar_chart_example(self):
        rows = [{"map": "Hunters", "wins": 12}, {"map": "Lost Temple", "wins": 5}]
        chart = render(
            {"type": "bar_chart", "bar_label_column": "map", "bar_value_column": "wins"},
            _result(rows, ["map", "wins"]),
        )

        assert chart.status == RenderStatus.OK
        assert isinstance(chart.data, BarData)
        assert [(b.label, b.value) for b in chart.data.bars] == [("Hunters", 12.0), ("Lost Temple", 5.0)]
        assert chart.data.value_domain == (0.0, 12.0)
        assert chart.data.horizontal is False

    def test_duplicate_labels_are_summed(self):
        rows = [
            {"race": "Zerg", "games": 3},
            {"race": "Terran", "games": 2},
            {"race": "Zerg", "games": "4"},
        ]
        chart = render(
            {"type": "bar_chart", "bar_label_column": "race", "bar_value_column": "games", "bar_horizontal": True},
            _result(rows),
        )
        assert [(b.label, b.value) for b in chart.data.bars] == [("Zerg", 7.0), ("Terran", 2.0)]
        assert chart.data.horizontal is True

    def test_row_order_kept(self):
        rows = [{"map": "Lost Temple", "c": 9}, {"map": "Arena", "c": 4}, {"map": "Hunters", "c": 1}]
        bar = render(
            {"type": "bar_chart", "bar_label_column": "map", "bar_value_column": "c"},
            _result(rows),
        )
        pie = render(
            {"type": "pie_chart", "pie_label_column": "map", "pie_value_column": "c"},
            _result(rows),
        )
        assert [b.label for b in bar.data.bars] == ["Lost Temple", "Arena", "Hunters"]
        assert [s.label for s in pie.data.slices] == ["Lost Temple", "Arena", "Hunters"]

    def test_pie_default_colors(self):
        rows = [{"race": "Zerg", "games": 3}, {"race": "Protoss", "games": 1}]
        chart = render(
            {"type": "pie_chart", "pie_label_column": "race", "pie_value_column": "games"},
            _result(rows),
        )
        assert isinstance(chart.data, PieData)
        assert [s.label for s in chart.data.slices] == ["Zerg", "Protoss"]
        assert chart.data.slices[0].color == "#4e79a7"
        assert chart.data.total == 4.0

    def test_pie_configured_colors_cycle(self):
        rows = [{"l": "a", "v": 1}, {"l": "b", "v": 1}, {"l": "c", "v": 1}]
        chart = render(
            {"type": "pie_chart", "pie_label_column": "l", "pie_value_column": "v", "colors": ["red", "blue"]},
            _result(rows),
        )
        assert [s.color for s in chart.data.slices] == ["red", "blue", "red"]


class TestGaugeAndTable:
    """Tests for gauge and table."""

    def test_gauge_defaults(self):
        chart = render({"type": "gauge", "gauge_value_column": "apm"}, _result([{"apm": 100}]))
        assert isinstance(chart.data, GaugeData)
        assert chart.data.min == 0.0
        assert chart.data.max == pytest.approx(120.0)
        assert chart.data.label == "apm"
        assert chart.data.fraction == pytest.approx(100 / 120)

    def test_gauge_fraction_clamped(self):
        chart = render(
            {"type": "gauge", "gauge_value_column": "apm", "gauge_min": 0, "gauge_max": 50, "gauge_label": "APM"},
            _result([{"apm": 80}]),
        )
        assert chart.data.fraction == 1.0
        assert chart.data.label == "APM"

    def test_gauge_non_numeric_value_is_error(self):
        chart = render({"type": "gauge", "gauge_value_column": "apm"}, _result([{"apm": "n/a"}]))
        assert chart.status == RenderStatus.ERROR

    def test_table_uses_result_columns(self):
        chart = render({"type": "table"}, _result([{"b": 2, "a": None}], ["a", "b"]))
        assert isinstance(chart.data, TableData)
        assert chart.data.columns == ["a", "b"]
        assert chart.data.rows == [[None, "2"]]

    def test_table_falls_back_to_first_row_keys(self):
        chart = render({"type": "table"}, PreviewResult(rows=[{"x": 1, "y": 2}], columns=[]))
        assert chart.data.columns == ["x", "y"]

    def test_table_configured_columns(self):
        chart = render({"type": "table", "table_columns": ["y"]}, _result([{"x": 1, "y": 2}]))
        assert chart.data.columns == ["y"]
        assert chart.data.rows == [["2"]]


class TestHistogram:
    """Tests for histogram binning."""

    def test_default_bins_sqrt_n(self):
        rows = [{"apm": i} for i in range(100)]
        chart = render({"type": "histogram", "histogram_value_column": "apm"}, _result(rows))

        assert isinstance(chart.data, HistogramData)
        assert len(chart.data.bins) == 10
        assert sum(b.count for b in chart.data.bins) == 100
        assert chart.data.domain == (0.0, 99.0)

    def test_max_value_in_last_bin(self):
        rows = [{"v": 0}, {"v": 5}, {"v": 10}]
        chart = render({"type": "histogram", "histogram_value_column": "v", "histogram_bins": 2}, _result(rows))
        assert [b.count for b in chart.data.bins] == [1, 2]
        assert chart.data.bins[-1].upper == 10.0

    def test_non_numeric_values_excluded(self):
        rows = [{"v": 1}, {"v": None}, {"v": "abc"}, {"v": float("nan")}, {"v": 3}]
        chart = render({"type": "histogram", "histogram_value_column": "v"}, _result(rows))
        assert chart.data.value_count == 2
        assert chart.data.domain == (1.0, 3.0)
        assert len(chart.data.bins) == math.ceil(math.sqrt(2))

    def test_single_distinct_value(self):
        rows = [{"v": 4}, {"v": 4}]
        chart = render({"type": "histogram", "histogram_value_column": "v"}, _result(rows))
        assert len(chart.data.bins) == 1
        assert chart.data.bins[0].count == 2


class TestLineScatterHeatmap:
    """Tests for the remaining chart types."""

    def test_line_numeric(self):
        rows = [{"t": 0, "apm": 50, "supply": 12}, {"t": 60, "apm": 120, "supply": 30}]
        chart = render(
            {"type": "line_chart", "line_x_column": "t", "line_y_columns": ["apm", "supply"]},
            _result(rows),
        )
        assert isinstance(chart.data, LineData)
        assert chart.data.x_domain == (0.0, 60.0)
        assert chart.data.y_domain == (12.0, 120.0)
        assert [s.column for s in chart.data.series] == ["apm", "supply"]
        assert chart.data.series[0].points == [(0.0, 50.0), (60.0, 120.0)]

    def test_line_y_from_zero(self):
        rows = [{"t": 0, "apm": 50}, {"t": 1, "apm": 80}]
        chart = render(
            {"type": "line_chart", "line_x_column": "t", "line_y_columns": ["apm"], "line_y_axis_from_zero": True},
            _result(rows),
        )
        assert chart.data.y_domain == (0.0, 80.0)

    def test_line_from_zero_keeps_negative_values(self):
        rows = [{"t": 0, "delta": -50}, {"t": 1, "delta": -20}]
        chart = render(
            {"type": "line_chart", "line_x_column": "t", "line_y_columns": ["delta"], "line_y_axis_from_zero": True},
            _result(rows),
        )
        assert chart.data.y_domain == (-50.0, 0.0)

    def test_line_timestamp_axis(self):
        rows = [{"played_at": "2024-01-01T00:00:00Z", "games": 1}, {"played_at": "2024-01-02T00:00:00", "games": 3}]
        chart = render(
            {
                "type": "line_chart",
                "line_x_column": "played_at",
                "line_y_columns": ["games"],
                "line_x_axis_type": "timestamp",
            },
            _result(rows),
        )
        assert chart.data.x_axis_type == "timestamp"
        assert chart.data.x_domain == (1704067200000.0, 1704153600000.0)

    def test_scatter(self):
        rows = [
            {"apm": 100, "mmr": 3000, "race": "Zerg", "games": 10},
            {"apm": "bad", "mmr": 3100, "race": "Terran", "games": 5},
            {"apm": 200, "mmr": 4000, "race": "Protoss", "games": 20},
        ]
        chart = render(
            {
                "type": "scatter_plot",
                "scatter_x_column": "apm",
                "scatter_y_column": "mmr",
                "scatter_size_column": "games",
                "scatter_color_column": "race",
            },
            _result(rows),
        )
        assert isinstance(chart.data, ScatterData)
        assert len(chart.data.points) == 2
        assert chart.data.x_domain == (100.0, 200.0)
        assert chart.data.size_domain == (10.0, 20.0)
        assert chart.data.color_categories == ["Protoss", "Zerg"]

    def test_heatmap(self):
        rows = [
            {"map": "Hunters", "race": "Zerg", "wins": 3},
            {"map": "Arena", "race": "Terran", "wins": 1},
            {"map": "Hunters", "race": "Terran", "wins": 7},
        ]
        chart = render(
            {"type": "heatmap", "heatmap_x_column": "map", "heatmap_y_column": "race", "heatmap_value_column": "wins"},
            _result(rows),
        )
        assert isinstance(chart.data, HeatmapData)
        assert chart.data.x_domain == ["Arena", "Hunters"]
        assert chart.data.y_domain == ["Terran", "Zerg"]
        assert chart.data.cell("Hunters", "Terran").value == 7.0
        assert chart.data.value_domain == (1.0, 7.0)


class TestValueParsing:
    """Tests for cell parsing helpers."""

    def test_to_number(self):
        assert to_number(3) == 3.0
        assert to_number(" 2.5 ") == 2.5
        assert to_number(None) is None
        assert to_number("x") is None
        assert to_number(float("nan")) is None
        assert to_number(True) is None

    def test_parse_timestamp_numeric_is_epoch_ms(self):
        assert parse_timestamp(1704067200000) == 1704067200000.0

    def test_parse_timestamp_offset(self):
        assert parse_timestamp("2024-01-01T01:00:00+01:00") == 1704067200000.0
