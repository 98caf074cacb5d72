"""
Pydantic models for widget chart configurations.

A widget's config is a flat JSON object whose "type" selects the chart
and whose other keys are prefixed with the chart name (gauge_value_column,
line_y_columns, ...). Editors keep keys of previously selected types
around, so unknown keys are ignored rather than rejected.

Values typed into editor inputs arrive as strings; numeric and list
fields accept those forms too ("" means unset, "a, b" is a list).
"""

from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class ChartType(str, Enum):
    GAUGE = "gauge"
    TABLE = "table"
    PIE_CHART = "pie_chart"
    BAR_CHART = "bar_chart"
    LINE_CHART = "line_chart"
    SCATTER_PLOT = "scatter_plot"
    HISTOGRAM = "histogram"
    HEATMAP = "heatmap"


class LineXAxisType(str, Enum):
    NUMERIC = "numeric"
    SECONDS_FROM_GAME_START = "seconds_from_game_start"
    TIMESTAMP = "timestamp"


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _split_list(v: Any) -> Any:
    if isinstance(v, str):
        return [part.strip() for part in v.split(",") if part.strip()]
    return v


# =============================================================================
# Base
# =============================================================================

class BaseChartConfig(BaseModel):
    """Fields shared by every chart config."""

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    type: str


# =============================================================================
# Per-Type Configs
# =============================================================================

class GaugeConfig(BaseChartConfig):
    """Single value against a min/max range."""

    type: Literal["gauge"] = "gauge"
    gauge_value_column: str = Field(..., min_length=1)
    gauge_min: Optional[float] = Field(None, description="Lower bound (default 0)")
    gauge_max: Optional[float] = Field(None, description="Upper bound (default value * 1.2)")
    gauge_label: Optional[str] = Field(None, description="Label (default: value column name)")

    @field_validator("gauge_min", "gauge_max", "gauge_label", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)


class TableConfig(BaseChartConfig):
    """Plain table of result rows."""

    type: Literal["table"] = "table"
    table_columns: Optional[List[str]] = Field(
        None, description="Column order (default: result column order)"
    )

    @field_validator("table_columns", mode="before")
    @classmethod
    def parse_columns(cls, v: Any) -> Any:
        v = _split_list(_blank_to_none(v))
        return v or None


class PieChartConfig(BaseChartConfig):
    """Share of a value per label."""

    type: Literal["pie_chart"] = "pie_chart"
    pie_label_column: str = Field(..., min_length=1)
    pie_value_column: str = Field(..., min_length=1)
    colors: Optional[List[str]] = Field(None, description="Ordered slice colors")

    @field_validator("colors", mode="before")
    @classmethod
    def parse_colors(cls, v: Any) -> Any:
        v = _split_list(_blank_to_none(v))
        return v or None


class BarChartConfig(BaseChartConfig):
    """Value per label as bars."""

    type: Literal["bar_chart"] = "bar_chart"
    bar_label_column: str = Field(..., min_length=1)
    bar_value_column: str = Field(..., min_length=1)
    bar_horizontal: bool = False

    @field_validator("bar_horizontal", mode="before")
    @classmethod
    def blank_is_false(cls, v: Any) -> Any:
        return _blank_to_none(v) or False


class LineChartConfig(BaseChartConfig):
    """One or more y series over an x column."""

    type: Literal["line_chart"] = "line_chart"
    line_x_column: str = Field(..., min_length=1)
    line_y_columns: List[str] = Field(..., min_length=1)
    line_x_axis_type: LineXAxisType = LineXAxisType.NUMERIC
    line_y_axis_from_zero: bool = False

    @field_validator("line_y_axis_from_zero", mode="before")
    @classmethod
    def blank_is_false(cls, v: Any) -> Any:
        return _blank_to_none(v) or False

    @field_validator("line_y_columns", mode="before")
    @classmethod
    def parse_y_columns(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("line_x_axis_type", mode="before")
    @classmethod
    def default_axis_type(cls, v: Any) -> Any:
        return _blank_to_none(v) or LineXAxisType.NUMERIC


class ScatterPlotConfig(BaseChartConfig):
    """Points by x/y, optionally sized and colored by other columns."""

    type: Literal["scatter_plot"] = "scatter_plot"
    scatter_x_column: str = Field(..., min_length=1)
    scatter_y_column: str = Field(..., min_length=1)
    scatter_size_column: Optional[str] = None
    scatter_color_column: Optional[str] = None

    @field_validator("scatter_size_column", "scatter_color_column", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)


class HistogramConfig(BaseChartConfig):
    """Distribution of a numeric column."""

    type: Literal["histogram"] = "histogram"
    histogram_value_column: str = Field(..., min_length=1)
    histogram_bins: Optional[int] = Field(None, ge=1, description="Bin count (default ceil(sqrt(n)))")

    @field_validator("histogram_bins", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)


class HeatmapConfig(BaseChartConfig):
    """Value per (x, y) category pair."""

    type: Literal["heatmap"] = "heatmap"
    heatmap_x_column: str = Field(..., min_length=1)
    heatmap_y_column: str = Field(..., min_length=1)
    heatmap_value_column: str = Field(..., min_length=1)


# =============================================================================
# Tagged Union
# =============================================================================

WidgetConfig = Annotated[
    Union[
        GaugeConfig,
        TableConfig,
        PieChartConfig,
        BarChartConfig,
        LineChartConfig,
        ScatterPlotConfig,
        HistogramConfig,
        HeatmapConfig,
    ],
    Field(discriminator="type"),
]

widget_config_adapter: TypeAdapter = TypeAdapter(WidgetConfig)
