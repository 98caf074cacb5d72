"""
Chart configuration registry.

Declares which config fields each chart type requires, validates raw widget
configs against that table and parses them into typed models.

Usage:
    from replaydash.charts.registry import validate, parse

    result = validate({"type": "gauge"})
    result.missing_fields  # ("gauge_value_column",)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from pydantic import ValidationError

from replaydash.charts.config_models import (
    BaseChartConfig,
    BarChartConfig,
    ChartType,
    GaugeConfig,
    HeatmapConfig,
    HistogramConfig,
    LineChartConfig,
    PieChartConfig,
    ScatterPlotConfig,
    TableConfig,
    widget_config_adapter,
)
from replaydash.services.exceptions import ChartValidationError

logger = logging.getLogger(__name__)

DEFAULT_CHART_TYPE = ChartType.TABLE.value


@dataclass(frozen=True)
class ChartFieldSpec:
    """Required and optional config fields of one chart type."""

    chart_type: str
    required: Tuple[str, ...]
    optional: Tuple[str, ...]
    model: Type[BaseChartConfig]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.chart_type,
            "required": list(self.required),
            "optional": list(self.optional),
        }


@dataclass(frozen=True)
class ConfigValidationResult:
    """Outcome of validating a raw widget config."""

    is_valid: bool
    chart_type: Optional[str] = None
    missing_fields: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()

    @property
    def is_unknown_type(self) -> bool:
        return not self.is_valid and self.chart_type not in CHART_FIELD_SPECS


CHART_FIELD_SPECS: Dict[str, ChartFieldSpec] = {
    spec.chart_type: spec
    for spec in (
        ChartFieldSpec(
            ChartType.GAUGE.value,
            required=("gauge_value_column",),
            optional=("gauge_min", "gauge_max", "gauge_label"),
            model=GaugeConfig,
        ),
        ChartFieldSpec(
            ChartType.TABLE.value,
            required=(),
            optional=("table_columns",),
            model=TableConfig,
        ),
        ChartFieldSpec(
            ChartType.PIE_CHART.value,
            required=("pie_label_column", "pie_value_column"),
            optional=("colors",),
            model=PieChartConfig,
        ),
        ChartFieldSpec(
            ChartType.BAR_CHART.value,
            required=("bar_label_column", "bar_value_column"),
            optional=("bar_horizontal",),
            model=BarChartConfig,
        ),
        ChartFieldSpec(
            ChartType.LINE_CHART.value,
            required=("line_x_column", "line_y_columns"),
            optional=("line_x_axis_type", "line_y_axis_from_zero"),
            model=LineChartConfig,
        ),
        ChartFieldSpec(
            ChartType.SCATTER_PLOT.value,
            required=("scatter_x_column", "scatter_y_column"),
            optional=("scatter_size_column", "scatter_color_column"),
            model=ScatterPlotConfig,
        ),
        ChartFieldSpec(
            ChartType.HISTOGRAM.value,
            required=("histogram_value_column",),
            optional=("histogram_bins",),
            model=HistogramConfig,
        ),
        ChartFieldSpec(
            ChartType.HEATMAP.value,
            required=("heatmap_x_column", "heatmap_y_column", "heatmap_value_column"),
            optional=(),
            model=HeatmapConfig,
        ),
    )
}

CHART_TYPES: Tuple[str, ...] = tuple(CHART_FIELD_SPECS)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        # "a, b" style list input counts as present only if it names something
        return not value.replace(",", "").strip()
    if isinstance(value, (list, tuple)):
        return not any(str(v).strip() for v in value if v is not None)
    return False


def describe(chart_type: str) -> ChartFieldSpec:
    """
    Return the field spec for a chart type.

    Raises:
        KeyError: If the chart type is unknown
    """
    return CHART_FIELD_SPECS[chart_type]


def validate(config: Optional[Mapping[str, Any]]) -> ConfigValidationResult:
    """
    Check a raw widget config against its chart type's field spec.

    Empty strings and empty lists count as missing. A missing or unknown
    type is reported as an error, never raised.
    """
    config = config or {}
    if not isinstance(config, Mapping):
        return ConfigValidationResult(
            is_valid=False,
            errors=(f"Chart config must be an object, got {type(config).__name__}",),
        )

    chart_type = config.get("type")

    if not chart_type:
        return ConfigValidationResult(
            is_valid=False,
            errors=("Chart type is not set",),
        )

    if not isinstance(chart_type, str):
        return ConfigValidationResult(
            is_valid=False,
            errors=(f"Unknown chart type: {chart_type!r}",),
        )

    spec = CHART_FIELD_SPECS.get(chart_type)
    if spec is None:
        return ConfigValidationResult(
            is_valid=False,
            chart_type=chart_type,
            errors=(f"Unknown chart type: {chart_type}",),
        )

    missing = tuple(f for f in spec.required if _is_missing(config.get(f)))
    if missing:
        return ConfigValidationResult(
            is_valid=False,
            chart_type=chart_type,
            missing_fields=missing,
            errors=tuple(f"Missing required field: {f}" for f in missing),
        )

    try:
        widget_config_adapter.validate_python(dict(config))
    except ValidationError as e:
        errors = tuple(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        return ConfigValidationResult(is_valid=False, chart_type=chart_type, errors=errors)

    return ConfigValidationResult(is_valid=True, chart_type=chart_type)


def parse(config: Optional[Mapping[str, Any]]) -> BaseChartConfig:
    """
    Parse a raw widget config into its typed model.

    Raises:
        ChartValidationError: If the config does not validate
    """
    result = validate(config)
    if not result.is_valid:
        logger.debug(
            "chart_registry.invalid_config",
            extra={
                "chart_type": result.chart_type,
                "missing_fields": list(result.missing_fields),
                "errors": list(result.errors),
            },
        )
        raise ChartValidationError(
            "; ".join(result.errors) or "Invalid chart configuration",
            chart_type=result.chart_type,
            missing_fields=result.missing_fields,
        )
    return widget_config_adapter.validate_python(dict(config))


def default_config() -> Dict[str, Any]:
    """Config for a newly created widget."""
    return {"type": DEFAULT_CHART_TYPE}
