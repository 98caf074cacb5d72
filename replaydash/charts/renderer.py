"""
Chart renderer.

Turns a widget config plus preview rows into the data a rendering surface
draws from: domains, categories, bins, series. No pixels here.

Status of a rendered chart:
  - error: the preview failed; nothing to draw
  - unknown_type / missing_configuration: config does not validate
  - no_data: the query returned no rows
  - ok: chart data is populated

Numeric parsing follows one rule everywhere: numbers and numeric strings
count, None/NaN/infinite/non-numeric values do not.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from replaydash.charts.config_models import (
    BaseChartConfig,
    BarChartConfig,
    ChartType,
    GaugeConfig,
    HeatmapConfig,
    HistogramConfig,
    LineChartConfig,
    LineXAxisType,
    PieChartConfig,
    ScatterPlotConfig,
    TableConfig,
)
from replaydash.charts.registry import CHART_TYPES, validate, widget_config_adapter
from replaydash.services.preview_scheduler import PreviewResult

logger = logging.getLogger(__name__)

DEFAULT_COLORS = [
    "#4e79a7", "#f28e2c", "#e15759", "#76b7b2", "#59a14f",
    "#edc949", "#af7aa1", "#ff9d9a", "#9c755f", "#bab0ac",
]
GAUGE_DEFAULT_MAX_FACTOR = 1.2

Domain = Tuple[float, float]


class RenderStatus(str, Enum):
    OK = "ok"
    NO_DATA = "no_data"
    MISSING_CONFIGURATION = "missing_configuration"
    UNKNOWN_TYPE = "unknown_type"
    ERROR = "error"


# =============================================================================
# Chart Data
# =============================================================================

@dataclass
class GaugeData:
    value: float
    min: float
    max: float
    label: str
    fraction: float


@dataclass
class TableData:
    columns: List[str]
    rows: List[List[Optional[str]]]


@dataclass
class CategoryValue:
    label: str
    value: float
    color: Optional[str] = None


@dataclass
class PieData:
    slices: List[CategoryValue]
    total: float


@dataclass
class BarData:
    bars: List[CategoryValue]
    value_domain: Domain
    horizontal: bool = False


@dataclass
class LineSeries:
    column: str
    points: List[Tuple[float, float]]


@dataclass
class LineData:
    x_axis_type: str
    x_domain: Optional[Domain]
    y_domain: Optional[Domain]
    series: List[LineSeries]


@dataclass
class ScatterPoint:
    x: float
    y: float
    size: Optional[float] = None
    color: Optional[str] = None


@dataclass
class ScatterData:
    points: List[ScatterPoint]
    x_domain: Optional[Domain]
    y_domain: Optional[Domain]
    size_domain: Optional[Domain] = None
    color_categories: List[str] = field(default_factory=list)


@dataclass
class HistogramBin:
    lower: float
    upper: float
    count: int


@dataclass
class HistogramData:
    bins: List[HistogramBin]
    domain: Domain
    value_count: int


@dataclass
class HeatmapCell:
    x: str
    y: str
    value: Optional[float]


@dataclass
class HeatmapData:
    x_domain: List[str]
    y_domain: List[str]
    cells: List[HeatmapCell]
    value_domain: Optional[Domain]

    def cell(self, x: str, y: str) -> Optional[HeatmapCell]:
        for c in self.cells:
            if c.x == x and c.y == y:
                return c
        return None


@dataclass
class RenderedChart:
    """What the rendering surface receives for one widget."""

    status: RenderStatus
    chart_type: Optional[str] = None
    data: Any = None
    missing_fields: Tuple[str, ...] = ()
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "chart_type": self.chart_type,
            "data": asdict(self.data) if self.data is not None else None,
            "missing_fields": list(self.missing_fields),
            "message": self.message,
        }


# =============================================================================
# Value Parsing
# =============================================================================

def to_number(value: Any) -> Optional[float]:
    """Parse a cell as a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_timestamp(value: Any) -> Optional[float]:
    """Parse a timestamp cell to epoch milliseconds. Naive times are UTC."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return to_number(value)
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return to_number(text)
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000.0


def _domain(values: List[float]) -> Optional[Domain]:
    if not values:
        return None
    return (min(values), max(values))


def _label(value: Any) -> str:
    return str(value)


def _merge_categories(
    rows: List[Mapping[str, Any]],
    label_column: str,
    value_column: str,
) -> List[CategoryValue]:
    """Sum values per label in first-appearance order; rows without a label skipped."""
    totals: Dict[str, float] = {}
    for row in rows:
        raw_label = row.get(label_column)
        if raw_label is None:
            continue
        label = _label(raw_label)
        totals[label] = totals.get(label, 0.0) + (to_number(row.get(value_column)) or 0.0)
    return [CategoryValue(label=label, value=value) for label, value in totals.items()]


# =============================================================================
# Per-Type Renderers
# =============================================================================

def _render_gauge(config: GaugeConfig, result: PreviewResult) -> GaugeData:
    value = to_number(result.rows[0].get(config.gauge_value_column))
    if value is None:
        raise ValueError(f"Gauge value column {config.gauge_value_column!r} is not numeric")

    lower = config.gauge_min if config.gauge_min is not None else 0.0
    upper = config.gauge_max if config.gauge_max is not None else value * GAUGE_DEFAULT_MAX_FACTOR

    span = upper - lower
    if span > 0:
        fraction = (value - lower) / span
    else:
        fraction = 1.0 if value >= upper and value > lower else 0.0

    return GaugeData(
        value=value,
        min=lower,
        max=upper,
        label=config.gauge_label or config.gauge_value_column,
        fraction=min(max(fraction, 0.0), 1.0),
    )


def _render_table(config: TableConfig, result: PreviewResult) -> TableData:
    columns = list(config.table_columns or result.columns or result.rows[0].keys())
    rows = [
        [None if row.get(c) is None else str(row.get(c)) for c in columns]
        for row in result.rows
    ]
    return TableData(columns=columns, rows=rows)


def _render_pie(config: PieChartConfig, result: PreviewResult) -> PieData:
    slices = _merge_categories(result.rows, config.pie_label_column, config.pie_value_column)
    palette = config.colors or DEFAULT_COLORS
    for i, s in enumerate(slices):
        s.color = palette[i % len(palette)]
    return PieData(slices=slices, total=sum(s.value for s in slices))


def _render_bar(config: BarChartConfig, result: PreviewResult) -> BarData:
    bars = _merge_categories(result.rows, config.bar_label_column, config.bar_value_column)
    top = max([b.value for b in bars] + [0.0])
    return BarData(bars=bars, value_domain=(0.0, top), horizontal=config.bar_horizontal)


def _render_line(config: LineChartConfig, result: PreviewResult) -> LineData:
    axis_type = LineXAxisType(config.line_x_axis_type)
    parse_x = parse_timestamp if axis_type == LineXAxisType.TIMESTAMP else to_number

    xs: List[float] = []
    ys: List[float] = []
    series = [LineSeries(column=c, points=[]) for c in config.line_y_columns]

    for row in result.rows:
        x = parse_x(row.get(config.line_x_column))
        if x is None:
            continue
        xs.append(x)
        for s in series:
            y = to_number(row.get(s.column))
            if y is None:
                continue
            s.points.append((x, y))
            ys.append(y)

    y_domain = _domain(ys)
    if config.line_y_axis_from_zero:
        y_domain = (min(ys + [0.0]), max(ys + [0.0]))

    return LineData(
        x_axis_type=axis_type.value,
        x_domain=_domain(xs),
        y_domain=y_domain,
        series=series,
    )


def _render_scatter(config: ScatterPlotConfig, result: PreviewResult) -> ScatterData:
    points: List[ScatterPoint] = []
    sizes: List[float] = []
    colors = set()

    for row in result.rows:
        x = to_number(row.get(config.scatter_x_column))
        y = to_number(row.get(config.scatter_y_column))
        if x is None or y is None:
            continue

        point = ScatterPoint(x=x, y=y)
        if config.scatter_size_column:
            point.size = to_number(row.get(config.scatter_size_column))
            if point.size is not None:
                sizes.append(point.size)
        if config.scatter_color_column:
            point.color = _label(row.get(config.scatter_color_column))
            colors.add(point.color)
        points.append(point)

    return ScatterData(
        points=points,
        x_domain=_domain([p.x for p in points]),
        y_domain=_domain([p.y for p in points]),
        size_domain=_domain(sizes) if config.scatter_size_column else None,
        color_categories=sorted(colors),
    )


def _render_histogram(config: HistogramConfig, result: PreviewResult) -> HistogramData:
    values = [
        v for v in (to_number(row.get(config.histogram_value_column)) for row in result.rows)
        if v is not None
    ]
    if not values:
        raise ValueError(f"Histogram column {config.histogram_value_column!r} has no numeric values")

    bin_count = config.histogram_bins or math.ceil(math.sqrt(len(values)))
    lower, upper = min(values), max(values)

    if upper == lower:
        return HistogramData(
            bins=[HistogramBin(lower=lower, upper=upper, count=len(values))],
            domain=(lower, upper),
            value_count=len(values),
        )

    width = (upper - lower) / bin_count
    counts = [0] * bin_count
    for v in values:
        # last bucket is closed on the right
        index = min(int((v - lower) / width), bin_count - 1)
        counts[index] += 1

    bins = [
        HistogramBin(
            lower=lower + i * width,
            upper=upper if i == bin_count - 1 else lower + (i + 1) * width,
            count=counts[i],
        )
        for i in range(bin_count)
    ]
    return HistogramData(bins=bins, domain=(lower, upper), value_count=len(values))


def _render_heatmap(config: HeatmapConfig, result: PreviewResult) -> HeatmapData:
    cells: Dict[Tuple[str, str], Optional[float]] = {}
    for row in result.rows:
        key = (_label(row.get(config.heatmap_x_column)), _label(row.get(config.heatmap_y_column)))
        value = to_number(row.get(config.heatmap_value_column))
        if value is None:
            cells.setdefault(key, None)
        else:
            cells[key] = (cells.get(key) or 0.0) + value

    numeric = [v for v in cells.values() if v is not None]
    return HeatmapData(
        x_domain=sorted({x for x, _ in cells}),
        y_domain=sorted({y for _, y in cells}),
        cells=[HeatmapCell(x=x, y=y, value=v) for (x, y), v in sorted(cells.items())],
        value_domain=_domain(numeric),
    )


_RENDERERS: Dict[str, Callable[[Any, PreviewResult], Any]] = {
    ChartType.GAUGE.value: _render_gauge,
    ChartType.TABLE.value: _render_table,
    ChartType.PIE_CHART.value: _render_pie,
    ChartType.BAR_CHART.value: _render_bar,
    ChartType.LINE_CHART.value: _render_line,
    ChartType.SCATTER_PLOT.value: _render_scatter,
    ChartType.HISTOGRAM.value: _render_histogram,
    ChartType.HEATMAP.value: _render_heatmap,
}

_unrendered = set(CHART_TYPES) - set(_RENDERERS)
if _unrendered:
    raise RuntimeError(f"No renderer registered for chart types: {sorted(_unrendered)}")


# =============================================================================
# Entry Point
# =============================================================================

def render(config: Optional[Mapping[str, Any]], result: PreviewResult) -> RenderedChart:
    """
    Render preview rows for a widget config.

    Never raises for bad configs or bad data; the status says what happened.
    """
    raw_type = config.get("type") if isinstance(config, Mapping) else None
    chart_type = raw_type if isinstance(raw_type, str) else None

    if result.error:
        return RenderedChart(
            status=RenderStatus.ERROR,
            chart_type=chart_type,
            message=result.error,
        )

    validation = validate(config)
    if not validation.is_valid:
        status = (
            RenderStatus.UNKNOWN_TYPE if validation.is_unknown_type
            else RenderStatus.MISSING_CONFIGURATION
        )
        return RenderedChart(
            status=status,
            chart_type=chart_type,
            missing_fields=validation.missing_fields,
            message="; ".join(validation.errors),
        )

    if not result.rows:
        return RenderedChart(status=RenderStatus.NO_DATA, chart_type=chart_type)

    typed: BaseChartConfig = widget_config_adapter.validate_python(dict(config))
    try:
        data = _RENDERERS[typed.type](typed, result)
    except (ValueError, TypeError) as e:
        logger.warning(
            "chart_renderer.render_failed",
            extra={"chart_type": chart_type, "error": str(e)},
        )
        return RenderedChart(status=RenderStatus.ERROR, chart_type=chart_type, message=str(e))

    return RenderedChart(status=RenderStatus.OK, chart_type=chart_type, data=data)
