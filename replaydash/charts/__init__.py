"""
Chart configuration and rendering.

registry validates widget configs per chart type; renderer turns preview
rows into chart data for a rendering surface.
"""

from replaydash.charts.registry import (
    CHART_TYPES,
    DEFAULT_CHART_TYPE,
    ConfigValidationResult,
    describe,
    parse,
    validate,
)
from replaydash.charts.renderer import RenderStatus, RenderedChart, render

__all__ = [
    "CHART_TYPES",
    "DEFAULT_CHART_TYPE",
    "ConfigValidationResult",
    "describe",
    "parse",
    "validate",
    "RenderStatus",
    "RenderedChart",
    "render",
]
