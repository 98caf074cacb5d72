"""
Preview engine exceptions.

Only ExecutionError and ChartValidationError are user-visible; extraction
and persistence failures are logged and the engine carries on.
"""

from typing import Optional, Dict, Any, Sequence, Tuple


class PreviewEngineError(Exception):
    """Base exception for preview engine errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"


class ExtractionError(PreviewEngineError):
    """Variable extraction for a SQL template failed. Previous variables are kept."""
    pass


class ExecutionError(PreviewEngineError):
    """Preview query execution failed. Surfaced as the preview's error."""
    pass


class PersistenceError(PreviewEngineError):
    """Reading or writing persisted state failed."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.key = key


class ChartValidationError(PreviewEngineError):
    """Widget chart configuration is incomplete or names an unknown type."""

    def __init__(
        self,
        message: str,
        chart_type: Optional[str] = None,
        missing_fields: Sequence[str] = (),
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.chart_type = chart_type
        self.missing_fields: Tuple[str, ...] = tuple(missing_fields)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(chart_type={self.chart_type!r}, "
            f"missing_fields={self.missing_fields!r})"
        )
