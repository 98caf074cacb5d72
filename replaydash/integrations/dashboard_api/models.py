"""
Data models for dashboard backend API responses.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


def _nullable(value: Any, key: str) -> Any:
    """Unwrap the backend's nullable wrappers ({"valid": true, "string": "x"})."""
    if isinstance(value, dict) and "valid" in value:
        if not value.get("valid"):
            return None
        return value.get(key)
    return value


@dataclass
class VariableDef:
    """A variable a SQL template references, with its selectable values."""

    name: str
    display_name: str
    possible_values: List[str] = field(default_factory=list)
    description: Optional[str] = None

    @property
    def default_value(self) -> Optional[str]:
        return self.possible_values[0] if self.possible_values else None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "VariableDef":
        possible = data.get("possible_values") or []
        return cls(
            name=data.get("name") or name,
            display_name=data.get("display_name") or name,
            possible_values=[str(v) for v in possible if v is not None],
            description=data.get("description") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "possible_values": list(self.possible_values),
        }


def parse_variables(data: Optional[Dict[str, Any]]) -> Dict[str, VariableDef]:
    """
    Parse a {name: {...}} variables mapping as sent by the backend.

    Raises:
        TypeError: If the mapping or one of its entries is not an object
    """
    if not data:
        return {}
    if not isinstance(data, dict):
        raise TypeError(f"variables must be an object, got {type(data).__name__}")

    variables = {}
    for name, raw in data.items():
        raw = raw or {}
        if not isinstance(raw, dict):
            raise TypeError(f"variable {name!r} must be an object, got {type(raw).__name__}")
        possible = raw.get("possible_values")
        if possible is not None and not isinstance(possible, list):
            raise TypeError(f"possible_values of {name!r} must be a list")
        variables[name] = VariableDef.from_dict(name, raw)
    return variables


@dataclass
class Widget:
    """A query + chart pairing inside a dashboard."""

    id: int
    name: str
    query: str = ""
    config: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    order: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Widget":
        order = _nullable(data.get("widget_order", data.get("order")), "int64")
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            query=data.get("query") or "",
            config=dict(data.get("config") or {}),
            description=_nullable(data.get("description"), "string"),
            order=int(order) if order is not None else 0,
            results=list(data.get("results") or []),
            columns=list(data.get("columns") or []),
        )


@dataclass
class DashboardSummary:
    """Dashboard entry as returned by the list endpoint."""

    url: str
    name: str
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DashboardSummary":
        return cls(
            url=data["url"],
            name=data.get("name", data["url"]),
            description=_nullable(data.get("description"), "string"),
        )


@dataclass
class Dashboard:
    """Full dashboard with widgets resolved for the requested bindings."""

    url: str
    name: str
    description: Optional[str] = None
    variables: Dict[str, VariableDef] = field(default_factory=dict)
    widgets: List[Widget] = field(default_factory=list)
    replays_filter_sql: Optional[str] = None

    @property
    def sorted_widgets(self) -> List[Widget]:
        """Widgets in display order; ties keep backend order."""
        return sorted(self.widgets, key=lambda w: w.order)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dashboard":
        return cls(
            url=data["url"],
            name=data.get("name", data["url"]),
            description=_nullable(data.get("description"), "string"),
            variables=parse_variables(data.get("variables")),
            widgets=[Widget.from_dict(w) for w in data.get("widgets") or []],
            replays_filter_sql=_nullable(data.get("replays_filter_sql"), "string"),
        )


@dataclass
class QueryResult:
    """Rows and columns returned by the query execution endpoint."""

    results: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryResult":
        results = list(data.get("results") or [])
        columns = list(data.get("columns") or [])
        if not columns and results:
            columns = list(results[0].keys())
        return cls(results=results, columns=columns)


@dataclass
class HealthStatus:
    """Health check response from the dashboard backend."""

    ok: bool
    openai_enabled: bool = False
    total_replays: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthStatus":
        return cls(
            ok=bool(data.get("ok", True)),
            openai_enabled=bool(data.get("openai_enabled", False)),
            total_replays=int(data.get("total_replays") or 0),
        )
