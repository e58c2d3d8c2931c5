from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request

from app.core.modules import RECORD_SCOPED_MODULES


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

record_scope_resolutions_total = Counter(
    "record_scope_resolutions_total",
    "Record scope resolutions by module and access level",
    ["module", "level"],
)

record_scope_level_fallback_total = Counter(
    "record_scope_level_fallback_total",
    "Access level lookups that fell back to own",
    ["module"],
)

record_scope_fail_closed_total = Counter(
    "record_scope_fail_closed_total",
    "Scope filters compiled to a match-nothing predicate",
    ["module"],
)

record_scope_failures_total = Counter(
    "record_scope_failures_total",
    "Record scope resolutions that raised",
    ["module"],
)

record_scope_principal_set_size = Histogram(
    "record_scope_principal_set_size",
    "Size of resolved principal sets",
    ["level"],
    buckets=(1, 2, 5, 10, 25, 50, 100, 250, 1000, 5000),
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return path_format
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return route_path
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


OTHER_MODULE_LABEL = "other"


def record_scope_module_label(module: str) -> str:
    # Label values are limited to the known modules.
    return module if module in RECORD_SCOPED_MODULES else OTHER_MODULE_LABEL


def observe_record_scope_resolution(module: str, level: str, principal_count: int | None) -> None:
    record_scope_resolutions_total.labels(module=record_scope_module_label(module), level=level).inc()
    if principal_count is not None:
        record_scope_principal_set_size.labels(level=level).observe(principal_count)


def observe_record_scope_level_fallback(module: str) -> None:
    record_scope_level_fallback_total.labels(module=record_scope_module_label(module)).inc()


def observe_record_scope_fail_closed(module: str) -> None:
    record_scope_fail_closed_total.labels(module=record_scope_module_label(module)).inc()


def observe_record_scope_failure(module: str) -> None:
    record_scope_failures_total.labels(module=record_scope_module_label(module)).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
