"""Prometheus request metrics."""
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10)


class Metrics:
    """
    Request counter and latency histogram in a registry owned by one app.

    Each app instance gets its own registry so several apps (e.g., in tests)
    never collide on metric names.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self):
        self.registry = CollectorRegistry()
        self.requests_total = Counter(
            "http_requests_total",
            "Total number of HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry,
        )
        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "Duration of HTTP requests in seconds",
            ["method", "route", "status_code"],
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )

    def observe(self, method: str, route: str, status_code: int, duration_seconds: float) -> None:
        labels = {"method": method, "route": route, "status_code": str(status_code)}
        self.requests_total.labels(**labels).inc()
        self.request_duration.labels(**labels).observe(duration_seconds)

    def render(self) -> bytes:
        return generate_latest(self.registry)


def route_label(scope: dict) -> str:
    """
    Route template for a handled request, e.g. ``/api/v1/projects/{project_id}``.

    Depending on the framework version the matched route's ``path`` is either
    the full template or only the part below its router prefix; the literal
    prefix is then taken from the request path, which has the same number of
    leading segments. Requests that matched no route are ``unmatched``.
    """
    template = getattr(scope.get("route"), "path", None)
    if template is None:
        return "unmatched"
    path_parts = scope.get("path", "").strip("/").split("/")
    template_parts = [part for part in template.strip("/").split("/") if part]
    prefix = path_parts[: max(len(path_parts) - len(template_parts), 0)]
    return "/" + "/".join(prefix + template_parts)
