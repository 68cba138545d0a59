"""Tests for health probes and Prometheus metrics."""
from types import SimpleNamespace

import pytest

from oneplan_core.metrics import route_label

API = "/api/v1"


class TestHealth:
    """Liveness, readiness and startup probes."""

    @pytest.mark.parametrize("path", ["/health/live", "/health/ready"])
    def test_healthy(self, client, path):
        response = client.get(path)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["database"]["responseTime"] >= 0
        assert {"timestamp", "version", "uptime"} <= set(body)

    @pytest.mark.parametrize("path", ["/health/live", "/health/ready"])
    def test_unhealthy_store(self, client, database, monkeypatch, path):
        def unreachable():
            raise ConnectionError("database is down")

        monkeypatch.setattr(database, "ping", unreachable)

        response = client.get(path)

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert response.json()["checks"]["database"]["status"] == "unhealthy"

    def test_startup(self, client):
        response = client.get("/health/startup")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"


class TestMetrics:
    """Request counter and histogram exposure."""

    def test_requests_counted_by_route_template(self, client, project):
        client.get(f"{API}/projects/{project['id']}")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        text = response.text
        assert "http_requests_total" in text
        assert "http_request_duration_seconds_bucket" in text
        assert 'route="/api/v1/projects/{project_id}"' in text
        assert 'status_code="201"' in text

    def test_unmatched_routes(self, client):
        client.get("/nowhere")

        assert 'route="unmatched"' in client.get("/metrics").text


class TestRouteLabel:
    """Route templates used as the metrics route label."""

    @pytest.mark.parametrize(
        "path, template, expected",
        [
            ("/api/v1/projects/42", "/api/v1/projects/{project_id}", "/api/v1/projects/{project_id}"),
            ("/api/v1/projects/42", "/{project_id}", "/api/v1/projects/{project_id}"),
            ("/api/v1/projects", "", "/api/v1/projects"),
            ("/api/v1/sprints/1/items/2", "/{sprint_id}/items/{item_id}", "/api/v1/sprints/{sprint_id}/items/{item_id}"),
            ("/health/live", "/health/live", "/health/live"),
            ("/", "/", "/"),
        ],
    )
    def test_template_with_router_prefix(self, path, template, expected):
        scope = {"path": path, "route": SimpleNamespace(path=template)}

        assert route_label(scope) == expected

    def test_no_route(self):
        assert route_label({"path": "/nowhere"}) == "unmatched"
