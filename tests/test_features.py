"""Tests for feature endpoints and the status transition hook."""
import pytest
from fastapi.testclient import TestClient

from oneplan_core.api.main import create_app
from oneplan_core.state_machine import strict_transition_validator

API = "/api/v1"


def create_feature(client, project_id, **fields):
    payload = {"projectId": project_id, "featureId": "FEAT-001", "title": "Login", "area": "Authentication"}
    payload.update(fields)
    return client.post(f"{API}/features", json=payload)


class TestFeatureCrud:
    """Create, read, update, delete."""

    def test_create_feature(self, client, project):
        response = create_feature(client, project["id"])

        assert response.status_code == 201
        body = response.json()
        assert body["featureId"] == "FEAT-001"
        assert body["version"] == "0.1.0"
        assert body["status"] == "PLANNED"

    def test_invalid_feature_code(self, client, project):
        response = create_feature(client, project["id"], featureId="F-1")

        assert response.status_code == 400
        assert "featureId" in response.json()["details"]

    def test_duplicate_code_conflicts(self, client, project, other_project):
        create_feature(client, project["id"])

        response = create_feature(client, project["id"], title="Another")
        assert response.status_code == 409
        assert response.json()["field"] == "featureId"

        assert create_feature(client, other_project["id"]).status_code == 201

    def test_update_code_to_existing_conflicts(self, client, project):
        create_feature(client, project["id"])
        second = create_feature(client, project["id"], featureId="FEAT-002").json()

        response = client.patch(f"{API}/features/{second['id']}", json={"featureId": "FEAT-001"})

        assert response.status_code == 409

    def test_any_status_change_allowed_by_default(self, client, project):
        feature = create_feature(client, project["id"]).json()

        response = client.patch(f"{API}/features/{feature['id']}", json={"status": "COMPLETED"})
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"

        response = client.patch(f"{API}/features/{feature['id']}", json={"status": "PLANNED"})
        assert response.json()["status"] == "PLANNED"

    def test_invalid_status(self, client, project):
        feature = create_feature(client, project["id"]).json()

        response = client.patch(f"{API}/features/{feature['id']}", json={"status": "DONE"})

        assert response.status_code == 400

    def test_delete_feature(self, client, project):
        feature = create_feature(client, project["id"]).json()

        assert client.delete(f"{API}/features/{feature['id']}").status_code == 204
        assert client.delete(f"{API}/features/{feature['id']}").status_code == 404


class TestListFeatures:
    """Filtering features."""

    def test_area_is_case_insensitive_substring(self, client, project):
        create_feature(client, project["id"], featureId="FEAT-1", area="Authentication")
        create_feature(client, project["id"], featureId="FEAT-2", area="Billing")

        response = client.get(f"{API}/features", params={"area": "AUTH"})

        body = response.json()
        assert body["total"] == 1
        assert body["features"][0]["featureId"] == "FEAT-1"

    def test_status_filter(self, client, project):
        create_feature(client, project["id"], featureId="FEAT-1", status="IN_PROGRESS")
        create_feature(client, project["id"], featureId="FEAT-2")

        response = client.get(f"{API}/features", params={"projectId": project["id"], "status": "IN_PROGRESS"})

        assert [f["featureId"] for f in response.json()["features"]] == ["FEAT-1"]


class TestStrictTransitions:
    """An app built with the strict validator rejects out-of-order status changes."""

    @pytest.fixture
    def strict_client(self, settings, database):
        app = create_app(settings=settings, database=database, transition_validator=strict_transition_validator())
        with TestClient(app) as test_client:
            yield test_client

    def test_skipping_in_progress_is_rejected(self, strict_client):
        project = strict_client.post(f"{API}/projects", json={"name": "Apollo"}).json()
        feature = create_feature(strict_client, project["id"]).json()

        response = strict_client.patch(f"{API}/features/{feature['id']}", json={"status": "COMPLETED"})

        assert response.status_code == 422
        body = response.json()
        assert body["title"] == "Validation Failed"
        assert body["currentStatus"] == "PLANNED"
        assert body["requestedStatus"] == "COMPLETED"
        assert body["allowedTransitions"] == ["IN_PROGRESS", "CANCELLED"]

    def test_allowed_path(self, strict_client):
        project = strict_client.post(f"{API}/projects", json={"name": "Apollo"}).json()
        feature = create_feature(strict_client, project["id"]).json()

        for status in ("IN_PROGRESS", "COMPLETED"):
            response = strict_client.patch(f"{API}/features/{feature['id']}", json={"status": status})
            assert response.status_code == 200

    def test_sprint_transitions(self, strict_client):
        project = strict_client.post(f"{API}/projects", json={"name": "Apollo"}).json()
        sprint = strict_client.post(
            f"{API}/sprints", json={"projectId": project["id"], "code": "SPR-1", "name": "One", "status": "DONE"}
        ).json()

        response = strict_client.patch(f"{API}/sprints/{sprint['id']}", json={"status": "ACTIVE"})

        assert response.status_code == 422
        assert "terminal state" in response.json()["detail"]
