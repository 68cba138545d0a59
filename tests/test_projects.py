"""Tests for project endpoints, child counts and cascading delete."""
from uuid import uuid4

from oneplan_core import models

API = "/api/v1"


class TestProjectCrud:
    """Create, read, update, delete."""

    def test_create_project(self, client):
        response = client.post(f"{API}/projects", json={"name": "Apollo"})

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Apollo"
        assert body["counts"] == {"documents": 0, "features": 0, "sprints": 0}
        assert {"id", "createdAt", "updatedAt"} <= set(body)

    def test_name_required(self, client):
        response = client.post(f"{API}/projects", json={})

        assert response.status_code == 400
        assert "name" in response.json()["details"]

    def test_name_too_long(self, client):
        response = client.post(f"{API}/projects", json={"name": "x" * 101})

        assert response.status_code == 400

    def test_get_project(self, client, project):
        response = client.get(f"{API}/projects/{project['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == project["id"]

    def test_get_missing_project(self, client):
        response = client.get(f"{API}/projects/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["title"] == "Not Found"

    def test_update_project(self, client, project):
        response = client.patch(f"{API}/projects/{project['id']}", json={"name": "Artemis"})

        assert response.status_code == 200
        assert response.json()["name"] == "Artemis"

    def test_empty_update_keeps_project(self, client, project):
        response = client.patch(f"{API}/projects/{project['id']}", json={})

        assert response.status_code == 200
        assert response.json()["name"] == "Apollo"

    def test_search_by_name(self, client, project, other_project):
        response = client.get(f"{API}/projects", params={"search": "gem"})

        body = response.json()
        assert body["total"] == 1
        assert body["projects"][0]["name"] == "Gemini"


class TestProjectCounts:
    """Projects report how many documents, features and sprints they own."""

    def test_counts(self, client, project, other_project):
        client.post(f"{API}/documents", json={
            "projectId": project["id"], "kind": "PRD", "title": "Vision", "content": "# Vision",
        })
        client.post(f"{API}/features", json={
            "projectId": project["id"], "featureId": "FEAT-1", "title": "Login", "area": "auth",
        })
        client.post(f"{API}/features", json={
            "projectId": project["id"], "featureId": "FEAT-2", "title": "Logout", "area": "auth",
        })
        client.post(f"{API}/sprints", json={"projectId": project["id"], "code": "SPR-1", "name": "One"})

        body = client.get(f"{API}/projects/{project['id']}").json()
        assert body["counts"] == {"documents": 1, "features": 2, "sprints": 1}

        listing = client.get(f"{API}/projects", params={"sortBy": "name", "sortOrder": "asc"}).json()
        assert [p["counts"]["features"] for p in listing["projects"]] == [2, 0]


class TestProjectDelete:
    """Deleting a project removes everything it owns."""

    def test_cascade_delete(self, client, database, project, other_project):
        document = client.post(f"{API}/documents", json={
            "projectId": project["id"], "kind": "PRD", "title": "Vision", "content": "# Vision",
        }).json()
        feature = client.post(f"{API}/features", json={
            "projectId": project["id"], "featureId": "FEAT-1", "title": "Login", "area": "auth",
        }).json()
        sprint = client.post(f"{API}/sprints", json={
            "projectId": project["id"], "code": "SPR-1", "name": "One",
            "items": [{"text": "a"}, {"text": "b"}],
        }).json()
        kept = client.post(f"{API}/documents", json={
            "projectId": other_project["id"], "kind": "PRD", "title": "Vision", "content": "# Vision",
        }).json()

        response = client.delete(f"{API}/projects/{project['id']}")
        assert response.status_code == 204
        assert response.content == b""

        assert client.get(f"{API}/projects/{project['id']}").status_code == 404
        assert client.get(f"{API}/documents/{document['id']}").status_code == 404
        assert client.get(f"{API}/features/{feature['id']}").status_code == 404
        assert client.get(f"{API}/sprints/{sprint['id']}").status_code == 404
        assert client.get(f"{API}/documents/{kept['id']}").status_code == 200

        with database.session_factory() as session:
            assert session.query(models.SprintItem).count() == 0

    def test_delete_missing_project(self, client):
        assert client.delete(f"{API}/projects/{uuid4()}").status_code == 404
