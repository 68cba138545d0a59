"""Tests for document endpoints: slugs, uniqueness, filters."""
from uuid import uuid4

API = "/api/v1"


def create_document(client, project_id, **fields):
    payload = {"projectId": project_id, "kind": "PRD", "title": "Product Vision", "content": "# Vision"}
    payload.update(fields)
    return client.post(f"{API}/documents", json=payload)


class TestCreateDocument:
    """Creating documents."""

    def test_slug_generated_from_title(self, client, project):
        response = create_document(client, project["id"], title="Test & Document!")

        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "test-document"
        assert body["projectId"] == project["id"]
        assert body["kind"] == "PRD"

    def test_explicit_slug(self, client, project):
        response = create_document(client, project["id"], slug="custom-slug")

        assert response.json()["slug"] == "custom-slug"

    def test_title_without_slug_characters(self, client, project):
        response = create_document(client, project["id"], title="!!!")

        assert response.status_code == 201
        assert response.json()["slug"] is None

    def test_duplicate_slug_conflicts(self, client, project):
        create_document(client, project["id"])
        response = create_document(client, project["id"])

        assert response.status_code == 409
        body = response.json()
        assert body["title"] == "Conflict"
        assert body["field"] == "slug"
        assert body["value"] == "product-vision"

    def test_same_slug_in_other_project(self, client, project, other_project):
        assert create_document(client, project["id"]).status_code == 201
        assert create_document(client, other_project["id"]).status_code == 201

    def test_unknown_project(self, client):
        response = create_document(client, str(uuid4()))

        assert response.status_code == 404

    def test_invalid_kind(self, client, project):
        response = create_document(client, project["id"], kind="MEMO")

        assert response.status_code == 400
        assert "kind" in response.json()["details"]

    def test_reports_all_invalid_fields(self, client, project):
        response = client.post(f"{API}/documents", json={"projectId": project["id"], "kind": "MEMO"})

        assert response.status_code == 400
        assert {"kind", "title", "content"} <= set(response.json()["details"])


class TestUpdateDocument:
    """Updating documents."""

    def test_title_change_regenerates_slug(self, client, project):
        document = create_document(client, project["id"]).json()

        response = client.patch(f"{API}/documents/{document['id']}", json={"title": "Technical Design"})

        assert response.status_code == 200
        assert response.json()["slug"] == "technical-design"

    def test_explicit_slug_wins(self, client, project):
        document = create_document(client, project["id"]).json()

        response = client.patch(
            f"{API}/documents/{document['id']}", json={"title": "Technical Design", "slug": "tech"}
        )

        assert response.json()["slug"] == "tech"
        assert response.json()["title"] == "Technical Design"

    def test_content_only_update_keeps_slug(self, client, project):
        document = create_document(client, project["id"]).json()

        response = client.patch(f"{API}/documents/{document['id']}", json={"content": "updated"})

        assert response.json()["slug"] == "product-vision"
        assert response.json()["content"] == "updated"

    def test_slug_conflict_on_update(self, client, project):
        create_document(client, project["id"], title="First")
        second = create_document(client, project["id"], title="Second").json()

        response = client.patch(f"{API}/documents/{second['id']}", json={"slug": "first"})

        assert response.status_code == 409

    def test_update_missing_document(self, client):
        response = client.patch(f"{API}/documents/{uuid4()}", json={"title": "x"})

        assert response.status_code == 404

    def test_delete_document(self, client, project):
        document = create_document(client, project["id"]).json()

        assert client.delete(f"{API}/documents/{document['id']}").status_code == 204
        assert client.get(f"{API}/documents/{document['id']}").status_code == 404


class TestListDocuments:
    """Filtering documents."""

    def test_filters(self, client, project, other_project):
        create_document(client, project["id"], title="Vision", kind="PRD")
        create_document(client, project["id"], title="Architecture", kind="TECH_OVERVIEW")
        create_document(client, other_project["id"], title="Vision", kind="PRD")

        by_project = client.get(f"{API}/documents", params={"projectId": project["id"]}).json()
        assert by_project["total"] == 2

        by_kind = client.get(
            f"{API}/documents", params={"projectId": project["id"], "kind": "TECH_OVERVIEW"}
        ).json()
        assert [d["title"] for d in by_kind["documents"]] == ["Architecture"]

        by_search = client.get(f"{API}/documents", params={"search": "VISION"}).json()
        assert by_search["total"] == 2

    def test_search_treats_wildcards_literally(self, client, project):
        create_document(client, project["id"], title="100% done")
        create_document(client, project["id"], title="Other")

        response = client.get(f"{API}/documents", params={"search": "%"})

        assert response.json()["total"] == 1

    def test_invalid_filter(self, client):
        response = client.get(f"{API}/documents", params={"kind": "MEMO", "limit": "0"})

        assert response.status_code == 400
        assert {"kind", "limit"} <= set(response.json()["details"])
