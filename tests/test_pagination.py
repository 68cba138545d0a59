"""Tests for list pagination and sorting."""
import pytest

API = "/api/v1"


@pytest.fixture
def five_projects(client):
    names = ["Delta", "Alpha", "Echo", "Charlie", "Bravo"]
    return [client.post(f"{API}/projects", json={"name": name}).json() for name in names]


class TestPagination:
    """Limit/offset windows and totals."""

    def test_defaults(self, client, five_projects):
        body = client.get(f"{API}/projects").json()

        assert body["limit"] == 20
        assert body["offset"] == 0
        assert body["total"] == 5
        assert len(body["projects"]) == 5

    @pytest.mark.parametrize("limit, offset, expected", [(2, 0, 2), (2, 4, 1), (2, 5, 0), (100, 10, 0)])
    def test_window(self, client, five_projects, limit, offset, expected):
        body = client.get(f"{API}/projects", params={"limit": limit, "offset": offset}).json()

        assert len(body["projects"]) == expected
        assert body["total"] == 5
        assert (body["limit"], body["offset"]) == (limit, offset)

    def test_pages_do_not_overlap(self, client, five_projects):
        seen = []
        for offset in range(0, 5, 2):
            body = client.get(
                f"{API}/projects", params={"limit": 2, "offset": offset, "sortBy": "name", "sortOrder": "asc"}
            ).json()
            seen.extend(p["name"] for p in body["projects"])

        assert seen == ["Alpha", "Bravo", "Charlie", "Delta", "Echo"]

    def test_sort_descending(self, client, five_projects):
        body = client.get(f"{API}/projects", params={"sortBy": "name", "sortOrder": "desc"}).json()

        assert [p["name"] for p in body["projects"]] == ["Echo", "Delta", "Charlie", "Bravo", "Alpha"]

    @pytest.mark.parametrize("params", [{"limit": 101}, {"limit": 0}, {"offset": -1}, {"sortBy": "size"}])
    def test_invalid_parameters(self, client, params):
        response = client.get(f"{API}/projects", params=params)

        assert response.status_code == 400
        assert response.json()["title"] == "Validation Error"

    @pytest.mark.parametrize("path", ["projects", "documents", "features", "sprints"])
    def test_oversized_offset(self, client, path):
        response = client.get(f"{API}/{path}", params={"offset": 10**19})

        assert response.status_code == 400
        assert "offset" in response.json()["details"]
