"""Shared fixtures: an in-memory store, the app built on it, and a test client."""
import pytest
from fastapi.testclient import TestClient

from oneplan_core.api.main import create_app
from oneplan_core.config import Settings
from oneplan_core.database import Database

API = "/api/v1"


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", rate_limit_max=10_000, create_schema=True)


@pytest.fixture
def database(settings):
    db = Database(settings.database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def app(settings, database):
    return create_app(settings=settings, database=database)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def project(client):
    response = client.post(f"{API}/projects", json={"name": "Apollo"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def other_project(client):
    response = client.post(f"{API}/projects", json={"name": "Gemini"})
    assert response.status_code == 201
    return response.json()
