"""Tests for the error taxonomy and problem-detail responses."""
from uuid import uuid4

import pytest
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from oneplan_core import errors, schemas
from oneplan_core.models import FeatureStatus
from oneplan_core.state_machine import StateTransitionError

API = "/api/v1"


def _pydantic_error() -> ValidationError:
    try:
        schemas.ProjectCreate.model_validate({})
    except ValidationError as e:
        return e
    raise AssertionError("expected a validation error")


class TestClassify:
    """Every failure maps onto exactly one taxonomy member."""

    @pytest.mark.parametrize(
        "exc, expected_type, status",
        [
            (RequestValidationError([{"loc": ("body", "name"), "msg": "Field required", "type": "missing"}]),
             errors.SchemaValidationError, 400),
            (_pydantic_error(), errors.SchemaValidationError, 400),
            (StateTransitionError("blocked", FeatureStatus.PLANNED, FeatureStatus.COMPLETED, []),
             errors.DomainValidationError, 422),
            (IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")), errors.ConflictError, 409),
            (errors.NotFoundError("Project not found"), errors.NotFoundError, 404),
            (errors.RateLimitedError(30), errors.RateLimitedError, 429),
            (RuntimeError("boom"), errors.InternalError, 500),
        ],
    )
    def test_mapping(self, exc, expected_type, status):
        error = errors.classify(exc)

        assert isinstance(error, expected_type)
        assert error.status == status

    def test_request_validation_details(self):
        exc = RequestValidationError([
            {"loc": ("body", "name"), "msg": "Field required", "type": "missing"},
            {"loc": ("query", "limit"), "msg": "Input should be less than or equal to 100", "type": "less_than_equal"},
        ])

        error = errors.classify(exc)

        assert error.details == {
            "name": "Field required",
            "limit": "Input should be less than or equal to 100",
        }

    def test_internal_error_hides_message(self):
        error = errors.classify(RuntimeError("password=hunter2"))

        assert "hunter2" not in error.detail
        assert error.detail == "An unexpected error occurred"

    def test_transition_extras(self):
        exc = StateTransitionError(
            "Invalid status transition", FeatureStatus.PLANNED, FeatureStatus.COMPLETED,
            [FeatureStatus.IN_PROGRESS, FeatureStatus.CANCELLED],
        )

        body = errors.problem_detail(errors.classify(exc), "/api/v1/features/1", "req-1")

        assert body["currentStatus"] == "PLANNED"
        assert body["requestedStatus"] == "COMPLETED"
        assert body["allowedTransitions"] == ["IN_PROGRESS", "CANCELLED"]


class TestProblemDetail:
    """Shape of the problem-detail body."""

    def test_fields(self):
        body = errors.problem_detail(errors.NotFoundError("Document not found"), "/api/v1/documents/x", "req-1")

        assert body == {
            "type": "https://1plan.dev/errors/not-found",
            "title": "Not Found",
            "status": 404,
            "detail": "Document not found",
            "instance": "/api/v1/documents/x",
            "requestId": "req-1",
        }

    def test_rate_limit_carries_retry_after(self):
        body = errors.problem_detail(errors.RateLimitedError(12), "/api/v1/projects", None)

        assert body["retryAfter"] == 12
        assert body["status"] == 429

    def test_conflict_extras(self):
        error = errors.ConflictError("Slug taken", field="slug", value="vision")

        body = errors.problem_detail(error, "/api/v1/documents", "req-1")

        assert (body["field"], body["value"]) == ("slug", "vision")


class TestErrorResponses:
    """Errors over HTTP."""

    def test_content_type_and_instance(self, client):
        response = client.get(f"{API}/documents/{uuid4()}")

        assert response.status_code == 404
        assert response.headers["content-type"].startswith("application/problem+json")
        body = response.json()
        assert body["instance"].startswith("/api/v1/documents/")
        assert body["requestId"] == response.headers["x-request-id"]

    def test_invalid_identifier(self, client):
        response = client.get(f"{API}/documents/not-a-uuid")

        assert response.status_code == 400
        assert "document_id" in response.json()["details"]

    def test_unknown_route(self, client):
        response = client.get(f"{API}/milestones")

        assert response.status_code == 404
        assert response.json()["type"] == "https://1plan.dev/errors/not-found"

    def test_malformed_json(self, client):
        response = client.post(
            f"{API}/projects", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["title"] == "Validation Error"
