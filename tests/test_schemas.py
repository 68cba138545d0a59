"""Tests for the shared validation schemas."""
from datetime import datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError

from oneplan_core import schemas
from oneplan_core.models import DocumentKind, FeatureStatus


class TestGenerateSlug:
    """Slug derivation from document titles."""

    @pytest.mark.parametrize(
        "title, expected",
        [
            ("Test Document", "test-document"),
            ("Test & Document!", "test-document"),
            ("-Test Document-", "test-document"),
            ("Multiple   Spaces  Here", "multiple-spaces-here"),
            ("Already--hyphenated", "already-hyphenated"),
            ("Version 2 Plan", "version-2-plan"),
        ],
    )
    def test_generate_slug(self, title, expected):
        assert schemas.generate_slug(title) == expected

    def test_title_without_usable_characters(self):
        """Nothing survives, so the slug is empty."""
        assert schemas.generate_slug("!!! ???") == ""


class TestEntitySchemas:
    """Field rules enforced identically by the API and the gateway."""

    def test_feature_code_pattern(self):
        project_id = uuid4()
        feature = schemas.FeatureCreate(projectId=project_id, featureId="FEAT-001", title="Login", area="auth")
        assert feature.feature_code == "FEAT-001"
        assert feature.version == "0.1.0"
        assert feature.status == FeatureStatus.PLANNED

        with pytest.raises(ValidationError):
            schemas.FeatureCreate(projectId=project_id, featureId="FEATURE-1", title="Login", area="auth")

    def test_sprint_code_pattern(self):
        with pytest.raises(ValidationError):
            schemas.SprintCreate(projectId=uuid4(), code="SPRINT-1", name="One")

    def test_document_slug_pattern(self):
        with pytest.raises(ValidationError):
            schemas.DocumentCreate(
                projectId=uuid4(), kind=DocumentKind.PRD, title="T", content="c", slug="Not A Slug"
            )

    def test_accepts_snake_case_names(self):
        document = schemas.DocumentCreate(project_id=uuid4(), kind="PRD", title="T", content="c")
        assert document.kind == DocumentKind.PRD

    def test_sprint_dates_normalised_to_utc(self):
        sprint = schemas.SprintCreate(
            projectId=uuid4(), code="SPR-1", name="One", startDate="2026-01-01T02:00:00+02:00"
        )
        assert sprint.start_date == datetime(2026, 1, 1, 0, 0, 0)
        assert sprint.start_date.tzinfo is None

    def test_sprint_dates_reject_numbers(self):
        with pytest.raises(ValidationError) as exc_info:
            schemas.SprintCreate(projectId=uuid4(), code="SPR-1", name="One", startDate=1767225600)
        assert "startDate" in schemas.schema_errors(exc_info.value)

    def test_item_text_length(self):
        with pytest.raises(ValidationError):
            schemas.SprintItemInput(text="")
        with pytest.raises(ValidationError):
            schemas.SprintItemInput(text="x" * 501)

    def test_list_query_bounds(self):
        query = schemas.DocumentListQuery.model_validate({})
        assert (query.limit, query.offset, query.sort_by, query.sort_order) == (20, 0, "updatedAt", "desc")

        with pytest.raises(ValidationError):
            schemas.DocumentListQuery.model_validate({"limit": "101"})
        with pytest.raises(ValidationError):
            schemas.DocumentListQuery.model_validate({"offset": "-1"})


class TestSchemaErrors:
    """Every violation is reported, keyed by field."""

    def test_reports_every_field(self):
        with pytest.raises(ValidationError) as exc_info:
            schemas.FeatureCreate.model_validate({"featureId": "bad"})

        details = schemas.schema_errors(exc_info.value)
        assert set(details) == {"projectId", "featureId", "title", "area"}

    def test_nested_item_locations(self):
        with pytest.raises(ValidationError) as exc_info:
            schemas.SprintCreate.model_validate(
                {"projectId": str(uuid4()), "code": "SPR-1", "name": "One", "items": [{"text": "ok"}, {"text": ""}]}
            )

        assert list(schemas.schema_errors(exc_info.value)) == ["items.1.text"]
