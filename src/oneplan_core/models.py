"""SQLAlchemy database models."""
from datetime import datetime
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    Enum,
    Boolean,
    UniqueConstraint,
    Index,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp used for all audit columns."""
    return datetime.utcnow()


class DocumentKind(str, enum.Enum):
    """Document kind enum."""

    PRD = "PRD"
    TECH_OVERVIEW = "TECH_OVERVIEW"
    SPRINT_OVERVIEW = "SPRINT_OVERVIEW"
    SPRINT = "SPRINT"
    FREEFORM = "FREEFORM"


class FeatureStatus(str, enum.Enum):
    """Feature status enum.

    Lifecycle: planned → in_progress → completed, cancelled from any
    non-terminal state. Transitions are not enforced unless a strict
    validator is configured (see state_machine).
    """

    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SprintStatus(str, enum.Enum):
    """Sprint status enum."""

    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class Project(Base):
    """
    Project model, the root of all scoping.

    Owns documents, features and sprints; deleting a project removes them all.
    """

    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, index=True)

    # Relationships
    documents = relationship("Document", back_populates="project", cascade="all, delete-orphan")
    features = relationship("Feature", back_populates="project", cascade="all, delete-orphan")
    sprints = relationship("Sprint", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name}>"


class Document(Base):
    """Planning document (PRD, tech overview, sprint notes, ...) within a project."""

    __tablename__ = "documents"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    kind = Column(
        Enum(DocumentKind, values_callable=_enum_values, name="documentkind"),
        nullable=False,
    )
    title = Column(String(200), nullable=False)
    slug = Column(String(100))  # Unique within project, derived from title when absent
    content = Column(Text, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="documents")

    __table_args__ = (
        UniqueConstraint("project_id", "slug", name="uq_documents_project_slug"),
        Index("ix_documents_project_kind", "project_id", "kind"),
        Index("ix_documents_project_updated_at", "project_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Document {self.slug or self.id}: {self.title}>"


class Feature(Base):
    """Feature tracked within a project, identified by a FEAT-<n> code."""

    __tablename__ = "features"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    feature_code = Column(String(50), nullable=False)  # e.g., FEAT-001
    title = Column(String(200), nullable=False)
    version = Column(String(50), nullable=False, default="0.1.0")
    status = Column(
        Enum(FeatureStatus, values_callable=_enum_values, name="featurestatus"),
        nullable=False,
        default=FeatureStatus.PLANNED,
    )
    area = Column(String(100), nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="features")

    __table_args__ = (
        UniqueConstraint("project_id", "feature_code", name="uq_features_project_feature_code"),
        Index("ix_features_project_status", "project_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Feature {self.feature_code}: {self.title}>"


class Sprint(Base):
    """Sprint within a project, identified by a SPR-<n> code; owns its checklist items."""

    __tablename__ = "sprints"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    code = Column(String(50), nullable=False)  # e.g., SPR-001
    name = Column(String(200), nullable=False)
    status = Column(
        Enum(SprintStatus, values_callable=_enum_values, name="sprintstatus"),
        nullable=False,
        default=SprintStatus.PLANNED,
    )
    start_date = Column(DateTime)
    end_date = Column(DateTime)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="sprints")
    items = relationship(
        "SprintItem",
        back_populates="sprint",
        cascade="all, delete-orphan",
        order_by="SprintItem.order",
    )

    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_sprints_project_code"),
        Index("ix_sprints_project_status", "project_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Sprint {self.code}: {self.name}>"


class SprintItem(Base):
    """Checklist entry owned by a sprint."""

    __tablename__ = "sprint_items"

    id = Column(Uuid, primary_key=True, default=uuid4)
    sprint_id = Column(Uuid, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False)

    text = Column(String(500), nullable=False)
    checked = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    sprint = relationship("Sprint", back_populates="items")

    __table_args__ = (
        Index("ix_sprint_items_sprint_order", "sprint_id", "order"),
    )

    def __repr__(self) -> str:
        return f"<SprintItem {self.order}: {self.text[:30]}>"


class IdempotencyRecord(Base):
    """
    Stored outcome of a mutation performed under an idempotency key.

    Keys are scoped per route ("POST /api/v1/documents"), so the same key may
    be reused against a different route.
    """

    __tablename__ = "idempotency_keys"

    id = Column(Uuid, primary_key=True, default=uuid4)
    key = Column(String(255), nullable=False)
    scope = Column(String(255), nullable=False)
    request_hash = Column(String(64), nullable=False)  # SHA-256 of the request body
    status_code = Column(Integer, nullable=False)
    response_body = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        UniqueConstraint("key", "scope", name="uq_idempotency_key_scope"),
    )

    def __repr__(self) -> str:
        return f"<IdempotencyRecord {self.scope} {self.key}>"
