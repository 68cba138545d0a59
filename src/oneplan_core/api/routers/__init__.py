"""API routers for 1Plan Core."""

from . import documents, features, health, projects, sprints

__all__ = ["documents", "features", "health", "projects", "sprints"]
