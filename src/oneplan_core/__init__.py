"""1Plan Core - planning API for projects, documents, features and sprints.

Modules:
- config: environment-driven settings
- database: store resource (engine + session factory)
- models: SQLAlchemy models
- schemas: validation schemas shared with the MCP gateway
- errors: error taxonomy and problem-detail mapping
- crud: entity services
"""

__version__ = "1.0.0"
