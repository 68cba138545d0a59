"""FastAPI application for 1Plan Core."""
