"""API routes."""

from roadmap_engine.api.routes import roadmaps

__all__ = ["roadmaps"]
