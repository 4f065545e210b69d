"""Roadmap generation, validation and versioning engine."""
