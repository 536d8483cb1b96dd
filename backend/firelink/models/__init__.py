"""Database models."""

from firelink.models.incident import Incident

__all__ = ["Incident"]
