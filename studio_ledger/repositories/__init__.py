"""Repository package exports."""

from .studio_repository import StudioRepository

__all__ = ["StudioRepository"]
