"""Service layer - search orchestration over item repositories."""

from .search_service import SearchService


__all__ = ["SearchService"]
