"""Stores Service models package."""

from services.stores_service.models.core import Profile, Store

__all__ = ["Profile", "Store"]
