"""Catalog Service models package."""

from services.stores_service.models import Store  # noqa: F401
from services.catalog_service.models.core import Product, ProductImage, ProductVariant

__all__ = ["Product", "ProductImage", "ProductVariant"]
