"""Pydantic schemas for catalog service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Specification(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., min_length=1, max_length=500)


class DetailedImage(BaseModel):
    url: str
    sort_order: int = 0


class VariantIn(BaseModel):
    id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., gt=0, decimal_places=2)
    stock: int = Field(..., ge=0)


class ProductSave(BaseModel):
    """
    Full desired state of a product. Variants and images missing from the
    lists are removed; image order is the list order.
    """

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    shipping_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    specifications: list[Specification] = []
    detailed_images: list[DetailedImage] = []
    variants: list[VariantIn] = Field(..., min_length=1)
    image_urls: list[str] = []

    @field_validator("image_urls")
    @classmethod
    def unique_image_urls(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("image_urls must not contain duplicates")
        return v


class VariantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    price: Decimal
    stock: int


class ImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    image_url: str
    sort_order: int


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    shipping_cost: Optional[Decimal] = None
    image_url: Optional[str] = None
    specifications: list[Specification] = []
    detailed_images: list[DetailedImage] = []
    variants: list[VariantResponse] = []
    images: list[ImageResponse] = []
    created_at: datetime
    updated_at: datetime


class UploadResponse(BaseModel):
    url: str
