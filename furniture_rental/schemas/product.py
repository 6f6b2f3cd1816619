from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from ..models.product import ProductCategory
from ..utils.sanitization import clean_text


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    category: ProductCategory = ProductCategory.OTHER
    total_quantity: int = Field(..., ge=1, description="Physical unit count")
    price_per_day: int = Field(..., ge=0, description="Daily price per unit (CLP)")
    description: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = Field(None, max_length=500)


class ProductCreate(ProductBase):
    @field_validator('name', 'description', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return clean_text(v)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    category: Optional[ProductCategory] = None
    total_quantity: Optional[int] = Field(None, ge=1)
    price_per_day: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = Field(None, max_length=500)

    @field_validator('name', 'description', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return clean_text(v)


class ProductResponse(ProductBase):
    id: str
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
