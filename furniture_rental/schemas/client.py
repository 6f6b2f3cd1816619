from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from ..utils.sanitization import clean_text


class ClientBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    notes: Optional[str] = Field(None, max_length=2000)


class ClientCreate(ClientBase):
    @field_validator('name', 'notes', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return clean_text(v)


class ClientResponse(ClientBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
