from pydantic import BaseModel, Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema
from typing import Optional, List
from datetime import datetime
import uuid


class CategoryCreate(BaseCreateSchema):
    """Category creation schema. ``name`` is normalised to its canonical form."""
    name: Optional[str] = Field(None, max_length=100)
    display_name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class CategoryUpdate(BaseUpdateSchema):
    """Category update schema."""
    display_name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class CategoryResponse(BaseResponseSchema):
    """Category response schema."""
    id: uuid.UUID
    name: str
    display_name: str
    description: str = ""
    is_active: bool
    created_at: datetime
    updated_at: datetime


class CategoryReconciliation(BaseModel):
    """Directory vs partition drift."""
    orphaned_partitions: List[str]
    phantom_categories: List[str]
