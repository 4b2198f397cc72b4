"""
Base Schema Classes for Pydantic Models

The storefront clients speak camelCase JSON (``orderId``, ``customerDetails``)
while the Python side uses snake_case. The bases below do the translation in
one place.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models or rows.

    Features:
    - Enables from_attributes for ORM compatibility
    - Serializes field names as camelCase
    - Allow population by field name or alias

    Usage:
        class OrderResponse(BaseResponseSchema):
            order_id: str          # -> "orderId"
            created_at: datetime   # -> "createdAt"
    """
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Accepts camelCase keys from the frontend as well as snake_case.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
    )


class BaseUpdateSchema(BaseCreateSchema):
    """
    Base class for update/patch schemas.

    All fields are optional by default for partial updates.
    """
    pass
