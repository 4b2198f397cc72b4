"""Pydantic schemas for push notifications."""
from typing import Optional, Dict, Any
from pydantic import Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class TokenRegistration(BaseCreateSchema):
    """Register a device's push token under a user key (``admin`` or ``customer_{mobile}``)."""
    token: Optional[str] = None
    user_id: Optional[str] = None


class PushMessage(BaseCreateSchema):
    title: Optional[str] = Field(None, max_length=200)
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class UserPushMessage(PushMessage):
    user_id: str


class PushSendResponse(BaseResponseSchema):
    message: str = "Notification sent successfully"
    message_id: Optional[str] = None


class PushMulticastResponse(BaseResponseSchema):
    message: str = "Notifications sent successfully"
    success_count: int
    failure_count: int


class TokenCountResponse(BaseResponseSchema):
    count: int
