"""Push notification endpoints: device token registration and manual sends."""
from fastapi import APIRouter, Depends
from typing import Annotated

from app.api.deps import Notifications, get_push_tokens
from app.core.exceptions import MissingFields
from app.schemas.notifications import (
    PushMessage,
    PushMulticastResponse,
    PushSendResponse,
    TokenCountResponse,
    TokenRegistration,
    UserPushMessage,
)
from app.services.notification_service import PushTokenRegistry

router = APIRouter(tags=["Notifications"])

PushTokens = Annotated[PushTokenRegistry, Depends(get_push_tokens)]


@router.post("/register-token")
async def register_token(payload: TokenRegistration, tokens: PushTokens):
    """Register a device token under a user key ('admin' or 'customer_{mobile}')."""
    if not payload.token:
        raise MissingFields(["token"], "Push token is required")
    if not payload.user_id:
        raise MissingFields(["userId"], "User ID is required")

    tokens.register(payload.user_id, payload.token)
    return {"message": "Token registered successfully"}


@router.post("/send", response_model=PushSendResponse)
async def send_notification(payload: UserPushMessage, notifications: Notifications):
    message_id = await notifications.send_to_user(
        payload.user_id, payload.title, payload.body, payload.data
    )
    return PushSendResponse(message_id=message_id)


@router.post("/send-to-all", response_model=PushMulticastResponse)
async def send_to_all(payload: PushMessage, notifications: Notifications):
    result = await notifications.send_to_all(payload.title, payload.body, payload.data)
    return PushMulticastResponse(**result)


@router.get("/tokens-count", response_model=TokenCountResponse)
async def tokens_count(tokens: PushTokens):
    return TokenCountResponse(count=len(tokens))
