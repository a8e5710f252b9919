"""
Push Notification Routes - Web Push API for the website

Provides endpoints for:
- VAPID public key retrieval for browser subscription
- Subscribe / unsubscribe (rate limited per client IP)
- Subscriber count for the notification bell
- Triggering a dispatch cycle (bearer token protected)
"""

import logging
import os
import secrets
import sqlite3

import httpx
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from irshad.config import PushConfig, load_push_config
from irshad.logging_config import short_endpoint
from irshad.models import NotificationRequest, VapidConfigError
from irshad.push.delivery import send_notification
from irshad.push.subscription_manager import (
    count_subscriptions,
    register_subscription,
    unregister_subscription,
)
from irshad.push.vapid import get_vapid_public_key
from irshad.ratelimit import check_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Dependencies
# =============================================================================


def get_push_config() -> PushConfig:
    return load_push_config()


def get_http_client() -> httpx.AsyncClient | None:
    """HTTP client for push services; None lets each cycle open its own."""
    return None


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# =============================================================================
# Request Models
# =============================================================================


class SubscriptionKeys(BaseModel):
    p256dh: str | None = None
    auth: str | None = None


class SubscriptionObject(BaseModel):
    """The browser's PushSubscription.toJSON() shape."""

    endpoint: str | None = None
    keys: SubscriptionKeys | None = None


class SubscribeRequest(BaseModel):
    """Request to add or remove a push subscription."""

    action: str | None = Field(None, description="'subscribe' or 'unsubscribe'")
    subscription: SubscriptionObject | None = None


class SendRequest(BaseModel):
    """Trigger one notification to all eligible subscribers."""

    title: str | None = Field(None, description="Notification title")
    body: str | None = Field(None, description="Notification body")
    tag: str | None = Field(None, description="Collapse tag")
    url: str | None = Field(None, description="URL opened on click")
    data: dict | None = Field(None, description="Tagged metadata; 'type' selects the kind")


# =============================================================================
# VAPID Key Endpoint
# =============================================================================


@router.get("/vapid-public-key")
async def vapid_public_key(config: PushConfig = Depends(get_push_config)):
    """
    Get the server's VAPID public key for client subscription.

    Browsers pass this as applicationServerKey to pushManager.subscribe().
    """
    public_key = get_vapid_public_key(config)

    if not public_key:
        logger.error("VAPID public key requested but not configured")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "VAPID keys not configured")

    return {"vapidPublicKey": public_key}


# =============================================================================
# Subscription Endpoints
# =============================================================================


@router.post("/subscribe")
async def subscribe(
    payload: SubscribeRequest,
    request: Request,
    config: PushConfig = Depends(get_push_config),
):
    """
    Register or remove a push subscription.

    Re-subscribing an existing endpoint refreshes its keys without resetting
    the per-device cooldown.
    """
    limit = check_rate_limit(
        f"subscribe:{_client_ip(request)}",
        max_requests=config.api.subscribe_rate_limit,
        window_seconds=config.api.rate_limit_window_seconds,
    )
    if not limit["allowed"]:
        return _error(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Too many requests",
            headers={"Retry-After": str(limit["retry_after"])},
        )

    sub = payload.subscription
    endpoint = sub.endpoint if sub else None
    logger.info(f"Subscribe action: {payload.action} {short_endpoint(endpoint or '')}")

    if payload.action == "subscribe":
        keys = sub.keys if sub else None
        if not endpoint or not keys or not keys.p256dh or not keys.auth:
            return _error(status.HTTP_400_BAD_REQUEST, "Invalid subscription object")

        try:
            await register_subscription(
                endpoint=endpoint,
                p256dh=keys.p256dh,
                auth=keys.auth,
                user_agent=request.headers.get("user-agent"),
            )
        except sqlite3.Error:
            logger.exception("Failed to save subscription")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to save subscription")
        return {"success": True, "message": "Subscribed to push notifications"}

    if payload.action == "unsubscribe":
        if not endpoint:
            return _error(status.HTTP_400_BAD_REQUEST, "Endpoint required for unsubscribe")

        try:
            await unregister_subscription(endpoint)
        except sqlite3.Error:
            logger.exception("Failed to remove subscription")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to remove subscription")
        return {"success": True, "message": "Unsubscribed from push notifications"}

    return _error(status.HTTP_400_BAD_REQUEST, "Invalid action")


@router.get("/subscriber-count")
async def subscriber_count():
    """Total stored subscriptions, shown next to the notification bell."""
    return {"count": await count_subscriptions()}


# =============================================================================
# Send Endpoint
# =============================================================================


@router.post("/send")
async def send(
    payload: SendRequest,
    request: Request,
    config: PushConfig = Depends(get_push_config),
    client: httpx.AsyncClient | None = Depends(get_http_client),
):
    """
    Run one dispatch cycle.

    Requires ``Authorization: Bearer <PUSH_SEND_TOKEN>``. Returns the
    aggregate summary; per-endpoint outcomes only appear in the logs.
    """
    expected = os.environ.get("PUSH_SEND_TOKEN") or config.api.send_token
    if not expected:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Send endpoint not configured")

    auth_header = request.headers.get("Authorization", "")
    token = auth_header[7:] if auth_header.startswith("Bearer ") else ""
    if not token or not secrets.compare_digest(token.encode(), expected.encode()):
        return _error(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    try:
        notification = NotificationRequest.from_dict(payload.model_dump())
    except ValueError as e:
        return _error(422, f"Invalid notification data: {e}")

    try:
        summary = await send_notification(notification, config=config, client=client)
    except VapidConfigError as e:
        logger.error(f"Send aborted: {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "VAPID keys not configured")
    except sqlite3.Error:
        logger.exception("Send aborted: could not read subscriptions")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch subscriptions")

    return summary.to_dict()
