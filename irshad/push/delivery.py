"""
Tool: Push Notification Delivery
Purpose: Fan a notification out to every eligible subscription

One call to send_notification() is one dispatch cycle:
    1. Validate VAPID keys (fatal if missing or mismatched)
    2. Read all subscriptions, drop those inside the per-device cooldown
    3. Per subscription, concurrently: sign JWT for the endpoint origin,
       encrypt with a fresh ephemeral key, POST, classify the response
    4. Stamp successes and delete expired endpoints in two batched writes

Usage:
    python -m irshad.push.delivery send --title "Masjid Irshad" --body "Maghrib Iqamah has started"

    from irshad.push.delivery import send_notification
    summary = await send_notification(NotificationRequest(title=..., body=...))
"""

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone

import httpx
from cryptography.hazmat.primitives.asymmetric import ec

from irshad.config import DeliverySettingsConfig, PushConfig, load_push_config
from irshad.logging_config import short_endpoint
from irshad.models import (
    DeliveryResult,
    DispatchSummary,
    NotificationRequest,
    PushSubscription,
    VapidKeys,
    as_utc,
)
from irshad.push.encryption import encrypt_notification
from irshad.push.subscription_manager import (
    filter_eligible,
    get_all_subscriptions,
    record_success,
    remove_expired,
)
from irshad.push.vapid import (
    audience_for,
    load_signing_key,
    load_vapid_keys,
    sign_vapid_jwt,
    vapid_authorization,
)

logger = logging.getLogger(__name__)


SUCCESS_STATUSES = frozenset({200, 201})
EXPIRED_STATUSES = frozenset({404, 410})


def classify_response(endpoint: str, response: httpx.Response) -> DeliveryResult:
    """Map a push service response to a DeliveryResult."""
    status = response.status_code

    if status in SUCCESS_STATUSES:
        logger.info(f"Delivered to {short_endpoint(endpoint)}")
        return DeliveryResult(endpoint=endpoint, success=True, status_code=status)

    if status in EXPIRED_STATUSES:
        logger.info(f"Subscription expired ({status}): {short_endpoint(endpoint)}")
        return DeliveryResult(endpoint=endpoint, success=False, status_code=status, expired=True)

    error_text = response.text[:200]
    logger.warning(f"Push failed ({status}) for {short_endpoint(endpoint)}: {error_text}")
    return DeliveryResult(
        endpoint=endpoint,
        success=False,
        status_code=status,
        error=error_text or f"HTTP {status}",
    )


async def dispatch(
    client: httpx.AsyncClient,
    subscription: PushSubscription,
    body: bytes,
    jwt: str,
    public_key: str,
    ttl: int = 86400,
    urgency: str = "high",
) -> DeliveryResult:
    """
    POST an encrypted body to one push endpoint.

    Args:
        client: Shared HTTP client (carries the per-request timeout)
        subscription: Target subscription
        body: Complete aes128gcm body
        jwt: VAPID token for the endpoint's origin
        public_key: Server VAPID public key (base64url)
        ttl: Seconds the push service may hold the message
        urgency: RFC 8030 urgency

    Returns:
        DeliveryResult; network errors and unexpected statuses are failures
        without ``expired``, so the subscription is kept for the next trigger.
    """
    headers = {
        "Authorization": vapid_authorization(jwt, public_key),
        "Content-Encoding": "aes128gcm",
        "Content-Type": "application/octet-stream",
        "TTL": str(ttl),
        "Urgency": urgency,
    }

    try:
        response = await client.post(subscription.endpoint, content=body, headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Network error for {short_endpoint(subscription.endpoint)}: {e!r}")
        return DeliveryResult(
            endpoint=subscription.endpoint,
            success=False,
            error=f"Network error: {e!r}",
        )

    return classify_response(subscription.endpoint, response)


async def deliver_to_subscription(
    client: httpx.AsyncClient,
    subscription: PushSubscription,
    payload: bytes,
    vapid_keys: VapidKeys,
    settings: DeliverySettingsConfig | None = None,
    signing_key: ec.EllipticCurvePrivateKey | None = None,
) -> DeliveryResult:
    """
    Sign, encrypt and send one notification to one subscription.

    A subscription with unusable keys fails on its own; it never aborts
    the rest of the cycle.
    """
    settings = settings or DeliverySettingsConfig()

    try:
        jwt = sign_vapid_jwt(
            audience_for(subscription.endpoint),
            vapid_keys,
            expires_in=settings.jwt_expiry_seconds,
            signing_key=signing_key,
        )
        body = encrypt_notification(
            payload,
            subscription.p256dh,
            subscription.auth,
            record_size=settings.record_size,
        )
    except ValueError as e:
        logger.warning(f"Rejected subscription {short_endpoint(subscription.endpoint)}: {e}")
        return DeliveryResult(endpoint=subscription.endpoint, success=False, error=str(e))

    return await dispatch(
        client,
        subscription,
        body,
        jwt,
        vapid_keys.public_key,
        ttl=settings.ttl_seconds,
        urgency=settings.urgency,
    )


async def _write_outcomes(
    successful: list[str],
    expired: list[str],
    timestamp: datetime,
) -> None:
    """
    Persist cycle results. Write errors are logged and nothing is re-sent.
    """
    try:
        await record_success(successful, timestamp)
    except sqlite3.Error:
        logger.exception(f"Failed to stamp {len(successful)} delivered subscriptions")

    if expired:
        logger.info(f"Cleaning up {len(expired)} expired subscriptions")
    try:
        await remove_expired(expired)
    except sqlite3.Error:
        logger.exception(f"Failed to remove {len(expired)} expired subscriptions")


async def send_notification(
    request: NotificationRequest,
    config: PushConfig | None = None,
    vapid_keys: VapidKeys | None = None,
    client: httpx.AsyncClient | None = None,
    now: datetime | None = None,
) -> DispatchSummary:
    """
    Run one dispatch cycle.

    Args:
        request: Title, body, tag, url and tagged data
        config: Delivery settings (defaults to args/push.yaml)
        vapid_keys: Server keys (defaults to environment / config)
        client: HTTP client to reuse; one is created and closed otherwise
        now: Clock override for cooldown filtering and the success stamp

    Returns:
        DispatchSummary with sent/total/eligible/skipped/expired/failed

    Raises:
        VapidConfigError: before any subscription is read or contacted
    """
    config = config or load_push_config()
    settings = config.push
    if vapid_keys is None:
        vapid_keys = load_vapid_keys(config)
    signing_key = load_signing_key(vapid_keys)

    now = as_utc(now) if now else datetime.now(timezone.utc)
    logger.info(f"Sending notification: {request.title}")

    subscriptions = await get_all_subscriptions()
    summary = DispatchSummary(total=len(subscriptions))

    if not subscriptions:
        logger.info("No subscriptions found")
        return summary

    eligible = filter_eligible(subscriptions, settings.cooldown_seconds, now)
    summary.eligible = len(eligible)
    summary.skipped = len(subscriptions) - len(eligible)
    logger.info(f"Eligible: {summary.eligible}, Skipped (throttled): {summary.skipped}")

    if not eligible:
        logger.info("All subscriptions throttled")
        return summary

    payload = json.dumps(
        request.to_push_payload(icon=settings.icon, badge=settings.badge),
        ensure_ascii=False,
    ).encode("utf-8")

    http = client or httpx.AsyncClient(
        timeout=settings.request_timeout_seconds,
        limits=httpx.Limits(max_connections=settings.max_concurrency),
    )
    semaphore = asyncio.Semaphore(settings.max_concurrency)

    async def _bounded(sub: PushSubscription) -> DeliveryResult:
        async with semaphore:
            return await deliver_to_subscription(
                http, sub, payload, vapid_keys, settings, signing_key
            )

    try:
        outcomes = await asyncio.gather(
            *(_bounded(sub) for sub in eligible),
            return_exceptions=True,
        )
    finally:
        if client is None:
            await http.aclose()

    results: list[DeliveryResult] = []
    for sub, outcome in zip(eligible, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Unexpected error for {short_endpoint(sub.endpoint)}: {outcome!r}")
            outcome = DeliveryResult(endpoint=sub.endpoint, success=False, error=repr(outcome))
        results.append(outcome)

    successful = [r.endpoint for r in results if r.success]
    expired = [r.endpoint for r in results if r.expired]

    summary.sent = len(successful)
    summary.expired = len(expired)
    summary.failed = len(results) - summary.sent - summary.expired

    await _write_outcomes(successful, expired, now)

    logger.info(f"Sent {summary.sent}/{summary.eligible} notifications")
    return summary


# CLI interface
if __name__ == "__main__":
    import argparse
    import sys

    from irshad.logging_config import setup_logging
    from irshad.models import NotificationData, NotificationKind, VapidConfigError

    setup_logging()

    parser = argparse.ArgumentParser(description="Web Push delivery")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    send_parser = subparsers.add_parser("send", help="Send a notification to all subscribers")
    send_parser.add_argument("--title", "-t", default="Masjid Irshad", help="Notification title")
    send_parser.add_argument("--body", "-b", required=True, help="Notification body")
    send_parser.add_argument("--tag", default="masjid-notification", help="Collapse tag")
    send_parser.add_argument("--url", "-u", default="/", help="URL opened on click")
    send_parser.add_argument(
        "--kind",
        choices=[k.value for k in NotificationKind],
        default=NotificationKind.GENERAL.value,
        help="Notification type",
    )
    send_parser.add_argument("--prayer", help="Prayer name for adhan/iqamah/jumuah")
    send_parser.add_argument("--event-type", help="Prayer event: adhan, iqamah or taraweeh")

    args = parser.parse_args()

    if args.command == "send":
        notification = NotificationRequest(
            title=args.title,
            body=args.body,
            tag=args.tag,
            url=args.url,
            data=NotificationData(
                kind=NotificationKind(args.kind),
                prayer=args.prayer,
                event_type=args.event_type,
            ),
        )
        try:
            result = asyncio.run(send_notification(notification))
        except VapidConfigError as e:
            print(f"Cannot send: {e}")
            sys.exit(1)
        print(json.dumps(result.to_dict(), indent=2))

    else:
        parser.print_help()
