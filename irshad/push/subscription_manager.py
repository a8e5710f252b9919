"""
Tool: Push Subscription Manager
Purpose: Store Web Push subscriptions and apply the per-device cooldown

A dispatch cycle reads every row once, filters by cooldown, then writes back
in two batches: stamp successes, delete expired endpoints.

Usage:
    from irshad.push.subscription_manager import (
        register_subscription,
        unregister_subscription,
        list_eligible,
        record_success,
        remove_expired,
    )
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

from irshad import get_connection
from irshad.logging_config import short_endpoint
from irshad.models import PushSubscription, as_utc

logger = logging.getLogger(__name__)


DEFAULT_COOLDOWN_SECONDS = 5 * 60

# Stay under SQLite's bound-parameter limit for IN (...) batches
BATCH_CHUNK_SIZE = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _chunks(items: list[str], size: int = BATCH_CHUNK_SIZE):
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def register_subscription(
    endpoint: str,
    p256dh: str,
    auth: str,
    user_agent: str | None = None,
) -> dict:
    """
    Save a subscription, updating keys if the endpoint already exists.

    Args:
        endpoint: Web Push endpoint URL from the browser
        p256dh: Client public key (base64url)
        auth: Auth secret (base64url)
        user_agent: Browser user agent, for support/debugging

    Returns:
        {"success": True, "created": bool}
        or {"success": False, "error": str}
    """
    if not endpoint or not p256dh or not auth:
        return {"success": False, "error": "Missing required subscription fields"}

    now = _utcnow().isoformat()
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("SELECT 1 FROM push_subscriptions WHERE endpoint = ?", (endpoint,))
        exists = cursor.fetchone() is not None

        # Upsert keyed on endpoint; last_notified_at survives a re-subscribe
        cursor.execute(
            """
            INSERT INTO push_subscriptions
            (endpoint, p256dh, auth, user_agent, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(endpoint) DO UPDATE SET
                p256dh = excluded.p256dh,
                auth = excluded.auth,
                user_agent = excluded.user_agent,
                updated_at = excluded.updated_at
            """,
            (endpoint, p256dh, auth, user_agent, now, now),
        )
        conn.commit()
        return {"success": True, "created": not exists}
    finally:
        conn.close()


async def unregister_subscription(endpoint: str) -> dict:
    """
    Delete a subscription by endpoint.

    Returns:
        {"success": True, "removed": int}
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("DELETE FROM push_subscriptions WHERE endpoint = ?", (endpoint,))
        removed = cursor.rowcount
        conn.commit()
    finally:
        conn.close()

    return {"success": True, "removed": removed}


async def get_all_subscriptions() -> list[PushSubscription]:
    """Read every stored subscription."""
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("SELECT * FROM push_subscriptions ORDER BY created_at")
        rows = cursor.fetchall()
    finally:
        conn.close()

    return [PushSubscription.from_dict(dict(row)) for row in rows]


async def get_subscription(endpoint: str) -> PushSubscription | None:
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("SELECT * FROM push_subscriptions WHERE endpoint = ?", (endpoint,))
        row = cursor.fetchone()
    finally:
        conn.close()

    return PushSubscription.from_dict(dict(row)) if row else None


async def count_subscriptions() -> int:
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("SELECT COUNT(*) AS total FROM push_subscriptions")
        row = cursor.fetchone()
    finally:
        conn.close()

    return row["total"] if row else 0


def filter_eligible(
    subscriptions: Sequence[PushSubscription],
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    now: datetime | None = None,
) -> list[PushSubscription]:
    """
    Drop subscriptions notified within the cooldown window.

    A subscription never notified is always eligible. A naive ``now`` is
    taken as UTC, like stored timestamps.
    """
    now = as_utc(now) if now else _utcnow()
    cooldown = timedelta(seconds=cooldown_seconds)
    eligible = []

    for sub in subscriptions:
        if sub.last_notified_at is not None:
            elapsed = now - sub.last_notified_at
            if elapsed < cooldown:
                logger.debug(
                    f"Skipping {short_endpoint(sub.endpoint, 40)} "
                    f"(notified {int(elapsed.total_seconds())}s ago)"
                )
                continue
        eligible.append(sub)

    return eligible


async def list_eligible(
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    now: datetime | None = None,
) -> list[PushSubscription]:
    """
    Get subscriptions allowed to receive a notification right now.

    Args:
        cooldown_seconds: Minimum gap between notifications to one device
        now: Clock override for tests

    Returns:
        Subscriptions whose last_notified_at is unset or older than the cooldown
    """
    subscriptions = await get_all_subscriptions()
    return filter_eligible(subscriptions, cooldown_seconds, now)


async def record_success(endpoints: Iterable[str], timestamp: datetime | None = None) -> int:
    """
    Stamp last_notified_at on endpoints that accepted a delivery.

    Returns:
        Number of rows updated
    """
    endpoints = list(endpoints)
    if not endpoints:
        return 0

    stamp = (as_utc(timestamp) if timestamp else _utcnow()).isoformat()
    updated = 0

    conn = get_connection()
    cursor = conn.cursor()

    try:
        for chunk in _chunks(endpoints):
            placeholders = ",".join("?" for _ in chunk)
            cursor.execute(
                f"""
                UPDATE push_subscriptions
                SET last_notified_at = ?, updated_at = ?
                WHERE endpoint IN ({placeholders})
                """,
                (stamp, stamp, *chunk),
            )
            updated += cursor.rowcount
        conn.commit()
    finally:
        conn.close()

    logger.info(f"Updated last_notified_at for {updated} subscriptions")
    return updated


async def remove_expired(endpoints: Iterable[str]) -> int:
    """
    Delete endpoints the push service reported as gone (404/410).

    Returns:
        Number of rows deleted
    """
    endpoints = list(endpoints)
    if not endpoints:
        return 0

    removed = 0

    conn = get_connection()
    cursor = conn.cursor()

    try:
        for chunk in _chunks(endpoints):
            placeholders = ",".join("?" for _ in chunk)
            cursor.execute(
                f"DELETE FROM push_subscriptions WHERE endpoint IN ({placeholders})",
                chunk,
            )
            removed += cursor.rowcount
        conn.commit()
    finally:
        conn.close()

    logger.info(f"Removed {removed} expired subscriptions")
    return removed


# CLI interface
if __name__ == "__main__":
    import argparse

    from irshad.logging_config import setup_logging

    setup_logging()

    parser = argparse.ArgumentParser(description="Push subscription management")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    list_parser = subparsers.add_parser("list", help="List subscriptions")
    list_parser.add_argument("--eligible", "-e", action="store_true", help="Only those past the cooldown")

    subparsers.add_parser("count", help="Count subscriptions")

    remove_parser = subparsers.add_parser("remove", help="Remove a subscription")
    remove_parser.add_argument("--endpoint", required=True, help="Endpoint URL")

    args = parser.parse_args()

    if args.command == "list":
        subs = asyncio.run(list_eligible() if args.eligible else get_all_subscriptions())
        print(f"Found {len(subs)} subscriptions:")
        for sub in subs:
            last = sub.last_notified_at.isoformat() if sub.last_notified_at else "never"
            print(f"  {short_endpoint(sub.endpoint)} (last notified: {last})")

    elif args.command == "count":
        print(asyncio.run(count_subscriptions()))

    elif args.command == "remove":
        result = asyncio.run(unregister_subscription(args.endpoint))
        print(f"Removed {result['removed']} subscription(s)")

    else:
        parser.print_help()
