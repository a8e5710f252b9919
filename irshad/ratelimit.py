"""
Tool: Rate Limiter
Purpose: Throttle public API calls with a fixed-window counter kept in SQLite

Counters live in the rate_limits table, so limits hold across restarts and
across worker processes sharing the database file.

Usage:
    from irshad.ratelimit import check_rate_limit
    result = check_rate_limit(f"subscribe:{client_ip}", max_requests=10, window_seconds=60)
    if not result["allowed"]:
        ...  # respond 429, Retry-After: result["retry_after"]

    python -m irshad.ratelimit --status --key subscribe:203.0.113.7
    python -m irshad.ratelimit --reset --key subscribe:203.0.113.7
"""

import logging
import math
import time
from typing import Any

from irshad import get_connection

logger = logging.getLogger(__name__)


def check_rate_limit(
    key: str,
    max_requests: int,
    window_seconds: float,
    now: float | None = None,
) -> dict[str, Any]:
    """
    Count one request against ``key`` and report whether it is allowed.

    Refused requests are not counted.

    Args:
        key: Limit bucket, e.g. ``subscribe:<client ip>``
        max_requests: Requests allowed per window
        window_seconds: Window length
        now: Unix time override for tests

    Returns:
        {"allowed": bool, "remaining": int, "retry_after": int}
    """
    if max_requests < 1:
        raise ValueError("max_requests must be at least 1")

    now = time.time() if now is None else now
    conn = get_connection()

    try:
        # Read-modify-write under a write lock
        conn.execute("BEGIN IMMEDIATE")
        row = conn.execute(
            "SELECT window_start, request_count FROM rate_limits WHERE key = ?",
            (key,),
        ).fetchone()

        if row is None or now - row["window_start"] >= window_seconds:
            window_start, count = now, 1
        elif row["request_count"] < max_requests:
            window_start, count = row["window_start"], row["request_count"] + 1
        else:
            conn.rollback()
            retry_after = max(1, math.ceil(row["window_start"] + window_seconds - now))
            logger.warning(f"Rate limit exceeded for {key}, retry in {retry_after}s")
            return {"allowed": False, "remaining": 0, "retry_after": retry_after}

        conn.execute(
            """
            INSERT INTO rate_limits (key, window_start, request_count)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                window_start = excluded.window_start,
                request_count = excluded.request_count
            """,
            (key, window_start, count),
        )
        conn.commit()
    finally:
        conn.close()

    return {"allowed": True, "remaining": max_requests - count, "retry_after": 0}


def get_rate_limit_status(key: str) -> dict[str, Any] | None:
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT key, window_start, request_count FROM rate_limits WHERE key = ?",
            (key,),
        ).fetchone()
    finally:
        conn.close()
    return dict(row) if row else None


def reset_rate_limit(key: str) -> dict[str, Any]:
    """Forget the counter for ``key``."""
    conn = get_connection()
    try:
        cursor = conn.execute("DELETE FROM rate_limits WHERE key = ?", (key,))
        removed = cursor.rowcount
        conn.commit()
    finally:
        conn.close()

    if removed == 0:
        return {"success": False, "error": f"No rate limit record found for {key}"}
    return {"success": True, "message": f"Rate limit reset for {key}"}


# CLI interface
if __name__ == "__main__":
    import argparse
    import json
    import sys

    parser = argparse.ArgumentParser(description="Rate limit inspection")
    parser.add_argument("--key", required=True, help="Limit key, e.g. subscribe:<ip>")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--status", action="store_true", help="Show the current window")
    group.add_argument("--reset", action="store_true", help="Clear the counter")

    args = parser.parse_args()

    if args.status:
        status = get_rate_limit_status(args.key)
        if status is None:
            print(f"No rate limit record for {args.key}")
            sys.exit(1)
        print(json.dumps(status, indent=2))
    else:
        result = reset_rate_limit(args.key)
        print(json.dumps(result, indent=2))
        sys.exit(0 if result["success"] else 1)
