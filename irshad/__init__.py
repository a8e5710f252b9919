"""Masjid Irshad Push: Web Push delivery for live-stream and prayer alerts

Philosophy:
    A notification from the masjid should arrive once, promptly, and only on
    devices that asked for it. Each message goes straight to the browser's push
    service, VAPID-signed and end-to-end encrypted.

Components:
    push/b64.py: unpadded base64url codec
    push/vapid.py: VAPID key handling and ES256 JWT signing
    push/encryption.py: RFC 8291 key derivation and aes128gcm framing
    push/delivery.py: concurrent fan-out and response classification
    push/subscription_manager.py: subscription storage and cooldown filter
    ratelimit.py: store-backed request throttling
    api/: FastAPI endpoints for the website

Database: data/push.db (override with IRSHAD_DB_PATH)
    - push_subscriptions: Web Push endpoints keyed by endpoint URL
    - rate_limits: fixed-window request counters
"""

import os
import sqlite3
from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "args"
DATA_PATH = PROJECT_ROOT / "data"
DB_PATH = Path(os.environ.get("IRSHAD_DB_PATH", str(DATA_PATH / "push.db")))


def get_connection() -> sqlite3.Connection:
    """
    Get database connection, creating tables if needed.

    Returns:
        SQLite connection with row_factory set
    """
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row

    cursor = conn.cursor()

    # Push subscriptions (one row per browser/device registration)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS push_subscriptions (
            endpoint TEXT PRIMARY KEY,
            p256dh TEXT NOT NULL,
            auth TEXT NOT NULL,
            user_agent TEXT,
            created_at DATETIME,
            updated_at DATETIME,
            last_notified_at DATETIME
        )
    """)

    # Fixed-window request counters
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS rate_limits (
            key TEXT PRIMARY KEY,
            window_start REAL NOT NULL,
            request_count INTEGER NOT NULL DEFAULT 0
        )
    """)

    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_subscriptions_last_notified "
        "ON push_subscriptions(last_notified_at)"
    )

    conn.commit()
    return conn
