"""
Tool: Push Notification Models
Purpose: Data structures for Web Push delivery

Usage:
    from irshad.models import (
        PushSubscription,
        VapidKeys,
        NotificationKind,
        NotificationData,
        NotificationRequest,
        DerivedKeys,
        DeliveryResult,
        DispatchSummary,
    )
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


DEFAULT_TITLE = "Masjid Irshad"
DEFAULT_BODY = "New notification"
DEFAULT_TAG = "masjid-notification"
DEFAULT_URL = "/"
DEFAULT_ICON = "/masjid-irshad-logo.png"


class VapidConfigError(ValueError):
    """VAPID key material is missing, malformed, or inconsistent."""


class InvalidSubscriptionKeyError(ValueError):
    """A subscription's p256dh or auth value cannot be used for encryption."""


class PayloadTooLargeError(ValueError):
    """The notification does not fit in a single aes128gcm record."""


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value))
    return as_utc(value)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class PushSubscription:
    """
    Web Push subscription.

    One row per browser/device registration, keyed by endpoint URL.
    """

    endpoint: str  # Push service mailbox URL (identity key)
    p256dh: str  # Client ECDH public key, base64url uncompressed point
    auth: str  # 16-byte auth secret, base64url

    user_agent: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_notified_at: datetime | None = None  # Set only after a successful delivery

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "endpoint": self.endpoint,
            "p256dh": self.p256dh,
            "auth": self.auth,
            "user_agent": self.user_agent,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "last_notified_at": self.last_notified_at.isoformat() if self.last_notified_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PushSubscription":
        """Create from a database row or API dict."""
        data = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        for field_name in ["created_at", "updated_at", "last_notified_at"]:
            data[field_name] = _parse_datetime(data.get(field_name))
        return cls(**data)


@dataclass(frozen=True)
class VapidKeys:
    """
    Server identity for VAPID.

    The public key is handed to browsers at subscribe time; the private key
    never leaves the server. Both are unpadded base64url.
    """

    public_key: str  # 65-byte uncompressed P-256 point
    private_key: str  # 32-byte P-256 scalar
    subject: str  # "mailto:" contact for the push service operator


class NotificationKind(str, Enum):
    """Closed set of notification types the service worker understands."""

    GENERAL = "general"
    LIVE_STREAM = "live_stream"
    ADHAN = "adhan"
    IQAMAH = "iqamah"
    JUMUAH = "jumuah"
    ANNOUNCEMENT = "announcement"
    EVENT = "event"


@dataclass
class NotificationData:
    """
    Tagged metadata attached to a notification.

    The ``kind`` decides which optional fields are meaningful: prayer kinds
    carry ``prayer`` and ``event_type`` (adhan, iqamah, taraweeh),
    announcements and events carry ``event_id`` and ``event_title``.
    """

    kind: NotificationKind = NotificationKind.GENERAL
    prayer: str | None = None
    event_type: str | None = None
    event_id: str | None = None
    event_title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.prayer is not None:
            data["prayer"] = self.prayer
        if self.event_type is not None:
            data["eventType"] = self.event_type
        if self.event_id is not None:
            data["eventId"] = self.event_id
        if self.event_title is not None:
            data["eventTitle"] = self.event_title
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "NotificationData":
        """Parse the inbound ``data`` object; unknown ``type`` values raise ValueError."""
        if not data:
            return cls()
        return cls(
            kind=NotificationKind(data.get("type", NotificationKind.GENERAL.value)),
            prayer=data.get("prayer"),
            event_type=data.get("eventType", data.get("event_type")),
            event_id=data.get("eventId", data.get("event_id")),
            event_title=data.get("eventTitle", data.get("event_title")),
        )


@dataclass
class NotificationRequest:
    """
    One notification to fan out to every eligible subscription.

    Ephemeral input to a dispatch cycle; never persisted.
    """

    title: str = DEFAULT_TITLE
    body: str = DEFAULT_BODY
    tag: str = DEFAULT_TAG  # Collapses duplicates client-side
    url: str = DEFAULT_URL  # Deep link opened on click
    data: NotificationData = field(default_factory=NotificationData)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationRequest":
        """Create from the trigger shape ``{title, body, tag?, url?, data?}``."""
        return cls(
            title=data.get("title") or DEFAULT_TITLE,
            body=data.get("body") or DEFAULT_BODY,
            tag=data.get("tag") or DEFAULT_TAG,
            url=data.get("url") or DEFAULT_URL,
            data=NotificationData.from_dict(data.get("data")),
        )

    def to_push_payload(self, icon: str = DEFAULT_ICON, badge: str = DEFAULT_ICON) -> dict:
        """Convert to the JSON the service worker passes to showNotification()."""
        return {
            "title": self.title,
            "body": self.body,
            "icon": icon,
            "badge": badge,
            "tag": self.tag,
            "requireInteraction": True,
            "data": {"url": self.url, **self.data.to_dict()},
        }


@dataclass(frozen=True)
class DerivedKeys:
    """Per-message key material from RFC 8291 key derivation."""

    content_encryption_key: bytes  # 16 bytes
    nonce: bytes  # 12 bytes
    ephemeral_public_key: bytes  # 65 bytes, becomes the keyid
    salt: bytes  # 16 bytes


@dataclass
class DeliveryResult:
    """
    Result of attempting to deliver to one endpoint.
    """

    endpoint: str
    success: bool
    status_code: int | None = None
    error: str | None = None
    expired: bool = False  # True if the push service reported 404/410

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return asdict(self)


@dataclass
class DispatchSummary:
    """
    Aggregate outcome of one dispatch cycle.

    ``skipped`` counts cooldown-filtered subscriptions; ``expired`` counts
    404/410 responses. They are independent tallies.
    """

    sent: int = 0
    total: int = 0
    eligible: int = 0
    skipped: int = 0
    expired: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, **asdict(self)}
