"""Tests for irshad/models.py"""

from datetime import datetime, timezone

import pytest

from irshad.models import (
    DeliveryResult,
    DispatchSummary,
    NotificationData,
    NotificationKind,
    NotificationRequest,
    PushSubscription,
)


class TestPushSubscription:
    def test_from_row_parses_timestamps(self):
        sub = PushSubscription.from_dict({
            "endpoint": "https://push.example.com/1",
            "p256dh": "key",
            "auth": "auth",
            "user_agent": None,
            "created_at": "2026-03-20T18:30:00+00:00",
            "updated_at": "2026-03-20T18:30:00+00:00",
            "last_notified_at": None,
        })
        assert sub.created_at == datetime(2026, 3, 20, 18, 30, tzinfo=timezone.utc)
        assert sub.last_notified_at is None

    def test_naive_timestamps_are_utc(self):
        sub = PushSubscription.from_dict({
            "endpoint": "https://push.example.com/1",
            "p256dh": "key",
            "auth": "auth",
            "last_notified_at": "2026-03-20 18:30:00",
        })
        assert sub.last_notified_at.tzinfo == timezone.utc

    def test_unknown_columns_ignored(self):
        sub = PushSubscription.from_dict({
            "endpoint": "https://push.example.com/1",
            "p256dh": "key",
            "auth": "auth",
            "id": 7,
        })
        assert sub.endpoint == "https://push.example.com/1"

    def test_to_dict_round_trip(self):
        sub = PushSubscription(
            endpoint="https://push.example.com/1",
            p256dh="key",
            auth="auth",
            last_notified_at=datetime(2026, 3, 20, 18, 30, tzinfo=timezone.utc),
        )
        assert PushSubscription.from_dict(sub.to_dict()) == sub


class TestNotificationData:
    def test_prayer_kind(self):
        data = NotificationData(kind=NotificationKind.ADHAN, prayer="fajr")
        assert data.to_dict() == {"type": "adhan", "prayer": "fajr"}

    def test_prayer_event_type(self):
        data = NotificationData.from_dict(
            {"type": "iqamah", "prayer": "isha", "eventType": "taraweeh"}
        )
        assert data.event_type == "taraweeh"
        assert data.to_dict() == {"type": "iqamah", "prayer": "isha", "eventType": "taraweeh"}

    def test_event_kind(self):
        data = NotificationData.from_dict(
            {"type": "event", "eventId": "42", "eventTitle": "Family Iftar"}
        )
        assert data.kind is NotificationKind.EVENT
        assert data.to_dict() == {"type": "event", "eventId": "42", "eventTitle": "Family Iftar"}

    def test_missing_data_is_general(self):
        assert NotificationData.from_dict(None).kind is NotificationKind.GENERAL

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            NotificationData.from_dict({"type": "party"})


class TestNotificationRequest:
    def test_defaults_fill_missing_fields(self):
        request = NotificationRequest.from_dict({})
        assert request.title == "Masjid Irshad"
        assert request.body == "New notification"
        assert request.tag == "masjid-notification"
        assert request.url == "/"

    def test_push_payload_shape(self):
        request = NotificationRequest.from_dict({
            "title": "Masjid Irshad is LIVE",
            "body": "Join the live stream now",
            "tag": "live-stream",
            "url": "/#masjid-live",
            "data": {"type": "live_stream"},
        })
        assert request.to_push_payload() == {
            "title": "Masjid Irshad is LIVE",
            "body": "Join the live stream now",
            "icon": "/masjid-irshad-logo.png",
            "badge": "/masjid-irshad-logo.png",
            "tag": "live-stream",
            "requireInteraction": True,
            "data": {"url": "/#masjid-live", "type": "live_stream"},
        }


class TestResults:
    def test_summary_to_dict(self):
        summary = DispatchSummary(sent=1, total=3, eligible=2, skipped=1, expired=1)
        assert summary.to_dict() == {
            "success": True,
            "sent": 1,
            "total": 3,
            "eligible": 2,
            "skipped": 1,
            "expired": 1,
            "failed": 0,
        }

    def test_delivery_result_defaults(self):
        result = DeliveryResult(endpoint="https://push.example.com/1", success=True)
        assert result.to_dict()["expired"] is False
