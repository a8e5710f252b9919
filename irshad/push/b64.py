"""Unpadded base64url, the encoding VAPID keys, JWT segments and p256dh/auth use."""

import base64


def b64url_encode(data: bytes) -> str:
    """URL-safe base64 encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """
    Decode unpadded base64url.

    Standard-alphabet input is accepted too, since some browsers and key
    generators hand out ``+``/``/`` variants. Raises ``binascii.Error``
    (a ValueError) on garbage.
    """
    data = data.strip().replace("+", "-").replace("/", "_").rstrip("=")
    padding = -len(data) % 4
    return base64.b64decode(data + "=" * padding, altchars=b"-_", validate=True)
