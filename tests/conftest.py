"""Shared test fixtures for Masjid Irshad Push tests.

This module provides common fixtures used across all test modules:
- Database isolation with temporary files
- Generated VAPID keys and browser-side subscription keys
- A decryptor standing in for the browser's push stack

Usage:
    def test_something(push_db):
        # irshad.DB_PATH points at a temp file for the duration of the test
        ...
"""

import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from irshad.models import VapidKeys
from irshad.push.b64 import b64url_encode
from irshad.push.vapid import generate_vapid_keys


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent


# ─────────────────────────────────────────────────────────────────────────────
# Database Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary database file for testing.

    The database file is automatically deleted after the test completes.

    Yields:
        Path to the temporary database file
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup
    if db_path.exists():
        os.unlink(db_path)


@pytest.fixture
def push_db(temp_db: Path) -> Generator[Path, None, None]:
    """Point irshad.get_connection() at the temporary database."""
    with patch("irshad.DB_PATH", temp_db):
        import irshad

        # Force table creation
        conn = irshad.get_connection()
        conn.close()

        yield temp_db


# ─────────────────────────────────────────────────────────────────────────────
# Key Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def vapid_keys() -> VapidKeys:
    """Freshly generated server VAPID keys."""
    generated = generate_vapid_keys()
    return VapidKeys(
        public_key=generated["public_key"],
        private_key=generated["private_key"],
        subject="mailto:test@masjidirshad.co.uk",
    )


@pytest.fixture
def no_vapid_env(monkeypatch) -> None:
    """Keep developer environment variables out of key loading."""
    for name in ("VAPID_PUBLIC_KEY", "VAPID_PRIVATE_KEY", "VAPID_SUBJECT", "PUSH_SEND_TOKEN"):
        monkeypatch.delenv(name, raising=False)


class BrowserSubscriber:
    """Browser side of a push subscription: holds the keys and decrypts."""

    def __init__(self) -> None:
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        self.public_bytes = self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )
        self.auth_secret = os.urandom(16)

    @property
    def p256dh(self) -> str:
        return b64url_encode(self.public_bytes)

    @property
    def auth(self) -> str:
        return b64url_encode(self.auth_secret)

    def decrypt(self, body: bytes) -> bytes:
        """Undo aes128gcm framing and RFC 8291 encryption for a single record."""
        salt = body[:16]
        keyid_length = body[20]
        keyid = body[21:21 + keyid_length]
        ciphertext = body[21 + keyid_length:]

        server_key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), keyid)
        shared_secret = self.private_key.exchange(ec.ECDH(), server_key)

        ikm = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=self.auth_secret,
            info=b"WebPush: info\x00" + self.public_bytes + keyid,
        ).derive(shared_secret)
        cek = HKDF(
            algorithm=hashes.SHA256(),
            length=16,
            salt=salt,
            info=b"Content-Encoding: aes128gcm\x00",
        ).derive(ikm)
        nonce = HKDF(
            algorithm=hashes.SHA256(),
            length=12,
            salt=salt,
            info=b"Content-Encoding: nonce\x00",
        ).derive(ikm)

        padded = AESGCM(cek).decrypt(nonce, ciphertext, None)
        assert padded.endswith(b"\x02")
        return padded[:-1]


@pytest.fixture
def make_subscriber() -> Callable[[], BrowserSubscriber]:
    """Factory for browser-side subscription key pairs."""
    return BrowserSubscriber


@pytest.fixture
def subscriber() -> BrowserSubscriber:
    return BrowserSubscriber()


# ─────────────────────────────────────────────────────────────────────────────
# Async Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def anyio_backend() -> str:
    """Backend for async tests."""
    return "asyncio"
