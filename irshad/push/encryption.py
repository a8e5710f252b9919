"""
Tool: Web Push Message Encryption
Purpose: RFC 8291 key derivation and aes128gcm (RFC 8188) payload framing

Every call to derive_keys() creates a new ephemeral ECDH key pair and a new
random salt. Reusing either across messages breaks the scheme.

Body layout (single record):
    salt (16) | record size (uint32 BE) | keyid length (1) | keyid (65) | ciphertext

Usage:
    from irshad.push.encryption import encrypt_notification
    body = encrypt_notification(payload_bytes, sub.p256dh, sub.auth)
"""

import binascii
import os
import struct

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from irshad.models import DerivedKeys, InvalidSubscriptionKeyError, PayloadTooLargeError
from irshad.push.b64 import b64url_decode


RECORD_SIZE = 4096
SALT_LENGTH = 16
AUTH_SECRET_LENGTH = 16
KEY_LENGTH = 16
NONCE_LENGTH = 12
TAG_LENGTH = 16
PUBLIC_KEY_LENGTH = 65
HEADER_LENGTH = SALT_LENGTH + 4 + 1 + PUBLIC_KEY_LENGTH  # 86

# Marks the last (and only) record; no padding follows it
RECORD_DELIMITER = b"\x02"

WEBPUSH_INFO = b"WebPush: info\x00"
CEK_INFO = b"Content-Encoding: aes128gcm\x00"
NONCE_INFO = b"Content-Encoding: nonce\x00"


def _hkdf(ikm: bytes, salt: bytes, info: bytes, length: int) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info,
    ).derive(ikm)


def _public_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )


def load_subscriber_public_key(raw: bytes) -> ec.EllipticCurvePublicKey:
    """
    Parse a subscriber's p256dh point.

    Raises:
        InvalidSubscriptionKeyError: wrong length, compressed form, or off-curve
    """
    if len(raw) != PUBLIC_KEY_LENGTH or raw[0] != 0x04:
        raise InvalidSubscriptionKeyError(
            f"p256dh must be a {PUBLIC_KEY_LENGTH}-byte uncompressed point, got {len(raw)} bytes"
        )
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), raw)
    except ValueError as e:
        raise InvalidSubscriptionKeyError(f"p256dh is not a valid P-256 point: {e}") from e


def derive_keys(
    subscriber_public_key: bytes,
    auth_secret: bytes,
    ephemeral_private_key: ec.EllipticCurvePrivateKey | None = None,
    salt: bytes | None = None,
) -> DerivedKeys:
    """
    Derive the content-encryption key and nonce for one message.

    Args:
        subscriber_public_key: Decoded p256dh (65 bytes)
        auth_secret: Decoded auth secret (16 bytes)
        ephemeral_private_key: Only for reproducing published test vectors
        salt: Only for reproducing published test vectors

    Returns:
        DerivedKeys with CEK, nonce, ephemeral public key and salt

    Raises:
        InvalidSubscriptionKeyError: unusable p256dh or auth secret
    """
    if len(auth_secret) != AUTH_SECRET_LENGTH:
        raise InvalidSubscriptionKeyError(
            f"auth secret must be {AUTH_SECRET_LENGTH} bytes, got {len(auth_secret)}"
        )
    subscriber_key = load_subscriber_public_key(subscriber_public_key)

    if ephemeral_private_key is None:
        ephemeral_private_key = ec.generate_private_key(ec.SECP256R1())
    ephemeral_public_key = _public_bytes(ephemeral_private_key)

    shared_secret = ephemeral_private_key.exchange(ec.ECDH(), subscriber_key)

    if salt is None:
        salt = os.urandom(SALT_LENGTH)

    # Order is ua_public then as_public
    key_info = WEBPUSH_INFO + subscriber_public_key + ephemeral_public_key
    ikm = _hkdf(shared_secret, auth_secret, key_info, 32)

    return DerivedKeys(
        content_encryption_key=_hkdf(ikm, salt, CEK_INFO, KEY_LENGTH),
        nonce=_hkdf(ikm, salt, NONCE_INFO, NONCE_LENGTH),
        ephemeral_public_key=ephemeral_public_key,
        salt=salt,
    )


def encrypt_payload(
    plaintext: bytes,
    key: bytes,
    nonce: bytes,
    record_size: int = RECORD_SIZE,
) -> bytes:
    """
    Encrypt one aes128gcm record: plaintext + 0x02 delimiter, GCM tag appended.

    The whole request body, header included, must stay within ``record_size``.

    Raises:
        PayloadTooLargeError: plaintext does not fit a single record
    """
    max_plaintext = record_size - HEADER_LENGTH - len(RECORD_DELIMITER) - TAG_LENGTH
    if len(plaintext) > max_plaintext:
        raise PayloadTooLargeError(
            f"Payload is {len(plaintext)} bytes; a {record_size}-byte body holds {max_plaintext}"
        )
    return AESGCM(key).encrypt(nonce, plaintext + RECORD_DELIMITER, None)


def build_body(
    salt: bytes,
    ephemeral_public_key: bytes,
    ciphertext: bytes,
    record_size: int = RECORD_SIZE,
) -> bytes:
    """Prefix the ciphertext with the 86-byte aes128gcm header."""
    header = struct.pack(
        f"!{SALT_LENGTH}sIB",
        salt,
        record_size,
        len(ephemeral_public_key),
    )
    return header + ephemeral_public_key + ciphertext


def encrypt_notification(
    payload: bytes,
    p256dh: str,
    auth: str,
    record_size: int = RECORD_SIZE,
) -> bytes:
    """
    Encrypt a notification payload for one subscription.

    Args:
        payload: UTF-8 JSON bytes
        p256dh: Subscription public key (base64url)
        auth: Subscription auth secret (base64url)

    Returns:
        Complete aes128gcm request body

    Raises:
        InvalidSubscriptionKeyError: p256dh/auth cannot be decoded or used
        PayloadTooLargeError: payload does not fit one record
    """
    try:
        subscriber_public_key = b64url_decode(p256dh)
        auth_secret = b64url_decode(auth)
    except (binascii.Error, ValueError) as e:
        raise InvalidSubscriptionKeyError(f"Subscription keys are not valid base64url: {e}") from e

    keys = derive_keys(subscriber_public_key, auth_secret)
    ciphertext = encrypt_payload(payload, keys.content_encryption_key, keys.nonce, record_size)
    return build_body(keys.salt, keys.ephemeral_public_key, ciphertext, record_size)
