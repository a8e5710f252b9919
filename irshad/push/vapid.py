"""
Tool: VAPID Signer
Purpose: Load the server's VAPID key pair and sign ES256 JWTs for push services

Usage:
    # Generate VAPID keys (one-time setup)
    python -m irshad.push.vapid generate-keys

    # Print the public key browsers subscribe with
    python -m irshad.push.vapid get-public-key

    # Validate the configured pair
    python -m irshad.push.vapid check

Dependencies:
    pip install cryptography pyyaml
"""

import binascii
import json
import os
import time
from urllib.parse import urlsplit

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from irshad.config import PushConfig, load_push_config
from irshad.models import VapidConfigError, VapidKeys
from irshad.push.b64 import b64url_decode, b64url_encode


JWT_HEADER = {"typ": "JWT", "alg": "ES256"}
DEFAULT_EXPIRY_SECONDS = 12 * 60 * 60
P256_SCALAR_LENGTH = 32
P256_POINT_LENGTH = 65


def _json_segment(obj: dict) -> str:
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


def _with_mailto(subject: str) -> str:
    subject = subject.strip()
    if subject.startswith(("mailto:", "https:")):
        return subject
    return f"mailto:{subject}"


def load_vapid_keys(config: PushConfig | None = None) -> VapidKeys:
    """
    Load and validate the VAPID key pair.

    Environment variables win over args/push.yaml. The private scalar must
    match the advertised public key.

    Raises:
        VapidConfigError: keys missing, undecodable, or not a matching pair
    """
    if config is None:
        config = load_push_config()

    public_key = os.environ.get("VAPID_PUBLIC_KEY") or config.vapid.public_key
    private_key = os.environ.get("VAPID_PRIVATE_KEY") or config.vapid.private_key
    subject = os.environ.get("VAPID_SUBJECT") or config.vapid.subject

    if not public_key or not private_key:
        raise VapidConfigError("VAPID keys not configured")

    keys = VapidKeys(
        public_key=public_key.strip(),
        private_key=private_key.strip(),
        subject=_with_mailto(subject),
    )
    load_signing_key(keys)
    return keys


def load_signing_key(keys: VapidKeys) -> ec.EllipticCurvePrivateKey:
    """
    Rebuild the ECDSA signing key from the bare P-256 scalar.

    Raises:
        VapidConfigError: malformed scalar/point or mismatched pair
    """
    try:
        private_bytes = b64url_decode(keys.private_key)
        public_bytes = b64url_decode(keys.public_key)
    except (binascii.Error, ValueError) as e:
        raise VapidConfigError(f"VAPID keys are not valid base64url: {e}") from e

    if len(private_bytes) != P256_SCALAR_LENGTH:
        raise VapidConfigError(
            f"VAPID private key must be {P256_SCALAR_LENGTH} bytes, got {len(private_bytes)}"
        )
    if len(public_bytes) != P256_POINT_LENGTH or public_bytes[0] != 0x04:
        raise VapidConfigError("VAPID public key must be a 65-byte uncompressed P-256 point")

    try:
        private_key = ec.derive_private_key(
            int.from_bytes(private_bytes, "big"),
            ec.SECP256R1(),
        )
    except ValueError as e:
        raise VapidConfigError(f"VAPID private key is not a valid P-256 scalar: {e}") from e

    derived_public = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    if derived_public != public_bytes:
        raise VapidConfigError("VAPID public key does not match the private key")

    return private_key


def audience_for(endpoint: str) -> str:
    """Origin (scheme://host[:port]) of a push endpoint, used as the JWT ``aud``."""
    parts = urlsplit(endpoint)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Push endpoint is not an absolute URL: {endpoint[:50]}")
    return f"{parts.scheme}://{parts.netloc}"


def sign_vapid_jwt(
    audience: str,
    keys: VapidKeys,
    expires_in: int = DEFAULT_EXPIRY_SECONDS,
    now: float | None = None,
    signing_key: ec.EllipticCurvePrivateKey | None = None,
) -> str:
    """
    Build and sign a compact VAPID JWT.

    Args:
        audience: Origin of the subscription's push service
        keys: Server VAPID keys
        expires_in: Token lifetime in seconds (push services cap this at 24h)
        now: Unix time override for tests
        signing_key: Pre-loaded key from load_signing_key() to skip re-deriving

    Returns:
        ``header.payload.signature``, each segment unpadded base64url
    """
    issued = int(time.time() if now is None else now)
    payload = {
        "aud": audience,
        "exp": issued + expires_in,
        "sub": keys.subject,
    }

    signing_input = f"{_json_segment(JWT_HEADER)}.{_json_segment(payload)}"
    private_key = signing_key or load_signing_key(keys)
    der_signature = private_key.sign(signing_input.encode("ascii"), ec.ECDSA(hashes.SHA256()))

    # JWS wants the raw r || s form, not DER
    r, s = decode_dss_signature(der_signature)
    raw_signature = r.to_bytes(32, "big") + s.to_bytes(32, "big")

    return f"{signing_input}.{b64url_encode(raw_signature)}"


def vapid_authorization(jwt: str, public_key: str) -> str:
    """Value of the Authorization header for the vapid scheme (RFC 8292)."""
    return f"vapid t={jwt}, k={public_key}"


def generate_vapid_keys() -> dict:
    """
    Generate a new VAPID key pair for Web Push.

    Returns:
        {"public_key": str, "private_key": str} as unpadded base64url

    Note:
        Store the private key in the environment (VAPID_PRIVATE_KEY).
        The public key is served to browsers for subscription.
    """
    private_key = ec.generate_private_key(ec.SECP256R1())

    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    private_bytes = private_key.private_numbers().private_value.to_bytes(32, "big")

    return {
        "public_key": b64url_encode(public_bytes),
        "private_key": b64url_encode(private_bytes),
    }


def get_vapid_public_key(config: PushConfig | None = None) -> str:
    """
    Get the server's VAPID public key for client subscription.

    Returns:
        The public key string (URL-safe base64) or empty string if not configured.
    """
    if config is None:
        config = load_push_config()
    return os.environ.get("VAPID_PUBLIC_KEY") or config.vapid.public_key


# CLI interface
if __name__ == "__main__":
    import argparse
    import sys

    parser = argparse.ArgumentParser(description="VAPID key tools")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("generate-keys", help="Generate VAPID key pair")
    subparsers.add_parser("get-public-key", help="Print VAPID public key")
    subparsers.add_parser("check", help="Validate configured VAPID keys")

    args = parser.parse_args()

    if args.command == "generate-keys":
        result = generate_vapid_keys()
        print("VAPID Keys Generated Successfully")
        print("-" * 40)
        print(f"Public Key:  {result['public_key']}")
        print(f"Private Key: {result['private_key']}")
        print("-" * 40)
        print("\nAdd to your .env file:")
        print(f"VAPID_PUBLIC_KEY={result['public_key']}")
        print(f"VAPID_PRIVATE_KEY={result['private_key']}")
        print("VAPID_SUBJECT=mailto:info@masjidirshad.co.uk")

    elif args.command == "get-public-key":
        key = get_vapid_public_key()
        if key:
            print(f"VAPID Public Key: {key}")
        else:
            print("VAPID public key not configured")
            print("Run: python -m irshad.push.vapid generate-keys")
            sys.exit(1)

    elif args.command == "check":
        try:
            keys = load_vapid_keys()
        except VapidConfigError as e:
            print(f"Invalid VAPID configuration: {e}")
            sys.exit(1)
        print(f"VAPID keys OK (subject {keys.subject})")

    else:
        parser.print_help()
