"""Validation of submitted public keys."""

from __future__ import annotations

import base64
import binascii
import re

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from cryptography.hazmat.primitives.serialization import load_der_public_key

_PEM_RE = re.compile(rb"-----BEGIN ([^\r\n-]+)-----\r?\n(.*?)-----END \1-----", re.DOTALL)


class InvalidKeyError(ValueError):
    """Raised when a submitted public key is malformed or of an unknown type."""


def _is_secp256k1_point(data: bytes) -> bool:
    data = bytes(data)
    if len(data) == 65 and data[0] in (6, 7):
        if (data[-1] & 1) != (data[0] & 1):
            return False
        data = b"\x04" + data[1:]
    if not ((len(data) == 33 and data[0] in (2, 3)) or (len(data) == 65 and data[0] == 4)):
        return False
    try:
        ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)
    except ValueError:
        return False
    return True


def _validate_rsa(data: bytes) -> None:
    match = _PEM_RE.search(bytes(data))
    try:
        lines = match.group(2).splitlines() if match else None
        der = base64.b64decode(b"".join(l.strip() for l in lines if b":" not in l), validate=True) if lines is not None else None
    except (binascii.Error, ValueError):
        der = None
    if der is None:
        raise InvalidKeyError("invalid PEM-encoded RSA key")
    try:
        key = load_der_public_key(der)
    except (ValueError, TypeError):
        raise InvalidKeyError("invalid RSA key format") from None
    if not isinstance(key, RSAPublicKey):
        raise InvalidKeyError("not an RSA public key")


def validate_public_key(data: bytes, key_type: str) -> None:
    """Check that ``data`` is a public key of ``key_type``; raise InvalidKeyError if not."""
    if key_type == "secp256k1":
        if not _is_secp256k1_point(data):
            raise InvalidKeyError("invalid secp256k1 public key")
    elif key_type == "ed25519":
        if len(data) != 32:
            raise InvalidKeyError("invalid ed25519 public key length")
    elif key_type == "rsa":
        _validate_rsa(data)
    elif key_type not in ("kyber512", "kyber768", "kyber1024"):
        raise InvalidKeyError("unsupported key type")


def is_valid_secp256k1_pub_key(raw_key: bytes) -> bool:
    """Return True if ``raw_key`` is a valid compressed secp256k1 public key."""
    return len(raw_key) == 33 and _is_secp256k1_point(raw_key)


def is_valid_kyber_pub_key(key: bytes) -> bool:
    """Accept any byte string; no structural check of the Kyber key is made."""
    return isinstance(key, (bytes, bytearray, memoryview))