"""The server's master AES-256-GCM key."""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field
from typing import Mapping, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

ENV_VAR = "PRIVATE_KEY_AES"
KEY_SIZE = 32
NONCE_SIZE = 12


class MasterKeyError(Exception):
    """Raised when the master key cannot be loaded or used."""


@dataclass(frozen=True)
class MasterKey:
    """A 32-byte AES key used to seal ephemeral private keys."""

    key: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.key) != KEY_SIZE:
            raise MasterKeyError(f"{ENV_VAR} must be 32 bytes (64 hex characters)")

    @classmethod
    def from_hex(cls, key_hex: str) -> "MasterKey":
        """Build a key from its hex encoding."""
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as exc:
            raise MasterKeyError(str(exc)) from exc
        return cls(key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MasterKey":
        """Load the key from the ``PRIVATE_KEY_AES`` environment variable."""
        env = os.environ if environ is None else environ
        key_hex = env.get(ENV_VAR, "")
        if not key_hex:
            raise MasterKeyError(f"{ENV_VAR} not set in environment")
        return cls.from_hex(key_hex)

    def encrypt(self, plaintext: bytes) -> tuple[bytes, bytes]:
        """Encrypt with a fresh random nonce; return ``(ciphertext, nonce)``."""
        nonce = secrets.token_bytes(NONCE_SIZE)
        return AESGCM(self.key).encrypt(nonce, plaintext, None), nonce

    def decrypt(self, ciphertext: bytes, nonce: bytes) -> bytes:
        """Decrypt and authenticate data sealed by :meth:`encrypt`."""
        try:
            return AESGCM(self.key).decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise MasterKeyError("message authentication failed") from exc
        except ValueError as exc:
            raise MasterKeyError(str(exc)) from exc