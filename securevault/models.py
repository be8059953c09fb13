"""Vault entries, crypto modes and timestamps."""

from __future__ import annotations

import base64
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional


class CryptoMode(str, Enum):
    """How vault entries are encrypted at rest."""

    CLASSICAL = "classical"
    QUANTUM_SAFE = "quantum-safe"

    def __str__(self) -> str:
        return self.value


def is_valid_crypto_mode(value: str) -> bool:
    """Return True if ``value`` names a known crypto mode."""
    return value in {mode.value for mode in CryptoMode}


def to_crypto_mode(value: str) -> CryptoMode:
    """Convert a mode name to a CryptoMode, raising ValueError if unknown."""
    if not is_valid_crypto_mode(value):
        raise ValueError("invalid crypto mode")
    return CryptoMode(value)


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


_BYTES_FIELDS = frozenset({
    "ciphertext", "nonce",
    "ephemeral_pub_key", "encrypted_ephemeral_priv_key", "ephemeral_priv_nonce",
    "kyber_pub_key", "kyber_ciphertext", "encrypted_kyber_priv_key", "kyber_priv_nonce",
})


@dataclass
class VaultEntry:
    """A stored key together with the material needed to decrypt it."""

    id: str = ""
    user_id: str = ""
    label: str = ""
    key_type: str = ""
    key_encoding: str = ""
    crypto_mode: str = ""
    created_at: datetime = field(default_factory=utc_now)
    ciphertext: Optional[bytes] = None
    nonce: Optional[bytes] = None
    ephemeral_pub_key: Optional[bytes] = None
    encrypted_ephemeral_priv_key: Optional[bytes] = None
    ephemeral_priv_nonce: Optional[bytes] = None
    kyber_pub_key: Optional[bytes] = None
    kyber_ciphertext: Optional[bytes] = None
    encrypted_kyber_priv_key: Optional[bytes] = None
    kyber_priv_nonce: Optional[bytes] = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping; bytes become base64."""
        result = asdict(self)
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        result["created_at"] = created.isoformat()
        for name in _BYTES_FIELDS:
            value = result[name]
            result[name] = None if value is None else base64.b64encode(value).decode("ascii")
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VaultEntry":
        """Build an entry from a mapping as produced by :meth:`to_dict`."""
        kwargs: dict[str, Any] = {}
        for name in cls.__dataclass_fields__:
            value = data.get(name)
            if name == "created_at":
                kwargs[name] = (
                    datetime(1, 1, 1, tzinfo=timezone.utc)
                    if value is None
                    else datetime.fromisoformat(value.replace("Z", "+00:00"))
                )
            elif name in _BYTES_FIELDS:
                kwargs[name] = None if value is None else base64.b64decode(value, validate=True)
            else:
                kwargs[name] = "" if value is None else str(value)
        return cls(**kwargs)

    def to_json(self) -> str:
        """Serialise the entry as JSON text."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str | bytes) -> "VaultEntry":
        """Parse an entry from JSON text."""
        return cls.from_dict(json.loads(text))