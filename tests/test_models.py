from datetime import datetime, timedelta, timezone

import pytest

from securevault.models import (
    CryptoMode,
    VaultEntry,
    is_valid_crypto_mode,
    to_crypto_mode,
    utc_now,
)


def test_mode_values():
    assert to_crypto_mode("classical") is CryptoMode.CLASSICAL
    assert to_crypto_mode("quantum-safe") is CryptoMode.QUANTUM_SAFE


@pytest.mark.parametrize("value", ["classical", "quantum-safe"])
def test_valid_modes(value):
    assert is_valid_crypto_mode(value) is True
    assert to_crypto_mode(value).value == value


@pytest.mark.parametrize("value", ["", "Classical", "quantum", "kyber"])
def test_invalid_modes(value):
    assert is_valid_crypto_mode(value) is False
    with pytest.raises(ValueError, match="invalid crypto mode"):
        to_crypto_mode(value)


def test_to_crypto_mode_accepts_enum():
    assert to_crypto_mode(CryptoMode.QUANTUM_SAFE) is CryptoMode.QUANTUM_SAFE


def test_utc_now_is_utc():
    now = utc_now()
    assert now.utcoffset() == timedelta(0)


def _entry():
    return VaultEntry(
        id="abc",
        user_id="user",
        label="label",
        key_type="secp256k1",
        key_encoding="hex",
        crypto_mode="classical",
        created_at=datetime(2024, 5, 6, 7, 8, 9, 120000, tzinfo=timezone.utc),
        ciphertext=b"\x00\x01",
        nonce=b"n" * 12,
        ephemeral_pub_key=b"\x02" * 33,
    )


def test_to_dict_encodes_bytes_as_base64():
    data = _entry().to_dict()
    assert data["ciphertext"] == "AAE="
    assert data["kyber_pub_key"] is None
    assert data["created_at"] == "2024-05-06T07:08:09.12Z"


def test_json_round_trip():
    entry = _entry()
    assert VaultEntry.from_json(entry.to_json()) == entry


def test_dict_round_trip_with_offset():
    entry = _entry()
    entry.created_at = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    restored = VaultEntry.from_dict(entry.to_dict())
    assert restored.created_at == entry.created_at


def test_from_dict_handles_nanoseconds_and_missing_fields():
    entry = VaultEntry.from_dict({"id": "x", "created_at": "2024-01-02T03:04:05.123456789Z"})
    assert entry.id == "x"
    assert entry.label == ""
    assert entry.ciphertext is None
    assert entry.created_at.microsecond == 123456


def test_from_dict_rejects_bad_base64():
    with pytest.raises(ValueError):
        VaultEntry.from_dict({"ciphertext": "***"})


def test_from_dict_rejects_bad_timestamp():
    with pytest.raises(ValueError):
        VaultEntry.from_dict({"created_at": "yesterday"})