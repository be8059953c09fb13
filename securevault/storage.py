"""Persistent storage of vault entries and the active crypto mode."""

from __future__ import annotations

import dataclasses
import sqlite3
import threading
from datetime import datetime
from os import PathLike
from typing import Union

from securevault import envelope, log
from securevault.masterkey import MasterKey, MasterKeyError
from securevault.models import CryptoMode, VaultEntry

DEFAULT_DB_PATH = "vault.db"
MODE_KEY = "cryptomode"
DEFAULT_CRYPTO_MODE = CryptoMode.CLASSICAL


class StorageError(Exception):
    """Raised when the store cannot complete an operation."""


class EntryNotFoundError(StorageError, KeyError):
    """Raised when no vault entry has the requested id."""

    def __str__(self) -> str:
        return "key not found"


def _decrypt_entry(master_key: MasterKey, entry: VaultEntry) -> bytes:
    if entry.crypto_mode == CryptoMode.CLASSICAL.value:
        try:
            return envelope.decrypt_with_ephemeral_ecc(
                master_key,
                entry.ciphertext or b"",
                entry.nonce or b"",
                entry.encrypted_ephemeral_priv_key or b"",
                entry.ephemeral_priv_nonce or b"",
            )
        except (MasterKeyError, ValueError) as exc:
            log.error("rekey", "failed to ECC decrypt key: %s", exc)
            raise StorageError(str(exc)) from exc
    if entry.crypto_mode == CryptoMode.QUANTUM_SAFE.value:
        try:
            return envelope.decrypt_with_ephemeral_kyber(
                master_key,
                entry.ciphertext or b"",
                entry.nonce or b"",
                entry.kyber_ciphertext or b"",
                entry.encrypted_kyber_priv_key or b"",
                entry.kyber_priv_nonce or b"",
            )
        except (MasterKeyError, ValueError) as exc:
            log.error("rekey", "failed to KEM decrypt key: %s", exc)
            raise StorageError(str(exc)) from exc
    raise StorageError("invalid crypto_mode: " + entry.crypto_mode)


def _seal_entry(master_key: MasterKey, entry: VaultEntry, plain_key: bytes, mode: str) -> None:
    if mode == CryptoMode.CLASSICAL:
        sealed = envelope.encrypt_with_ephemeral_ecc(master_key, plain_key)
        entry.ciphertext = sealed.ciphertext
        entry.nonce = sealed.nonce
        entry.encrypted_ephemeral_priv_key = sealed.enc_priv_key
        entry.ephemeral_priv_nonce = sealed.enc_priv_nonce
        entry.ephemeral_pub_key = sealed.eph_pub_key
        entry.kyber_pub_key = None
        entry.kyber_ciphertext = None
        entry.encrypted_kyber_priv_key = None
        entry.kyber_priv_nonce = None
    elif mode == CryptoMode.QUANTUM_SAFE:
        sealed_kyber = envelope.encrypt_with_ephemeral_kyber(master_key, plain_key)
        entry.ciphertext = sealed_kyber.ciphertext
        entry.nonce = sealed_kyber.nonce
        entry.kyber_ciphertext = sealed_kyber.kem_ciphertext
        entry.encrypted_kyber_priv_key = sealed_kyber.enc_priv_key
        entry.kyber_priv_nonce = sealed_kyber.enc_priv_nonce
        entry.kyber_pub_key = sealed_kyber.pub_key
        entry.ephemeral_pub_key = None
        entry.encrypted_ephemeral_priv_key = None
        entry.ephemeral_priv_nonce = None
    else:
        raise StorageError("unsupported crypto_mode: " + str(mode))
    entry.crypto_mode = CryptoMode(mode).value


class VaultStore:
    """A vault database holding entries and settings in one SQLite file."""

    def __init__(self, path: Union[str, "PathLike[str]"], master_key: MasterKey) -> None:
        self.master_key = master_key
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(str(path), check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"init failed: {exc}") from exc
        try:
            with self._conn:
                for table, key_col, value_col in (("vault", "id", "data"), ("settings", "key", "value")):
                    self._conn.execute(
                        f"CREATE TABLE IF NOT EXISTS {table} "
                        f"({key_col} TEXT PRIMARY KEY, {value_col} TEXT NOT NULL)"
                    )
                self._conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
                    (MODE_KEY, CryptoMode.CLASSICAL.value),
                )
        except sqlite3.Error as exc:
            self._conn.close()
            raise StorageError(f"init failed: {exc}") from exc

    def close(self) -> None:
        """Close the underlying database."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "VaultStore":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def get_crypto_mode(self) -> CryptoMode:
        """Return the stored crypto mode, or the default when none is stored."""
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM settings WHERE key = ?", (MODE_KEY,)
            ).fetchone()
        if row is None:
            return DEFAULT_CRYPTO_MODE
        try:
            return CryptoMode(row[0])
        except ValueError as exc:
            raise StorageError("invalid crypto mode") from exc

    def set_crypto_mode(self, mode: str) -> None:
        """Persist ``mode`` as the active crypto mode."""
        if mode not in (CryptoMode.CLASSICAL, CryptoMode.QUANTUM_SAFE):
            raise StorageError("invalid crypto mode")
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (MODE_KEY, CryptoMode(mode).value),
            )

    def save_key(self, entry: VaultEntry) -> VaultEntry:
        """Store ``entry`` stamped with the current time; return the stored copy."""
        stored = dataclasses.replace(entry, created_at=datetime.now().astimezone())
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO vault (id, data) VALUES (?, ?)",
                (stored.id, stored.to_json()),
            )
        return stored

    def get_key(self, entry_id: str) -> VaultEntry:
        """Return the entry stored under ``entry_id``."""
        with self._lock:
            row = self._conn.execute("SELECT data FROM vault WHERE id = ?", (entry_id,)).fetchone()
        if row is None:
            raise EntryNotFoundError(entry_id)
        return VaultEntry.from_json(row[0])

    def update_vault_entry(self, entry_id: str, entry: VaultEntry) -> None:
        """Write ``entry`` under ``entry_id`` as it is."""
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO vault (id, data) VALUES (?, ?)",
                (entry_id, entry.to_json()),
            )

    def re_encrypt_all_vault_entries(self, new_mode: str) -> None:
        """Re-seal every entry under ``new_mode``, all or nothing."""
        with self._lock, self._conn:
            rows = self._conn.execute("SELECT id, data FROM vault ORDER BY id").fetchall()
            for entry_id, data in rows:
                entry = VaultEntry.from_json(data)
                log.info("rekey", "decrypting key with old mode: %s id=%s", entry.crypto_mode, entry.id)
                plain_key = _decrypt_entry(self.master_key, entry)
                try:
                    _seal_entry(self.master_key, entry, plain_key, new_mode)
                except (MasterKeyError, ValueError) as exc:
                    log.error("rekey", "failed to encrypt key: %s", exc)
                    raise StorageError(str(exc)) from exc
                self._conn.execute(
                    "UPDATE vault SET data = ? WHERE id = ?", (entry.to_json(), entry_id)
                )