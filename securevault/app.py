"""HTTP interface of the key vault."""

from __future__ import annotations

import argparse
import binascii
import functools
import json
import os
import sqlite3
import uuid
from typing import Any, Callable, Optional, Sequence

from flask import Flask, Response, g, jsonify, request

from securevault import envelope, log
from securevault.auth import AuthError, issue_token, user_id_from_header
from securevault.masterkey import MasterKey, MasterKeyError
from securevault.models import CryptoMode, VaultEntry, is_valid_crypto_mode, to_crypto_mode, utc_now
from securevault.ratelimit import RateLimiter
from securevault.storage import DEFAULT_DB_PATH, StorageError, VaultStore
from securevault.validate import InvalidKeyError, validate_public_key

DEFAULT_PORT = "8080"
_INVALID_MODE = "Invalid mode: must be 'classical' or 'quantum-safe'"


class _BadKeyData(ValueError):
    """Raised when submitted key text does not match its declared encoding."""


class _UnknownEncoding(ValueError):
    """Raised when a key encoding is neither hex nor string."""


def _error(message: str, status: int) -> Response:
    return Response(message + "\n", status=status, mimetype="text/plain")


def _read_body(names: Sequence[str]) -> Optional[dict[str, str]]:
    """Parse the request body as a JSON object of string fields, or return None."""
    try:
        data = json.loads(request.get_data())
    except (ValueError, UnicodeDecodeError):
        return None
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return None
    result: dict[str, str] = {}
    for name in names:
        value = data.get(name)
        if value is None:
            value = ""
        elif not isinstance(value, str):
            return None
        result[name] = value
    return result


def _decode_key(text: str, encoding: str) -> bytes:
    if encoding == "hex":
        try:
            return binascii.unhexlify(text.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise _BadKeyData(str(exc)) from exc
    if encoding == "string":
        return text.encode("utf-8")
    raise _UnknownEncoding(encoding)


def _seal_into(master_key: MasterKey, entry: VaultEntry, plain_key: bytes, mode: CryptoMode) -> None:
    """Encrypt ``plain_key`` into ``entry`` under ``mode``, clearing the other mode's fields."""
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
    else:
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
    entry.crypto_mode = mode.value


def _open_entry(master_key: MasterKey, entry: VaultEntry, mode: CryptoMode) -> bytes:
    if mode == CryptoMode.CLASSICAL:
        return envelope.decrypt_with_ephemeral_ecc(
            master_key,
            entry.ciphertext or b"",
            entry.nonce or b"",
            entry.encrypted_ephemeral_priv_key or b"",
            entry.ephemeral_priv_nonce or b"",
        )
    return envelope.decrypt_with_ephemeral_kyber(
        master_key,
        entry.ciphertext or b"",
        entry.nonce or b"",
        entry.kyber_ciphertext or b"",
        entry.encrypted_kyber_priv_key or b"",
        entry.kyber_priv_nonce or b"",
    )


def create_app(
    store: VaultStore,
    master_key: MasterKey,
    jwt_secret: str,
    limiter: Optional[RateLimiter] = None,
) -> Flask:
    """Build the web application serving the vault held in ``store``."""
    if not jwt_secret:
        raise AuthError("JWT_SECRET is not set in environment")
    limiter = RateLimiter() if limiter is None else limiter
    app = Flask("securevault")

    def guarded(secure: bool) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorate(view: Callable[..., Any]) -> Callable[..., Any]:
            @functools.wraps(view)
            def wrapper(**kwargs: Any) -> Any:
                if not limiter.allow(request.remote_addr or ""):
                    return _error("Too many requests", 429)
                if secure:
                    try:
                        g.user_id = user_id_from_header(
                            request.headers.get("Authorization"), jwt_secret
                        )
                    except AuthError as exc:
                        return _error(str(exc), 401)
                return view(**kwargs)

            return wrapper

        return decorate

    @app.errorhandler(404)
    def not_found(_exc: Exception) -> Response:
        return _error("404 page not found", 404)

    @app.errorhandler(405)
    def not_allowed(_exc: Exception) -> Response:
        return Response("", status=405)

    @app.route("/healthz")
    def healthz() -> Response:
        return Response("ok", mimetype="text/plain")

    @app.route("/auth/token", methods=["POST"])
    @guarded(secure=False)
    def get_token() -> Any:
        body = _read_body(["user_id"])
        if body is None:
            return _error("invalid JSON", 400)
        try:
            token = issue_token(body["user_id"], jwt_secret)
        except AuthError as exc:
            return _error(str(exc), 500)
        return jsonify({"token": token})

    @app.route("/vault/store", methods=["POST"])
    @guarded(secure=True)
    def store_key() -> Any:
        body = _read_body(["key", "label", "key_type", "key_encoding"])
        if body is None:
            return _error("Invalid request body", 400)
        try:
            mode = store.get_crypto_mode()
        except (StorageError, sqlite3.Error):
            return _error("Cannot read crypto mode", 500)
        try:
            decoded = _decode_key(body["key"], body["key_encoding"])
        except _UnknownEncoding:
            return _error("Invalid key encoding", 400)
        except _BadKeyData as exc:
            log.warn("vault", "%s", exc)
            return _error("Invalid key format", 400)
        try:
            validate_public_key(decoded, body["key_type"])
        except InvalidKeyError as exc:
            return _error(str(exc), 400)

        entry = VaultEntry(
            id=str(uuid.uuid4()),
            label=body["label"],
            user_id=g.user_id,
            key_type=body["key_type"],
            key_encoding=body["key_encoding"],
            crypto_mode=mode.value,
            created_at=utc_now(),
        )
        try:
            _seal_into(master_key, entry, decoded, mode)
        except (MasterKeyError, ValueError):
            failure = "Encryption failed" if mode == CryptoMode.CLASSICAL else "Kyber encryption failed"
            return _error(failure, 500)
        try:
            store.save_key(entry)
        except (StorageError, sqlite3.Error):
            return _error("Failed to save entry", 500)

        log.info("vault", "Stored key: id=%s user=%s", entry.id, entry.user_id)
        return jsonify({"id": entry.id}), 201

    @app.route("/vault/retrive/<entry_id>", methods=["GET"])
    @guarded(secure=True)
    def get_key(entry_id: str) -> Any:
        try:
            entry = store.get_key(entry_id)
        except (StorageError, sqlite3.Error, ValueError):
            return _error("Vault entry not found", 404)
        if not is_valid_crypto_mode(entry.crypto_mode):
            return _error("Unsupported mode", 400)
        try:
            plain_key = _open_entry(master_key, entry, to_crypto_mode(entry.crypto_mode))
        except (MasterKeyError, ValueError) as exc:
            return _error("Decryption failed: " + str(exc), 500)

        if entry.key_encoding == "hex":
            encoded = plain_key.hex()
        elif entry.key_encoding == "string":
            encoded = plain_key.decode("utf-8", errors="replace")
        else:
            return _error("Unsupported key_encoding", 500)

        log.info("vault", "Get key: id=%s user=%s", entry_id, entry.user_id)
        return jsonify({"id": entry.id, "key": encoded})

    @app.route("/vault/set-mode", methods=["POST"])
    @guarded(secure=True)
    def set_crypto_mode() -> Any:
        body = _read_body(["mode"])
        if body is None:
            return _error("Invalid JSON body", 400)
        requested = body["mode"]
        if not is_valid_crypto_mode(requested):
            return _error(_INVALID_MODE, 400)
        try:
            current = store.get_crypto_mode()
        except (StorageError, sqlite3.Error):
            return _error("Failed to get current crypto mode", 500)
        mode = to_crypto_mode(requested)

        if mode == current:
            return jsonify({"message": "Mode unchanged — already in " + requested, "mode": requested})

        try:
            store.re_encrypt_all_vault_entries(mode)
        except (StorageError, sqlite3.Error) as exc:
            return _error("Failed to re-encrypt vault keys: " + str(exc), 500)
        try:
            store.set_crypto_mode(mode)
        except (StorageError, sqlite3.Error):
            return _error("Failed to update mode", 500)

        log.info("mode", "toggled crypto mode to %s", requested)
        return jsonify({"message": "Crypto mode updated and all keys re-encrypted", "mode": requested})

    @app.route("/vault/get-mode", methods=["GET"])
    @guarded(secure=True)
    def get_crypto_mode() -> Any:
        try:
            mode = store.get_crypto_mode()
        except (StorageError, sqlite3.Error):
            return _error("Failed to retrieve crypto mode", 500)
        return jsonify({"mode": mode.value})

    @app.route("/vault/rotate/<entry_id>", methods=["POST"])
    @guarded(secure=True)
    def rotate_key(entry_id: str) -> Any:
        body = _read_body(["key", "key_type", "key_encoding"])
        if body is None:
            return _error("Invalid JSON body", 400)
        try:
            raw_key = _decode_key(body["key"], body["key_encoding"])
        except _UnknownEncoding:
            return _error("Unsupported key_encoding", 400)
        except _BadKeyData:
            return _error("Invalid key encoding data", 400)
        try:
            validate_public_key(raw_key, body["key_type"])
        except InvalidKeyError:
            return _error("Invalid key", 400)
        try:
            mode = store.get_crypto_mode()
        except (StorageError, sqlite3.Error):
            return _error("Could not determine current crypto mode", 500)
        try:
            entry = store.get_key(entry_id)
        except (StorageError, sqlite3.Error, ValueError):
            return _error("Vault entry not found", 404)
        try:
            _seal_into(master_key, entry, raw_key, mode)
        except (MasterKeyError, ValueError) as exc:
            return _error("Encryption failed: " + str(exc), 500)
        try:
            store.update_vault_entry(entry_id, entry)
        except (StorageError, sqlite3.Error):
            return _error("Failed to rotate key", 500)

        log.info("vault", "Rotated key: id=%s user=%s", entry_id, entry.user_id)
        return jsonify({"message": "Key rotated successfully", "id": entry.id})

    return app


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Start the vault server configured from the environment."""
    parser = argparse.ArgumentParser(
        prog="securevault",
        description="Serve the key vault. Configured by PRIVATE_KEY_AES, JWT_SECRET, VAULT_DB and PORT.",
    )
    parser.parse_args(argv)

    try:
        master_key = MasterKey.from_env()
    except MasterKeyError as exc:
        raise SystemExit(f"Failed to load AES key: {exc}") from exc

    db_path = os.environ.get("VAULT_DB") or DEFAULT_DB_PATH
    try:
        store = VaultStore(db_path, master_key)
    except StorageError as exc:
        raise SystemExit(f"Failed to init storage: {exc}") from exc

    with store:
        try:
            app = create_app(store, master_key, os.environ.get("JWT_SECRET", ""))
        except AuthError as exc:
            raise SystemExit(str(exc)) from exc
        port = os.environ.get("PORT") or DEFAULT_PORT
        log.info("", "Server running on http://localhost:%s", port)
        app.run(host="0.0.0.0", port=int(port), threaded=True)