# securevault

A small HTTP service that keeps public keys in an encrypted vault.

Every stored key is sealed with AES-256-GCM under a key derived from a fresh
ephemeral key pair. The ephemeral private key is itself sealed with a
server-wide master AES key, so nothing in the database can be read without
that master key. Two envelope schemes are available:

- **classical**: an ephemeral secp256k1 key pair; the AES key is the SHA-256
  of the private key.
- **quantum-safe**: an ephemeral Kyber512 key pair; the AES key is the SHA-256
  of the encapsulated shared secret. Kyber512 is implemented in Python in
  `securevault.kyber`.

The active scheme is a vault-wide setting, `classical` by default. Switching
it re-encrypts every stored entry under the new scheme, all or nothing.

## Installation

```
pip install .
```

## Running the server

The `securevault` command starts the server. It is configured from the
environment:

| Variable          | Meaning                                                   | Default    |
|-------------------|-----------------------------------------------------------|------------|
| `PRIVATE_KEY_AES` | master AES-256 key, 64 hex characters (required)          |            |
| `JWT_SECRET`      | HMAC secret for signing and checking tokens (required)    |            |
| `VAULT_DB`        | path of the SQLite database file                          | `vault.db` |
| `PORT`            | port to listen on, on all interfaces                      | `8080`     |

```
export PRIVATE_KEY_AES=<64 hex characters>
export JWT_SECRET=secret
securevault
```

The command exits with a message if the master key is missing or malformed,
if the database cannot be opened, or if `JWT_SECRET` is empty.

## HTTP API

Request and response bodies of successful calls are JSON; errors are answered
with a plain-text message. Every route except `/healthz` is rate limited per
client address: one request per second, with bursts of up to five; beyond
that the server answers `429`.

### Public routes

- `POST /auth/token` with `{"user_id": "alice"}` returns `{"token": "..."}`,
  an HS256 token valid for 24 hours whose subject is the given user.
- `GET /healthz` returns `ok`.

### Vault routes

These need an `Authorization: Bearer token` header carrying a valid,
unexpired HMAC-signed token such as one from `/auth/token`; otherwise the
server answers `401`.

- `POST /vault/store` with
  `{"key": "...", "label": "...", "key_type": "secp256k1", "key_encoding": "hex"}`
  stores a key under the current scheme and answers `201` with `{"id": "..."}`.
- `GET /vault/retrive/<id>` returns `{"id": "...", "key": "..."}`, the key
  in the encoding it was stored with; `404` if there is no such entry.
- `POST /vault/rotate/<id>` with `{"key": ..., "key_type": ..., "key_encoding": ...}`
  replaces the key held by an entry, sealing it under the current scheme.
- `GET /vault/get-mode` returns `{"mode": "classical"}` or
  `{"mode": "quantum-safe"}`.
- `POST /vault/set-mode` with `{"mode": "quantum-safe"}` switches the scheme and
  re-encrypts all entries. Asking for the mode already in force changes nothing.

`key_encoding` is `hex` or `string`. `key_type` is one of:

- `secp256k1`: a SEC1-encoded secp256k1 public key (compressed, uncompressed
  or hybrid form);
- `ed25519`: any 32 bytes;
- `rsa`: a PEM-encoded RSA public key in SubjectPublicKeyInfo form;
- `kyber512`, `kyber768`, `kyber1024`: accepted as given, without any check.

## Using the library

The pieces behind the server can be used on their own:

```python
from securevault.masterkey import MasterKey
from securevault.models import CryptoMode
from securevault.storage import VaultStore

master_key = MasterKey.from_env()
with VaultStore("vault.db", master_key) as store:
    print(store.get_crypto_mode())
    store.re_encrypt_all_vault_entries(CryptoMode.QUANTUM_SAFE)
    store.set_crypto_mode(CryptoMode.QUANTUM_SAFE)
```

- `securevault.masterkey`: `MasterKey` (`from_hex`, `from_env`, `encrypt`,
  `decrypt`) and `MasterKeyError`.
- `securevault.envelope`: `encrypt_with_ephemeral_ecc`,
  `decrypt_with_ephemeral_ecc`, `encrypt_with_ephemeral_kyber` and
  `decrypt_with_ephemeral_kyber`, returning `EccEnvelope` and `KyberEnvelope`.
- `securevault.kyber`: `generate_keypair`, `encapsulate` and `decapsulate`.
- `securevault.validate`: `validate_public_key`, which raises
  `InvalidKeyError` for a key that does not match its declared type, and
  `is_valid_secp256k1_pub_key`.
- `securevault.storage`: `VaultStore`, with `StorageError` and
  `EntryNotFoundError`.
- `securevault.models`: `VaultEntry`, `CryptoMode`, `is_valid_crypto_mode`,
  `to_crypto_mode`.
- `securevault.auth`: `issue_token`, `verify_token`, `user_id_from_header`.
- `securevault.ratelimit`: `TokenBucket` and `RateLimiter`.
- `securevault.app`: `create_app`, which builds the Flask application around a
  `VaultStore`, and `main`, behind the `securevault` command.

## Limitations

- The server runs on Flask's built-in server; there is no TLS and no
  production WSGI setup.
- `/auth/token` issues a token to any `user_id` without checking credentials,
  and stored entries are not restricted to the user who stored them.
- Kyber768 and Kyber1024 keys are accepted for storage but not validated;
  only Kyber512 is used for the quantum-safe envelope.

## Running the tests

```
pip install .[test]
pytest
```