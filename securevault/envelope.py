"""Envelope encryption of stored keys under ephemeral ECC or Kyber keys."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from securevault import kyber
from securevault.masterkey import MasterKey

NONCE_SIZE = 12
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@dataclass(frozen=True)
class EccEnvelope:
    """A key sealed under an ephemeral secp256k1 key."""

    ciphertext: bytes
    nonce: bytes
    enc_priv_key: bytes
    enc_priv_nonce: bytes
    eph_pub_key: bytes


@dataclass(frozen=True)
class KyberEnvelope:
    """A key sealed under a Kyber512 shared secret."""

    ciphertext: bytes
    nonce: bytes
    kem_ciphertext: bytes
    enc_priv_key: bytes
    enc_priv_nonce: bytes
    pub_key: bytes


def _seal(secret_material: bytes, plaintext: bytes) -> tuple[bytes, bytes]:
    aes_key = hashlib.sha256(secret_material).digest()
    nonce = secrets.token_bytes(NONCE_SIZE)
    return AESGCM(aes_key).encrypt(nonce, plaintext, None), nonce


def _open(secret_material: bytes, ciphertext: bytes, nonce: bytes) -> bytes:
    aes_key = hashlib.sha256(secret_material).digest()
    try:
        return AESGCM(aes_key).decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise ValueError("cipher: message authentication failed") from None


def _serialize_scalar(priv_bytes: bytes) -> bytes:
    scalar = int.from_bytes(priv_bytes, "big") % SECP256K1_ORDER
    return scalar.to_bytes(32, "big")


def encrypt_with_ephemeral_ecc(master_key: MasterKey, plain_key: bytes) -> EccEnvelope:
    """Seal ``plain_key`` with a key derived from a fresh secp256k1 private key."""
    private_key = ec.generate_private_key(ec.SECP256K1())
    priv_bytes = private_key.private_numbers().private_value.to_bytes(32, "big")
    ciphertext, nonce = _seal(priv_bytes, plain_key)
    enc_priv_key, enc_priv_nonce = master_key.encrypt(priv_bytes)
    eph_pub_key = private_key.public_key().public_bytes(
        Encoding.X962, PublicFormat.CompressedPoint
    )
    return EccEnvelope(ciphertext, nonce, enc_priv_key, enc_priv_nonce, eph_pub_key)


def decrypt_with_ephemeral_ecc(
    master_key: MasterKey,
    ciphertext: bytes,
    nonce: bytes,
    enc_priv_key: bytes,
    enc_priv_nonce: bytes,
) -> bytes:
    """Recover a key sealed by :func:`encrypt_with_ephemeral_ecc`."""
    priv_bytes = master_key.decrypt(enc_priv_key, enc_priv_nonce)
    return _open(_serialize_scalar(priv_bytes), ciphertext, nonce)


def encrypt_with_ephemeral_kyber(master_key: MasterKey, plain_key: bytes) -> KyberEnvelope:
    """Seal ``plain_key`` with a secret encapsulated to a fresh Kyber512 key pair."""
    public_key, secret_key = kyber.generate_keypair()
    kem_ciphertext, shared_secret = kyber.encapsulate(public_key)
    ciphertext, nonce = _seal(shared_secret, plain_key)
    enc_priv_key, enc_priv_nonce = master_key.encrypt(secret_key)
    return KyberEnvelope(
        ciphertext, nonce, kem_ciphertext, enc_priv_key, enc_priv_nonce, public_key
    )


def decrypt_with_ephemeral_kyber(
    master_key: MasterKey,
    ciphertext: bytes,
    nonce: bytes,
    kem_ciphertext: bytes,
    enc_priv_key: bytes,
    enc_priv_nonce: bytes,
) -> bytes:
    """Recover a key sealed by :func:`encrypt_with_ephemeral_kyber`."""
    secret_key = master_key.decrypt(enc_priv_key, enc_priv_nonce)
    shared_secret = kyber.decapsulate(secret_key, kem_ciphertext)
    return _open(shared_secret, ciphertext, nonce)