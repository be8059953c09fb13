import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from securevault import envelope, kyber
from securevault.masterkey import MasterKey, MasterKeyError
from securevault.validate import is_valid_secp256k1_pub_key


@pytest.fixture
def master_key():
    return MasterKey(bytes(32))


@pytest.fixture
def other_master_key():
    return MasterKey(bytes([1]) * 32)


def _flip_first(data):
    return bytes([data[0] ^ 1]) + data[1:]


def test_ecc_round_trip(master_key):
    env = envelope.encrypt_with_ephemeral_ecc(master_key, b"my key material")
    plain = envelope.decrypt_with_ephemeral_ecc(
        master_key, env.ciphertext, env.nonce, env.enc_priv_key, env.enc_priv_nonce
    )
    assert plain == b"my key material"


def test_ecc_empty_round_trip(master_key):
    env = envelope.encrypt_with_ephemeral_ecc(master_key, b"")
    plain = envelope.decrypt_with_ephemeral_ecc(
        master_key, env.ciphertext, env.nonce, env.enc_priv_key, env.enc_priv_nonce
    )
    assert plain == b""


def test_ecc_public_key_is_compressed_and_valid(master_key):
    env = envelope.encrypt_with_ephemeral_ecc(master_key, b"data")
    assert is_valid_secp256k1_pub_key(env.eph_pub_key)
    assert len(env.nonce) == envelope.NONCE_SIZE


def test_ecc_public_key_matches_sealed_private_key(master_key):
    env = envelope.encrypt_with_ephemeral_ecc(master_key, b"data")
    scalar_bytes = master_key.decrypt(env.enc_priv_key, env.enc_priv_nonce)
    scalar = int.from_bytes(scalar_bytes, byteorder="big")
    ephemeral = ec.derive_private_key(scalar, ec.SECP256K1())
    derived = ephemeral.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint)
    assert derived == env.eph_pub_key


def test_ecc_ephemeral_keys_are_fresh(master_key):
    first = envelope.encrypt_with_ephemeral_ecc(master_key, b"data")
    second = envelope.encrypt_with_ephemeral_ecc(master_key, b"data")
    assert first.eph_pub_key != second.eph_pub_key
    assert first.ciphertext != second.ciphertext


def test_ecc_tampered_ciphertext_fails(master_key):
    env = envelope.encrypt_with_ephemeral_ecc(master_key, b"data")
    with pytest.raises(ValueError):
        envelope.decrypt_with_ephemeral_ecc(
            master_key,
            _flip_first(env.ciphertext),
            env.nonce,
            env.enc_priv_key,
            env.enc_priv_nonce,
        )


def test_ecc_wrong_master_key_fails(master_key, other_master_key):
    env = envelope.encrypt_with_ephemeral_ecc(master_key, b"data")
    with pytest.raises(MasterKeyError):
        envelope.decrypt_with_ephemeral_ecc(
            other_master_key, env.ciphertext, env.nonce, env.enc_priv_key, env.enc_priv_nonce
        )


def test_kyber_round_trip(master_key):
    env = envelope.encrypt_with_ephemeral_kyber(master_key, b"another key")
    plain = envelope.decrypt_with_ephemeral_kyber(
        master_key,
        env.ciphertext,
        env.nonce,
        env.kem_ciphertext,
        env.enc_priv_key,
        env.enc_priv_nonce,
    )
    assert plain == b"another key"


def test_kyber_sealed_secret_key_matches_public_key(master_key):
    env = envelope.encrypt_with_ephemeral_kyber(master_key, b"data")
    sealed = master_key.decrypt(env.enc_priv_key, env.enc_priv_nonce)
    assert len(sealed) == kyber.SECRET_KEY_SIZE
    assert sealed[-(len(env.pub_key) + 64):-64] == env.pub_key
    assert len(env.kem_ciphertext) == kyber.CIPHERTEXT_SIZE


def test_kyber_tampered_kem_ciphertext_fails(master_key):
    env = envelope.encrypt_with_ephemeral_kyber(master_key, b"data")
    with pytest.raises(ValueError):
        envelope.decrypt_with_ephemeral_kyber(
            master_key,
            env.ciphertext,
            env.nonce,
            _flip_first(env.kem_ciphertext),
            env.enc_priv_key,
            env.enc_priv_nonce,
        )


def test_kyber_tampered_ciphertext_fails(master_key):
    env = envelope.encrypt_with_ephemeral_kyber(master_key, b"data")
    with pytest.raises(ValueError):
        envelope.decrypt_with_ephemeral_kyber(
            master_key,
            _flip_first(env.ciphertext),
            env.nonce,
            env.kem_ciphertext,
            env.enc_priv_key,
            env.enc_priv_nonce,
        )


def test_kyber_wrong_master_key_fails(master_key, other_master_key):
    env = envelope.encrypt_with_ephemeral_kyber(master_key, b"data")
    with pytest.raises(MasterKeyError):
        envelope.decrypt_with_ephemeral_kyber(
            other_master_key,
            env.ciphertext,
            env.nonce,
            env.kem_ciphertext,
            env.enc_priv_key,
            env.enc_priv_nonce,
        )