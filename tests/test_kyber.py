import hashlib

import pytest

from securevault import kyber

SHARED_SECRET_SIZE = 32


@pytest.fixture(scope="module")
def keypair():
    return kyber.generate_keypair()


def test_sizes(keypair):
    public_key, secret_key = keypair
    ciphertext, shared = kyber.encapsulate(public_key)
    assert len(public_key) == 800
    assert len(secret_key) == 1632
    assert len(ciphertext) == 768
    assert len(shared) == SHARED_SECRET_SIZE


def test_round_trip(keypair):
    public_key, secret_key = keypair
    ciphertext, shared = kyber.encapsulate(public_key)
    assert kyber.decapsulate(secret_key, ciphertext) == shared


def test_secret_key_embeds_public_key_and_hash(keypair):
    public_key, secret_key = keypair
    assert secret_key[-(len(public_key) + 64):-64] == public_key
    assert secret_key[-64:-32] == hashlib.sha3_256(public_key).digest()


def test_encapsulation_is_randomised(keypair):
    public_key, _ = keypair
    first = kyber.encapsulate(public_key)
    second = kyber.encapsulate(public_key)
    assert first[0] != second[0]
    assert first[1] != second[1]


def test_fresh_keypairs_differ(keypair):
    other_public, other_secret = kyber.generate_keypair()
    assert other_public != keypair[0]
    assert other_secret != keypair[1]


def test_tampered_ciphertext_gives_implicit_rejection(keypair):
    public_key, secret_key = keypair
    ciphertext, shared = kyber.encapsulate(public_key)
    tampered = bytes([ciphertext[0] ^ 1]) + ciphertext[1:]
    rejected = kyber.decapsulate(secret_key, tampered)
    assert rejected != shared
    assert len(rejected) == SHARED_SECRET_SIZE
    assert kyber.decapsulate(secret_key, tampered) == rejected


def test_wrong_secret_key_does_not_recover(keypair):
    public_key, _ = keypair
    _, other_secret = kyber.generate_keypair()
    ciphertext, shared = kyber.encapsulate(public_key)
    assert kyber.decapsulate(other_secret, ciphertext) != shared


def test_encapsulate_rejects_bad_length(keypair):
    with pytest.raises(ValueError):
        kyber.encapsulate(keypair[0][:-1])


def test_decapsulate_rejects_bad_secret_key(keypair):
    public_key, secret_key = keypair
    ciphertext, _ = kyber.encapsulate(public_key)
    with pytest.raises(ValueError):
        kyber.decapsulate(secret_key[:-1], ciphertext)


def test_decapsulate_rejects_bad_ciphertext(keypair):
    with pytest.raises(ValueError):
        kyber.decapsulate(keypair[1], b"\x00" * 10)