"""Kyber-512 key encapsulation (IND-CCA2 KEM with implicit rejection)."""

from __future__ import annotations

import hashlib
import hmac
import secrets

N, Q, K = 256, 3329, 2
ETA1, ETA2, DU, DV = 3, 2, 10, 4
POLY_BYTES = 384
SYMBYTES = 32
PUBLIC_KEY_SIZE = K * POLY_BYTES + SYMBYTES
SECRET_KEY_SIZE = K * POLY_BYTES + PUBLIC_KEY_SIZE + 2 * SYMBYTES
CIPHERTEXT_SIZE = K * DU * N // 8 + DV * N // 8

Poly = list[int]


def _bitrev7(value: int) -> int:
    return int(f"{value:07b}"[::-1], 2)


_ZETAS = [pow(17, _bitrev7(i), Q) for i in range(128)]
_GAMMAS = [pow(17, 2 * _bitrev7(i) + 1, Q) for i in range(128)]
_N_INV = pow(128, -1, Q)


def _h(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def _g(data: bytes) -> bytes:
    return hashlib.sha3_512(data).digest()


def _kdf(data: bytes) -> bytes:
    return hashlib.shake_256(data).digest(32)


def _noise(seed: bytes, nonce: int, eta: int) -> Poly:
    value = int.from_bytes(hashlib.shake_256(seed + bytes([nonce])).digest(64 * eta), "little")
    mask = (1 << eta) - 1
    out = []
    for i in range(N):
        chunk = value >> (2 * eta * i)
        out.append((bin(chunk & mask).count("1") - bin((chunk >> eta) & mask).count("1")) % Q)
    return out


def _add(a: Poly, b: Poly, sign: int = 1) -> Poly:
    return [(x + sign * y) % Q for x, y in zip(a, b)]


def _ntt(poly: Poly) -> Poly:
    f, k, length = list(poly), 1, 128
    while length >= 2:
        for start in range(0, N, 2 * length):
            zeta, k = _ZETAS[k], k + 1
            for j in range(start, start + length):
                t = zeta * f[j + length] % Q
                f[j + length], f[j] = (f[j] - t) % Q, (f[j] + t) % Q
        length //= 2
    return f


def _inv_ntt(poly: Poly) -> Poly:
    f, k, length = list(poly), 127, 2
    while length <= 128:
        for start in range(0, N, 2 * length):
            zeta, k = _ZETAS[k], k - 1
            for j in range(start, start + length):
                t = f[j]
                f[j] = (t + f[j + length]) % Q
                f[j + length] = zeta * (f[j + length] - t) % Q
        length *= 2
    return [x * _N_INV % Q for x in f]


def _dot(row: list[Poly], vec: list[Poly]) -> Poly:
    acc = [0] * N
    for a, b in zip(row, vec):
        prod = []
        for gamma, a0, a1, b0, b1 in zip(_GAMMAS, a[0::2], a[1::2], b[0::2], b[1::2]):
            prod += [(a0 * b0 + a1 * b1 * gamma) % Q, (a0 * b1 + a1 * b0) % Q]
        acc = _add(acc, prod)
    return acc


def _encode(poly: Poly, bits: int) -> bytes:
    return sum(c << (bits * i) for i, c in enumerate(poly)).to_bytes(N * bits // 8, "little")


def _decode(data: bytes, bits: int) -> Poly:
    value, mask = int.from_bytes(data, "little"), (1 << bits) - 1
    return [(value >> (bits * i)) & mask for i in range(N)]


def _split(data: bytes, size: int, bits: int) -> list[Poly]:
    return [_decode(data[i:i + size], bits) for i in range(0, len(data), size)]


def _compress(x: int, bits: int) -> int:
    return (((x << bits) + Q // 2) // Q) & ((1 << bits) - 1)


def _decompress(y: int, bits: int) -> int:
    return (y * Q + (1 << (bits - 1))) >> bits


def _sample_ntt(seed: bytes, x: int, y: int) -> Poly:
    xof = hashlib.shake_128(seed + bytes([x, y]))
    length = 504
    while True:
        stream = xof.digest(length)
        coeffs: Poly = []
        for b0, b1, b2 in zip(stream[0::3], stream[1::3], stream[2::3]):
            for c in (b0 | (b1 & 0x0F) << 8, b1 >> 4 | b2 << 4):
                if c < Q and len(coeffs) < N:
                    coeffs.append(c)
            if len(coeffs) == N:
                return coeffs
        length *= 2


def _matrix(rho: bytes, transposed: bool) -> list[list[Poly]]:
    return [[_sample_ntt(rho, *((i, j) if transposed else (j, i))) for j in range(K)] for i in range(K)]


def _cpa_keygen(seed: bytes) -> tuple[bytes, bytes]:
    expanded = _g(seed)
    rho, sigma = expanded[:SYMBYTES], expanded[SYMBYTES:]
    s = [_ntt(_noise(sigma, n, ETA1)) for n in range(K)]
    e = [_ntt(_noise(sigma, K + n, ETA1)) for n in range(K)]
    t = [_add(_dot(row, s), err) for row, err in zip(_matrix(rho, False), e)]
    return b"".join(_encode(p, 12) for p in t) + rho, b"".join(_encode(p, 12) for p in s)


def _cpa_encrypt(public_key: bytes, message: bytes, coins: bytes) -> bytes:
    t = [[c % Q for c in p] for p in _split(public_key[:K * POLY_BYTES], POLY_BYTES, 12)]
    r = [_ntt(_noise(coins, n, ETA1)) for n in range(K)]
    e1 = [_noise(coins, K + n, ETA2) for n in range(K)]
    e2 = _noise(coins, 2 * K, ETA2)
    u = [_add(_inv_ntt(_dot(row, r)), err) for row, err in zip(_matrix(public_key[K * POLY_BYTES:], True), e1)]
    mu = [_decompress(bit, 1) for bit in _decode(message, 1)]
    v = _add(_add(_inv_ntt(_dot(t, r)), e2), mu)
    c1 = b"".join(_encode([_compress(x, DU) for x in p], DU) for p in u)
    return c1 + _encode([_compress(x, DV) for x in v], DV)


def _cpa_decrypt(secret_key: bytes, ciphertext: bytes) -> bytes:
    split = K * DU * N // 8
    u = [[_decompress(x, DU) for x in p] for p in _split(ciphertext[:split], DU * N // 8, DU)]
    v = [_decompress(x, DV) for x in _decode(ciphertext[split:], DV)]
    s = [[c % Q for c in p] for p in _split(secret_key, POLY_BYTES, 12)]
    w = _add(v, _inv_ntt(_dot(s, [_ntt(p) for p in u])), -1)
    return _encode([_compress(x, 1) for x in w], 1)


def generate_keypair() -> tuple[bytes, bytes]:
    """Generate a fresh key pair; return ``(public_key, secret_key)``."""
    public_key, cpa_secret = _cpa_keygen(secrets.token_bytes(SYMBYTES))
    return public_key, cpa_secret + public_key + _h(public_key) + secrets.token_bytes(SYMBYTES)


def encapsulate(public_key: bytes) -> tuple[bytes, bytes]:
    """Encapsulate a shared secret to ``public_key``; return ``(ciphertext, shared_secret)``."""
    public_key = bytes(public_key)
    if len(public_key) != PUBLIC_KEY_SIZE:
        raise ValueError("invalid Kyber512 public key length")
    message = _h(secrets.token_bytes(SYMBYTES))
    kr = _g(message + _h(public_key))
    ciphertext = _cpa_encrypt(public_key, message, kr[SYMBYTES:])
    return ciphertext, _kdf(kr[:SYMBYTES] + _h(ciphertext))


def decapsulate(secret_key: bytes, ciphertext: bytes) -> bytes:
    """Recover the shared secret from ``ciphertext`` using ``secret_key``."""
    secret_key, ciphertext = bytes(secret_key), bytes(ciphertext)
    if len(secret_key) != SECRET_KEY_SIZE:
        raise ValueError("invalid Kyber512 secret key length")
    if len(ciphertext) != CIPHERTEXT_SIZE:
        raise ValueError("invalid Kyber512 ciphertext length")
    pk_start, pk_end = K * POLY_BYTES, K * POLY_BYTES + PUBLIC_KEY_SIZE
    public_key = secret_key[pk_start:pk_end]
    message = _cpa_decrypt(secret_key[:pk_start], ciphertext)
    kr = _g(message + secret_key[pk_end:pk_end + SYMBYTES])
    expected = _cpa_encrypt(public_key, message, kr[SYMBYTES:])
    prefix = kr[:SYMBYTES] if hmac.compare_digest(ciphertext, expected) else secret_key[pk_end + SYMBYTES:]
    return _kdf(prefix + _h(ciphertext))