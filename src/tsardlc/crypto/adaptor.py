# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: ECDSA adaptor signatures (secp256k1-zkp ecdsa_adaptor); Chaum-Pedersen DLEQ; BIP340 tagged hashes
'''
One-time ECDSA adaptor signatures.

Wire layout (162 bytes):

    R (33) || R_a (33) || s' (32) || dleq_e (32) || dleq_s (32)

    R   = k*Y     (Y = encryption point)
    R_a = k*G
    s'  = k^-1 * (m + r*x)      r = x(R) mod n

Whoever learns y with Y = y*G turns it into a plain ECDSA signature
(r, s'/y). The DLEQ proof shows R and R_a share the same k, so the
verifier can trust R without knowing y.
'''
from __future__ import annotations

from typing import Tuple

from ..errors import CryptoOperationFailure, InvalidArgument, InvalidKey, InvalidSignature
from ..utils.helpers import canonicalize_rs, der_parse_sig_strict, tagged_hash, to_bytes
from .secp import (base_mul, bytes_from_int, get_secp_context, int_from_bytes, point_add,
                   point_from_bytes, point_mul, point_neg, point_to_bytes, secret_scalar)

ADAPTOR_SIG_LEN = 162

_TAG_NONCE = "TsarDLC/adaptor/nonce"
_TAG_DLEQ_NONCE = "TsarDLC/dleq/nonce"
_TAG_DLEQ = "DLEQ"


def _as_point(P):
    if isinstance(P, (bytes, bytearray, str)):
        return point_from_bytes(P)
    if P is None:
        raise InvalidKey("point at infinity is not a valid key")
    return P

def _scalar(value) -> int:
    if isinstance(value, int):
        return value
    return secret_scalar(value)

def _digest_int(digest32) -> int:
    m = to_bytes(digest32)
    if len(m) != 32:
        raise InvalidArgument("message digest must be 32 bytes", length=len(m))
    return int_from_bytes(m)


# -----------------------------
# DLEQ (Chaum-Pedersen)
# -----------------------------

def _dleq_challenge(Y, R_a, R, A1, A2) -> int:
    data = b"".join(point_to_bytes(P) for P in (Y, R_a, R, A1, A2))
    return int_from_bytes(tagged_hash(_TAG_DLEQ, data)) % get_secp_context().n


def dleq_prove(k: int, Y, R_a, R) -> bytes:
    """Prove R_a = k*G and R = k*Y for the same k. Returns e || s."""
    n = get_secp_context().n
    Y, R_a, R = _as_point(Y), _as_point(R_a), _as_point(R)
    seed = bytes_from_int(k) + point_to_bytes(Y) + point_to_bytes(R_a) + point_to_bytes(R)
    a = int_from_bytes(tagged_hash(_TAG_DLEQ_NONCE, seed)) % n
    if a == 0:
        raise CryptoOperationFailure("degenerate DLEQ nonce")
    e = _dleq_challenge(Y, R_a, R, base_mul(a), point_mul(Y, a))
    s = (a + e * k) % n
    return bytes_from_int(e) + bytes_from_int(s)


def dleq_verify(Y, R_a, R, proof: bytes) -> bool:
    ctx = get_secp_context()
    try:
        proof = to_bytes(proof)
        if len(proof) != 64:
            return False
        e = int_from_bytes(proof[:32])
        s = int_from_bytes(proof[32:])
        if e >= ctx.n or s >= ctx.n:
            return False
        Y, R_a, R = _as_point(Y), _as_point(R_a), _as_point(R)
        A1 = point_add(base_mul(s), point_neg(point_mul(R_a, e)))
        A2 = point_add(point_mul(Y, s), point_neg(point_mul(R, e)))
        if A1 is None or A2 is None:
            return False
        return _dleq_challenge(Y, R_a, R, A1, A2) == e
    except (InvalidKey, CryptoOperationFailure):
        return False


# -----------------------------
# Adaptor signatures
# -----------------------------

def _split(adaptor_sig) -> Tuple[object, object, int, bytes]:
    raw = to_bytes(adaptor_sig)
    if len(raw) != ADAPTOR_SIG_LEN:
        raise InvalidSignature("adaptor signature must be 162 bytes", length=len(raw))
    R = point_from_bytes(raw[0:33])
    R_a = point_from_bytes(raw[33:66])
    s_hat = int_from_bytes(raw[66:98])
    if not (1 <= s_hat < get_secp_context().n):
        raise InvalidSignature("adaptor s out of range")
    return R, R_a, s_hat, raw[98:162]


def adaptor_encrypt(secret_key, digest32, encryption_point) -> bytes:
    n = get_secp_context().n
    x = secret_scalar(secret_key)
    m = _digest_int(digest32)
    Y = _as_point(encryption_point)

    seed = to_bytes(secret_key) + point_to_bytes(Y) + to_bytes(digest32)
    k = int_from_bytes(tagged_hash(_TAG_NONCE, seed)) % n
    if k == 0:
        raise CryptoOperationFailure("degenerate adaptor nonce")

    R = point_mul(Y, k)
    R_a = base_mul(k)
    r = R.x() % n
    s_hat = pow(k, -1, n) * (m + r * x) % n
    if r == 0 or s_hat == 0:
        raise CryptoOperationFailure("degenerate adaptor signature")

    proof = dleq_prove(k, Y, R_a, R)
    return point_to_bytes(R) + point_to_bytes(R_a) + bytes_from_int(s_hat) + proof


def adaptor_verify(adaptor_sig, pubkey, digest32, encryption_point) -> bool:
    n = get_secp_context().n
    try:
        R, R_a, s_hat, proof = _split(adaptor_sig)
        X = _as_point(pubkey)
        Y = _as_point(encryption_point)
        m = _digest_int(digest32)
        if not dleq_verify(Y, R_a, R, proof):
            return False
        r = R.x() % n
        if r == 0:
            return False
        w = pow(s_hat, -1, n)
        expected = point_add(base_mul(m * w), point_mul(X, r * w))
    except (InvalidKey, InvalidSignature, InvalidArgument, CryptoOperationFailure):
        return False
    return expected is not None and expected.x() == R_a.x() and expected.y() == R_a.y()


def adaptor_decrypt(adaptor_sig, decryption_key) -> Tuple[int, int]:
    """Turn the adaptor signature into a low-S ECDSA (r, s) with the secret y."""
    n = get_secp_context().n
    R, _R_a, s_hat, _proof = _split(adaptor_sig)
    y = _scalar(decryption_key) % n
    if y == 0:
        raise InvalidKey("decryption key is zero")
    return canonicalize_rs(R.x() % n, s_hat * pow(y, -1, n) % n)


def adaptor_recover(adaptor_sig, der_signature: bytes, encryption_point) -> int:
    """Recover y from an adaptor signature and the ECDSA signature decrypted from it."""
    n = get_secp_context().n
    _R, _R_a, s_hat, _proof = _split(adaptor_sig)
    Y = _as_point(encryption_point)
    _r, s = der_parse_sig_strict(der_signature)
    y = s_hat * pow(s, -1, n) % n
    for candidate in (y, n - y):
        P = base_mul(candidate)
        if P is not None and P.x() == Y.x() and P.y() == Y.y():
            return candidate
    raise CryptoOperationFailure("signature was not decrypted from this adaptor signature")
