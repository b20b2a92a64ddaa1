# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: SEC2 secp256k1; BIP340; libsecp256k1
from __future__ import annotations

import threading
from typing import Optional

from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.ellipticcurve import INFINITY, Point, PointJacobi

from ..errors import CryptoOperationFailure, InvalidKey, InvalidSignature
from ..utils.helpers import tagged_hash, to_bytes


class SecpContext:
    """Curve parameters shared by every operation; never mutated after creation."""

    def __init__(self):
        self.curve_params = SECP256k1
        self.curve = SECP256k1.curve
        self.G = SECP256k1.generator
        self.n = SECP256k1.order
        self.p = SECP256k1.curve.p()

    def __repr__(self):
        return f"<SecpContext {self.curve_params.name}>"


_CTX: Optional[SecpContext] = None
_CTX_LOCK = threading.Lock()


def get_secp_context() -> SecpContext:
    global _CTX
    if _CTX is None:
        with _CTX_LOCK:
            if _CTX is None:
                _CTX = SecpContext()
    return _CTX


# -----------------------------
# Scalars
# -----------------------------

def int_from_bytes(b: bytes) -> int:
    return int.from_bytes(b, "big")

def bytes_from_int(x: int) -> bytes:
    return x.to_bytes(32, "big")

def secret_scalar(secret_key) -> int:
    raw = to_bytes(secret_key)
    if len(raw) != 32:
        raise InvalidKey("secret key must be 32 bytes", length=len(raw))
    d = int_from_bytes(raw)
    if not (1 <= d < get_secp_context().n):
        raise InvalidKey("secret key out of range")
    return d

def signing_key(secret_key) -> SigningKey:
    secret_scalar(secret_key)
    return SigningKey.from_string(to_bytes(secret_key), curve=SECP256k1)


# -----------------------------
# Points
# -----------------------------

def _jac(P) -> PointJacobi:
    # ecdsa only mixes point types reliably with PointJacobi on the left
    if isinstance(P, PointJacobi):
        return P
    return PointJacobi.from_affine(P)

def point_add(P, Q):
    """Sum of two affine points; None stands for the point at infinity."""
    if P is None:
        return Q
    if Q is None:
        return P
    R = _jac(P) + _jac(Q)
    return None if R == INFINITY else R.to_affine()

def point_mul(P, k: int):
    k %= get_secp_context().n
    if P is None or k == 0:
        return None
    R = _jac(P) * k
    return None if R == INFINITY else R.to_affine()

def base_mul(k: int):
    ctx = get_secp_context()
    k %= ctx.n
    if k == 0:
        return None
    return (ctx.G * k).to_affine()

def point_neg(P):
    if P is None:
        return None
    ctx = get_secp_context()
    return Point(ctx.curve, P.x(), ctx.p - P.y(), ctx.n)

def has_even_y(P) -> bool:
    return P.y() % 2 == 0

def point_to_bytes(P) -> bytes:
    if P is None:
        raise CryptoOperationFailure("cannot serialize the point at infinity")
    return bytes([2 + (P.y() & 1)]) + bytes_from_int(P.x())

def point_from_bytes(data):
    raw = to_bytes(data)
    if len(raw) != 33:
        raise InvalidKey("point must be 33-byte compressed", length=len(raw))
    try:
        vk = VerifyingKey.from_string(raw, curve=SECP256k1)
    except Exception as exc:
        raise InvalidKey("point not on curve") from exc
    P = vk.pubkey.point
    return Point(get_secp_context().curve, P.x(), P.y(), get_secp_context().n)

def pubkey_from_secret(secret_key) -> bytes:
    return point_to_bytes(base_mul(secret_scalar(secret_key)))


# -----------------------------
# BIP340 Schnorr
# -----------------------------

def lift_x(x_only) -> Point:
    x = to_bytes(x_only)
    if len(x) != 32:
        raise InvalidKey("x-only key must be 32 bytes", length=len(x))
    return point_from_bytes(b"\x02" + x)

def xonly(P) -> bytes:
    return bytes_from_int(P.x())

def schnorr_challenge(r_x: bytes, p_x: bytes, msg: bytes) -> int:
    return int_from_bytes(tagged_hash("BIP0340/challenge", r_x + p_x + msg)) % get_secp_context().n

def schnorr_pubkey(secret_key) -> bytes:
    return xonly(base_mul(secret_scalar(secret_key)))

def schnorr_sign_with_nonce(secret_key, nonce_secret, msg: bytes) -> bytes:
    """BIP340 signature with a caller-chosen nonce, as an oracle attests."""
    n = get_secp_context().n
    d = secret_scalar(secret_key)
    k = secret_scalar(nonce_secret)
    P = base_mul(d)
    if not has_even_y(P):
        d = n - d
    R = base_mul(k)
    if not has_even_y(R):
        k = n - k
    e = schnorr_challenge(xonly(R), xonly(P), to_bytes(msg))
    return xonly(R) + bytes_from_int((k + e * d) % n)

def schnorr_verify(pubkey_x, msg: bytes, sig: bytes) -> bool:
    ctx = get_secp_context()
    try:
        sig = to_bytes(sig)
        if len(sig) != 64:
            return False
        P = lift_x(pubkey_x)
        r = int_from_bytes(sig[:32])
        s = int_from_bytes(sig[32:])
        if r >= ctx.p or s >= ctx.n:
            return False
        e = schnorr_challenge(sig[:32], xonly(P), to_bytes(msg))
        R = point_add(base_mul(s), point_neg(point_mul(P, e)))
    except (InvalidKey, CryptoOperationFailure):
        return False
    return R is not None and has_even_y(R) and R.x() == r

def split_schnorr_signature(sig) -> tuple[bytes, int]:
    sig = to_bytes(sig)
    if len(sig) != 64:
        raise InvalidSignature("schnorr signature must be 64 bytes", length=len(sig))
    s = int_from_bytes(sig[32:])
    if s >= get_secp_context().n:
        raise InvalidSignature("schnorr s out of range")
    return sig[:32], s
