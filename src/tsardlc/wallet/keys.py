# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: BIP32; BIP39 (seed derivation); BIP44 path notation
from __future__ import annotations

import hashlib, hmac
from dataclasses import dataclass
from typing import Optional, Union

import base58
from mnemonic import Mnemonic

from ..crypto.secp import (base_mul, bytes_from_int, get_secp_context, int_from_bytes, point_add,
                           point_from_bytes, point_to_bytes)
from ..errors import ExtendedKeyError, InvalidArgument, InvalidKey
from ..utils import config as CFG
from ..utils.helpers import hash160, to_bytes
from ..utils.tsar_logging import get_ctx_logger

log = get_ctx_logger("tsardlc.wallet.keys")

EXTENDED_KEY_SIZE = 78


def _check_network(network: str) -> str:
    if network not in CFG.NETWORKS:
        raise InvalidArgument("unknown network", network=network)
    return network

def _hmac_sha512(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha512).digest()

def _ser32(i: int) -> bytes:
    return i.to_bytes(4, "big")


# -----------------------------
# BIP39 seed
# -----------------------------

def mnemonic_to_seed(phrase: str, passphrase: Optional[str] = None) -> bytes:
    if not isinstance(phrase, str) or not Mnemonic(CFG.BIP39_LANGUAGE).check(phrase):
        raise ExtendedKeyError("invalid mnemonic phrase")
    return Mnemonic.to_seed(phrase, passphrase=passphrase or "")


# -----------------------------
# Paths
# -----------------------------

def parse_path(path: str) -> list[int]:
    """'m/84h/0'/0/5' -> child indexes. A leading 'm' is optional."""
    parts = [p for p in path.strip().split("/") if p]
    if parts and parts[0] in ("m", "M"):
        parts = parts[1:]
    out = []
    for part in parts:
        hardened = part[-1] in ("'", "h", "H")
        digits = part[:-1] if hardened else part
        if not digits.isdigit():
            raise ExtendedKeyError("invalid derivation path", path=path)
        index = int(digits)
        if index >= CFG.HARDENED_OFFSET:
            raise ExtendedKeyError("child index out of range", path=path)
        out.append(index + CFG.HARDENED_OFFSET if hardened else index)
    return out


# -----------------------------
# Extended keys
# -----------------------------

@dataclass(frozen=True)
class ExtendedPublicKey:
    network: str
    depth: int
    parent_fingerprint: bytes
    child_number: int
    chain_code: bytes
    public_key: bytes

    @property
    def fingerprint(self) -> bytes:
        return hash160(self.public_key)[:4]

    def derive_child(self, index: int) -> "ExtendedPublicKey":
        if index >= CFG.HARDENED_OFFSET:
            raise ExtendedKeyError("hardened derivation requires a private key", index=index)
        I = _hmac_sha512(self.chain_code, self.public_key + _ser32(index))
        il = int_from_bytes(I[:32])
        if il >= get_secp_context().n:
            raise ExtendedKeyError("invalid child key", index=index)
        child = point_add(base_mul(il), point_from_bytes(self.public_key))
        if child is None:
            raise ExtendedKeyError("invalid child key", index=index)
        return ExtendedPublicKey(self.network, self.depth + 1, self.fingerprint, index,
                                 I[32:], point_to_bytes(child))

    def derive_path(self, path: str) -> "ExtendedPublicKey":
        key = self
        for index in parse_path(path):
            key = key.derive_child(index)
        return key

    def serialize(self) -> bytes:
        return (CFG.XPUB_VERSIONS[self.network] + bytes([self.depth]) + self.parent_fingerprint
                + _ser32(self.child_number) + self.chain_code + self.public_key)

    def to_base58(self) -> str:
        return base58.b58encode_check(self.serialize()).decode("ascii")


@dataclass(frozen=True)
class ExtendedPrivateKey:
    network: str
    depth: int
    parent_fingerprint: bytes
    child_number: int
    chain_code: bytes
    secret: bytes

    def __repr__(self):
        return f"<ExtendedPrivateKey {self.network} depth={self.depth} child={self.child_number}>"

    @classmethod
    def from_seed(cls, seed: bytes, network: str) -> "ExtendedPrivateKey":
        seed = to_bytes(seed)
        _check_network(network)
        if not (16 <= len(seed) <= 64):
            raise ExtendedKeyError("seed must be 16..64 bytes", length=len(seed))
        I = _hmac_sha512(CFG.BIP32_SEED_KEY, seed)
        k = int_from_bytes(I[:32])
        if not (1 <= k < get_secp_context().n):
            raise ExtendedKeyError("seed yields an invalid master key")
        return cls(network, 0, b"\x00" * 4, 0, I[32:], I[:32])

    @property
    def public_key(self) -> bytes:
        return point_to_bytes(base_mul(int_from_bytes(self.secret)))

    @property
    def fingerprint(self) -> bytes:
        return hash160(self.public_key)[:4]

    def derive_child(self, index: int) -> "ExtendedPrivateKey":
        n = get_secp_context().n
        if index >= CFG.HARDENED_OFFSET:
            data = b"\x00" + self.secret + _ser32(index)
        else:
            data = self.public_key + _ser32(index)
        I = _hmac_sha512(self.chain_code, data)
        il = int_from_bytes(I[:32])
        k = (il + int_from_bytes(self.secret)) % n
        if il >= n or k == 0:
            raise ExtendedKeyError("invalid child key", index=index)
        return ExtendedPrivateKey(self.network, self.depth + 1, self.fingerprint, index,
                                  I[32:], bytes_from_int(k))

    def derive_path(self, path: str) -> "ExtendedPrivateKey":
        key = self
        for index in parse_path(path):
            key = key.derive_child(index)
        return key

    def to_public(self) -> ExtendedPublicKey:
        return ExtendedPublicKey(self.network, self.depth, self.parent_fingerprint,
                                 self.child_number, self.chain_code, self.public_key)

    def serialize(self) -> bytes:
        return (CFG.XPRV_VERSIONS[self.network] + bytes([self.depth]) + self.parent_fingerprint
                + _ser32(self.child_number) + self.chain_code + b"\x00" + self.secret)

    def to_base58(self) -> str:
        return base58.b58encode_check(self.serialize()).decode("ascii")


ExtendedKey = Union[ExtendedPrivateKey, ExtendedPublicKey]


def _network_for(version: bytes, table: dict) -> Optional[str]:
    for name, prefix in table.items():
        if prefix == version:
            return name
    return None


def parse_extended_key(raw) -> ExtendedKey:
    raw = to_bytes(raw)
    if len(raw) != EXTENDED_KEY_SIZE:
        raise ExtendedKeyError("extended key must be 78 bytes", length=len(raw))
    version, depth = raw[0:4], raw[4]
    parent_fp, child_number = raw[5:9], int.from_bytes(raw[9:13], "big")
    chain_code, key_data = raw[13:45], raw[45:78]
    if depth == 0 and (parent_fp != b"\x00" * 4 or child_number != 0):
        raise ExtendedKeyError("master key with non-zero parent or index")

    network = _network_for(version, CFG.XPRV_VERSIONS)
    if network is not None:
        if key_data[0] != 0:
            raise ExtendedKeyError("private key data must start with 0x00")
        if not (1 <= int_from_bytes(key_data[1:]) < get_secp_context().n):
            raise ExtendedKeyError("private key out of range")
        return ExtendedPrivateKey(network, depth, parent_fp, child_number, chain_code, key_data[1:])

    network = _network_for(version, CFG.XPUB_VERSIONS)
    if network is not None:
        try:
            point_from_bytes(key_data)
        except InvalidKey as exc:
            raise ExtendedKeyError("invalid public key in extended key") from exc
        return ExtendedPublicKey(network, depth, parent_fp, child_number, chain_code, key_data)

    raise ExtendedKeyError("unknown extended key version", version=version.hex())


def parse_extended_key_b58(text: str) -> ExtendedKey:
    try:
        raw = base58.b58decode_check(text.strip())
    except ValueError as exc:
        raise ExtendedKeyError("invalid base58check extended key") from exc
    return parse_extended_key(raw)


# -----------------------------
# Byte-level wrappers
# -----------------------------

def create_extkey_from_seed(seed: bytes, network: str) -> bytes:
    return ExtendedPrivateKey.from_seed(seed, network).serialize()


def create_extkey_from_parent_path(extkey: bytes, path: str) -> bytes:
    key = parse_extended_key(extkey)
    return key.derive_path(path).serialize()


def get_pubkey_from_extkey(extkey: bytes, network: str) -> bytes:
    _check_network(network)
    return parse_extended_key(extkey).public_key


def create_xpriv_from_parent_path(seed_or_xpriv: bytes, base_derivation_path: str,
                                  network: str, path: str) -> bytes:
    raw = to_bytes(seed_or_xpriv)
    if len(raw) == 64:
        master = ExtendedPrivateKey.from_seed(raw, network)
    elif len(raw) == EXTENDED_KEY_SIZE:
        master = parse_extended_key(raw)
        if not isinstance(master, ExtendedPrivateKey):
            raise ExtendedKeyError("expected an extended private key")
        _check_network(network)
    else:
        raise ExtendedKeyError("expected a 64-byte seed or a 78-byte xpriv", length=len(raw))
    log.trace("deriving %s then %s", base_derivation_path, path)
    return master.derive_path(base_derivation_path).derive_path(path).serialize()


def get_xpub_from_xpriv(xpriv: bytes, network: str) -> bytes:
    key = parse_extended_key(xpriv)
    if not isinstance(key, ExtendedPrivateKey):
        raise ExtendedKeyError("expected an extended private key")
    _check_network(network)
    return key.to_public().serialize()
