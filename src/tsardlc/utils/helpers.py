# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: BIP143; BIP141; CompactSize; libsecp256k1; LowS-Policy
from __future__ import annotations
import hashlib
from typing import Tuple
from ecdsa import SECP256k1, util, VerifyingKey

from ..errors import InvalidArgument, InvalidKey, InvalidSignature, SerializationFailure
from ..utils import config as CFG

SIGHASH_ALL = CFG.SIGHASH_ALL

# opcode constants
OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_2 = 0x52
OP_CHECKSIG = 0xAC
OP_CHECKMULTISIG = 0xAE
OP_DUP = 0x76
OP_HASH160 = 0xA9
OP_EQUALVERIFY = 0x88

# ======== SIGNATURE VERIFY HELPERS ========
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
HALF_N = SECP256K1_N // 2


# -----------------------------
# SCRIPT UTIL
# -----------------------------

def to_bytes(x) -> bytes:
    if isinstance(x, Script):
        return x.serialize()
    if isinstance(x, (bytes, bytearray)):
        return bytes(x)
    if isinstance(x, str):
        try:
            return bytes.fromhex(x)
        except ValueError as exc:
            raise SerializationFailure("expected hex string", value=x[:16]) from exc
    if x is None:
        return b""
    raise TypeError(f"cannot convert {type(x).__name__} to bytes")

def p2wpkh_script_code(pubkey_hash: bytes) -> bytes:
    # BIP143 scriptCode of a P2WPKH spend, without the length prefix
    return bytes([OP_DUP, OP_HASH160, 20]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


# -----------------------------
# HASHING
# -----------------------------

def sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()

def ripemd160(b: bytes) -> bytes:
    h = hashlib.new('ripemd160')
    h.update(b)
    return h.digest()

def hash160(b: bytes) -> bytes:
    return ripemd160(sha256(b))

def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()

def tagged_hash(tag: str, data: bytes) -> bytes:
    t = sha256(tag.encode())
    return sha256(t + t + data)


# -----------------------------
# VARINT ENCODING (Bitcoin-style)
# -----------------------------

def encode_varint(i: int) -> bytes:
    if i < 0xfd:
        return i.to_bytes(1, 'little')
    elif i <= 0xffff:
        return b'\xfd' + i.to_bytes(2, 'little')
    elif i <= 0xffffffff:
        return b'\xfe' + i.to_bytes(4, 'little')
    else:
        return b'\xff' + i.to_bytes(8, 'little')

def serialize_bytes_with_len(b: bytes) -> bytes:
    return encode_varint(len(b)) + b


class ByteReader:
    """Cursor over a raw buffer; every short read is a SerializationFailure."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    def read(self, n: int) -> bytes:
        end = self.pos + n
        if n < 0 or end > len(self.data):
            raise SerializationFailure("short read", offset=self.pos, wanted=n)
        out = self.data[self.pos:end]
        self.pos = end
        return out

    def read_int(self, n: int) -> int:
        return int.from_bytes(self.read(n), 'little')

    def read_varint(self) -> int:
        first = self.read(1)[0]
        if first < 0xfd:
            return first
        if first == 0xfd:
            return self.read_int(2)
        if first == 0xfe:
            return self.read_int(4)
        return self.read_int(8)

    def read_var_bytes(self) -> bytes:
        return self.read(self.read_varint())

    def peek(self, n: int = 1) -> bytes:
        return self.data[self.pos:self.pos + n]

    def at_end(self) -> bool:
        return self.pos == len(self.data)


# ========== Low-level serializers ===========

def _serialize_outpoint(txid: bytes, vout: int) -> bytes:
    return txid[::-1] + vout.to_bytes(4, 'little')


def _serialize_txin(txin) -> bytes:
    out = b''
    out += _serialize_outpoint(txin.txid, txin.vout)
    out += serialize_bytes_with_len(to_bytes(txin.script_sig))
    out += int(txin.sequence).to_bytes(4, 'little')
    return out


def _serialize_txout(txout) -> bytes:
    out = int(txout.amount).to_bytes(8, 'little')
    out += serialize_bytes_with_len(to_bytes(txout.script_pubkey))
    return out


def _serialize_witness_for_txin(txin) -> bytes:
    wit = getattr(txin, 'witness', None) or []
    out = encode_varint(len(wit))
    for item in wit:
        out += serialize_bytes_with_len(item)
    return out


def serialize_tx(tx, include_witness: bool = True) -> bytes:
    res = b''
    res += int(tx.version).to_bytes(4, 'little')
    has_witness = include_witness and any(getattr(txin, 'witness', None) for txin in tx.inputs)
    if has_witness:
        res += b'\x00' + b'\x01'
    res += encode_varint(len(tx.inputs))
    for txin in tx.inputs:
        res += _serialize_txin(txin)
    res += encode_varint(len(tx.outputs))
    for txout in tx.outputs:
        res += _serialize_txout(txout)
    if has_witness:
        for txin in tx.inputs:
            res += _serialize_witness_for_txin(txin)
    res += int(tx.locktime).to_bytes(4, 'little')
    return res


def serialize_tx_for_txid(tx) -> bytes:
    return serialize_tx(tx, include_witness=False)


# ========== BIP143 sig-hash (SIGHASH_ALL only) ===========

def _hash_prevouts(tx) -> bytes:
    data = b''.join(_serialize_outpoint(txin.txid, txin.vout) for txin in tx.inputs)
    return hash256(data)


def _hash_sequence(tx) -> bytes:
    data = b''.join(int(txin.sequence).to_bytes(4, 'little') for txin in tx.inputs)
    return hash256(data)


def _hash_outputs(tx) -> bytes:
    data = b''.join(_serialize_txout(txout) for txout in tx.outputs)
    return hash256(data)


def bip143_sig_hash(tx, input_index: int, script_code: bytes, value: int, sighash: int = SIGHASH_ALL) -> bytes:
    if sighash != SIGHASH_ALL:
        raise NotImplementedError('Only SIGHASH_ALL supported')
    if not (0 <= input_index < len(tx.inputs)):
        raise InvalidArgument("input index out of range", index=input_index, inputs=len(tx.inputs))

    txin = tx.inputs[input_index]
    data = b''
    data += int(tx.version).to_bytes(4, 'little')
    data += _hash_prevouts(tx)
    data += _hash_sequence(tx)
    data += _serialize_outpoint(txin.txid, txin.vout)
    data += serialize_bytes_with_len(to_bytes(script_code))
    data += int(value).to_bytes(8, 'little')
    data += int(txin.sequence).to_bytes(4, 'little')
    data += _hash_outputs(tx)
    data += int(tx.locktime).to_bytes(4, 'little')
    data += int(sighash).to_bytes(4, 'little')

    return hash256(data)


# ========== Script Class ==========

class Script:

    def __init__(self, cmds: list = None):
        self.cmds = list(cmds) if cmds else []

    @staticmethod
    def _encode_pushdata(b: bytes) -> bytes:
        n = len(b)
        if n <= 75:
            return bytes([n]) + b
        elif n <= 255:
            return bytes([OP_PUSHDATA1, n]) + b
        elif n <= 65535:
            return bytes([OP_PUSHDATA2]) + n.to_bytes(2, 'little') + b
        else:
            return bytes([OP_PUSHDATA4]) + n.to_bytes(4, 'little') + b

    def serialize(self) -> bytes:
        out = bytearray()
        for cmd in self.cmds:
            if isinstance(cmd, int):
                out.append(cmd & 0xff)  # opcode
            elif isinstance(cmd, (bytes, bytearray)):
                out += self._encode_pushdata(bytes(cmd))
            else:
                raise TypeError(f"Unsupported script cmd type: {type(cmd)}")
        return bytes(out)

    def __eq__(self, other):
        return isinstance(other, Script) and self.serialize() == other.serialize()

    def __repr__(self):
        return f"<Script {self.serialize().hex()}>"


# ========== DER signatures ==========

class DerSigError(InvalidSignature):
    pass

def _int_from_bytes(b: bytes) -> int:
    return int.from_bytes(b, "big", signed=False)

def _int_to_bytes(i: int) -> bytes:
    if i < 0:
        raise ValueError("negative integer")
    if i == 0:
        return b"\x00"
    length = (i.bit_length() + 7) // 8
    return i.to_bytes(length, "big")

def is_low_s(s: int) -> bool:
    return 1 <= s <= HALF_N

def canonicalize_rs(r: int, s: int) -> Tuple[int, int]:
    if not (1 <= r < SECP256K1_N) or not (1 <= s < SECP256K1_N):
        raise DerSigError("r or s out of range")
    if s > HALF_N:
        s = SECP256K1_N - s
    return r, s

def der_encode_sig_strict(r: int, s: int) -> bytes:
    def enc_int(x: int) -> bytes:
        if x <= 0:
            raise DerSigError("DER int must be positive")
        xb = _int_to_bytes(x)
        if xb[0] & 0x80:
            xb = b"\x00" + xb
        return xb

    r_b = enc_int(r)
    s_b = enc_int(s)

    seq = b"\x02" + bytes([len(r_b)]) + r_b + b"\x02" + bytes([len(s_b)]) + s_b
    if len(seq) >= 0x80:
        raise DerSigError("sequence too long")
    return b"\x30" + bytes([len(seq)]) + seq

def der_parse_sig_strict(sig: bytes) -> Tuple[int, int]:
    if not isinstance(sig, (bytes, bytearray)):
        raise DerSigError("signature must be bytes")
    sig = bytes(sig)
    if len(sig) < 8:  # minimal DER with tiny r,s
        raise DerSigError("signature too short")

    idx = 0
    if sig[idx] != 0x30:
        raise DerSigError("bad sequence tag")
    idx += 1

    def read_len(buf: bytes, i: int) -> Tuple[int, int]:
        if i >= len(buf):
            raise DerSigError("truncated length")
        first = buf[i]
        i += 1
        if first >= 0x80:
            raise DerSigError("invalid length form")
        return first, i

    def read_int(buf: bytes, i: int, name: str) -> Tuple[int, int]:
        if i >= len(buf) or buf[i] != 0x02:
            raise DerSigError(f"missing {name} integer tag")
        i += 1
        ln, i = read_len(buf, i)
        if ln == 0 or i + ln > len(buf):
            raise DerSigError(f"invalid {name} length")
        raw = buf[i:i + ln]
        if raw[0] & 0x80:
            raise DerSigError(f"{name} negative")
        if len(raw) > 1 and raw[0] == 0x00 and not (raw[1] & 0x80):
            raise DerSigError(f"{name} non-minimal")
        val = _int_from_bytes(raw)
        if not (1 <= val < SECP256K1_N):
            raise DerSigError(f"{name} out of range")
        return val, i + ln

    seq_len, idx = read_len(sig, idx)
    if idx + seq_len != len(sig):
        raise DerSigError("superfluous data after sequence")

    r, idx = read_int(sig, idx, "r")
    s, idx = read_int(sig, idx, "s")
    if idx != len(sig):
        raise DerSigError("trailing bytes in signature")
    return r, s

def strip_sighash_flag(sig_with_type: bytes) -> Tuple[bytes, int]:
    if len(sig_with_type) < 2:
        raise DerSigError("signature missing sighash byte")
    return sig_with_type[:-1], sig_with_type[-1]

def sign_digest_der_low_s_strict(sk, digest32):
    if not isinstance(digest32, (bytes, bytearray)) or len(digest32) != 32:
        raise InvalidArgument("sign_digest_der_low_s_strict expects a 32-byte digest")

    r, s = sk.sign_digest_deterministic(
        bytes(digest32),
        sigencode=util.sigencode_strings_canonize,
        hashfunc=hashlib.sha256,)
    return der_encode_sig_strict(_int_from_bytes(r), _int_from_bytes(s))


def verify_der_strict_low_s(vk: VerifyingKey, digest32: bytes, der_sig: bytes) -> bool:
    try:
        r, s = der_parse_sig_strict(der_sig)
    except DerSigError:
        return False
    if not is_low_s(s):
        return False
    try:
        return vk.verify_digest(der_sig, digest32, sigdecode=util.sigdecode_der)
    except Exception:
        return False


def pubkey_from_bytes(pubkey: bytes) -> VerifyingKey:
    try:
        return VerifyingKey.from_string(bytes(pubkey), curve=SECP256k1)
    except Exception as exc:
        raise InvalidKey("malformed public key", length=len(pubkey)) from exc

def compress_pubkey(vk: VerifyingKey) -> bytes:
    return vk.to_string("compressed")
