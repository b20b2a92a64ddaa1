# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: BIP141; BIP143; BIP144
from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidArgument, InvalidTransactionReference, SerializationFailure
from ..utils import config as CFG
from ..utils.helpers import ByteReader, Script, hash256, serialize_tx, serialize_tx_for_txid, to_bytes


def parse_txid(txid) -> bytes:
    """Accept a 32-byte txid (display order) or its 64-char hex form."""
    if isinstance(txid, str):
        try:
            txid = bytes.fromhex(txid)
        except ValueError:
            raise InvalidTransactionReference("txid is not hex", txid=txid) from None
    if not isinstance(txid, (bytes, bytearray)) or len(txid) != CFG.TXID_BYTES:
        raise InvalidTransactionReference("txid must be 32 bytes")
    return bytes(txid)


@dataclass(frozen=True)
class OutPoint:
    txid: bytes
    vout: int

    def __post_init__(self):
        object.__setattr__(self, "txid", parse_txid(self.txid))
        if not isinstance(self.vout, int) or not (0 <= self.vout <= 0xFFFFFFFF):
            raise InvalidTransactionReference("vout out of range", vout=self.vout)

    @property
    def txid_hex(self) -> str:
        return self.txid.hex()

    def __str__(self):
        return f"{self.txid_hex}:{self.vout}"


class Tx:
    def __init__(self, version: int = CFG.TX_VERSION, locktime: int = 0, inputs=None, outputs=None):
        self.version = int(version)
        self.inputs = list(inputs or [])
        self.outputs = list(outputs or [])
        self.locktime = int(locktime)
        if not (0 <= self.locktime <= 0xFFFFFFFF):
            raise InvalidArgument("locktime out of range", locktime=locktime)

    # -------- IDs ----------

    @property
    def txid(self) -> bytes:
        return hash256(serialize_tx_for_txid(self))[::-1]

    @property
    def txid_hex(self) -> str:
        return self.txid.hex()

    @property
    def wtxid(self) -> bytes:
        return hash256(serialize_tx(self, include_witness=True))[::-1]

    def total_output(self) -> int:
        return sum(o.amount for o in self.outputs)

    def find_input(self, outpoint: OutPoint) -> int:
        for i, txin in enumerate(self.inputs):
            if txin.txid == outpoint.txid and txin.vout == outpoint.vout:
                return i
        raise InvalidTransactionReference("outpoint not spent by transaction", outpoint=str(outpoint))

    # -------- Weight ----------

    def weight(self) -> int:
        base = len(serialize_tx_for_txid(self))
        total = len(serialize_tx(self, include_witness=True))
        return base * 3 + total

    def vsize(self) -> int:
        return (self.weight() + 3) // 4

    # -------- Witness ----------

    def copy(self) -> "Tx":
        inputs = [TxIn(i.txid, i.vout, i.script_sig, i.sequence, list(i.witness)) for i in self.inputs]
        outputs = [TxOut(o.amount, o.script_pubkey) for o in self.outputs]
        return Tx(self.version, self.locktime, inputs, outputs)

    def with_witness(self, index: int, witness: list) -> "Tx":
        if not (0 <= index < len(self.inputs)):
            raise InvalidArgument("input index out of range", index=index, inputs=len(self.inputs))
        out = self.copy()
        out.inputs[index].witness = [bytes(w) for w in witness]
        return out

    # -------- Serde ----------

    def serialize(self, include_witness: bool = True) -> bytes:
        return serialize_tx(self, include_witness=include_witness)

    @classmethod
    def parse(cls, raw) -> "Tx":
        rd = ByteReader(to_bytes(raw))
        version = rd.read_int(4)
        segwit = rd.peek(2) == b"\x00\x01"
        if segwit:
            rd.read(2)
        inputs = []
        for _ in range(rd.read_varint()):
            txid = rd.read(32)[::-1]
            vout = rd.read_int(4)
            script_sig = rd.read_var_bytes()
            sequence = rd.read_int(4)
            inputs.append(TxIn(txid, vout, script_sig=script_sig, sequence=sequence))
        outputs = []
        for _ in range(rd.read_varint()):
            amount = rd.read_int(8)
            outputs.append(TxOut(amount, rd.read_var_bytes()))
        if segwit:
            for txin in inputs:
                txin.witness = [rd.read_var_bytes() for _ in range(rd.read_varint())]
        locktime = rd.read_int(4)
        if not rd.at_end():
            raise SerializationFailure("trailing bytes after transaction", extra=len(rd.data) - rd.pos)
        return cls(version=version, locktime=locktime, inputs=inputs, outputs=outputs)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "inputs": [txin.to_dict() for txin in self.inputs],
            "outputs": [txout.to_dict() for txout in self.outputs],
            "locktime": self.locktime,
            "txid": self.txid_hex,}

    @classmethod
    def from_dict(cls, data: dict):
        if isinstance(data, Tx):
            return data
        if not isinstance(data, dict):
            raise TypeError("from_dict expects dict or Tx")
        try:
            inputs = [TxIn.from_dict(x) for x in data.get("inputs", [])]
            outputs = [TxOut.from_dict(x) for x in data.get("outputs", [])]
            return cls(
                version=data.get("version", CFG.TX_VERSION),
                inputs=inputs,
                outputs=outputs,
                locktime=data.get("locktime", 0),)
        except (KeyError, TypeError) as exc:
            raise SerializationFailure("malformed transaction dict") from exc

    def __eq__(self, other):
        return isinstance(other, Tx) and self.serialize() == other.serialize()

    def __repr__(self):
        return f"<Tx v={self.version} vin={len(self.inputs)} vout={len(self.outputs)} lock={self.locktime}>"


class TxIn:
    def __init__(self, txid: bytes, vout: int, script_sig=b"", sequence: int = CFG.SEQUENCE_FINAL, witness: list = None):
        if not isinstance(vout, int):
            raise TypeError("vout must be an integer")
        if not isinstance(sequence, int) or not (0 <= sequence <= 0xFFFFFFFF):
            raise InvalidArgument("sequence out of range", sequence=sequence)

        self.txid = parse_txid(txid)
        self.vout = int(vout)
        self.script_sig = to_bytes(script_sig)
        self.sequence = int(sequence)
        self.witness = list(witness or [])

    @property
    def outpoint(self) -> OutPoint:
        return OutPoint(self.txid, self.vout)

    def to_dict(self) -> dict:
        return {
            "txid": self.txid.hex(),
            "vout": self.vout,
            "script_sig": self.script_sig.hex(),
            "sequence": self.sequence,
            "witness": [bytes(w).hex() for w in self.witness],}

    @classmethod
    def from_dict(cls, data: dict):
        if not isinstance(data, dict):
            raise TypeError("TxIn.from_dict expects dict")
        return cls(
            txid=data["txid"],
            vout=int(data["vout"]),
            script_sig=bytes.fromhex(data.get("script_sig", "")),
            sequence=int(data.get("sequence", CFG.SEQUENCE_FINAL)),
            witness=[bytes.fromhex(w) for w in data.get("witness", [])],)

    def __repr__(self):
        return f"<TxIn {self.txid.hex()}:{self.vout} seq={self.sequence:#x} wit={len(self.witness)}>"


class TxOut:
    def __init__(self, amount: int, script_pubkey):
        if not isinstance(amount, int) or amount < 0:
            raise InvalidArgument("amount must be integer >= 0", amount=amount)
        if not isinstance(script_pubkey, (bytes, bytearray, Script)):
            raise TypeError("script_pubkey must be bytes or Script")

        self.amount = amount
        self.script_pubkey = to_bytes(script_pubkey)

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "script_pubkey": self.script_pubkey.hex(),}

    @classmethod
    def from_dict(cls, data: dict):
        if not isinstance(data, dict):
            raise TypeError("TxOut.from_dict expects dict")
        spk = data.get("script_pubkey")
        if not isinstance(spk, str):
            raise TypeError("Unsupported script_pubkey format")
        return cls(amount=int(data["amount"]), script_pubkey=bytes.fromhex(spk))

    def __eq__(self, other):
        return isinstance(other, TxOut) and (self.amount, self.script_pubkey) == (other.amount, other.script_pubkey)

    def __repr__(self):
        return f"<TxOut amt={self.amount} spk={self.script_pubkey.hex()}>"
