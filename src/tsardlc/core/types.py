# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: DLC-Spec Transactions.md; DLC-Spec Messaging.md
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from ..errors import InvalidArgument, InvalidKey, InvalidSignature, InvalidTransactionReference
from ..utils import config as CFG
from ..utils.helpers import pubkey_from_bytes, to_bytes
from .funding import make_funding_script, p2wsh_script_pubkey
from .tx import OutPoint, Tx, TxOut

ADAPTOR_SIGNATURE_SIZE = 162


def _check_u64(name: str, value) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not (0 <= value < 1 << 64):
        raise InvalidArgument(f"{name} must be an unsigned 64-bit integer", value=value)
    return value


def _check_pubkey(name: str, value) -> bytes:
    raw = to_bytes(value)
    if len(raw) != 33:
        raise InvalidKey(f"{name} must be a 33-byte compressed key", length=len(raw))
    pubkey_from_bytes(raw)
    return raw


@dataclass(frozen=True)
class TxInputInfo:
    outpoint: OutPoint
    max_witness_len: int
    redeem_script: bytes = b""
    serial_id: int = 0

    def __post_init__(self):
        object.__setattr__(self, "redeem_script", to_bytes(self.redeem_script))
        _check_u64("max_witness_len", self.max_witness_len)
        _check_u64("serial_id", self.serial_id)


@dataclass(frozen=True, eq=False)
class DlcInputInfo:
    """Funding output of a previous contract, spent as an input of a new one."""
    fund_tx: Tx
    fund_vout: int
    local_fund_pubkey: bytes
    remote_fund_pubkey: bytes
    fund_amount: int
    max_witness_len: int
    input_serial_id: int
    contract_id: bytes

    def __post_init__(self):
        object.__setattr__(self, "local_fund_pubkey", _check_pubkey("local_fund_pubkey", self.local_fund_pubkey))
        object.__setattr__(self, "remote_fund_pubkey", _check_pubkey("remote_fund_pubkey", self.remote_fund_pubkey))
        contract_id = to_bytes(self.contract_id)
        if len(contract_id) != CFG.CONTRACT_ID_BYTES:
            raise InvalidArgument("contract_id must be 32 bytes", length=len(contract_id))
        object.__setattr__(self, "contract_id", contract_id)
        if not (0 <= self.fund_vout < len(self.fund_tx.outputs)):
            raise InvalidTransactionReference("fund_vout not present in fund_tx", vout=self.fund_vout)
        _check_u64("fund_amount", self.fund_amount)
        _check_u64("max_witness_len", self.max_witness_len)
        _check_u64("input_serial_id", self.input_serial_id)
        if self.fund_tx.outputs[self.fund_vout].amount != self.fund_amount:
            raise InvalidArgument("fund_amount does not match the referenced output",
                                  expected=self.fund_tx.outputs[self.fund_vout].amount, got=self.fund_amount)
        expected_spk = p2wsh_script_pubkey(make_funding_script(self.local_fund_pubkey, self.remote_fund_pubkey))
        if self.fund_tx.outputs[self.fund_vout].script_pubkey != expected_spk:
            raise InvalidArgument("referenced output is not locked to these funding keys", vout=self.fund_vout)

    @property
    def outpoint(self) -> OutPoint:
        return OutPoint(self.fund_tx.txid, self.fund_vout)


@dataclass(frozen=True)
class PartyParams:
    fund_pubkey: bytes
    change_script_pubkey: bytes
    change_serial_id: int
    payout_script_pubkey: bytes
    payout_serial_id: int
    inputs: Tuple[TxInputInfo, ...]
    input_amount: int
    collateral: int
    dlc_inputs: Tuple[DlcInputInfo, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "fund_pubkey", _check_pubkey("fund_pubkey", self.fund_pubkey))
        object.__setattr__(self, "change_script_pubkey", to_bytes(self.change_script_pubkey))
        object.__setattr__(self, "payout_script_pubkey", to_bytes(self.payout_script_pubkey))
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "dlc_inputs", tuple(self.dlc_inputs))
        _check_u64("change_serial_id", self.change_serial_id)
        _check_u64("payout_serial_id", self.payout_serial_id)
        _check_u64("input_amount", self.input_amount)
        _check_u64("collateral", self.collateral)
        if self.input_amount < self.collateral:
            raise InvalidArgument("input amount below collateral",
                                  input_amount=self.input_amount, collateral=self.collateral)
        chained = sum(d.fund_amount for d in self.dlc_inputs)
        if chained > self.input_amount:
            raise InvalidArgument("DLC input amounts exceed input amount",
                                  dlc_inputs=chained, input_amount=self.input_amount)


@dataclass(frozen=True)
class Payout:
    offer: int
    accept: int

    def __post_init__(self):
        _check_u64("offer", self.offer)
        _check_u64("accept", self.accept)

    @property
    def total(self) -> int:
        return self.offer + self.accept


@dataclass(frozen=True, eq=False)
class DlcTransactions:
    fund: Tx
    cets: Tuple[Tx, ...]
    refund: Tx
    funding_script_pubkey: bytes

    def __post_init__(self):
        object.__setattr__(self, "cets", tuple(self.cets))

    @property
    def fund_vout(self) -> int:
        spk = p2wsh_script_pubkey(self.funding_script_pubkey)
        for i, out in enumerate(self.fund.outputs):
            if out.script_pubkey == spk:
                return i
        raise InvalidTransactionReference("funding output missing from fund transaction")

    @property
    def fund_outpoint(self) -> OutPoint:
        return OutPoint(self.fund.txid, self.fund_vout)

    @property
    def fund_output_value(self) -> int:
        return self.fund.outputs[self.fund_vout].amount


@dataclass(frozen=True)
class OracleInfo:
    public_key: bytes
    nonces: Tuple[bytes, ...]

    def __post_init__(self):
        pk = to_bytes(self.public_key)
        if len(pk) != 32:
            raise InvalidKey("oracle public key must be 32-byte x-only", length=len(pk))
        nonces = tuple(to_bytes(n) for n in self.nonces)
        for n in nonces:
            if len(n) != 32:
                raise InvalidKey("oracle nonce must be 32-byte x-only", length=len(n))
        object.__setattr__(self, "public_key", pk)
        object.__setattr__(self, "nonces", nonces)


@dataclass(frozen=True)
class OutcomeMessageSet:
    """Outcome digests for one CET: one inner tuple per oracle, one digest per nonce."""
    per_oracle: Tuple[Tuple[bytes, ...], ...]

    def __post_init__(self):
        per_oracle = tuple(tuple(to_bytes(m) for m in msgs) for msgs in self.per_oracle)
        for msgs in per_oracle:
            for m in msgs:
                if len(m) != CFG.MESSAGE_BYTES:
                    raise InvalidArgument("outcome message must be a 32-byte digest", length=len(m))
        object.__setattr__(self, "per_oracle", per_oracle)

    @classmethod
    def single(cls, *digests: bytes) -> "OutcomeMessageSet":
        # one oracle attesting one digest per nonce
        return cls((tuple(digests),))


@dataclass(frozen=True)
class AdaptorSignature:
    signature: bytes
    proof: bytes = b""

    def __post_init__(self):
        sig = to_bytes(self.signature)
        if len(sig) != ADAPTOR_SIGNATURE_SIZE:
            raise InvalidSignature("adaptor signature must be 162 bytes", length=len(sig))
        object.__setattr__(self, "signature", sig)
        object.__setattr__(self, "proof", to_bytes(self.proof))


@dataclass(frozen=True, eq=False)
class ChangeOutputAndFees:
    change_output: TxOut
    fund_fee: int
    cet_fee: int
