# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: BIP143; BIP147 (NULLDUMMY); DLC-Spec Transactions.md#funding-transaction
from __future__ import annotations

from typing import Tuple

from ..core.funding import make_funding_script, sort_pubkeys
from ..core.tx import OutPoint, Tx
from ..core.types import DlcInputInfo
from ..crypto.secp import pubkey_from_secret, signing_key
from ..errors import DLCError, InvalidKey, InvalidSignature
from ..utils.helpers import (SIGHASH_ALL, DerSigError, bip143_sig_hash, der_parse_sig_strict, hash160,
                             p2wpkh_script_code, pubkey_from_bytes, sign_digest_der_low_s_strict,
                             strip_sighash_flag, to_bytes, verify_der_strict_low_s)
from ..utils.tsar_logging import get_ctx_logger

log = get_ctx_logger("tsardlc.contracts.multisig")


# -----------------------------
# Single input signatures
# -----------------------------

def get_sig_for_tx_input(tx: Tx, input_index: int, script_code, value: int, secret_key) -> bytes:
    """Low-S DER signature over the BIP143 digest, SIGHASH_ALL byte appended."""
    z = bip143_sig_hash(tx, input_index, to_bytes(script_code), int(value), SIGHASH_ALL)
    der = sign_digest_der_low_s_strict(signing_key(secret_key), z)
    return der + bytes([SIGHASH_ALL])


def _split_signature(signature) -> bytes:
    sig = to_bytes(signature)
    try:
        der_parse_sig_strict(sig)
        return sig
    except DerSigError:
        der, flag = strip_sighash_flag(sig)
        if flag != SIGHASH_ALL:
            raise InvalidSignature("unsupported sighash type", sighash=flag)
        der_parse_sig_strict(der)
        return der


def verify_tx_input_sig(signature, tx: Tx, input_index: int, script_code, value: int, pubkey) -> bool:
    """Check a signature (bare DER or DER + SIGHASH_ALL) for one input. Never raises."""
    try:
        der = _split_signature(signature)
        vk = pubkey_from_bytes(to_bytes(pubkey))
        z = bip143_sig_hash(tx, input_index, to_bytes(script_code), int(value), SIGHASH_ALL)
    except DLCError:
        return False
    return verify_der_strict_low_s(vk, z, der)


# -----------------------------
# 2-of-2 witness
# -----------------------------

def _multisig_witness(own_pubkey: bytes, own_sig: bytes, other_pubkey: bytes, other_sig: bytes,
                      funding_script: bytes) -> list[bytes]:
    lo, _hi = sort_pubkeys(own_pubkey, other_pubkey)
    if lo == own_pubkey:
        sigs = [own_sig, other_sig]
    else:
        sigs = [other_sig, own_sig]
    # leading empty item is consumed by the CHECKMULTISIG off-by-one
    return [b""] + sigs + [funding_script]


def sign_multisig_input(tx: Tx, input_index: int, other_sig, other_pubkey, secret_key,
                        funding_script, value: int) -> Tx:
    funding_script = to_bytes(funding_script)
    own_pubkey = pubkey_from_secret(secret_key)
    own_sig = get_sig_for_tx_input(tx, input_index, funding_script, value, secret_key)
    witness = _multisig_witness(own_pubkey, own_sig, to_bytes(other_pubkey), to_bytes(other_sig), funding_script)
    return tx.with_witness(input_index, witness)


# -----------------------------
# DLC-chained inputs
# -----------------------------

def _dlc_input_keys(dlc_input: DlcInputInfo, own_pubkey: bytes) -> Tuple[bytes, bytes]:
    keys = (dlc_input.local_fund_pubkey, dlc_input.remote_fund_pubkey)
    if own_pubkey not in keys:
        raise InvalidKey("secret key does not match either funding key of the DLC input",
                         outpoint=str(dlc_input.outpoint))
    other = keys[1] if own_pubkey == keys[0] else keys[0]
    return own_pubkey, other


def create_dlc_funding_input_signature(fund_tx: Tx, dlc_input: DlcInputInfo, secret_key) -> bytes:
    own_pubkey, _other = _dlc_input_keys(dlc_input, pubkey_from_secret(secret_key))
    input_index = fund_tx.find_input(dlc_input.outpoint)
    funding_script = make_funding_script(dlc_input.local_fund_pubkey, dlc_input.remote_fund_pubkey)
    return get_sig_for_tx_input(fund_tx, input_index, funding_script, dlc_input.fund_amount, secret_key)


def combine_dlc_input_signatures(dlc_input: DlcInputInfo, own_sig, own_pubkey, other_sig) -> list[bytes]:
    own_pubkey, other_pubkey = _dlc_input_keys(dlc_input, to_bytes(own_pubkey))
    funding_script = make_funding_script(dlc_input.local_fund_pubkey, dlc_input.remote_fund_pubkey)
    return _multisig_witness(own_pubkey, to_bytes(own_sig), other_pubkey, to_bytes(other_sig), funding_script)


def combine_funding_signatures(tx: Tx, dlc_input: DlcInputInfo, local_secret_key, remote_signature) -> Tx:
    """Attach the complete 2-of-2 witness for a DLC-chained input of `tx`.

    Either party can call this with its own key and the other's signature;
    the resulting witness is byte-identical.
    """
    clog = log.bind(contract=dlc_input.contract_id.hex(), input=str(dlc_input.outpoint))
    own_pubkey, other_pubkey = _dlc_input_keys(dlc_input, pubkey_from_secret(local_secret_key))
    input_index = tx.find_input(dlc_input.outpoint)
    funding_script = make_funding_script(dlc_input.local_fund_pubkey, dlc_input.remote_fund_pubkey)

    remote_signature = to_bytes(remote_signature)
    if not verify_tx_input_sig(remote_signature, tx, input_index, funding_script,
                               dlc_input.fund_amount, other_pubkey):
        clog.debug("remote signature for DLC input rejected")
        raise InvalidSignature("remote signature does not verify", outpoint=str(dlc_input.outpoint))

    own_sig = get_sig_for_tx_input(tx, input_index, funding_script, dlc_input.fund_amount, local_secret_key)
    witness = _multisig_witness(own_pubkey, own_sig, other_pubkey, remote_signature, funding_script)
    clog.debug("DLC input witness attached at index %d", input_index)
    return tx.with_witness(input_index, witness)


# -----------------------------
# P2WPKH funding inputs
# -----------------------------

def _p2wpkh_input(tx: Tx, prev_txid, prev_vout: int) -> int:
    return tx.find_input(OutPoint(prev_txid, prev_vout))


def get_raw_funding_transaction_input_signature(funding_tx: Tx, privkey, prev_txid, prev_vout: int,
                                                value: int) -> bytes:
    input_index = _p2wpkh_input(funding_tx, prev_txid, prev_vout)
    script_code = p2wpkh_script_code(hash160(pubkey_from_secret(privkey)))
    return get_sig_for_tx_input(funding_tx, input_index, script_code, value, privkey)


def add_signature_to_transaction(tx: Tx, signature, pubkey, input_index: int) -> Tx:
    return tx.with_witness(input_index, [to_bytes(signature), to_bytes(pubkey)])


def sign_fund_transaction_input(fund_tx: Tx, privkey, prev_txid, prev_vout: int, value: int) -> Tx:
    input_index = _p2wpkh_input(fund_tx, prev_txid, prev_vout)
    sig = get_raw_funding_transaction_input_signature(fund_tx, privkey, prev_txid, prev_vout, value)
    return add_signature_to_transaction(fund_tx, sig, pubkey_from_secret(privkey), input_index)


def verify_fund_tx_signature(fund_tx: Tx, signature, pubkey, txid, vout: int, input_amount: int) -> bool:
    try:
        input_index = _p2wpkh_input(fund_tx, txid, vout)
        script_code = p2wpkh_script_code(hash160(to_bytes(pubkey)))
    except DLCError:
        return False
    return verify_tx_input_sig(signature, fund_tx, input_index, script_code, input_amount, pubkey)
