# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: DLC-Spec Transactions.md#contract-execution-transaction; BIP143
from __future__ import annotations

from typing import Sequence

from ..core.funding import make_funding_script
from ..core.tx import Tx
from ..core.types import AdaptorSignature, OracleInfo, OutcomeMessageSet, _check_u64
from ..crypto.adaptor import adaptor_decrypt, adaptor_encrypt, adaptor_verify
from ..crypto.secp import pubkey_from_secret
from ..errors import DLCError, InvalidArgument, InvalidSignature
from ..utils.helpers import SIGHASH_ALL, bip143_sig_hash, der_encode_sig_strict, to_bytes
from ..utils.tsar_logging import get_ctx_logger
from .multisig import sign_multisig_input, verify_tx_input_sig
from .oracle import get_adaptor_point, signatures_to_secret

log = get_ctx_logger("tsardlc.contracts.cet_sigs")

# every CET has exactly one input, the funding outpoint
CET_INPUT_INDEX = 0


def _cet_sighash(cet: Tx, funding_script, fund_amount: int) -> bytes:
    return bip143_sig_hash(cet, CET_INPUT_INDEX, to_bytes(funding_script), int(fund_amount), SIGHASH_ALL)


def _raw_adaptor(adaptor_sig) -> bytes:
    if isinstance(adaptor_sig, AdaptorSignature):
        return adaptor_sig.signature
    return to_bytes(adaptor_sig)


def create_cet_adaptor_signature(cet: Tx, oracle_infos: Sequence[OracleInfo], funding_sk,
                                 funding_script, fund_amount: int,
                                 message_set: OutcomeMessageSet) -> AdaptorSignature:
    point = get_adaptor_point(oracle_infos, message_set)
    z = _cet_sighash(cet, funding_script, fund_amount)
    return AdaptorSignature(adaptor_encrypt(funding_sk, z, point))


def create_cet_adaptor_signatures(cets: Sequence[Tx], oracle_infos: Sequence[OracleInfo], funding_sk,
                                  funding_script, fund_amount: int,
                                  message_sets: Sequence[OutcomeMessageSet]) -> list[AdaptorSignature]:
    if len(cets) != len(message_sets):
        raise InvalidArgument("one message set is needed per CET", cets=len(cets), message_sets=len(message_sets))
    sigs = [create_cet_adaptor_signature(cet, oracle_infos, funding_sk, funding_script, fund_amount, ms)
            for cet, ms in zip(cets, message_sets)]
    log.debug("created %d CET adaptor signatures", len(sigs))
    return sigs


_MALFORMED = (DLCError, TypeError, ValueError, OverflowError)


def verify_cet_adaptor_signature(adaptor_sig, cet: Tx, oracle_infos: Sequence[OracleInfo], pubkey,
                                 funding_script, fund_amount: int, message_set: OutcomeMessageSet) -> bool:
    try:
        _check_u64("fund_amount", fund_amount)
        point = get_adaptor_point(oracle_infos, message_set)
        z = _cet_sighash(cet, funding_script, fund_amount)
        return adaptor_verify(_raw_adaptor(adaptor_sig), to_bytes(pubkey), z, point)
    except _MALFORMED as exc:
        log.trace("adaptor signature rejected: %s", exc)
        return False


def verify_cet_adaptor_signatures(adaptor_sigs: Sequence, cets: Sequence[Tx], oracle_infos: Sequence[OracleInfo],
                                  pubkey, funding_script, fund_amount: int,
                                  message_sets: Sequence[OutcomeMessageSet]) -> bool:
    try:
        if not (len(adaptor_sigs) == len(cets) == len(message_sets)):
            return False
        batch = list(zip(adaptor_sigs, cets, message_sets))
    except _MALFORMED as exc:
        log.trace("adaptor signature batch rejected: %s", exc)
        return False
    for idx, (sig, cet, ms) in enumerate(batch):
        if not verify_cet_adaptor_signature(sig, cet, oracle_infos, pubkey, funding_script, fund_amount, ms):
            log.debug("CET adaptor signature %d failed verification", idx)
            return False
    return True


def sign_cet(cet: Tx, adaptor_sig, oracle_signatures, funding_sk, other_pubkey,
             funding_script, fund_amount: int) -> Tx:
    """Decrypt the counterparty's adaptor signature with the oracle attestations
    and return the CET with its complete 2-of-2 witness."""
    funding_script = to_bytes(funding_script)
    other_pubkey = to_bytes(other_pubkey)
    if make_funding_script(pubkey_from_secret(funding_sk), other_pubkey) != funding_script:
        raise InvalidArgument("funding script does not belong to these keys")

    secret = signatures_to_secret(oracle_signatures)
    r, s = adaptor_decrypt(_raw_adaptor(adaptor_sig), secret)
    other_sig = der_encode_sig_strict(r, s) + bytes([SIGHASH_ALL])
    if not verify_tx_input_sig(other_sig, cet, CET_INPUT_INDEX, funding_script, fund_amount, other_pubkey):
        raise InvalidSignature("decrypted adaptor signature does not verify; wrong outcome or attestation")

    signed = sign_multisig_input(cet, CET_INPUT_INDEX, other_sig, other_pubkey, funding_sk,
                                 funding_script, fund_amount)
    log.debug("CET %s finalized", signed.txid_hex)
    return signed
