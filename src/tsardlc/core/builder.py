# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: DLC-Spec Transactions.md; BIP68; BIP125
from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from ..errors import InvalidArgument
from ..utils import config as CFG
from ..utils.tsar_logging import get_ctx_logger
from .fees import compute_change_and_fees, discard_dust, dlc_inputs_weight, is_dust, redeem_script_to_script_sig, weight_to_fee
from .funding import make_funding_script, p2wsh_script_pubkey
from .tx import Tx, TxIn, TxOut, parse_txid
from .types import DlcTransactions, PartyParams, Payout

log = get_ctx_logger("tsardlc.core.builder")


def get_sequence(lock_time: int) -> int:
    if lock_time == 0:
        return CFG.SEQUENCE_FINAL
    return CFG.SEQUENCE_LOCKTIME_NO_RBF


def _order_by_serial(items: Iterable[Tuple[int, object]], what: str) -> list:
    items = list(items)
    serials = [s for s, _ in items]
    if len(set(serials)) != len(serials):
        raise InvalidArgument(f"duplicate {what} serial ids", serial_ids=sorted(serials))
    return [obj for _, obj in sorted(items, key=lambda kv: kv[0])]


# -----------------------------
# Funding transaction
# -----------------------------

def create_funding_transaction(local_params: PartyParams, remote_params: PartyParams,
                               fee_rate_per_vb: int, fund_lock_time: int,
                               fund_output_serial_id: int, extra_fee: int = 0,
                               include_dlc_inputs: bool = True) -> Tuple[Tx, bytes]:
    """Build the funding transaction and return it with its 2-of-2 witness script.

    Both sides build it independently, so every ordering here is by serial
    id and never by argument or insertion order.
    """
    total_collateral = local_params.collateral + remote_params.collateral
    local = compute_change_and_fees(local_params, fee_rate_per_vb, total_collateral, extra_fee, include_dlc_inputs)
    remote = compute_change_and_fees(remote_params, fee_rate_per_vb, total_collateral, extra_fee, include_dlc_inputs)

    funding_script = make_funding_script(local_params.fund_pubkey, remote_params.fund_pubkey)
    fund_value = total_collateral + local.cet_fee + remote.cet_fee
    fund_output = TxOut(fund_value, p2wsh_script_pubkey(funding_script))

    outputs = _order_by_serial([
        (fund_output_serial_id, fund_output),
        (local_params.change_serial_id, local.change_output),
        (remote_params.change_serial_id, remote.change_output),
    ], "output")
    outputs = [o for o in outputs if o is fund_output or not is_dust(o)]

    sequence = get_sequence(fund_lock_time)
    tagged_inputs = []
    for params in (local_params, remote_params):
        for info in params.inputs:
            txin = TxIn(info.outpoint.txid, info.outpoint.vout,
                        script_sig=redeem_script_to_script_sig(info.redeem_script), sequence=sequence)
            tagged_inputs.append((info.serial_id, txin))
        for dlc_input in params.dlc_inputs:
            op = dlc_input.outpoint
            tagged_inputs.append((dlc_input.input_serial_id, TxIn(op.txid, op.vout, sequence=sequence)))
    inputs = _order_by_serial(tagged_inputs, "input")

    fund_tx = Tx(version=CFG.TX_VERSION, locktime=fund_lock_time, inputs=inputs, outputs=outputs)
    log.debug("funding tx %s: value=%d inputs=%d outputs=%d extra_fee=%d",
              fund_tx.txid_hex, fund_value, len(inputs), len(outputs), extra_fee)
    return fund_tx, funding_script


# -----------------------------
# CETs
# -----------------------------

def create_cet(local_output: TxOut, local_payout_serial_id: int,
               remote_output: TxOut, remote_payout_serial_id: int,
               fund_txid, fund_vout: int, lock_time: int,
               sequence: int = CFG.SEQUENCE_ZERO) -> Tx:
    fund_txid = parse_txid(fund_txid)
    outputs = _order_by_serial([
        (local_payout_serial_id, local_output),
        (remote_payout_serial_id, remote_output),
    ], "payout")
    txin = TxIn(fund_txid, fund_vout, sequence=sequence)
    return Tx(version=CFG.TX_VERSION, locktime=lock_time, inputs=[txin], outputs=discard_dust(outputs))


def create_cets(fund_txid, fund_vout: int, local_script, remote_script,
                payouts: Sequence[Payout], lock_time: int,
                local_serial_id: int, remote_serial_id: int,
                sequence: int = CFG.SEQUENCE_ZERO) -> list[Tx]:
    fund_txid = parse_txid(fund_txid)
    cets = []
    for payout in payouts:
        cets.append(create_cet(
            TxOut(payout.offer, local_script), local_serial_id,
            TxOut(payout.accept, remote_script), remote_serial_id,
            fund_txid, fund_vout, lock_time, sequence))
    log.trace("built %d CETs spending %s:%d", len(cets), fund_txid.hex(), fund_vout)
    return cets


# -----------------------------
# Refund
# -----------------------------

def create_refund_transaction(local_script, remote_script, local_amount: int, remote_amount: int,
                              lock_time: int, fund_txid, fund_vout: int) -> Tx:
    txin = TxIn(parse_txid(fund_txid), fund_vout, sequence=CFG.SEQUENCE_LOCKTIME_NO_RBF)
    outputs = discard_dust([TxOut(local_amount, local_script), TxOut(remote_amount, remote_script)])
    return Tx(version=CFG.TX_VERSION, locktime=lock_time, inputs=[txin], outputs=outputs)


# -----------------------------
# Full contract
# -----------------------------

def _create_transactions(payouts, local_params, remote_params, refund_locktime, fee_rate_per_vb,
                         fund_lock_time, cet_lock_time, fund_output_serial_id,
                         extra_fee, include_dlc_inputs) -> DlcTransactions:
    total_collateral = local_params.collateral + remote_params.collateral
    payouts = list(payouts)
    for idx, payout in enumerate(payouts):
        if payout.total != total_collateral:
            raise InvalidArgument("payout does not sum to total collateral",
                                  index=idx, payout=payout.total, collateral=total_collateral)
    if local_params.payout_serial_id == remote_params.payout_serial_id:
        raise InvalidArgument("duplicate payout serial ids", serial_id=local_params.payout_serial_id)

    fund_tx, funding_script = create_funding_transaction(
        local_params, remote_params, fee_rate_per_vb, fund_lock_time,
        fund_output_serial_id, extra_fee, include_dlc_inputs)
    fund_txid = fund_tx.txid
    fund_spk = p2wsh_script_pubkey(funding_script)
    fund_vout = next(i for i, o in enumerate(fund_tx.outputs) if o.script_pubkey == fund_spk)

    cets = create_cets(fund_txid, fund_vout,
                       local_params.payout_script_pubkey, remote_params.payout_script_pubkey,
                       payouts, cet_lock_time,
                       local_params.payout_serial_id, remote_params.payout_serial_id,
                       sequence=get_sequence(cet_lock_time))
    refund = create_refund_transaction(local_params.payout_script_pubkey, remote_params.payout_script_pubkey,
                                       local_params.collateral, remote_params.collateral,
                                       refund_locktime, fund_txid, fund_vout)
    log.debug("contract transactions ready: fund=%s cets=%d refund=%s",
              fund_tx.txid_hex, len(cets), refund.txid_hex)
    return DlcTransactions(fund_tx, tuple(cets), refund, funding_script)


def create_dlc_transactions(payouts: Sequence[Payout], local_params: PartyParams, remote_params: PartyParams,
                            refund_locktime: int, fee_rate_per_vb: int, fund_lock_time: int,
                            cet_lock_time: int, fund_output_serial_id: int) -> DlcTransactions:
    return _create_transactions(payouts, local_params, remote_params, refund_locktime, fee_rate_per_vb,
                                fund_lock_time, cet_lock_time, fund_output_serial_id,
                                extra_fee=0, include_dlc_inputs=True)


def create_spliced_dlc_transactions(payouts: Sequence[Payout], local_params: PartyParams, remote_params: PartyParams,
                                    refund_locktime: int, fee_rate_per_vb: int, fund_lock_time: int,
                                    cet_lock_time: int, fund_output_serial_id: int) -> DlcTransactions:
    """Contract whose funding transaction directly spends earlier funding outputs.

    The weight of those chained inputs is a shared cost: it is charged as an
    extra fee split evenly between the parties, whoever contributed them.
    """
    chained_weight = dlc_inputs_weight(local_params) + dlc_inputs_weight(remote_params)
    extra_fee = weight_to_fee(chained_weight, fee_rate_per_vb)
    if extra_fee % 2:
        extra_fee += 1
    return _create_transactions(payouts, local_params, remote_params, refund_locktime, fee_rate_per_vb,
                                fund_lock_time, cet_lock_time, fund_output_serial_id,
                                extra_fee=extra_fee, include_dlc_inputs=False)
