# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: DLC-Spec Transactions.md

from dataclasses import replace

import pytest

from conftest import LOCAL_SECRET, REMOTE_SECRET, make_party
from tsardlc.core.builder import (create_cet, create_cets, create_dlc_transactions, create_funding_transaction,
                                  create_refund_transaction, create_spliced_dlc_transactions, get_sequence)
from tsardlc.core.funding import make_funding_script, p2wsh_script_pubkey
from tsardlc.core.tx import Tx, TxOut
from tsardlc.core.types import DlcInputInfo, Payout
from tsardlc.crypto.secp import bytes_from_int, pubkey_from_secret
from tsardlc.errors import InvalidArgument, InvalidTransactionReference
from tsardlc.utils import config as CFG

PAYOUTS = [
    Payout(200_000_000, 0),
    Payout(0, 200_000_000),
    Payout(100_000_000, 100_000_000),
]


def _build(local, remote, payouts=PAYOUTS, fund_serial=2):
    return create_dlc_transactions(payouts, local, remote, refund_locktime=1_000,
                                   fee_rate_per_vb=4, fund_lock_time=0, cet_lock_time=100,
                                   fund_output_serial_id=fund_serial)


def test_funding_transaction_amounts(local_params, remote_params):
    dlc = _build(local_params, remote_params)
    fund = dlc.fund

    # serial ids: local change 1, funding 2, remote change 3
    assert [o.amount for o in fund.outputs] == [899_999_156, 200_000_680, 899_999_156]
    assert fund.outputs[0].script_pubkey == local_params.change_script_pubkey
    assert fund.outputs[2].script_pubkey == remote_params.change_script_pubkey
    assert dlc.fund_vout == 1
    assert dlc.fund_output_value == 200_000_680
    assert fund.outputs[1].script_pubkey == p2wsh_script_pubkey(dlc.funding_script_pubkey)
    assert dlc.funding_script_pubkey == make_funding_script(local_params.fund_pubkey, remote_params.fund_pubkey)


def test_funding_inputs_follow_serial_ids(local_params, remote_params):
    fund = _build(local_params, remote_params).fund
    # remote input has serial 4, local input 5
    assert [txin.txid for txin in fund.inputs] == [b"\x02" * 32, b"\x01" * 32]
    assert all(txin.sequence == CFG.SEQUENCE_FINAL for txin in fund.inputs)
    assert all(txin.script_sig == b"" for txin in fund.inputs)
    assert fund.locktime == 0


def test_both_parties_build_the_same_funding_transaction(local_params, remote_params):
    ours = _build(local_params, remote_params)
    theirs = create_dlc_transactions([Payout(p.accept, p.offer) for p in PAYOUTS], remote_params, local_params,
                                     refund_locktime=1_000, fee_rate_per_vb=4, fund_lock_time=0,
                                     cet_lock_time=100, fund_output_serial_id=2)
    assert ours.fund == theirs.fund
    assert ours.fund.txid == theirs.fund.txid
    assert [c.serialize() for c in ours.cets] == [c.serialize() for c in theirs.cets]
    assert ours.refund.inputs[0].outpoint == theirs.refund.inputs[0].outpoint
    assert sorted(o.amount for o in ours.refund.outputs) == sorted(o.amount for o in theirs.refund.outputs)


def test_cets(local_params, remote_params):
    dlc = _build(local_params, remote_params)
    assert len(dlc.cets) == len(PAYOUTS)
    for cet in dlc.cets:
        assert len(cet.inputs) == 1
        assert cet.inputs[0].outpoint == dlc.fund_outpoint
        assert cet.inputs[0].sequence == CFG.SEQUENCE_LOCKTIME_NO_RBF
        assert cet.locktime == 100

    # a zero payout leaves a single output
    assert [(o.amount, o.script_pubkey) for o in dlc.cets[0].outputs] == \
           [(200_000_000, local_params.payout_script_pubkey)]
    assert [(o.amount, o.script_pubkey) for o in dlc.cets[1].outputs] == \
           [(200_000_000, remote_params.payout_script_pubkey)]
    # payout serial ids: local 10, remote 20
    assert [o.script_pubkey for o in dlc.cets[2].outputs] == \
           [local_params.payout_script_pubkey, remote_params.payout_script_pubkey]


def test_refund(local_params, remote_params):
    dlc = _build(local_params, remote_params)
    refund = dlc.refund
    assert refund.locktime == 1_000
    assert refund.inputs[0].outpoint == dlc.fund_outpoint
    assert refund.inputs[0].sequence == CFG.SEQUENCE_LOCKTIME_NO_RBF
    assert [o.amount for o in refund.outputs] == [100_000_000, 100_000_000]


def test_payout_must_sum_to_collateral(local_params, remote_params):
    with pytest.raises(InvalidArgument):
        _build(local_params, remote_params, payouts=[Payout(100_000_000, 99_999_999)])


def test_duplicate_output_serial_ids(local_params, remote_params):
    with pytest.raises(InvalidArgument):
        _build(local_params, remote_params, fund_serial=local_params.change_serial_id)


def test_duplicate_payout_serial_ids(local_params, remote_params):
    remote = replace(remote_params, payout_serial_id=local_params.payout_serial_id)
    with pytest.raises(InvalidArgument):
        _build(local_params, remote)


def test_dust_change_is_dropped():
    local = make_party(LOCAL_SECRET, 0x01, input_amount=100_001_000, change_serial_id=1, input_serial_id=1,
                       payout_serial_id=1)
    remote = make_party(REMOTE_SECRET, 0x02, change_serial_id=3, input_serial_id=2, payout_serial_id=2)
    fund, _script = create_funding_transaction(local, remote, 4, 0, 2)
    assert [o.amount for o in fund.outputs] == [200_000_680, 899_999_156]


def test_fund_locktime_sets_sequence(local_params, remote_params):
    fund, _ = create_funding_transaction(local_params, remote_params, 4, 500_000, 2)
    assert fund.locktime == 500_000
    assert all(txin.sequence == CFG.SEQUENCE_LOCKTIME_NO_RBF for txin in fund.inputs)
    assert get_sequence(0) == CFG.SEQUENCE_FINAL


def test_standalone_cet_defaults():
    spk_a, spk_b = b"\x00\x14" + b"\x01" * 20, b"\x00\x14" + b"\x02" * 20
    cet = create_cet(TxOut(5_000, spk_a), 7, TxOut(6_000, spk_b), 3, "ab" * 32, 1, 42)
    assert cet.inputs[0].sequence == CFG.SEQUENCE_ZERO
    assert cet.inputs[0].txid == bytes.fromhex("ab" * 32)
    assert [o.amount for o in cet.outputs] == [6_000, 5_000]
    assert cet.version == CFG.TX_VERSION

    cets = create_cets("ab" * 32, 1, spk_a, spk_b, [Payout(5_000, 6_000), Payout(11_000, 0)], 42, 7, 3)
    assert cets[0] == cet
    assert len(cets[1].outputs) == 1

    with pytest.raises(InvalidArgument):
        create_cet(TxOut(5_000, spk_a), 3, TxOut(6_000, spk_b), 3, "ab" * 32, 1, 42)
    with pytest.raises(InvalidTransactionReference):
        create_cets("ab" * 31, 1, spk_a, spk_b, [], 42, 7, 3)


def test_standalone_refund():
    spk = b"\x00\x14" + b"\x01" * 20
    refund = create_refund_transaction(spk, spk, 500, 2_000, 700, "cd" * 32, 0)
    assert [o.amount for o in refund.outputs] == [2_000]
    assert refund.locktime == 700


# -----------------------------
# chained contracts
# -----------------------------

def _previous_contract(amount=50_000_000):
    pk_a = pubkey_from_secret(bytes_from_int(LOCAL_SECRET))
    pk_b = pubkey_from_secret(bytes_from_int(REMOTE_SECRET))
    prev = Tx(inputs=[], outputs=[TxOut(amount, p2wsh_script_pubkey(make_funding_script(pk_a, pk_b)))])
    return DlcInputInfo(prev, 0, pk_a, pk_b, amount, CFG.DLC_INPUT_WITNESS_SIZE, 7, b"\x11" * 32)


def _chained_local(dlc_input):
    return make_party(LOCAL_SECRET, 0x01, input_amount=1_050_000_000, change_serial_id=1,
                      payout_serial_id=10, input_serial_id=5, dlc_inputs=(dlc_input,))


def test_chained_input_charged_to_contributor(remote_params):
    dlc_input = _previous_contract()
    dlc = _build(_chained_local(dlc_input), remote_params)
    # 164 + 220 extra weight on the local side only
    assert [o.amount for o in dlc.fund.outputs] == [949_998_772, 200_000_680, 899_999_156]
    assert dlc.fund.find_input(dlc_input.outpoint) == 2
    assert dlc.fund.inputs[2].script_sig == b""


def test_spliced_contract_splits_chained_weight(remote_params):
    dlc_input = _previous_contract()
    dlc = create_spliced_dlc_transactions(PAYOUTS, _chained_local(dlc_input), remote_params,
                                          refund_locktime=1_000, fee_rate_per_vb=4, fund_lock_time=0,
                                          cet_lock_time=100, fund_output_serial_id=2)
    # extra fee 384 split evenly
    assert [o.amount for o in dlc.fund.outputs] == [949_998_964, 200_000_680, 899_998_964]
    assert len(dlc.fund.inputs) == 3
    assert dlc.fund.find_input(dlc_input.outpoint) == 2
    assert len(dlc.cets) == len(PAYOUTS)


def test_dlc_input_validation():
    good = _previous_contract()
    with pytest.raises(InvalidArgument):
        DlcInputInfo(good.fund_tx, 0, good.local_fund_pubkey, good.remote_fund_pubkey, 1, 220, 7, b"\x11" * 32)
    with pytest.raises(InvalidTransactionReference):
        DlcInputInfo(good.fund_tx, 1, good.local_fund_pubkey, good.remote_fund_pubkey,
                     good.fund_amount, 220, 7, b"\x11" * 32)
    with pytest.raises(InvalidArgument):
        DlcInputInfo(good.fund_tx, 0, good.local_fund_pubkey, good.remote_fund_pubkey,
                     good.fund_amount, 220, 7, b"\x11" * 31)


def test_end_to_end_shape(local_params, remote_params):
    dlc = create_dlc_transactions(PAYOUTS, local_params, remote_params, refund_locktime=100,
                                  fee_rate_per_vb=4, fund_lock_time=10, cet_lock_time=10,
                                  fund_output_serial_id=2)
    assert len(dlc.fund.inputs) == 2
    assert len(dlc.fund.outputs) >= 1
    assert dlc.fund.locktime == 10
    assert len(dlc.cets) == 3
    assert all(len(c.inputs) == 1 and c.locktime == 10 for c in dlc.cets)
    assert len(dlc.refund.inputs) == 1
    assert len(dlc.refund.outputs) == 2
    assert dlc.refund.locktime == 100
    for tx in (dlc.fund, dlc.refund, *dlc.cets):
        assert Tx.parse(tx.serialize()).serialize() == tx.serialize()
    for cet in dlc.cets:
        assert cet.total_output() <= dlc.fund_output_value


def test_dlc_input_must_match_funding_keys():
    good = _previous_contract()
    stranger = pubkey_from_secret(bytes_from_int(3))
    with pytest.raises(InvalidArgument):
        DlcInputInfo(good.fund_tx, 0, good.local_fund_pubkey, stranger, good.fund_amount, 220, 7, b"\x11" * 32)
