# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: see REFERENCES.md

import os
import sys

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(PROJECT_ROOT, "src")
for path in (PROJECT_ROOT, SRC_ROOT):
    if path not in sys.path:
        sys.path.append(path)

from tsardlc.core.tx import OutPoint  # noqa: E402
from tsardlc.core.types import PartyParams, TxInputInfo  # noqa: E402
from tsardlc.crypto.secp import bytes_from_int, pubkey_from_secret  # noqa: E402
from tsardlc.utils.helpers import hash160  # noqa: E402
from tsardlc.utils import config as CFG  # noqa: E402


def p2wpkh_spk(pubkey: bytes) -> bytes:
    return b"\x00\x14" + hash160(pubkey)


def make_party(secret: int, input_txid_byte: int, *, input_amount=1_000_000_000, collateral=100_000_000,
               change_serial_id=1, payout_serial_id=1, input_serial_id=1, dlc_inputs=()):
    fund_pubkey = pubkey_from_secret(bytes_from_int(secret))
    script = p2wpkh_spk(fund_pubkey)
    # witness plus its item-count byte
    info = TxInputInfo(OutPoint(bytes([input_txid_byte]) * 32, 0), max_witness_len=CFG.P2WPKH_WITNESS_SIZE + 1,
                       serial_id=input_serial_id)
    return PartyParams(
        fund_pubkey=fund_pubkey,
        change_script_pubkey=script,
        change_serial_id=change_serial_id,
        payout_script_pubkey=script,
        payout_serial_id=payout_serial_id,
        inputs=(info,),
        input_amount=input_amount,
        collateral=collateral,
        dlc_inputs=dlc_inputs,
    )


LOCAL_SECRET = 0x1001
REMOTE_SECRET = 0x2002


@pytest.fixture
def local_sk():
    return bytes_from_int(LOCAL_SECRET)


@pytest.fixture
def remote_sk():
    return bytes_from_int(REMOTE_SECRET)


@pytest.fixture
def local_params():
    return make_party(LOCAL_SECRET, 0x01, change_serial_id=1, payout_serial_id=10, input_serial_id=5)


@pytest.fixture
def remote_params():
    return make_party(REMOTE_SECRET, 0x02, change_serial_id=3, payout_serial_id=20, input_serial_id=4)
