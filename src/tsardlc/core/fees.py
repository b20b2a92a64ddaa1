# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: DLC-Spec Transactions.md#fees; BIP141 (weight units)
from __future__ import annotations

from typing import Iterable, Optional

from ..errors import InsufficientFunds, InvalidArgument
from ..utils import config as CFG
from ..utils.helpers import Script, to_bytes
from ..utils.tsar_logging import get_ctx_logger
from .tx import TxOut
from .types import ChangeOutputAndFees, PartyParams

log = get_ctx_logger("tsardlc.core.fees")


def is_dust(output_or_value) -> bool:
    value = output_or_value.amount if isinstance(output_or_value, TxOut) else int(output_or_value)
    return value < CFG.DUST_LIMIT


def discard_dust(outputs: Iterable[TxOut]) -> list[TxOut]:
    return [o for o in outputs if not is_dust(o)]


def weight_to_fee(weight: int, fee_rate: int) -> int:
    if weight < 0 or fee_rate < 0:
        raise InvalidArgument("weight and fee rate must be non-negative", weight=weight, fee_rate=fee_rate)
    return -(-weight // 4) * fee_rate


def redeem_script_to_script_sig(redeem_script) -> bytes:
    redeem_script = to_bytes(redeem_script)
    if not redeem_script:
        return b""
    return Script([redeem_script]).serialize()


def _inputs_weight(params: PartyParams, include_dlc_inputs: bool) -> int:
    weight = 0
    for info in params.inputs:
        script_sig = redeem_script_to_script_sig(info.redeem_script)
        weight += CFG.TX_INPUT_BASE_WEIGHT + 4 * len(script_sig) + info.max_witness_len
    if include_dlc_inputs:
        for dlc_input in params.dlc_inputs:
            weight += CFG.TX_INPUT_BASE_WEIGHT + dlc_input.max_witness_len
    return weight


def dlc_inputs_weight(params: PartyParams) -> int:
    return sum(CFG.TX_INPUT_BASE_WEIGHT + d.max_witness_len for d in params.dlc_inputs)


def compute_change_and_fees(params: PartyParams, fee_rate_per_vb: int,
                            total_collateral: Optional[int] = None,
                            extra_fee: int = 0,
                            include_dlc_inputs: bool = True) -> ChangeOutputAndFees:
    """Change output and fee shares owed by one party.

    A party whose collateral is the whole contract pays the full base
    weights, otherwise each side pays half. The change output is returned
    even when it is dust; the assembler drops it and its value goes to fees.
    """
    if total_collateral is None:
        total_collateral = 2 * params.collateral
    if extra_fee < 0:
        raise InvalidArgument("extra fee must be non-negative", extra_fee=extra_fee)

    if params.collateral == total_collateral:
        fund_base, cet_base = CFG.FUND_TX_BASE_WEIGHT, CFG.CET_BASE_WEIGHT
    else:
        fund_base, cet_base = CFG.FUND_TX_BASE_WEIGHT // 2, CFG.CET_BASE_WEIGHT // 2

    fund_weight = (fund_base
                   + _inputs_weight(params, include_dlc_inputs)
                   + 4 * len(params.change_script_pubkey)
                   + CFG.CHANGE_OUTPUT_FIXED_WEIGHT)
    fund_fee = weight_to_fee(fund_weight, fee_rate_per_vb)

    cet_weight = cet_base + 4 * len(params.payout_script_pubkey)
    cet_fee = weight_to_fee(cet_weight, fee_rate_per_vb)

    change = params.input_amount - params.collateral - fund_fee - cet_fee - extra_fee // 2
    log.trace("fee split: fund_weight=%d cet_weight=%d fund_fee=%d cet_fee=%d extra=%d change=%d",
              fund_weight, cet_weight, fund_fee, cet_fee, extra_fee, change)
    if change < 0:
        raise InsufficientFunds("inputs do not cover collateral and fees",
                                input_amount=params.input_amount, collateral=params.collateral,
                                fund_fee=fund_fee, cet_fee=cet_fee)

    return ChangeOutputAndFees(TxOut(change, params.change_script_pubkey), fund_fee, cet_fee)


def get_total_input_vsize(inputs) -> int:
    return len(inputs) * CFG.P2WPKH_INPUT_VSIZE
