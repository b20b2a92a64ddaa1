# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: BIP141 (P2WSH); DLC-Spec Transactions.md#funding-transaction
from __future__ import annotations

from typing import Tuple

from ..errors import InvalidKey
from ..utils.helpers import OP_0, OP_2, OP_CHECKMULTISIG, Script, compress_pubkey, pubkey_from_bytes, sha256, to_bytes


def _normalize_pubkey(pubkey) -> bytes:
    raw = to_bytes(pubkey)
    # accepts compressed or uncompressed input, always emits compressed
    return compress_pubkey(pubkey_from_bytes(raw))


def sort_pubkeys(pubkey_a, pubkey_b) -> Tuple[bytes, bytes]:
    a = _normalize_pubkey(pubkey_a)
    b = _normalize_pubkey(pubkey_b)
    if a == b:
        raise InvalidKey("funding keys must differ")
    return (a, b) if a < b else (b, a)


def make_funding_script(pubkey_a, pubkey_b) -> bytes:
    """2-of-2 witness script; argument order does not matter."""
    lo, hi = sort_pubkeys(pubkey_a, pubkey_b)
    return Script([OP_2, lo, hi, OP_2, OP_CHECKMULTISIG]).serialize()


def p2wsh_script_pubkey(witness_script) -> bytes:
    return Script([OP_0, sha256(to_bytes(witness_script))]).serialize()
