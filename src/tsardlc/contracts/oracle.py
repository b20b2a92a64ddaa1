# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: BIP340; DLC-Spec Oracle.md; DLC-Spec NumericOutcome.md (digit decomposition)
from __future__ import annotations

from typing import Sequence

from ..core.types import OracleInfo, OutcomeMessageSet
from ..errors import CryptoOperationFailure, InvalidArgument
from ..utils.helpers import to_bytes
from ..utils.tsar_logging import get_ctx_logger
from ..crypto.secp import (get_secp_context, lift_x, point_add, point_mul,
                           point_to_bytes, schnorr_challenge, split_schnorr_signature)

log = get_ctx_logger("tsardlc.contracts.oracle")


def schnorr_sig_point(oracle_pubkey, nonce, digest):
    """s*G of the signature the oracle will publish for `digest`: R + e*P."""
    pub_x, nonce_x, msg = to_bytes(oracle_pubkey), to_bytes(nonce), to_bytes(digest)
    P = lift_x(pub_x)
    R = lift_x(nonce_x)
    e = schnorr_challenge(nonce_x, pub_x, msg)
    return point_add(R, point_mul(P, e))


def get_adaptor_point(oracle_infos: Sequence[OracleInfo], message_set: OutcomeMessageSet):
    if len(oracle_infos) != len(message_set.per_oracle):
        raise InvalidArgument("oracle count does not match message set",
                              oracles=len(oracle_infos), message_sets=len(message_set.per_oracle))
    total = None
    for idx, (info, msgs) in enumerate(zip(oracle_infos, message_set.per_oracle)):
        if not msgs:
            raise InvalidArgument("oracle has no outcome digest", oracle=idx)
        if len(msgs) > len(info.nonces):
            raise InvalidArgument("more digests than oracle nonces",
                                  oracle=idx, digests=len(msgs), nonces=len(info.nonces))
        for nonce, msg in zip(info.nonces, msgs):
            total = point_add(total, schnorr_sig_point(info.public_key, nonce, msg))
    if total is None:
        raise CryptoOperationFailure("adaptor point is the point at infinity")
    return total


def create_cet_adaptor_points(oracle_infos: Sequence[OracleInfo],
                              message_sets: Sequence[OutcomeMessageSet]) -> list[bytes]:
    points = [point_to_bytes(get_adaptor_point(oracle_infos, ms)) for ms in message_sets]
    log.trace("computed %d adaptor points for %d oracles", len(points), len(oracle_infos))
    return points


def signatures_to_secret(oracle_signatures) -> int:
    """Decryption scalar for an adaptor point: sum of the attestation s values.

    Takes one sequence of 64-byte signatures per oracle, in the same order as
    the digests of the matching OutcomeMessageSet. A flat sequence is read as
    the attestations of a single oracle.
    """
    n = get_secp_context().n
    groups = list(oracle_signatures)
    if groups and isinstance(groups[0], (bytes, bytearray, str)):
        groups = [groups]
    secret = 0
    for group in groups:
        for sig in group:
            _r, s = split_schnorr_signature(sig)
            secret = (secret + s) % n
    if secret == 0:
        raise CryptoOperationFailure("attestations sum to zero")
    return secret
