# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: ECDSA adaptor signatures; BIP340; DLC-Spec Oracle.md

from dataclasses import replace

import pytest

from tsardlc.contracts.cet_sigs import (create_cet_adaptor_signature, create_cet_adaptor_signatures, sign_cet,
                                        verify_cet_adaptor_signature, verify_cet_adaptor_signatures)
from tsardlc.contracts.multisig import verify_tx_input_sig
from tsardlc.contracts.oracle import create_cet_adaptor_points, get_adaptor_point, signatures_to_secret
from tsardlc.core.builder import create_dlc_transactions
from tsardlc.core.funding import make_funding_script, sort_pubkeys
from tsardlc.core.types import AdaptorSignature, OracleInfo, OutcomeMessageSet, Payout
from tsardlc.crypto.adaptor import adaptor_decrypt, adaptor_encrypt, adaptor_recover, adaptor_verify, dleq_verify
from tsardlc.crypto.secp import (base_mul, bytes_from_int, point_to_bytes, pubkey_from_secret, schnorr_pubkey,
                                 schnorr_sign_with_nonce, schnorr_verify)
from tsardlc.errors import InvalidArgument, InvalidSignature
from tsardlc.utils.helpers import der_encode_sig_strict, is_low_s, pubkey_from_bytes, sha256, verify_der_strict_low_s

SIGNER_SK = bytes_from_int(0xC0FFEE)
ORACLE_SK = bytes_from_int(0x0AC1E)
NONCE_SKS = [bytes_from_int(0x5EED + i) for i in range(3)]
ORACLE2_SK = bytes_from_int(0xBEEF)
ORACLE2_NONCE_SK = bytes_from_int(0xFACE)

OUTCOMES = [sha256(b"outcome/" + str(i).encode()) for i in range(3)]


def _oracle(nonces=1):
    return OracleInfo(schnorr_pubkey(ORACLE_SK), [schnorr_pubkey(k) for k in NONCE_SKS[:nonces]])


def _attest(digest, nonce_sk=NONCE_SKS[0], oracle_sk=ORACLE_SK):
    return schnorr_sign_with_nonce(oracle_sk, nonce_sk, digest)


# -----------------------------
# primitives
# -----------------------------

def test_adaptor_round_trip():
    y = 0x1234567
    Y = point_to_bytes(base_mul(y))
    digest = sha256(b"cet sighash")
    pubkey = pubkey_from_secret(SIGNER_SK)

    sig = adaptor_encrypt(SIGNER_SK, digest, Y)
    assert len(sig) == 162
    assert adaptor_verify(sig, pubkey, digest, Y)

    r, s = adaptor_decrypt(sig, y)
    assert is_low_s(s)
    der = der_encode_sig_strict(r, s)
    assert verify_der_strict_low_s(pubkey_from_bytes(pubkey), digest, der)
    assert adaptor_recover(sig, der, Y) == y


def test_adaptor_is_deterministic():
    Y = point_to_bytes(base_mul(99))
    digest = sha256(b"x")
    assert adaptor_encrypt(SIGNER_SK, digest, Y) == adaptor_encrypt(SIGNER_SK, digest, Y)


def test_adaptor_rejects_wrong_inputs():
    Y = point_to_bytes(base_mul(77))
    digest = sha256(b"m")
    pubkey = pubkey_from_secret(SIGNER_SK)
    sig = adaptor_encrypt(SIGNER_SK, digest, Y)

    assert not adaptor_verify(sig, pubkey_from_secret(bytes_from_int(5)), digest, Y)
    assert not adaptor_verify(sig, pubkey, sha256(b"other"), Y)
    assert not adaptor_verify(sig, pubkey, digest, point_to_bytes(base_mul(78)))
    assert not adaptor_verify(sig[:-1], pubkey, digest, Y)


def test_tampered_dleq_proof_fails():
    Y = point_to_bytes(base_mul(77))
    digest = sha256(b"m")
    sig = bytearray(adaptor_encrypt(SIGNER_SK, digest, Y))
    sig[-1] ^= 0x01
    assert not dleq_verify(Y, bytes(sig[33:66]), bytes(sig[0:33]), bytes(sig[98:]))
    assert not adaptor_verify(bytes(sig), pubkey_from_secret(SIGNER_SK), digest, Y)


def test_wrong_decryption_key_does_not_verify():
    Y = point_to_bytes(base_mul(1000))
    digest = sha256(b"m")
    sig = adaptor_encrypt(SIGNER_SK, digest, Y)
    r, s = adaptor_decrypt(sig, 1001)
    vk = pubkey_from_bytes(pubkey_from_secret(SIGNER_SK))
    assert not verify_der_strict_low_s(vk, digest, der_encode_sig_strict(r, s))


def test_adaptor_signature_type_checks_length():
    with pytest.raises(InvalidSignature):
        AdaptorSignature(b"\x00" * 161)


# -----------------------------
# oracle points
# -----------------------------

def test_single_oracle_point_matches_attestation():
    sig = _attest(OUTCOMES[0])
    assert schnorr_verify(schnorr_pubkey(ORACLE_SK), OUTCOMES[0], sig)

    point = get_adaptor_point([_oracle()], OutcomeMessageSet.single(OUTCOMES[0]))
    assert point_to_bytes(point) == point_to_bytes(base_mul(signatures_to_secret([sig])))


def test_multi_nonce_point():
    digests = OUTCOMES[:2]
    sigs = [_attest(d, k) for d, k in zip(digests, NONCE_SKS)]
    point = get_adaptor_point([_oracle(nonces=2)], OutcomeMessageSet.single(*digests))
    assert point_to_bytes(point) == point_to_bytes(base_mul(signatures_to_secret(sigs)))


def test_multi_oracle_point():
    second = OracleInfo(schnorr_pubkey(ORACLE2_SK), [schnorr_pubkey(ORACLE2_NONCE_SK)])
    ms = OutcomeMessageSet(((OUTCOMES[0],), (OUTCOMES[1],)))
    sigs = [[_attest(OUTCOMES[0])], [_attest(OUTCOMES[1], ORACLE2_NONCE_SK, ORACLE2_SK)]]
    point = get_adaptor_point([_oracle(), second], ms)
    assert point_to_bytes(point) == point_to_bytes(base_mul(signatures_to_secret(sigs)))


def test_adaptor_point_argument_errors():
    with pytest.raises(InvalidArgument):
        get_adaptor_point([_oracle(), _oracle()], OutcomeMessageSet.single(OUTCOMES[0]))
    with pytest.raises(InvalidArgument):
        get_adaptor_point([_oracle(nonces=1)], OutcomeMessageSet.single(*OUTCOMES[:2]))
    with pytest.raises(InvalidArgument):
        get_adaptor_point([_oracle()], OutcomeMessageSet(((),)))
    with pytest.raises(InvalidArgument):
        OutcomeMessageSet.single(b"\x00" * 31)


def test_adaptor_points_one_per_message_set():
    sets = [OutcomeMessageSet.single(d) for d in OUTCOMES]
    points = create_cet_adaptor_points([_oracle()], sets)
    assert len(points) == 3
    assert len(set(points)) == 3
    assert all(len(p) == 33 for p in points)


# -----------------------------
# CETs
# -----------------------------

ALICE_SK = bytes_from_int(0xA11CE)
BOB_SK = bytes_from_int(0xB0B)


@pytest.fixture
def contract(local_params, remote_params):
    local = replace(local_params, fund_pubkey=pubkey_from_secret(ALICE_SK))
    remote = replace(remote_params, fund_pubkey=pubkey_from_secret(BOB_SK))
    payouts = [Payout(200_000_000, 0), Payout(0, 200_000_000), Payout(100_000_000, 100_000_000)]
    return create_dlc_transactions(payouts, local, remote, 1_000, 4, 0, 100, 2)


def _message_sets():
    return [OutcomeMessageSet.single(d) for d in OUTCOMES]


def test_cet_adaptor_signatures_verify(contract):
    script, amount = contract.funding_script_pubkey, contract.fund_output_value
    sigs = create_cet_adaptor_signatures(contract.cets, [_oracle()], BOB_SK, script, amount, _message_sets())
    bob_pk = pubkey_from_secret(BOB_SK)

    assert verify_cet_adaptor_signatures(sigs, contract.cets, [_oracle()], bob_pk, script, amount, _message_sets())
    assert not verify_cet_adaptor_signatures(sigs[:-1], contract.cets, [_oracle()], bob_pk, script, amount,
                                             _message_sets())
    swapped = [sigs[1], sigs[0], sigs[2]]
    assert not verify_cet_adaptor_signatures(swapped, contract.cets, [_oracle()], bob_pk, script, amount,
                                             _message_sets())
    assert not verify_cet_adaptor_signature(sigs[0], contract.cets[0], [_oracle()], pubkey_from_secret(ALICE_SK),
                                            script, amount, _message_sets()[0])
    with pytest.raises(InvalidArgument):
        create_cet_adaptor_signatures(contract.cets, [_oracle()], BOB_SK, script, amount, _message_sets()[:2])


def test_cet_adaptor_signature_bound_to_amount_and_script(contract):
    script, amount = contract.funding_script_pubkey, contract.fund_output_value
    cet, ms = contract.cets[0], _message_sets()[0]
    sig = create_cet_adaptor_signature(cet, [_oracle()], BOB_SK, script, amount, ms)
    bob_pk = pubkey_from_secret(BOB_SK)
    assert verify_cet_adaptor_signature(sig, cet, [_oracle()], bob_pk, script, amount, ms)

    assert not verify_cet_adaptor_signature(sig, cet, [_oracle()], bob_pk, script, amount + 1, ms)
    tweaked = bytearray(script)
    tweaked[-2] ^= 0x01
    assert not verify_cet_adaptor_signature(sig, cet, [_oracle()], bob_pk, bytes(tweaked), amount, ms)


@pytest.mark.parametrize("field, value", [
    ("amount", -1),
    ("amount", 1 << 64),
    ("pubkey", 5),
    ("sig", 5),
])
def test_cet_adaptor_verification_rejects_malformed_input(contract, field, value):
    script, amount = contract.funding_script_pubkey, contract.fund_output_value
    cet, ms = contract.cets[0], _message_sets()[0]
    args = {
        "sig": create_cet_adaptor_signature(cet, [_oracle()], BOB_SK, script, amount, ms),
        "pubkey": pubkey_from_secret(BOB_SK),
        "amount": amount,
    }
    args[field] = value
    assert verify_cet_adaptor_signature(args["sig"], cet, [_oracle()], args["pubkey"], script,
                                        args["amount"], ms) is False


def test_cet_adaptor_batch_rejects_missing_lists(contract):
    script, amount = contract.funding_script_pubkey, contract.fund_output_value
    bob_pk = pubkey_from_secret(BOB_SK)
    assert verify_cet_adaptor_signatures(None, contract.cets, [_oracle()], bob_pk, script, amount,
                                         _message_sets()) is False
    assert verify_cet_adaptor_signatures([], None, [_oracle()], bob_pk, script, amount, None) is False


def test_sign_cet_end_to_end(contract):
    script, amount = contract.funding_script_pubkey, contract.fund_output_value
    alice_pk, bob_pk = pubkey_from_secret(ALICE_SK), pubkey_from_secret(BOB_SK)
    assert script == make_funding_script(alice_pk, bob_pk)

    cet = contract.cets[2]
    bob_adaptor = create_cet_adaptor_signature(cet, [_oracle()], BOB_SK, script, amount, _message_sets()[2])
    attestation = _attest(OUTCOMES[2])

    signed = sign_cet(cet, bob_adaptor, [attestation], ALICE_SK, bob_pk, script, amount)
    witness = signed.inputs[0].witness
    assert len(witness) == 4
    assert witness[0] == b""
    assert witness[3] == script

    lo, hi = sort_pubkeys(alice_pk, bob_pk)
    assert verify_tx_input_sig(witness[1], signed, 0, script, amount, lo)
    assert verify_tx_input_sig(witness[2], signed, 0, script, amount, hi)
    assert signed.txid == cet.txid


def test_sign_cet_with_wrong_attestation(contract):
    script, amount = contract.funding_script_pubkey, contract.fund_output_value
    bob_pk = pubkey_from_secret(BOB_SK)
    cet = contract.cets[1]
    bob_adaptor = create_cet_adaptor_signature(cet, [_oracle()], BOB_SK, script, amount, _message_sets()[1])
    with pytest.raises(InvalidSignature):
        sign_cet(cet, bob_adaptor, [_attest(OUTCOMES[0])], ALICE_SK, bob_pk, script, amount)


def test_sign_cet_with_foreign_script(contract):
    script, amount = contract.funding_script_pubkey, contract.fund_output_value
    cet = contract.cets[0]
    bob_adaptor = create_cet_adaptor_signature(cet, [_oracle()], BOB_SK, script, amount, _message_sets()[0])
    other_pk = pubkey_from_secret(bytes_from_int(3))
    with pytest.raises(InvalidArgument):
        sign_cet(cet, bob_adaptor, [_attest(OUTCOMES[0])], ALICE_SK, other_pk, script, amount)
