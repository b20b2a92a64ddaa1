# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: DLC-Spec Transactions.md; BIP32; BIP39; BIP68; BIP125; BIP143

'''
=============================================================================
 -------- !!! CONTRACT-CRITICAL REMINDER - READ BEFORE EDITING !!! --------
=============================================================================

Both counterparties build the funding transaction, every CET and the refund
transaction independently and then exchange signatures over them.
The values below **MUST BE IDENTICAL** on both sides, otherwise the two
parties end up signing different transactions and the contract cannot close.

  1) TRANSACTION SHAPE
   - TX_VERSION, SEQUENCE_FINAL, SEQUENCE_LOCKTIME_NO_RBF, SIGHASH_ALL

  2) FEE ACCOUNTING
   - TX_INPUT_BASE_WEIGHT, FUND_TX_BASE_WEIGHT, CET_BASE_WEIGHT
   - CHANGE_OUTPUT_FIXED_WEIGHT

  3) DUST POLICY
   - DUST_LIMIT

NOT CONTRACT-CRITICAL (safe to differ between parties):
   logging/path, runtime profile, vsize estimates used for display only.

=============================================================================
'''

import os
import appdirs


# =============================================================================
# 1. MODE & APPLICATION
# =============================================================================
# ---- RUNTIME PROFILE ----
MODE   = os.environ.get("TSARDLC_MODE", "dev")  # default runtime profile, switch to "prod" for live deployments
IS_DEV = (MODE.lower() == "dev")  # cached boolean to simplify dev/prod toggles

# ---- APP METADATA ----
APP_NAME     = "TsarDLC"  # display name used for user data directories
APP_AUTHOR   = "TsarStudio"  # vendor string passed into platform dir helpers
APP_LOG_DIR  = appdirs.user_log_dir(APP_NAME, APP_AUTHOR)  # OS-specific log folder resolved via appdirs


# =============================================================================
# 2. TRANSACTION SHAPE
# =============================================================================
# ---- VERSIONS & FLAGS ----
TX_VERSION  = 2  # version of funding, CET and refund transactions
SIGHASH_ALL = 1  # only sighash type used by the contract

# ---- SEQUENCE NUMBERS ----
SEQUENCE_FINAL           = 0xFFFFFFFF  # nLockTime disabled
SEQUENCE_LOCKTIME_NO_RBF = 0xFFFFFFFE  # nLockTime enabled, opt-out of replacement
SEQUENCE_ZERO            = 0x00000000  # default sequence of standalone CET inputs

# ---- SIZES ----
TXID_BYTES        = 32  # length of a transaction id
CONTRACT_ID_BYTES = 32  # length of a contract id
MESSAGE_BYTES     = 32  # oracle outcome digests are 32-byte hashes


# =============================================================================
# 3. FEE ACCOUNTING
# =============================================================================
# ---- WEIGHT UNITS ----
TX_INPUT_BASE_WEIGHT       = 164  # outpoint + script_sig len + sequence, scaled x4
FUND_TX_BASE_WEIGHT        = 214  # version, locktime, counts, segwit marker and funding output
CET_BASE_WEIGHT            = 498  # CET version, locktime, funding input and 2-of-2 witness
CHANGE_OUTPUT_FIXED_WEIGHT = 36  # change output value + script length prefix, scaled x4

# ---- WITNESS ESTIMATES ----
P2WPKH_WITNESS_SIZE    = 107  # signature + pubkey witness of a P2WPKH input
DLC_INPUT_WITNESS_SIZE = 220  # empty item + two signatures + 2-of-2 witness script

# ---- VSIZE ESTIMATES ----
P2WPKH_INPUT_VSIZE = 148  # rough virtual size of a standard input, display only


# =============================================================================
# 4. DUST POLICY
# =============================================================================
DUST_LIMIT = 1000  # outputs below this value are never emitted


# =============================================================================
# 5. NETWORKS
# =============================================================================
# ---- KNOWN NETWORKS ----
NETWORKS = ("bitcoin", "testnet", "signet", "regtest")  # accepted network names

# ---- BIP32 VERSION BYTES ----
XPRV_VERSIONS = {
    "bitcoin": bytes.fromhex("0488ade4"),
    "testnet": bytes.fromhex("04358394"),
    "signet":  bytes.fromhex("04358394"),
    "regtest": bytes.fromhex("04358394"),
}  # serialized extended private key prefixes
XPUB_VERSIONS = {
    "bitcoin": bytes.fromhex("0488b21e"),
    "testnet": bytes.fromhex("043587cf"),
    "signet":  bytes.fromhex("043587cf"),
    "regtest": bytes.fromhex("043587cf"),
}  # serialized extended public key prefixes
BIP32_SEED_KEY   = b"Bitcoin seed"  # HMAC key for master key generation
HARDENED_OFFSET  = 0x80000000  # first hardened child index

# ---- BIP39 SEED ----
BIP39_LANGUAGE = "english"  # wordlist checked before mnemonic -> seed


# =============================================================================
# 6. LOGGING
# =============================================================================
# ---- BASE OUTPUT ----
LOG_PATH             = os.path.join(APP_LOG_DIR, "tsardlc.log")  # canonical log file path before format-specific override
LOG_SHOW_PROCESS     = False  # include process metadata in log context when True
LOG_PROC_PLACEHOLDER = "-"  # value used when process info is hidden

# ---- MODE PROFILES ----
if IS_DEV:
    # ---- DEV PROFILE ----
    LOG_LEVEL                   = "TRACE"  # very verbose logging for development
    LOG_FORMAT                  = "plain"  # plain text logs ease local debugging
    LOG_TO_CONSOLE              = True  # mirror logs to stdout for dev loops
    LOG_RATE_LIMIT_SECONDS      = 0.0  # disable console throttling in dev
    LOG_FILE_RATE_LIMIT_SECONDS = 0.0  # disable file throttling in dev
    LOG_ROTATE_MAX_BYTES        = 5_000_000  # rollover log files after ~5MB in dev
    LOG_BACKUP_COUNT            = 3  # retain a few rotated dev log files
else:
    # ---- PROD PROFILE ----
    LOG_LEVEL                   = "INFO"  # balanced verbosity for production
    LOG_FORMAT                  = "json"  # JSON logs simplify ingestion in prod
    LOG_TO_CONSOLE              = False  # suppress console spam for services
    LOG_RATE_LIMIT_SECONDS      = 2.0  # throttle console spam in prod
    LOG_FILE_RATE_LIMIT_SECONDS = 1.0  # throttle file spam in prod
    LOG_ROTATE_MAX_BYTES        = 10_000_000  # rollover log files after ~10MB in prod
    LOG_BACKUP_COUNT            = 7  # keep more history on production hosts

# ---- LOG PATH NORMALIZATION ----
_LOG_BASE = os.path.join(APP_LOG_DIR, "tsardlc")  # base path used to pick extension
if str(LOG_FORMAT).lower().strip() == "json":
    LOG_PATH = _LOG_BASE + ".jsonl"  # JSON lines extension to aid parsing
else:
    LOG_PATH = _LOG_BASE + ".log"  # plain-text log extension fallback
