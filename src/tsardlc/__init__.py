# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: see REFERENCES.md

from .core.builder import (create_cet, create_cets, create_dlc_transactions, create_funding_transaction,
                           create_refund_transaction, create_spliced_dlc_transactions)
from .core.fees import compute_change_and_fees
from .core.funding import make_funding_script
from .core.tx import OutPoint, Tx, TxIn, TxOut
from .core.types import (AdaptorSignature, DlcInputInfo, DlcTransactions, OracleInfo, OutcomeMessageSet,
                         PartyParams, Payout, TxInputInfo)
from .contracts.cet_sigs import (create_cet_adaptor_signature, create_cet_adaptor_signatures, sign_cet,
                                 verify_cet_adaptor_signature, verify_cet_adaptor_signatures)
from .contracts.multisig import (combine_dlc_input_signatures, combine_funding_signatures,
                                 create_dlc_funding_input_signature, get_sig_for_tx_input,
                                 sign_fund_transaction_input, sign_multisig_input, verify_fund_tx_signature,
                                 verify_tx_input_sig)
from .contracts.oracle import create_cet_adaptor_points, get_adaptor_point
from .errors import DLCError

__version__ = "0.1.0"

__all__ = [
    "__version__", "DLCError",
    "OutPoint", "Tx", "TxIn", "TxOut",
    "AdaptorSignature", "DlcInputInfo", "DlcTransactions", "OracleInfo", "OutcomeMessageSet",
    "PartyParams", "Payout", "TxInputInfo",
    "compute_change_and_fees", "make_funding_script",
    "create_cet", "create_cets", "create_dlc_transactions", "create_funding_transaction",
    "create_refund_transaction", "create_spliced_dlc_transactions",
    "create_cet_adaptor_signature", "create_cet_adaptor_signatures", "sign_cet",
    "verify_cet_adaptor_signature", "verify_cet_adaptor_signatures",
    "combine_dlc_input_signatures", "combine_funding_signatures", "create_dlc_funding_input_signature",
    "get_sig_for_tx_input", "sign_fund_transaction_input", "sign_multisig_input",
    "verify_fund_tx_signature", "verify_tx_input_sig",
    "create_cet_adaptor_points", "get_adaptor_point",
]
