# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of TsarDLC — see LICENSE and TRADEMARKS.md
# Refs: see REFERENCES.md

from __future__ import annotations


class DLCError(ValueError):
    """Base class for every failure raised by the contract layer."""

    def __init__(self, message: str = "", **context):
        self.context = dict(context)
        if context:
            extra = " ".join(f"{k}={v}" for k, v in context.items())
            message = f"{message} ({extra})" if message else extra
        super().__init__(message)


class InvalidKey(DLCError):
    pass

class ExtendedKeyError(InvalidKey):
    pass

class InvalidSignature(DLCError):
    pass

class InvalidArgument(DLCError):
    pass

class InvalidTransactionReference(InvalidArgument):
    pass

class InsufficientFunds(InvalidArgument):
    pass

class SerializationFailure(DLCError):
    pass

class CryptoOperationFailure(DLCError):
    pass
