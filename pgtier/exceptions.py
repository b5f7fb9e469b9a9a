# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgtier Exceptions - Custom exceptions for the pgtier package.

Every exception carries an ErrorKind so the orchestrator can branch on
the kind of failure without inspecting exception types.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Kind of failure reported by a collaborator call."""

    CONFIGURATION = "configuration"
    DUMP = "dump"
    TRANSFER = "transfer"
    LISTING = "listing"
    APPLY = "apply"
    NOT_FOUND = "not_found"
    NOTIFY = "notify"
    JOURNAL = "journal"


class PgTierError(Exception):
    """Base exception for all pgtier errors."""

    kind: ErrorKind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PgTierError):
    """Raised when configuration is invalid."""

    kind = ErrorKind.CONFIGURATION


class DumpError(PgTierError):
    """Raised when the database dump cannot be produced."""

    kind = ErrorKind.DUMP


class TransferError(PgTierError):
    """Raised when a store, move, remove or fetch on the remote store fails."""

    kind = ErrorKind.TRANSFER


class ListingError(PgTierError):
    """Raised when a tier listing cannot be read from the remote store."""

    kind = ErrorKind.LISTING


class ApplyError(PgTierError):
    """Raised when a backup cannot be loaded into the database."""

    kind = ErrorKind.APPLY


class NotFoundError(PgTierError):
    """
    A requested backup does not exist in any tier.

    Restores report it in the result instead of raising it.
    """

    kind = ErrorKind.NOT_FOUND


class NotifyError(PgTierError):
    """Raised when a notification cannot be delivered."""

    kind = ErrorKind.NOTIFY


class JournalError(PgTierError):
    """Raised when the run journal cannot be written or read."""

    kind = ErrorKind.JOURNAL
