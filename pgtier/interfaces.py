# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Collaborator protocols - Boundary contracts used by the orchestrator.

Implementations raise the pgtier exception named in each docstring; the
orchestrator turns those into typed step results.
"""

from pathlib import Path
from typing import Protocol

from pgtier.retention.tiers import Tier


class DumpProducer(Protocol):
    """Produces a database dump file."""

    async def produce_dump(self) -> Path:
        """
        Dump the database to a local file.

        Returns:
            Path to the dump file (the caller removes it)

        Raises:
            DumpError: If the dump cannot be produced
        """
        ...


class BackupTransfer(Protocol):
    """Moves backup files to, within and from the remote store."""

    async def store(self, file: Path, tier: Tier, timestamp: int) -> None:
        """Upload a local file as backup `timestamp` in `tier`. Raises TransferError."""
        ...

    async def move(self, timestamp: int, from_tier: Tier, to_tier: Tier) -> None:
        """Move a backup between tiers. Raises TransferError."""
        ...

    async def remove(self, timestamp: int, tier: Tier) -> None:
        """Delete a backup. Raises TransferError."""
        ...

    async def fetch(self, tier: Tier, timestamp: int) -> Path:
        """Download a backup to a local file (the caller removes it). Raises TransferError."""
        ...


class RemoteListing(Protocol):
    """Lists the raw contents of a tier."""

    async def list(self, tier: Tier) -> str:
        """Return the raw listing text for a tier. Raises ListingError."""
        ...


class DatabaseApply(Protocol):
    """Loads a backup file into the database."""

    async def apply(self, file: Path) -> None:
        """Restore the database from a dump file. Raises ApplyError."""
        ...


class Notifier(Protocol):
    """Delivers human-readable run notifications."""

    async def notify(self, message: str) -> None:
        """Send a notification. Raises NotifyError."""
        ...
