# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SSH Store - Backups kept as plain files on an ssh host.

Layout on the remote host, relative to the login directory unless the
root is absolute:

    <root>/daily/<timestamp>
    <root>/weekly/<timestamp>
    <root>/monthly/<timestamp>

Host name, user and keys come from ~/.ssh/config. BatchMode keeps an
unattended cron run from hanging on a password prompt.
"""

import shlex
from pathlib import Path
from typing import List, Sequence

import structlog

from pgtier.exceptions import ListingError, PgTierError, TransferError
from pgtier.process import make_work_file, run_command
from pgtier.retention.tiers import Tier

logger = structlog.get_logger()

DEFAULT_SSH_OPTIONS = ("-o", "BatchMode=yes")


class SSHStore:
    """Transfer and listing over ssh/scp."""

    def __init__(
        self,
        host: str,
        remote_root: str = ".backups",
        work_dir: Path | None = None,
        timeout: float | None = None,
        ssh_options: Sequence[str] = DEFAULT_SSH_OPTIONS,
    ):
        self.host = host
        self.remote_root = remote_root.rstrip("/") or "/"
        self.work_dir = work_dir
        self.timeout = timeout
        self.ssh_options: List[str] = list(ssh_options)

    def remote_path(self, tier: Tier, timestamp: int | None = None) -> str:
        path = f"{self.remote_root}/{tier.value}"
        if timestamp is not None:
            path = f"{path}/{timestamp}"
        return path

    async def _ssh(self, remote_command: str, error_cls: type[PgTierError]) -> str:
        return await run_command(
            ["ssh", *self.ssh_options, self.host, remote_command],
            error_cls,
            timeout=self.timeout,
        )

    async def _scp(self, source: str, target: str) -> None:
        await run_command(
            ["scp", "-q", *self.ssh_options, source, target],
            TransferError,
            timeout=self.timeout,
        )

    async def ensure_layout(self) -> None:
        """Create the tier directories if they do not exist."""
        dirs = " ".join(shlex.quote(self.remote_path(tier)) for tier in Tier)
        await self._ssh(f"mkdir -p {dirs}", TransferError)

    async def store(self, file: Path, tier: Tier, timestamp: int) -> None:
        await self.ensure_layout()
        await self._scp(str(file), f"{self.host}:{self.remote_path(tier, timestamp)}")
        logger.info("backup_uploaded", host=self.host, tier=tier.value, timestamp=timestamp)

    async def move(self, timestamp: int, from_tier: Tier, to_tier: Tier) -> None:
        source = shlex.quote(self.remote_path(from_tier, timestamp))
        target = shlex.quote(self.remote_path(to_tier, timestamp))
        await self._ssh(f"mv -- {source} {target}", TransferError)

    async def remove(self, timestamp: int, tier: Tier) -> None:
        path = shlex.quote(self.remote_path(tier, timestamp))
        await self._ssh(f"rm -- {path}", TransferError)

    async def fetch(self, tier: Tier, timestamp: int) -> Path:
        try:
            target = make_work_file(self.work_dir, prefix=f"pgtier-{timestamp}-")
        except OSError as e:
            raise TransferError(
                f"Failed to create local file for backup: {e}",
                details={"work_dir": str(self.work_dir)},
            )
        try:
            await self._scp(f"{self.host}:{self.remote_path(tier, timestamp)}", str(target))
        except TransferError:
            target.unlink(missing_ok=True)
            raise
        return target

    async def list(self, tier: Tier) -> str:
        # A tier directory that was never created is an empty tier.
        directory = shlex.quote(self.remote_path(tier))
        return await self._ssh(
            f"if [ -d {directory} ]; then ls -1 {directory}; fi",
            ListingError,
        )
