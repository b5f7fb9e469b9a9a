# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgtier Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation and passed
explicitly into the orchestrator; nothing in the core reads the
environment.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List
import re

from pgtier.retention.tiers import RetentionCaps


class Transport(str, Enum):
    """Remote store transport."""

    SSH = "ssh"  # ssh/scp against a host alias from ~/.ssh/config
    S3 = "s3"  # S3 bucket via aiobotocore


def _validate_bucket_name(bucket: str) -> bool:
    """
    Validate S3 bucket name according to AWS rules.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    - No consecutive periods
    - Not formatted as IP address
    """
    if not bucket or len(bucket) < 3 or len(bucket) > 63:
        return False

    if not re.match(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", bucket):
        return False

    if ".." in bucket:
        return False

    if re.match(r"^\d+\.\d+\.\d+\.\d+$", bucket):
        return False

    return True


def _validate_ssh_host(host: str) -> bool:
    """An ssh destination: non-empty, no whitespace, not an option."""
    return bool(host) and not re.search(r"\s", host) and not host.startswith("-")


def _validate_cron_time(time_str: str) -> bool:
    """Validate HH:MM time format."""
    if not time_str:
        return False
    try:
        parts = time_str.split(":")
        if len(parts) != 2:
            return False
        hour, minute = int(parts[0]), int(parts[1])
        return 0 <= hour <= 23 and 0 <= minute <= 59
    except (ValueError, AttributeError):
        return False


def _validate_port(port: int | None) -> bool:
    return port is None or 1 <= port <= 65535


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for backup, retention and restore runs.

    Database credentials beyond user and name are normally supplied by
    ~/.pgpass, and ssh credentials by ~/.ssh/config.
    """

    # Required: database to dump and restore into
    db_user: str
    db_name: str

    # Required: ssh host alias or S3 bucket, depending on transport
    store: str

    transport: Transport = Transport.SSH

    # Optional database connection overrides
    db_host: str | None = None
    db_port: int | None = None
    db_password: str | None = None

    # Root of the tier directories (ssh: relative to remote home; s3: key prefix)
    remote_root: str = ".backups"

    # S3 only
    region: str = "us-east-1"
    s3_endpoint_url: str | None = None

    # Retention caps per tier
    daily_cap: int = 7
    weekly_cap: int = 4
    monthly_cap: int = 12

    # Compress dumps with zstd before upload
    compress_dumps: bool = True

    # Local directory for dump and fetched files (system temp dir if unset)
    work_dir: Path | None = None

    # Timeout in seconds for each external command (None waits forever)
    command_timeout: float | None = None

    # Email notifications (disabled unless recipients are set)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_user: str | None = None
    smtp_password: str | None = None
    recipients: List[str] = field(default_factory=list)
    sender_name: str = "Backup system"

    # Local SQLite run journal (disabled if unset)
    journal_path: Path | None = None

    # Daily schedule in HH:MM (UTC), used by the FastAPI integration
    schedule_cron: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not self.db_user:
            errors.append("db_user is required")
        if not self.db_name:
            errors.append("db_name is required")

        if self.transport == Transport.S3:
            if not _validate_bucket_name(self.store):
                errors.append(f"Invalid bucket name: {self.store}")
        elif not _validate_ssh_host(self.store):
            errors.append(f"Invalid ssh host: {self.store!r}")

        if not self.remote_root or re.search(r"\s", self.remote_root):
            errors.append(f"Invalid remote_root: {self.remote_root!r}")

        for name in ("daily_cap", "weekly_cap", "monthly_cap"):
            value = getattr(self, name)
            if value < 1:
                errors.append(f"{name} must be >= 1, got {value}")

        if not _validate_port(self.db_port):
            errors.append(f"db_port out of range: {self.db_port}")
        if not _validate_port(self.smtp_port):
            errors.append(f"smtp_port out of range: {self.smtp_port}")

        if self.recipients and not (self.smtp_user and self.smtp_password):
            errors.append("smtp_user and smtp_password required when recipients are set")

        if self.schedule_cron and not _validate_cron_time(self.schedule_cron):
            errors.append(f"Invalid schedule_cron format: {self.schedule_cron}, expected HH:MM")

        if self.command_timeout is not None and self.command_timeout <= 0:
            errors.append(f"command_timeout must be > 0, got {self.command_timeout}")

        if errors:
            from pgtier.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def caps(self) -> RetentionCaps:
        return RetentionCaps(
            daily=self.daily_cap,
            weekly=self.weekly_cap,
            monthly=self.monthly_cap,
        )

    @property
    def email_enabled(self) -> bool:
        return bool(self.recipients)

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return BackupConfig(**current)
