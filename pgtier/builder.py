# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgtier Builder - Functional builder pattern for configuration.

This module provides pure functions for building BackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Dict, List

from pgtier.config import BackupConfig, Transport


# Type alias for builder dicts
ConfigDict = Dict[str, Any]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "db_user": "",
        "db_name": "",
        "store": "",
        "transport": Transport.SSH,
        "db_host": None,
        "db_port": None,
        "db_password": None,
        "remote_root": ".backups",
        "region": "us-east-1",
        "s3_endpoint_url": None,
        "daily_cap": 7,
        "weekly_cap": 4,
        "monthly_cap": 12,
        "compress_dumps": True,
        "work_dir": None,
        "command_timeout": None,
        "smtp_host": "smtp.gmail.com",
        "smtp_port": 465,
        "smtp_user": None,
        "smtp_password": None,
        "recipients": [],
        "sender_name": "Backup system",
        "journal_path": None,
        "schedule_cron": None,
    }


def with_database(
    config: ConfigDict,
    user: str,
    name: str,
    host: str | None = None,
    port: int | None = None,
) -> ConfigDict:
    """
    Set the database to dump and restore into.

    Args:
        config: Current configuration dictionary
        user: Database user (password comes from ~/.pgpass)
        name: Database name
        host: Optional host override
        port: Optional port override

    Returns:
        New configuration dictionary with the database set
    """
    return {**config, "db_user": user, "db_name": name, "db_host": host, "db_port": port}


def over_ssh(config: ConfigDict, host: str, remote_root: str = ".backups") -> ConfigDict:
    """
    Store backups on an ssh host.

    Args:
        config: Current configuration dictionary
        host: Host alias configured in ~/.ssh/config
        remote_root: Directory holding the tier directories

    Returns:
        New configuration dictionary using the ssh transport
    """
    return {
        **config,
        "transport": Transport.SSH,
        "store": host,
        "remote_root": remote_root,
    }


def in_s3_bucket(
    config: ConfigDict,
    bucket: str,
    prefix: str = "backups",
    region: str = "us-east-1",
    endpoint_url: str | None = None,
) -> ConfigDict:
    """
    Store backups in an S3 bucket.

    Args:
        config: Current configuration dictionary
        bucket: Bucket name
        prefix: Key prefix holding the tier prefixes
        region: AWS region
        endpoint_url: Custom endpoint for S3-compatible stores

    Returns:
        New configuration dictionary using the s3 transport
    """
    return {
        **config,
        "transport": Transport.S3,
        "store": bucket,
        "remote_root": prefix,
        "region": region,
        "s3_endpoint_url": endpoint_url,
    }


def keep_backups(
    config: ConfigDict,
    daily: int | None = None,
    weekly: int | None = None,
    monthly: int | None = None,
) -> ConfigDict:
    """
    Set how many backups each tier keeps.

    Args:
        config: Current configuration dictionary
        daily: Daily tier cap (unchanged if None)
        weekly: Weekly tier cap (unchanged if None)
        monthly: Monthly tier cap (unchanged if None)

    Returns:
        New configuration dictionary with the caps set
    """
    updates = {
        "daily_cap": daily,
        "weekly_cap": weekly,
        "monthly_cap": monthly,
    }
    for name, value in updates.items():
        if value is not None and value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")
    return {**config, **{k: v for k, v in updates.items() if v is not None}}


def disable_compression(config: ConfigDict) -> ConfigDict:
    """Upload plain pg_dump output instead of zstd-compressed dumps."""
    return {**config, "compress_dumps": False}


def notify_by_email(
    config: ConfigDict,
    user: str,
    password: str,
    recipients: List[str],
    smtp_host: str = "smtp.gmail.com",
    smtp_port: int = 465,
) -> ConfigDict:
    """
    Send run notifications by email.

    Args:
        config: Current configuration dictionary
        user: SMTP login, also used as the sender address
        password: SMTP password (an app password for Gmail)
        recipients: Addresses to notify
        smtp_host: SMTP server
        smtp_port: SMTP SSL port

    Returns:
        New configuration dictionary with email notifications enabled
    """
    return {
        **config,
        "smtp_user": user,
        "smtp_password": password,
        "recipients": list(recipients),
        "smtp_host": smtp_host,
        "smtp_port": smtp_port,
    }


def enable_journal(config: ConfigDict, journal_path: Path | str) -> ConfigDict:
    """
    Record every run in a local SQLite journal.

    Args:
        config: Current configuration dictionary
        journal_path: Path to the journal database file

    Returns:
        New configuration dictionary with the journal enabled
    """
    return {**config, "journal_path": Path(journal_path)}


def run_daily_at(config: ConfigDict, time_utc: str) -> ConfigDict:
    """
    Schedule a daily backup (FastAPI integration only).

    Args:
        config: Current configuration dictionary
        time_utc: Time in HH:MM format (UTC)

    Returns:
        New configuration dictionary with the schedule set
    """
    return {**config, "schedule_cron": time_utc}


def build_config(config: ConfigDict) -> BackupConfig:
    """
    Build the final immutable BackupConfig from a configuration dict.

    Args:
        config: Configuration dictionary

    Returns:
        Validated BackupConfig

    Raises:
        ConfigurationError: If configuration is invalid
    """
    return BackupConfig(**config)


def create_config(
    db_user: str,
    db_name: str,
    store: str,
    **kwargs: Any,
) -> BackupConfig:
    """
    Create a BackupConfig in one call.

    Args:
        db_user: Database user
        db_name: Database name
        store: ssh host alias or S3 bucket
        **kwargs: Any other BackupConfig field

    Returns:
        Validated BackupConfig
    """
    config = create_empty_config()
    config.update(kwargs)
    config.update({"db_user": db_user, "db_name": db_name, "store": store})
    return build_config(config)
