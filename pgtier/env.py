# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

This is the only place in pgtier that reads environment variables. The
plain names (DB_USER, DB_NAME, BACKUP_STORE, GMAIL_*) are the ones
existing cron .env files already set.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from pgtier.builder import create_config
from pgtier.config import BackupConfig, Transport
from pgtier.errors import (
    explain_invalid_cap_env,
    explain_invalid_port_env,
    explain_invalid_transport_env,
    explain_missing_database_env,
    explain_missing_store_env,
    explain_recipients_without_sender,
)
from pgtier.exceptions import ConfigurationError


def _parse_transport(value: str | None) -> Transport:
    if not value:
        return Transport.SSH
    try:
        return Transport(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_transport_env(value)) from exc


def _parse_cap(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        cap = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_cap_env(name, value)) from exc
    if cap < 1:
        raise ConfigurationError(explain_invalid_cap_env(name, value))
    return cap


def _parse_port(name: str, default: int | None) -> int | None:
    value = os.getenv(name)
    if not value:
        return default
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_port_env(name, value)) from exc
    if not 1 <= port <= 65535:
        raise ConfigurationError(explain_invalid_port_env(name, value))
    return port


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_recipients(value: str | None) -> List[str]:
    if not value:
        return []
    return [r.strip() for r in value.split(",") if r.strip()]


def _parse_timeout(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid PGTIER_COMMAND_TIMEOUT value: {value!r}. Expected seconds."
        ) from exc


def create_config_from_env() -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    Required:
        - DB_USER, DB_NAME: Database to back up (password from ~/.pgpass)
        - BACKUP_STORE: ssh host alias, or S3 bucket with PGTIER_TRANSPORT=s3

    Optional environment variables:
        - DB_HOST, DB_PORT, DB_PASSWORD: Connection overrides
        - GMAIL_USER, GMAIL_PASS: SMTP login for notifications
        - GMAIL_RECIPIENTS: Comma-separated addresses (GMAIL_RECEPIENTS also accepted)
        - PGTIER_SMTP_HOST, PGTIER_SMTP_PORT: SMTP server (default smtp.gmail.com:465)
        - PGTIER_TRANSPORT: 'ssh' | 's3' (default: ssh)
        - PGTIER_REMOTE_ROOT: Tier root directory or key prefix
        - AWS_REGION, PGTIER_S3_ENDPOINT_URL: S3 settings
        - PGTIER_DAILY_CAP, PGTIER_WEEKLY_CAP, PGTIER_MONTHLY_CAP: Tier caps (7/4/12)
        - PGTIER_COMPRESS: Compress dumps with zstd (default: true)
        - PGTIER_WORK_DIR: Local directory for dump files
        - PGTIER_COMMAND_TIMEOUT: Seconds allowed per external command
        - PGTIER_JOURNAL_PATH: SQLite journal file
        - PGTIER_SCHEDULE_CRON: Daily schedule in HH:MM (UTC)
    """

    missing = [name for name in ("DB_USER", "DB_NAME") if not os.getenv(name)]
    if missing:
        raise ConfigurationError(explain_missing_database_env(missing))

    store = os.getenv("BACKUP_STORE")
    if not store:
        raise ConfigurationError(explain_missing_store_env())

    transport = _parse_transport(os.getenv("PGTIER_TRANSPORT"))
    default_root = "backups" if transport == Transport.S3 else ".backups"

    smtp_user = os.getenv("GMAIL_USER")
    smtp_password = os.getenv("GMAIL_PASS")
    recipients = _parse_recipients(
        os.getenv("GMAIL_RECIPIENTS") or os.getenv("GMAIL_RECEPIENTS")
    )
    if recipients and not (smtp_user and smtp_password):
        raise ConfigurationError(explain_recipients_without_sender())

    work_dir_env = os.getenv("PGTIER_WORK_DIR")
    journal_env = os.getenv("PGTIER_JOURNAL_PATH")

    return create_config(
        db_user=os.environ["DB_USER"],
        db_name=os.environ["DB_NAME"],
        store=store,
        transport=transport,
        db_host=os.getenv("DB_HOST") or None,
        db_port=_parse_port("DB_PORT", None),
        db_password=os.getenv("DB_PASSWORD") or None,
        remote_root=os.getenv("PGTIER_REMOTE_ROOT", default_root),
        region=os.getenv("AWS_REGION", "us-east-1"),
        s3_endpoint_url=os.getenv("PGTIER_S3_ENDPOINT_URL") or None,
        daily_cap=_parse_cap("PGTIER_DAILY_CAP", 7),
        weekly_cap=_parse_cap("PGTIER_WEEKLY_CAP", 4),
        monthly_cap=_parse_cap("PGTIER_MONTHLY_CAP", 12),
        compress_dumps=_parse_bool(os.getenv("PGTIER_COMPRESS"), True),
        work_dir=Path(work_dir_env) if work_dir_env else None,
        command_timeout=_parse_timeout(os.getenv("PGTIER_COMMAND_TIMEOUT")),
        smtp_host=os.getenv("PGTIER_SMTP_HOST", "smtp.gmail.com"),
        smtp_port=_parse_port("PGTIER_SMTP_PORT", 465),
        smtp_user=smtp_user,
        smtp_password=smtp_password,
        recipients=recipients,
        journal_path=Path(journal_env) if journal_env else None,
        schedule_cron=os.getenv("PGTIER_SCHEDULE_CRON") or None,
    )
