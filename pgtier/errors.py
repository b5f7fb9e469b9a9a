# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for pgtier.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_database_env(missing: list[str]) -> str:
    """
    Explain that the database environment variables are missing.
    """

    return (
        f"Database is not configured, missing: {', '.join(missing)}. "
        "Set DB_USER and DB_NAME (credentials are read from ~/.pgpass) "
        "or pass db_user=... and db_name=... to create_config()."
    )


def explain_missing_store_env() -> str:
    """
    Explain that the backup store environment variable is missing.
    """

    return (
        "Backup store is not configured. "
        "Set BACKUP_STORE to an ssh host alias (ssh transport) or an S3 bucket "
        "name (s3 transport), or pass store=... to create_config()."
    )


def explain_invalid_transport_env(value: str | None) -> str:
    """
    Explain that PGTIER_TRANSPORT is invalid.
    """

    return (
        f"Invalid PGTIER_TRANSPORT value: {value!r}. "
        "Expected 'ssh' or 's3'."
    )


def explain_invalid_cap_env(name: str, value: str | None) -> str:
    """
    Explain that a tier cap variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "It must be a positive integer number of backups to keep."
    )


def explain_invalid_port_env(name: str, value: str | None) -> str:
    """
    Explain that a port variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "It must be an integer between 1 and 65535."
    )


def explain_recipients_without_sender() -> str:
    """
    Explain that recipients were set without SMTP credentials.
    """

    return (
        "GMAIL_RECIPIENTS is set but GMAIL_USER or GMAIL_PASS is missing. "
        "Set both credentials, or unset GMAIL_RECIPIENTS to log notifications instead."
    )
