# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restore Path Resolver - Locate a backup across tiers by timestamp.
"""

import structlog

from pgtier.retention.listing import is_timestamp_token
from pgtier.retention.tiers import BackupLocation, RetentionSnapshot

logger = structlog.get_logger()


def normalize_timestamp(requested: int | str) -> int | None:
    """Convert a caller-supplied identifier to a timestamp, if it can be one."""
    if isinstance(requested, bool):
        return None
    if isinstance(requested, int):
        return requested if requested >= 0 else None
    token = str(requested).strip()
    if not is_timestamp_token(token):
        return None
    return int(token)


def resolve_backup(
    snapshot: RetentionSnapshot,
    requested: int | str,
) -> BackupLocation | None:
    """
    Find the tier holding a backup.

    Tiers are searched DAILY, WEEKLY, MONTHLY. Not finding the backup is
    an ordinary outcome (usually a mistyped timestamp), so None is returned
    rather than raising.

    Args:
        snapshot: Timestamps per tier
        requested: Timestamp as an int or as the string the user typed

    Returns:
        BackupLocation, or None when no tier holds the timestamp
    """
    timestamp = normalize_timestamp(requested)
    if timestamp is None:
        logger.debug("restore_target_not_a_timestamp", requested=str(requested))
        return None

    tier = snapshot.tier_of(timestamp)
    if tier is None:
        return None
    return BackupLocation(tier=tier, timestamp=timestamp)
