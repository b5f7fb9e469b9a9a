# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention - Tier model, listing parser, retention engine and restore resolver.
"""

from pgtier.retention.tiers import (
    DEFAULT_CAPS,
    BackupLocation,
    Evict,
    Promote,
    RetentionAction,
    RetentionCaps,
    RetentionSnapshot,
    Tier,
    action_to_dict,
)

from pgtier.retention.listing import parse_listing

from pgtier.retention.engine import apply_actions, plan_retention

from pgtier.retention.resolver import normalize_timestamp, resolve_backup

from pgtier.retention.report import format_snapshot, format_timestamp

__all__ = [
    # Model
    "Tier",
    "RetentionCaps",
    "DEFAULT_CAPS",
    "RetentionSnapshot",
    "BackupLocation",
    "Promote",
    "Evict",
    "RetentionAction",
    "action_to_dict",
    # Parser
    "parse_listing",
    # Engine
    "plan_retention",
    "apply_actions",
    # Resolver
    "resolve_backup",
    "normalize_timestamp",
    # Report
    "format_snapshot",
    "format_timestamp",
]
