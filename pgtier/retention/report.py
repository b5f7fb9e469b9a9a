# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Inventory report - Human-readable listing of all backups.
"""

from datetime import datetime, UTC

from pgtier.retention.tiers import RetentionSnapshot, Tier


def format_timestamp(timestamp: int) -> str:
    """Render an epoch-millisecond timestamp as an HTTP-style UTC date."""
    try:
        moment = datetime.fromtimestamp(timestamp / 1000, UTC)
    except (OverflowError, OSError, ValueError):
        return "invalid date"
    return moment.strftime("%a, %d %b %Y %H:%M:%S GMT")


def format_snapshot(snapshot: RetentionSnapshot) -> str:
    """
    Render every backup, grouped by tier, newest last.

    Each line reads ``<timestamp> (<UTC date>)`` so the timestamp can be
    copied straight into ``pgtier --restore``.
    """
    lines = ["Available backups:"]
    for tier in Tier:
        lines.append(f"{tier.value.capitalize()}:")
        for timestamp in sorted(snapshot.members(tier)):
            lines.append(f"{timestamp} ({format_timestamp(timestamp)})")
    return "\n".join(lines) + "\n"
