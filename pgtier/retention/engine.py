# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tiered Retention Engine - Decide promotions and evictions for one run.

The engine is a pure function of a snapshot and the tier caps. Tiers are
evaluated finest first, each against the working state left by the
previous tier, and at most one backup crosses each tier boundary per run.
A run adds one backup to DAILY, so one overflow ripple per run keeps the
store within caps; a store that is further over cap drains by one backup
per tier on every run.
"""

from typing import Iterable, List

import structlog

from pgtier.retention.tiers import (
    DEFAULT_CAPS,
    Evict,
    Promote,
    RetentionAction,
    RetentionCaps,
    RetentionSnapshot,
    Tier,
)

logger = structlog.get_logger()


def _oldest(members: Iterable[int]) -> int:
    # Listing order carries no meaning; always order by value.
    return sorted(members)[0]


def plan_retention(
    snapshot: RetentionSnapshot,
    caps: RetentionCaps = DEFAULT_CAPS,
) -> List[RetentionAction]:
    """
    Plan the retention actions for one run.

    For each tier in promotion order, if the tier holds more backups than
    its cap, its oldest backup is promoted to the next tier (or evicted
    from the last tier). A tier exactly at its cap is left alone, and a
    backup promoted into a tier during this run is not moved again.

    Args:
        snapshot: Timestamps per tier at the start of the run
        caps: Maximum backups per tier

    Returns:
        Actions to apply, in order
    """
    actions: List[RetentionAction] = []
    working = snapshot
    arrived: int | None = None

    for tier in Tier:
        members = working.members(tier)
        cap = caps.cap_for(tier)
        if len(members) <= cap:
            arrived = None
            continue

        # A backup crosses at most one boundary per run.
        candidates = members - {arrived} if arrived is not None else members
        oldest = _oldest(candidates)
        next_tier = tier.next_tier
        action: RetentionAction
        if next_tier is None:
            action = Evict(oldest, tier)
        else:
            action = Promote(oldest, tier, next_tier)

        if len(members) > cap + 1:
            logger.warning(
                "tier_over_capacity",
                tier=tier.value,
                count=len(members),
                cap=cap,
            )

        actions.append(action)
        working = working.apply(action)
        arrived = oldest

    logger.debug(
        "retention_planned",
        actions=[action.describe() for action in actions],
    )
    return actions


def apply_actions(
    snapshot: RetentionSnapshot,
    actions: Iterable[RetentionAction],
) -> RetentionSnapshot:
    """Fold actions into a snapshot without touching the store."""
    for action in actions:
        snapshot = snapshot.apply(action)
    return snapshot
