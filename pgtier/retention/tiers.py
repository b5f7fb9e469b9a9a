# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tier model - Retention tiers, caps, snapshots and actions.

Tiers form a strict promotion chain DAILY -> WEEKLY -> MONTHLY -> evicted.
A backup timestamp belongs to exactly one tier at a time. All types here
are immutable; applying an action to a snapshot returns a new snapshot.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Union

from pgtier.exceptions import ConfigurationError


class Tier(str, Enum):
    """Retention tier. Values double as remote directory names."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def next_tier(self) -> "Tier | None":
        """The next coarser tier, or None for the last tier."""
        order = list(Tier)
        index = order.index(self)
        if index + 1 < len(order):
            return order[index + 1]
        return None


@dataclass(frozen=True)
class RetentionCaps:
    """Maximum number of backups kept in each tier."""

    daily: int = 7
    weekly: int = 4
    monthly: int = 12

    def __post_init__(self) -> None:
        errors = [
            f"{name} cap must be >= 1, got {value}"
            for name, value in (
                ("daily", self.daily),
                ("weekly", self.weekly),
                ("monthly", self.monthly),
            )
            if value < 1
        ]
        if errors:
            raise ConfigurationError(
                "Invalid retention caps",
                details={"errors": errors},
            )

    def cap_for(self, tier: Tier) -> int:
        return {
            Tier.DAILY: self.daily,
            Tier.WEEKLY: self.weekly,
            Tier.MONTHLY: self.monthly,
        }[tier]


DEFAULT_CAPS = RetentionCaps()


@dataclass(frozen=True)
class BackupLocation:
    """Qualified location of a backup in the store."""

    tier: Tier
    timestamp: int


@dataclass(frozen=True)
class Promote:
    """Move a backup from one tier to the next coarser tier."""

    timestamp: int
    from_tier: Tier
    to_tier: Tier

    def describe(self) -> str:
        return f"promote {self.timestamp} {self.from_tier.value} -> {self.to_tier.value}"


@dataclass(frozen=True)
class Evict:
    """Permanently remove a backup from its tier."""

    timestamp: int
    from_tier: Tier

    def describe(self) -> str:
        return f"evict {self.timestamp} from {self.from_tier.value}"


RetentionAction = Union[Promote, Evict]


def action_to_dict(action: RetentionAction) -> dict:
    """Serialize an action for logs, the journal and JSON responses."""
    if isinstance(action, Promote):
        return {
            "action": "promote",
            "timestamp": action.timestamp,
            "from_tier": action.from_tier.value,
            "to_tier": action.to_tier.value,
        }
    return {
        "action": "evict",
        "timestamp": action.timestamp,
        "from_tier": action.from_tier.value,
        "to_tier": None,
    }


@dataclass(frozen=True)
class RetentionSnapshot:
    """Timestamps per tier as observed at the start of one run."""

    daily: FrozenSet[int] = field(default_factory=frozenset)
    weekly: FrozenSet[int] = field(default_factory=frozenset)
    monthly: FrozenSet[int] = field(default_factory=frozenset)

    @classmethod
    def of(
        cls,
        daily: Iterable[int] = (),
        weekly: Iterable[int] = (),
        monthly: Iterable[int] = (),
    ) -> "RetentionSnapshot":
        return cls(frozenset(daily), frozenset(weekly), frozenset(monthly))

    @classmethod
    def from_tiers(cls, members: Dict[Tier, Iterable[int]]) -> "RetentionSnapshot":
        return cls.of(
            members.get(Tier.DAILY, ()),
            members.get(Tier.WEEKLY, ()),
            members.get(Tier.MONTHLY, ()),
        )

    def members(self, tier: Tier) -> FrozenSet[int]:
        return {
            Tier.DAILY: self.daily,
            Tier.WEEKLY: self.weekly,
            Tier.MONTHLY: self.monthly,
        }[tier]

    def tier_of(self, timestamp: int) -> Tier | None:
        """First tier (in promotion order) holding the timestamp."""
        for tier in Tier:
            if timestamp in self.members(tier):
                return tier
        return None

    def duplicates(self) -> List[int]:
        """Timestamps present in more than one tier, sorted."""
        seen: set[int] = set()
        dupes: set[int] = set()
        for tier in Tier:
            members = self.members(tier)
            dupes |= seen & members
            seen |= members
        return sorted(dupes)

    @property
    def total(self) -> int:
        return sum(len(self.members(tier)) for tier in Tier)

    def with_members(self, tier: Tier, members: FrozenSet[int]) -> "RetentionSnapshot":
        tiers = {t: self.members(t) for t in Tier}
        tiers[tier] = frozenset(members)
        return RetentionSnapshot.from_tiers(tiers)

    def apply(self, action: RetentionAction) -> "RetentionSnapshot":
        """Return the snapshot that results from applying one action."""
        source = self.members(action.from_tier) - {action.timestamp}
        updated = self.with_members(action.from_tier, source)
        if isinstance(action, Promote):
            target = updated.members(action.to_tier) | {action.timestamp}
            updated = updated.with_members(action.to_tier, target)
        return updated

    def as_dict(self) -> Dict[str, List[int]]:
        return {tier.value: sorted(self.members(tier)) for tier in Tier}
