# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgtier - Scheduled PostgreSQL backups with tiered retention.

Each run dumps the database, stores the dump in the daily tier and
rotates the oldest backups daily -> weekly -> monthly -> deleted, so the
store holds at most 7 daily, 4 weekly and 12 monthly backups. Any backup
can be restored by its timestamp.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from pgtier.builder import create_config

# Environment-based configuration
from pgtier.env import create_config_from_env

# Orchestration
from pgtier.core import (
    BackupOrchestrator,
    BackupResult,
    ListResult,
    RestoreResult,
    create_orchestrator,
)

# Retention engine
from pgtier.retention import (
    RetentionSnapshot,
    Tier,
    parse_listing,
    plan_retention,
    resolve_backup,
)

__all__ = [
    # Version
    "__version__",
    # Configuration creation (primary user-facing APIs)
    "create_config",
    "create_config_from_env",
    # Orchestration
    "BackupOrchestrator",
    "BackupResult",
    "RestoreResult",
    "ListResult",
    "create_orchestrator",
    # Retention
    "Tier",
    "RetentionSnapshot",
    "parse_listing",
    "plan_retention",
    "resolve_backup",
]
