# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Orchestrator Tests for pgtier.

These tests verify how backup and restore runs react to each kind of
collaborator failure:
1. Failed dump or upload - The store is never rotated
2. Failed retention action - Later actions are not attempted
3. Failed notification - The run outcome is unchanged
4. Unknown restore target - Nothing is fetched or applied
"""

from pathlib import Path

import aiosqlite
import pytest

from pgtier.core import BackupOrchestrator
from pgtier.database import PostgresDatabase
from pgtier.exceptions import ErrorKind
from pgtier.retention import Evict, Promote, Tier
from pgtier.transport import SSHStore
from pgtier.vault import get_run_actions, list_runs


def seed_full_store(store) -> None:
    """Seed a store that is exactly at every cap."""
    store.seed(Tier.DAILY, *range(1, 8))
    store.seed(Tier.WEEKLY, *range(10, 14))
    store.seed(Tier.MONTHLY, *range(20, 32))


# ============================================================================
# Backup: success
# ============================================================================

@pytest.mark.asyncio
async def test_backup_stores_dump_in_daily_tier(
    orchestrator, store, notifier, dump_producer, fixed_now
):
    result = await orchestrator.run_backup()

    assert result.success
    assert result.stored
    assert result.timestamp == fixed_now
    assert result.planned_actions == []
    assert store.tiers[Tier.DAILY] == {fixed_now}
    assert store.contents[(Tier.DAILY, fixed_now)] == b"CREATE TABLE t (id int);\n"

    # Local dump is cleaned up after upload
    assert not dump_producer.produced[0].exists()

    assert result.notified
    assert notifier.messages[0].startswith("Backup succeeded!")
    assert f"{fixed_now} (Sun, 04 Feb 2024 00:00:00 GMT)" in notifier.messages[0]


@pytest.mark.asyncio
async def test_backup_rotates_full_store(orchestrator, store):
    """
    CRITICAL: A run on a full store ripples one backup through every tier.
    """
    seed_full_store(store)

    result = await orchestrator.run_backup()

    assert result.success
    assert result.applied_actions == [
        Promote(1, Tier.DAILY, Tier.WEEKLY),
        Promote(10, Tier.WEEKLY, Tier.MONTHLY),
        Evict(20, Tier.MONTHLY),
    ]
    assert len(store.tiers[Tier.DAILY]) == 7
    assert len(store.tiers[Tier.WEEKLY]) == 4
    assert len(store.tiers[Tier.MONTHLY]) == 12
    assert 1 in store.tiers[Tier.WEEKLY]
    assert 10 in store.tiers[Tier.MONTHLY]
    assert 20 not in store.tiers[Tier.MONTHLY]


@pytest.mark.asyncio
async def test_backup_report_reflects_applied_actions(orchestrator, store, notifier):
    seed_full_store(store)

    result = await orchestrator.run_backup()

    weekly_section = result.report.split("Weekly:\n")[1].split("Monthly:\n")[0]
    assert weekly_section.startswith("1 (")
    assert result.report in notifier.messages[0]


@pytest.mark.asyncio
async def test_backup_ignores_junk_in_listings(orchestrator, store):
    store.seed(Tier.DAILY, *range(1, 8))
    store.extra_listing[Tier.DAILY] = "upload.tmp\nlost+found"

    result = await orchestrator.run_backup()

    assert result.success
    assert result.applied_actions == [Promote(1, Tier.DAILY, Tier.WEEKLY)]


@pytest.mark.asyncio
async def test_successive_backups_use_clock(orchestrator, store):
    first = await orchestrator.run_backup()
    second = await orchestrator.run_backup()

    assert second.timestamp - first.timestamp == 86_400_000
    assert store.tiers[Tier.DAILY] == {first.timestamp, second.timestamp}
    assert first.operation_id != second.operation_id


# ============================================================================
# Backup: failures before retention
# ============================================================================

@pytest.mark.asyncio
async def test_dump_failure_never_touches_store(orchestrator, store, dump_producer, notifier):
    """
    CRITICAL: A failed dump must not store anything or rotate the store.
    """
    seed_full_store(store)
    dump_producer.error = "pg_dump failed: connection refused"

    result = await orchestrator.run_backup()

    assert not result.success
    assert not result.stored
    assert result.error_kind == ErrorKind.DUMP
    assert result.planned_actions == []
    assert store.mutations() == []

    message = notifier.messages[0]
    assert message.startswith("Backup failed with message\npg_dump failed: connection refused")
    assert "Available backups:" in message


@pytest.mark.asyncio
async def test_transfer_failure_never_runs_retention(orchestrator, store, dump_producer, notifier):
    """
    CRITICAL: A failed upload must not promote or evict anything.
    """
    seed_full_store(store)
    store.failures["store"] = "scp: connection closed"

    result = await orchestrator.run_backup()

    assert not result.success
    assert not result.stored
    assert result.error_kind == ErrorKind.TRANSFER
    assert result.planned_actions == []
    assert [c[0] for c in store.mutations()] == ["store"]
    assert not dump_producer.produced[0].exists()
    assert "scp: connection closed" in notifier.messages[0]


@pytest.mark.asyncio
async def test_listing_failure_after_store_skips_retention(orchestrator, store, notifier):
    seed_full_store(store)
    store.failures["list"] = "ssh: host unreachable"

    result = await orchestrator.run_backup()

    assert not result.success
    assert result.stored
    assert result.error_kind == ErrorKind.LISTING
    assert result.planned_actions == []
    assert [c[0] for c in store.mutations()] == ["store"]
    assert "retention was skipped" in notifier.messages[0]


@pytest.mark.asyncio
async def test_unusable_dump_directory_is_reported(
    test_config, store, database, notifier, clock, temp_dir: Path
):
    """
    CRITICAL: A dump directory that cannot be created fails the run and
    notifies, it does not crash the run.
    """
    blocker = temp_dir / "not-a-directory"
    blocker.write_text("")
    orchestrator = BackupOrchestrator(
        config=test_config,
        dump_producer=PostgresDatabase("app", "appdb", work_dir=blocker / "dumps"),
        transfer=store,
        listing=store,
        database=database,
        notifier=notifier,
        clock=clock,
    )

    result = await orchestrator.run_backup()

    assert not result.success
    assert not result.stored
    assert result.error_kind == ErrorKind.DUMP
    assert "Failed to create dump file" in result.errors[0]
    assert store.mutations() == []
    assert len(notifier.messages) == 1
    assert notifier.messages[0].startswith("Backup failed")



# ============================================================================
# Backup: failures during retention
# ============================================================================

@pytest.mark.asyncio
async def test_failed_action_stops_remaining_actions(orchestrator, store, notifier):
    """
    CRITICAL: After a failed action no later action is attempted.

    Evicting from monthly after a failed weekly promotion could remove a
    backup that should have been kept.
    """
    seed_full_store(store)
    store.fail_on_call["move"] = 2

    result = await orchestrator.run_backup()

    assert not result.success
    assert result.stored
    assert result.error_kind == ErrorKind.TRANSFER
    assert len(result.planned_actions) == 3
    assert result.applied_actions == [Promote(1, Tier.DAILY, Tier.WEEKLY)]
    assert not any(c[0] == "remove" for c in store.calls)

    # Store is valid but not fully rotated
    assert 1 in store.tiers[Tier.WEEKLY]
    assert 10 in store.tiers[Tier.WEEKLY]
    assert 20 in store.tiers[Tier.MONTHLY]
    assert "retention stopped" in notifier.messages[0]


@pytest.mark.asyncio
async def test_next_run_after_interrupted_rotation_stays_bounded(orchestrator, store):
    seed_full_store(store)
    store.fail_on_call["move"] = 2
    await orchestrator.run_backup()

    result = await orchestrator.run_backup()

    assert result.success
    assert result.applied_actions == [
        Promote(2, Tier.DAILY, Tier.WEEKLY),
        Promote(1, Tier.WEEKLY, Tier.MONTHLY),
        Evict(20, Tier.MONTHLY),
    ]
    assert len(store.tiers[Tier.DAILY]) == 7
    assert len(store.tiers[Tier.WEEKLY]) == 5
    assert len(store.tiers[Tier.MONTHLY]) == 12


# ============================================================================
# Notifications
# ============================================================================

@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_backup(
    build_orchestrator, test_config, failing_notifier
):
    notifier = failing_notifier
    orchestrator = build_orchestrator(test_config, notifier=notifier)

    result = await orchestrator.run_backup()

    assert result.success
    assert not result.notified
    assert len(notifier.messages) == 1


@pytest.mark.asyncio
async def test_restore_does_not_notify(orchestrator, store, notifier):
    store.seed(Tier.WEEKLY, 3)

    await orchestrator.restore(3)

    assert notifier.messages == []


# ============================================================================
# Restore
# ============================================================================

@pytest.mark.asyncio
async def test_restore_applies_backup_from_its_tier(orchestrator, store, database):
    store.seed(Tier.DAILY, 5)
    store.seed(Tier.WEEKLY, 3)
    store.seed(Tier.MONTHLY, 9)

    result = await orchestrator.restore("3")

    assert result.success
    assert result.location.tier == Tier.WEEKLY
    assert result.location.timestamp == 3
    assert database.applied == [b"-- backup 3\n"]
    assert ("fetch", Tier.WEEKLY, 3) in store.calls

    # Fetched file is removed after apply
    assert list(store.work_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_restore_unknown_timestamp_fetches_nothing(orchestrator, store, database):
    """
    CRITICAL: An unknown timestamp must not reach the transfer or database.
    """
    store.seed(Tier.DAILY, 5)

    result = await orchestrator.restore(99)

    assert not result.success
    assert result.error_kind == ErrorKind.NOT_FOUND
    assert result.message == "Backup with name 99 doesn't exist"
    assert not any(c[0] == "fetch" for c in store.calls)
    assert database.applied == []


@pytest.mark.asyncio
async def test_restore_non_numeric_name_is_not_found(orchestrator, store):
    store.seed(Tier.DAILY, 5)

    result = await orchestrator.restore("latest")

    assert result.error_kind == ErrorKind.NOT_FOUND
    assert result.message == "Backup with name latest doesn't exist"


@pytest.mark.asyncio
async def test_restore_fetch_failure(orchestrator, store, database):
    store.seed(Tier.MONTHLY, 9)
    store.failures["fetch"] = "scp: no such file"

    result = await orchestrator.restore(9)

    assert not result.success
    assert result.error_kind == ErrorKind.TRANSFER
    assert "scp: no such file" in result.message
    assert database.applied == []


@pytest.mark.asyncio
async def test_restore_apply_failure_cleans_up(orchestrator, store, database):
    store.seed(Tier.DAILY, 5)
    database.error = "psql failed: syntax error"

    result = await orchestrator.restore(5)

    assert not result.success
    assert result.error_kind == ErrorKind.APPLY
    assert result.location.tier == Tier.DAILY
    assert list(store.work_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_restore_listing_failure(orchestrator, store):
    store.failures["list"] = "ssh: host unreachable"

    result = await orchestrator.restore(5)

    assert result.error_kind == ErrorKind.LISTING
    assert not any(c[0] == "fetch" for c in store.calls)


@pytest.mark.asyncio
async def test_unusable_fetch_directory_is_reported(
    test_config, store, dump_producer, database, notifier, clock, temp_dir: Path
):
    """
    CRITICAL: A fetch directory that cannot be created fails the restore,
    it does not crash it.
    """
    store.seed(Tier.WEEKLY, 3)
    blocker = temp_dir / "not-a-directory"
    blocker.write_text("")
    orchestrator = BackupOrchestrator(
        config=test_config,
        dump_producer=dump_producer,
        transfer=SSHStore("backup-host", work_dir=blocker / "fetched"),
        listing=store,
        database=database,
        notifier=notifier,
        clock=clock,
    )

    result = await orchestrator.restore(3)

    assert not result.success
    assert result.error_kind == ErrorKind.TRANSFER
    assert "Failed to create local file" in result.message
    assert database.applied == []



# ============================================================================
# List
# ============================================================================

@pytest.mark.asyncio
async def test_list_backups_reports_every_tier(orchestrator, store):
    store.seed(Tier.DAILY, 0)
    store.seed(Tier.MONTHLY, 86_400_000)

    result = await orchestrator.list_backups()

    assert result.success
    assert result.report == (
        "Available backups:\n"
        "Daily:\n"
        "0 (Thu, 01 Jan 1970 00:00:00 GMT)\n"
        "Weekly:\n"
        "Monthly:\n"
        "86400000 (Fri, 02 Jan 1970 00:00:00 GMT)\n"
    )
    assert result.to_dict()["backups"] == {
        "daily": [0],
        "weekly": [],
        "monthly": [86_400_000],
    }
    assert store.mutations() == []


@pytest.mark.asyncio
async def test_list_backups_reports_duplicates(orchestrator, store):
    store.seed(Tier.DAILY, 4)
    store.seed(Tier.WEEKLY, 4)

    result = await orchestrator.list_backups()

    assert result.success
    assert result.duplicates == [4]


@pytest.mark.asyncio
async def test_list_backups_failure(orchestrator, store):
    store.failures["list"] = "ssh: host unreachable"

    result = await orchestrator.list_backups()

    assert not result.success
    assert result.error_kind == ErrorKind.LISTING
    assert result.report == ""


# ============================================================================
# Journal
# ============================================================================

@pytest.mark.asyncio
async def test_backup_run_is_journaled(
    build_orchestrator, journal_config, store, fixed_now
):
    orchestrator = build_orchestrator(journal_config)
    seed_full_store(store)
    store.fail_on_call["move"] = 2

    result = await orchestrator.run_backup()

    async with aiosqlite.connect(journal_config.journal_path) as db:
        runs = await list_runs(db)
        actions = await get_run_actions(db, result.operation_id)

    assert len(runs) == 1
    assert runs[0]["id"] == result.operation_id
    assert runs[0]["kind"] == "backup"
    assert runs[0]["success"] is False
    assert runs[0]["timestamp"] == fixed_now
    assert runs[0]["error_kind"] == "transfer"
    assert runs[0]["stats"]["planned"] == 3
    assert runs[0]["stats"]["applied"] == 1

    assert [(a["action"], a["timestamp"], a["applied"]) for a in actions] == [
        ("promote", 1, True),
        ("promote", 10, False),
    ]
    assert actions[1]["error"] is not None


@pytest.mark.asyncio
async def test_restore_run_is_journaled(
    build_orchestrator, journal_config, store, fixed_now
):
    orchestrator = build_orchestrator(journal_config)
    store.seed(Tier.WEEKLY, 3)

    await orchestrator.restore(3)
    await orchestrator.restore(99)

    async with aiosqlite.connect(journal_config.journal_path) as db:
        restores = await list_runs(db, kind="restore")

    assert len(restores) == 2
    outcomes = sorted((r["success"], r["error_kind"]) for r in restores)
    assert outcomes == [(False, "not_found"), (True, None)]


@pytest.mark.asyncio
async def test_journal_failure_does_not_fail_run(
    build_orchestrator, test_config, temp_dir: Path
):
    # A directory where the journal file should be makes sqlite fail
    blocked = temp_dir / "journal.db"
    blocked.mkdir()
    config = test_config.with_updates(journal_path=blocked)
    orchestrator = build_orchestrator(config)

    result = await orchestrator.run_backup()

    assert result.success
