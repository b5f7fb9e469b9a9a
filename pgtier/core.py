# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgtier Core - Backup orchestrator.

This module sequences the backup, restore and list flows. It owns no
decision logic of its own: retention comes from the engine, lookup from
the resolver, and every external effect goes through a collaborator whose
outcome is captured as a StepResult.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Callable, List, Tuple

import structlog
from ulid import ULID

from pgtier.config import BackupConfig
from pgtier.exceptions import ErrorKind, NotFoundError
from pgtier.interfaces import (
    BackupTransfer,
    DatabaseApply,
    DumpProducer,
    Notifier,
    RemoteListing,
)
from pgtier.results import StepResult, attempt
from pgtier.retention import (
    BackupLocation,
    Promote,
    RetentionAction,
    RetentionSnapshot,
    Tier,
    action_to_dict,
    format_snapshot,
    parse_listing,
    plan_retention,
    resolve_backup,
)
from pgtier.vault.journal import write_run

logger = structlog.get_logger()


def now_millis() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class BackupResult:
    """Result of a backup run."""

    operation_id: str  # ULID
    success: bool = False
    stored: bool = False
    timestamp: int | None = None
    planned_actions: List[RetentionAction] = field(default_factory=list)
    applied_actions: List[RetentionAction] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    errors: List[str] = field(default_factory=list)
    notified: bool = False
    report: str = ""
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "success": self.success,
            "stored": self.stored,
            "timestamp": self.timestamp,
            "planned_actions": [action_to_dict(a) for a in self.planned_actions],
            "applied_actions": [action_to_dict(a) for a in self.applied_actions],
            "error_kind": self.error_kind.value if self.error_kind else None,
            "errors": list(self.errors),
            "notified": self.notified,
            "report": self.report,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class RestoreResult:
    """Result of a restore run."""

    operation_id: str
    requested: str
    success: bool = False
    location: BackupLocation | None = None
    error_kind: ErrorKind | None = None
    message: str = ""
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "requested": self.requested,
            "success": self.success,
            "tier": self.location.tier.value if self.location else None,
            "timestamp": self.location.timestamp if self.location else None,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class ListResult:
    """Inventory of the store."""

    success: bool
    snapshot: RetentionSnapshot | None = None
    report: str = ""
    duplicates: List[int] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "backups": self.snapshot.as_dict() if self.snapshot else None,
            "report": self.report,
            "duplicates": list(self.duplicates),
            "error_kind": self.error_kind.value if self.error_kind else None,
            "errors": list(self.errors),
        }


class BackupOrchestrator:
    """
    Sequence backup, retention and restore against one store.

    Runs are strictly sequential and assume no other run is touching the
    same store at the same time.
    """

    def __init__(
        self,
        config: BackupConfig,
        dump_producer: DumpProducer,
        transfer: BackupTransfer,
        listing: RemoteListing,
        database: DatabaseApply,
        notifier: Notifier,
        clock: Callable[[], int] = now_millis,
    ):
        self.config = config
        self.dump_producer = dump_producer
        self.transfer = transfer
        self.listing = listing
        self.database = database
        self.notifier = notifier
        self.clock = clock

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def snapshot(self) -> StepResult[RetentionSnapshot]:
        """List every tier and parse the listings into a snapshot."""
        members = {}
        for tier in Tier:
            listed = await attempt(self.listing.list(tier))
            if not listed.ok:
                return StepResult(error=listed.error)
            members[tier] = parse_listing(listed.value)

        snapshot = RetentionSnapshot.from_tiers(members)
        duplicates = snapshot.duplicates()
        if duplicates:
            logger.warning("timestamps_in_multiple_tiers", timestamps=duplicates)

        logger.debug("snapshot_listed", **{t.value: len(snapshot.members(t)) for t in Tier})
        return StepResult(value=snapshot)

    async def list_backups(self) -> ListResult:
        """
        Build the inventory report of every backup in the store.

        Returns:
            ListResult with the snapshot and its human-readable report
        """
        listed = await self.snapshot()
        if not listed.ok:
            logger.error("list_failed", error=listed.message)
            return ListResult(
                success=False,
                error_kind=listed.kind,
                errors=[listed.message],
            )

        snapshot = listed.value
        return ListResult(
            success=True,
            snapshot=snapshot,
            report=format_snapshot(snapshot),
            duplicates=snapshot.duplicates(),
        )

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    async def run_backup(self) -> BackupResult:
        """
        Run a complete backup cycle.

        This is the main entry point for scheduled runs. It:
        1. Dumps the database
        2. Stores the dump in the daily tier
        3. Plans retention from a fresh listing of all tiers
        4. Applies the planned promotions and evictions in order
        5. Notifies the outcome with the resulting inventory

        A failed dump or upload stops the run before retention is
        planned. A failed retention action stops the remaining actions;
        the next run replans from what is actually in the store.

        Returns:
            BackupResult with run details
        """
        started_at = datetime.now(UTC)
        result = BackupResult(operation_id=str(ULID()))
        attempted: List[Tuple[RetentionAction, bool, str | None]] = []

        logger.info("backup_started", operation_id=result.operation_id)

        dump = await attempt(self.dump_producer.produce_dump())
        if not dump.ok:
            self._record_failure(result, dump)
            await self._notify_backup(result, "Backup failed with message")
            return await self._finish_backup(result, started_at, attempted)

        timestamp = self.clock()
        try:
            stored = await attempt(self.transfer.store(dump.value, Tier.DAILY, timestamp))
        finally:
            dump.value.unlink(missing_ok=True)

        if not stored.ok:
            self._record_failure(result, stored)
            await self._notify_backup(result, "Backup failed with message")
            return await self._finish_backup(result, started_at, attempted)

        result.stored = True
        result.timestamp = timestamp
        logger.info("backup_stored", timestamp=timestamp, tier=Tier.DAILY.value)

        listed = await self.snapshot()
        if not listed.ok:
            self._record_failure(result, listed)
            await self._notify_backup(
                result,
                f"Backup {timestamp} stored, but retention was skipped with message",
            )
            return await self._finish_backup(result, started_at, attempted)

        inventory = listed.value
        result.planned_actions = plan_retention(inventory, self.config.caps)

        for action in result.planned_actions:
            applied = await attempt(self._apply_action(action))
            if not applied.ok:
                attempted.append((action, False, applied.message))
                self._record_failure(result, applied)
                logger.error(
                    "retention_action_failed",
                    action=action.describe(),
                    error=applied.message,
                )
                break
            attempted.append((action, True, None))
            result.applied_actions.append(action)
            inventory = inventory.apply(action)

        result.report = format_snapshot(inventory)
        result.success = result.error_kind is None

        if result.success:
            await self._notify_backup(result, "Backup succeeded!")
        else:
            await self._notify_backup(
                result,
                f"Backup {timestamp} stored, but retention stopped with message",
            )

        return await self._finish_backup(result, started_at, attempted)

    async def _apply_action(self, action: RetentionAction) -> None:
        if isinstance(action, Promote):
            await self.transfer.move(action.timestamp, action.from_tier, action.to_tier)
            logger.info(
                "backup_promoted",
                timestamp=action.timestamp,
                from_tier=action.from_tier.value,
                to_tier=action.to_tier.value,
            )
        else:
            await self.transfer.remove(action.timestamp, action.from_tier)
            logger.info(
                "backup_evicted",
                timestamp=action.timestamp,
                tier=action.from_tier.value,
            )

    def _record_failure(self, result: BackupResult, step: StepResult) -> None:
        result.error_kind = step.kind
        result.errors.append(step.message)

    async def _notify_backup(self, result: BackupResult, headline: str) -> None:
        if result.error_kind is None:
            body = headline
        else:
            body = f"{headline}\n" + "\n".join(result.errors)

        if not result.report:
            # The run stopped before retention; list the store as it stands.
            listed = await self.snapshot()
            if listed.ok:
                result.report = format_snapshot(listed.value)

        message = f"{body}\n\n{result.report}" if result.report else body
        sent = await attempt(self.notifier.notify(message))
        result.notified = sent.ok
        if not sent.ok:
            logger.warning("notification_failed", error=sent.message)

    async def _finish_backup(
        self,
        result: BackupResult,
        started_at: datetime,
        attempted: List[Tuple[RetentionAction, bool, str | None]],
    ) -> BackupResult:
        result.duration_seconds = (datetime.now(UTC) - started_at).total_seconds()

        await self._journal(
            run_id=result.operation_id,
            kind="backup",
            started_at=started_at,
            success=result.success,
            timestamp=result.timestamp,
            error_kind=result.error_kind,
            error="; ".join(result.errors) or None,
            stats={
                "stored": result.stored,
                "planned": len(result.planned_actions),
                "applied": len(result.applied_actions),
                "notified": result.notified,
            },
            actions=attempted,
        )

        if result.success:
            logger.info(
                "backup_completed",
                operation_id=result.operation_id,
                timestamp=result.timestamp,
                applied=len(result.applied_actions),
                duration=result.duration_seconds,
            )
        else:
            logger.error(
                "backup_failed",
                operation_id=result.operation_id,
                error_kind=result.error_kind.value if result.error_kind else None,
                stored=result.stored,
                errors=result.errors,
            )
        return result

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def restore(self, requested: int | str) -> RestoreResult:
        """
        Restore the database from the backup with the given timestamp.

        An unknown timestamp is reported in the result, not raised.

        Args:
            requested: Backup timestamp, as an int or as typed by the user

        Returns:
            RestoreResult with run details
        """
        started_at = datetime.now(UTC)
        result = RestoreResult(operation_id=str(ULID()), requested=str(requested).strip())

        logger.info(
            "restore_started",
            operation_id=result.operation_id,
            requested=result.requested,
        )

        listed = await self.snapshot()
        if not listed.ok:
            self._restore_failure(result, listed)
            return await self._finish_restore(result, started_at)

        location = resolve_backup(listed.value, requested)
        if location is None:
            missing = NotFoundError(f"Backup with name {result.requested} doesn't exist")
            self._restore_failure(result, StepResult(error=missing))
            return await self._finish_restore(result, started_at)

        result.location = location

        fetched = await attempt(self.transfer.fetch(location.tier, location.timestamp))
        if not fetched.ok:
            self._restore_failure(result, fetched)
            return await self._finish_restore(result, started_at)

        try:
            applied = await attempt(self.database.apply(fetched.value))
        finally:
            fetched.value.unlink(missing_ok=True)

        if not applied.ok:
            self._restore_failure(result, applied)
            return await self._finish_restore(result, started_at)

        result.success = True
        result.message = (
            f"Restored backup {location.timestamp} from the {location.tier.value} tier"
        )
        return await self._finish_restore(result, started_at)

    def _restore_failure(self, result: RestoreResult, step: StepResult) -> None:
        result.error_kind = step.kind
        result.message = step.message

    async def _finish_restore(
        self,
        result: RestoreResult,
        started_at: datetime,
    ) -> RestoreResult:
        result.duration_seconds = (datetime.now(UTC) - started_at).total_seconds()

        await self._journal(
            run_id=result.operation_id,
            kind="restore",
            started_at=started_at,
            success=result.success,
            timestamp=result.location.timestamp if result.location else None,
            error_kind=result.error_kind,
            error=None if result.success else result.message,
            stats={
                "requested": result.requested,
                "tier": result.location.tier.value if result.location else None,
            },
        )

        if result.success:
            logger.info(
                "restore_completed",
                operation_id=result.operation_id,
                timestamp=result.location.timestamp,
                tier=result.location.tier.value,
                duration=result.duration_seconds,
            )
        elif result.error_kind == ErrorKind.NOT_FOUND:
            logger.info(
                "restore_target_not_found",
                operation_id=result.operation_id,
                requested=result.requested,
            )
        else:
            logger.error(
                "restore_failed",
                operation_id=result.operation_id,
                error_kind=result.error_kind.value if result.error_kind else None,
                error=result.message,
            )
        return result

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    async def _journal(
        self,
        run_id: str,
        kind: str,
        started_at: datetime,
        success: bool,
        timestamp: int | None,
        error_kind: ErrorKind | None,
        error: str | None,
        stats: dict,
        actions: List[Tuple[RetentionAction, bool, str | None]] | None = None,
    ) -> None:
        if self.config.journal_path is None:
            return

        written = await attempt(
            write_run(
                self.config.journal_path,
                run_id,
                kind,
                started_at,
                success,
                timestamp=timestamp,
                error_kind=error_kind.value if error_kind else None,
                error=error,
                stats=stats,
                actions=actions or [],
            )
        )
        if not written.ok:
            logger.warning("journal_write_failed", run_id=run_id, error=written.message)


def create_orchestrator(config: BackupConfig) -> BackupOrchestrator:
    """
    Create an orchestrator wired to the collaborators the config selects.

    Args:
        config: pgtier configuration

    Returns:
        BackupOrchestrator using PostgreSQL, the configured store and notifier
    """
    from pgtier.database import PostgresDatabase
    from pgtier.notifications import create_notifier
    from pgtier.transport import create_store

    database = PostgresDatabase(
        user=config.db_user,
        dbname=config.db_name,
        host=config.db_host,
        port=config.db_port,
        password=config.db_password,
        compress=config.compress_dumps,
        work_dir=config.work_dir,
        timeout=config.command_timeout,
    )
    store = create_store(config)

    return BackupOrchestrator(
        config=config,
        dump_producer=database,
        transfer=store,
        listing=store,
        database=database,
        notifier=create_notifier(config),
    )
