# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgtier Run Journal - Append-only audit trail of runs and retention actions.

Every backup and restore run is recorded once it completes, along
with each retention action that was applied or failed. Records are never
modified or deleted.
"""

import json
from datetime import datetime, UTC
from pathlib import Path
from typing import Iterable, List, Tuple, TypedDict

import aiosqlite
import structlog

from pgtier.exceptions import JournalError
from pgtier.retention.tiers import RetentionAction, action_to_dict

logger = structlog.get_logger()


class RunRecord(TypedDict):
    """Record of one orchestrator run."""

    id: str  # ULID
    kind: str  # backup, restore
    started_at: str  # ISO 8601
    completed_at: str  # ISO 8601
    success: bool
    timestamp: int | None  # Backup timestamp stored or restored
    error_kind: str | None
    error: str | None
    stats: dict


class ActionRecord(TypedDict):
    """Record of one retention action."""

    id: int
    run_id: str
    action: str  # promote, evict
    timestamp: int
    from_tier: str
    to_tier: str | None
    applied: bool
    error: str | None
    recorded_at: str  # ISO 8601


async def init_journal_db(db_path: Path) -> None:
    """
    Initialize the journal database schema.

    Creates tables if they don't exist. This is idempotent.

    Args:
        db_path: Path to the SQLite database file
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS runs (
                    id TEXT PRIMARY KEY,
                    kind TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    completed_at TEXT NOT NULL,
                    success INTEGER NOT NULL,
                    timestamp INTEGER,
                    error_kind TEXT,
                    error TEXT,
                    stats TEXT NOT NULL
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS actions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    run_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    from_tier TEXT NOT NULL,
                    to_tier TEXT,
                    applied INTEGER NOT NULL,
                    error TEXT,
                    recorded_at TEXT NOT NULL,
                    FOREIGN KEY (run_id) REFERENCES runs(id)
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_actions_run_id
                ON actions(run_id)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_runs_started_at
                ON runs(started_at)
            """)

            await db.commit()

        logger.debug("journal_db_initialized", db_path=str(db_path))

    except (aiosqlite.Error, OSError) as e:
        raise JournalError(
            f"Failed to initialize journal database: {e}",
            details={"db_path": str(db_path)},
        )


async def record_run(
    db: aiosqlite.Connection,
    run_id: str,
    kind: str,
    started_at: datetime,
    success: bool,
    timestamp: int | None = None,
    error_kind: str | None = None,
    error: str | None = None,
    stats: dict | None = None,
) -> None:
    """
    Record a completed run.

    Args:
        db: SQLite database connection
        run_id: Unique run ID (ULID)
        kind: backup or restore
        started_at: When the run started
        success: Whether the run succeeded
        timestamp: Backup timestamp stored or restored
        error_kind: ErrorKind value of the failure, if any
        error: Error message, if any
        stats: Extra run statistics
    """
    now = datetime.now(UTC).isoformat()

    await db.execute(
        """
        INSERT INTO runs
        (id, kind, started_at, completed_at, success, timestamp, error_kind, error, stats)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            run_id,
            kind,
            started_at.isoformat(),
            now,
            int(success),
            timestamp,
            error_kind,
            error,
            json.dumps(stats or {}),
        ),
    )
    await db.commit()


async def record_action(
    db: aiosqlite.Connection,
    run_id: str,
    action: RetentionAction,
    applied: bool,
    error: str | None = None,
) -> int:
    """
    Record a retention action.

    Args:
        db: SQLite database connection
        run_id: Run this action belongs to
        action: The Promote or Evict action
        applied: Whether the store was changed
        error: Error message if the action failed

    Returns:
        Action record ID
    """
    now = datetime.now(UTC).isoformat()
    data = action_to_dict(action)

    cursor = await db.execute(
        """
        INSERT INTO actions
        (run_id, action, timestamp, from_tier, to_tier, applied, error, recorded_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            run_id,
            data["action"],
            data["timestamp"],
            data["from_tier"],
            data["to_tier"],
            int(applied),
            error,
            now,
        ),
    )
    await db.commit()
    return cursor.lastrowid


async def write_run(
    db_path: Path,
    run_id: str,
    kind: str,
    started_at: datetime,
    success: bool,
    timestamp: int | None = None,
    error_kind: str | None = None,
    error: str | None = None,
    stats: dict | None = None,
    actions: Iterable[Tuple[RetentionAction, bool, str | None]] = (),
) -> None:
    """
    Record a run and its actions in one go.

    Args:
        db_path: Path to the journal database
        actions: (action, applied, error) for each retention action attempted
        (remaining arguments as for record_run)

    Raises:
        JournalError: If the journal cannot be written
    """
    await init_journal_db(db_path)
    try:
        async with aiosqlite.connect(db_path) as db:
            await record_run(
                db, run_id, kind, started_at, success,
                timestamp, error_kind, error, stats,
            )
            for action, applied, action_error in actions:
                await record_action(db, run_id, action, applied, action_error)
    except (aiosqlite.Error, OSError) as e:
        raise JournalError(
            f"Failed to write run to journal: {e}",
            details={"db_path": str(db_path), "run_id": run_id},
        )

    logger.debug("run_journaled", run_id=run_id, kind=kind)


def _row_to_run(row: tuple) -> RunRecord:
    return RunRecord(
        id=row[0],
        kind=row[1],
        started_at=row[2],
        completed_at=row[3],
        success=bool(row[4]),
        timestamp=row[5],
        error_kind=row[6],
        error=row[7],
        stats=json.loads(row[8]),
    )


async def list_runs(
    db: aiosqlite.Connection,
    limit: int = 50,
    offset: int = 0,
    kind: str | None = None,
) -> List[RunRecord]:
    """
    List runs, newest first.

    Args:
        db: SQLite database connection
        limit: Maximum runs to return
        offset: Runs to skip
        kind: Only runs of this kind

    Returns:
        List of run records
    """
    query = """
        SELECT id, kind, started_at, completed_at, success, timestamp,
               error_kind, error, stats
        FROM runs
    """
    params: List = []

    if kind:
        query += " WHERE kind = ?"
        params.append(kind)

    query += " ORDER BY started_at DESC, id DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    runs: List[RunRecord] = []
    async with db.execute(query, params) as cursor:
        async for row in cursor:
            runs.append(_row_to_run(row))
    return runs


async def get_run_actions(
    db: aiosqlite.Connection,
    run_id: str,
) -> List[ActionRecord]:
    """
    Get the retention actions of a run, in the order they were attempted.

    Args:
        db: SQLite database connection
        run_id: Run ID

    Returns:
        List of action records
    """
    records: List[ActionRecord] = []

    async with db.execute(
        """
        SELECT id, run_id, action, timestamp, from_tier, to_tier, applied,
               error, recorded_at
        FROM actions
        WHERE run_id = ?
        ORDER BY id
        """,
        (run_id,),
    ) as cursor:
        async for row in cursor:
            records.append(
                ActionRecord(
                    id=row[0],
                    run_id=row[1],
                    action=row[2],
                    timestamp=row[3],
                    from_tier=row[4],
                    to_tier=row[5],
                    applied=bool(row[6]),
                    error=row[7],
                    recorded_at=row[8],
                )
            )

    return records
