# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgtier FastAPI Integration - Admin endpoints and scheduled backups.

This module provides:
- Lifespan management (startup/shutdown, scheduler)
- Protected admin endpoints to list, back up and restore
- Journal browsing and health checks
"""

import asyncio
import os
from contextlib import asynccontextmanager
from datetime import datetime, UTC

import aiosqlite
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pgtier.config import BackupConfig
from pgtier.core import BackupOrchestrator, create_orchestrator
from pgtier.exceptions import ErrorKind
from pgtier.vault import get_run_actions, init_journal_db, list_runs

logger = structlog.get_logger()

# Security
security = HTTPBearer(auto_error=False)

SCHEDULED_JOB_ID = "pgtier_scheduled_backup"


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> bool:
    """
    Verify API key from Authorization header.

    The API key is read from the PGTIER_ADMIN_API_KEY environment variable.
    Requests must include: Authorization: Bearer <api_key>

    Raises:
        HTTPException: If API key is missing or invalid
    """
    api_key = os.getenv("PGTIER_ADMIN_API_KEY")

    if not api_key:
        raise HTTPException(
            status_code=500,
            detail="PGTIER_ADMIN_API_KEY environment variable not set",
        )

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required",
        )

    if credentials.credentials != api_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True


def register_backup_routes(
    app: FastAPI,
    orchestrator: BackupOrchestrator,
    prefix: str = "/admin/backups",
) -> None:
    """
    Register backup admin endpoints on a FastAPI app.

    All endpoints require Bearer token authentication. Backup and restore
    runs are serialized: a request waits for any run in progress.

    Args:
        app: FastAPI application
        orchestrator: Orchestrator the endpoints drive
        prefix: URL prefix for endpoints (default: /admin/backups)
    """
    config = orchestrator.config
    run_lock = _get_run_lock(app)

    @app.get(prefix, dependencies=[Depends(verify_api_key)])
    async def list_backups() -> dict:
        """List every backup in the store, by tier."""
        result = await orchestrator.list_backups()
        if not result.success:
            raise HTTPException(status_code=502, detail=result.errors[0])
        return result.to_dict()

    @app.post(f"{prefix}/run", dependencies=[Depends(verify_api_key)])
    async def trigger_backup() -> dict:
        """
        Manually trigger a backup run.

        Returns the run result including the retention actions applied.
        """
        async with run_lock:
            result = await orchestrator.run_backup()
        return result.to_dict()

    @app.post(f"{prefix}/restore/{{timestamp}}", dependencies=[Depends(verify_api_key)])
    async def restore_backup(timestamp: str) -> dict:
        """
        Restore the database from a backup.

        Args:
            timestamp: Timestamp (file name) of the backup to restore
        """
        async with run_lock:
            result = await orchestrator.restore(timestamp)
        if result.error_kind == ErrorKind.NOT_FOUND:
            raise HTTPException(status_code=404, detail=result.message)
        return result.to_dict()

    @app.get(f"{prefix}/runs", dependencies=[Depends(verify_api_key)])
    async def list_journal_runs(
        limit: int = 50,
        offset: int = 0,
        kind: str | None = None,
    ) -> list:
        """
        List journaled runs with pagination.

        Args:
            limit: Maximum number of runs to return
            offset: Number of runs to skip
            kind: Filter by kind (backup, restore)
        """
        if config.journal_path is None:
            raise HTTPException(status_code=404, detail="Run journal is not enabled")

        await init_journal_db(config.journal_path)
        async with aiosqlite.connect(config.journal_path) as db:
            return await list_runs(db, limit, offset, kind)

    @app.get(f"{prefix}/runs/{{run_id}}/actions", dependencies=[Depends(verify_api_key)])
    async def list_run_actions(run_id: str) -> list:
        """List the retention actions attempted by one run."""
        if config.journal_path is None:
            raise HTTPException(status_code=404, detail="Run journal is not enabled")

        await init_journal_db(config.journal_path)
        async with aiosqlite.connect(config.journal_path) as db:
            return await get_run_actions(db, run_id)

    @app.get(f"{prefix}/health", dependencies=[Depends(verify_api_key)])
    async def health_check() -> dict:
        """
        Health check endpoint.

        Verifies that every tier of the store can be listed.
        """
        listed = await orchestrator.snapshot()
        store_ok = listed.ok

        journal_ok = None
        if config.journal_path is not None:
            journal_ok = config.journal_path.exists()

        status = "healthy"
        if not store_ok:
            status = "unhealthy"
        elif journal_ok is False:
            status = "degraded"

        return {
            "status": status,
            "store_reachable": store_ok,
            "store_error": None if store_ok else listed.message,
            "journal_accessible": journal_ok,
            "busy": run_lock.locked(),
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get(f"{prefix}/config", dependencies=[Depends(verify_api_key)])
    async def get_config() -> dict:
        """
        Get current configuration (sensitive values redacted).
        """
        return {
            "db_user": config.db_user,
            "db_name": config.db_name,
            "db_host": config.db_host,
            "db_port": config.db_port,
            "transport": config.transport.value,
            "store": config.store,
            "remote_root": config.remote_root,
            "region": config.region,
            "caps": {
                "daily": config.daily_cap,
                "weekly": config.weekly_cap,
                "monthly": config.monthly_cap,
            },
            "compress_dumps": config.compress_dumps,
            "email_enabled": config.email_enabled,
            "recipients": len(config.recipients),
            "journal_enabled": config.journal_path is not None,
            "schedule_cron": config.schedule_cron,
        }


def _get_run_lock(app: FastAPI) -> asyncio.Lock:
    lock = getattr(app.state, "pgtier_run_lock", None)
    if lock is None:
        lock = asyncio.Lock()
        app.state.pgtier_run_lock = lock
    return lock


def _setup_scheduled_task(
    app: FastAPI,
    orchestrator: BackupOrchestrator,
    schedule_cron: str,
) -> AsyncIOScheduler | None:
    """Set up APScheduler for the daily backup run at schedule_cron (HH:MM, UTC)."""
    run_lock = _get_run_lock(app)

    try:
        scheduler = AsyncIOScheduler()

        # Parse HH:MM format
        hour, minute = map(int, schedule_cron.split(":"))

        async def scheduled_backup():
            """Run scheduled backup."""
            logger.info("scheduled_backup_starting")
            async with run_lock:
                result = await orchestrator.run_backup()
            logger.info(
                "scheduled_backup_completed",
                success=result.success,
                applied=len(result.applied_actions),
                errors=len(result.errors),
            )

        scheduler.add_job(
            scheduled_backup,
            trigger=CronTrigger(hour=hour, minute=minute, timezone="UTC"),
            id=SCHEDULED_JOB_ID,
            replace_existing=True,
        )
        scheduler.start()

        logger.info(
            "scheduler_started",
            schedule=schedule_cron,
            next_run=scheduler.get_job(SCHEDULED_JOB_ID).next_run_time.isoformat(),
        )
        return scheduler

    except Exception as e:
        logger.error("scheduler_setup_failed", error=str(e))
        return None


@asynccontextmanager
async def backup_lifespan(
    app: FastAPI,
    config: BackupConfig,
    orchestrator: BackupOrchestrator | None = None,
    prefix: str = "/admin/backups",
):
    """
    Lifespan context manager for FastAPI.

        app = FastAPI(lifespan=lambda app: backup_lifespan(app, config))

    Args:
        app: FastAPI application
        config: pgtier configuration
        orchestrator: Pre-built orchestrator (built from config if omitted)
        prefix: URL prefix for admin endpoints
    """
    logger.info("pgtier_lifespan_starting", store=config.store)

    if orchestrator is None:
        orchestrator = create_orchestrator(config)
    app.state.pgtier_config = config
    app.state.pgtier_orchestrator = orchestrator

    if config.journal_path is not None:
        await init_journal_db(config.journal_path)

    register_backup_routes(app, orchestrator, prefix)

    scheduler = None
    if config.schedule_cron:
        scheduler = _setup_scheduled_task(app, orchestrator, config.schedule_cron)
    app.state.pgtier_scheduler = scheduler

    logger.info("pgtier_lifespan_started")

    try:
        yield
    finally:
        logger.info("pgtier_lifespan_stopping")
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        logger.info("pgtier_lifespan_stopped")


def get_orchestrator(app: FastAPI) -> BackupOrchestrator:
    """
    Get the orchestrator from a FastAPI app.

    Useful for accessing it in custom endpoints.

    Args:
        app: FastAPI application

    Returns:
        BackupOrchestrator

    Raises:
        RuntimeError: If pgtier not initialized
    """
    orchestrator = getattr(app.state, "pgtier_orchestrator", None)
    if not orchestrator:
        raise RuntimeError("pgtier not initialized. Use backup_lifespan first.")
    return orchestrator
