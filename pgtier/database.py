# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
PostgreSQL adapter - Dump with pg_dump, restore with psql.

Credentials are expected in ~/.pgpass so that only the user and database
name need to be passed; an explicit password is handed to the child
process through PGPASSWORD and never appears on a command line.
"""

import os
from pathlib import Path
from typing import Dict, List

import structlog

from pgtier.exceptions import ApplyError, DumpError
from pgtier.process import make_work_file, run_command
from pgtier.vault.compressor import compress_dump, decompress_backup, is_zstd_file

logger = structlog.get_logger()


class PostgresDatabase:
    """Dump producer and database apply for one PostgreSQL database."""

    def __init__(
        self,
        user: str,
        dbname: str,
        host: str | None = None,
        port: int | None = None,
        password: str | None = None,
        compress: bool = True,
        work_dir: Path | None = None,
        timeout: float | None = None,
    ):
        self.user = user
        self.dbname = dbname
        self.host = host
        self.port = port
        self.password = password
        self.compress = compress
        self.work_dir = work_dir
        self.timeout = timeout

    def connection_args(self) -> List[str]:
        args = ["--username", self.user, "--dbname", self.dbname]
        if self.host:
            args += ["--host", self.host]
        if self.port:
            args += ["--port", str(self.port)]
        return args

    def _env(self) -> Dict[str, str] | None:
        if not self.password:
            return None
        return {**os.environ, "PGPASSWORD": self.password}

    async def produce_dump(self) -> Path:
        """
        Dump the database to a local file.

        Returns:
            Path to the (optionally zstd-compressed) dump

        Raises:
            DumpError: If the scratch file, pg_dump or compression fails
        """
        try:
            target = make_work_file(self.work_dir, prefix="pgtier-dump-", suffix=".sql")
        except OSError as e:
            raise DumpError(
                f"Failed to create dump file: {e}",
                details={"work_dir": str(self.work_dir)},
            )

        try:
            await run_command(
                ["pg_dump", *self.connection_args(), "--file", str(target)],
                DumpError,
                env=self._env(),
                timeout=self.timeout,
            )
            if self.compress:
                target = await compress_dump(target)
            size = target.stat().st_size
        except DumpError:
            target.unlink(missing_ok=True)
            raise
        except OSError as e:
            target.unlink(missing_ok=True)
            raise DumpError(
                f"Failed to read dump file: {e}",
                details={"path": str(target)},
            )

        logger.info(
            "database_dumped",
            dbname=self.dbname,
            path=str(target),
            size=size,
            compressed=self.compress,
        )
        return target

    async def apply(self, file: Path) -> None:
        """
        Load a backup into the database with psql.

        zstd-compressed backups are decompressed first; plain SQL is
        applied as is.

        Raises:
            ApplyError: If decompression or psql fails
        """
        sql_file = file
        try:
            compressed = await is_zstd_file(file)
        except OSError as e:
            raise ApplyError(
                f"Failed to read backup file: {e}",
                details={"path": str(file)},
            )
        if compressed:
            sql_file = await decompress_backup(file)

        try:
            await run_command(
                [
                    "psql",
                    *self.connection_args(),
                    "--set",
                    "ON_ERROR_STOP=1",
                    "--file",
                    str(sql_file),
                ],
                ApplyError,
                env=self._env(),
                timeout=self.timeout,
            )
        finally:
            if sql_file != file:
                sql_file.unlink(missing_ok=True)

        logger.info("database_restored", dbname=self.dbname, path=str(file))
