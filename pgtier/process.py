# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Subprocess and scratch-file helpers shared by the transports and the
database adapter.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Dict, Sequence, Type

import structlog

from pgtier.exceptions import PgTierError

logger = structlog.get_logger()


async def run_command(
    args: Sequence[str],
    error_cls: Type[PgTierError],
    *,
    env: Dict[str, str] | None = None,
    timeout: float | None = None,
) -> str:
    """
    Run an external command to completion and return its stdout.

    Args:
        args: Program and arguments (no shell involved)
        error_cls: Exception raised on any failure
        env: Full environment for the child (inherits ours if None)
        timeout: Seconds before the command is killed

    Returns:
        Decoded stdout

    Raises:
        error_cls: If the command cannot start, times out or exits non-zero
    """
    program = args[0]
    logger.debug("command_started", command=" ".join(args))

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
    except OSError as e:
        raise error_cls(
            f"Failed to start {program}: {e}",
            details={"command": program},
        )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise error_cls(
            f"{program} timed out after {timeout}s",
            details={"command": program},
        )

    if process.returncode != 0:
        error_output = stderr.decode("utf-8", errors="replace").strip()
        raise error_cls(
            f"{program} failed: {error_output or f'exit code {process.returncode}'}",
            details={"command": program, "returncode": process.returncode},
        )

    return stdout.decode("utf-8", errors="replace")


def make_work_file(work_dir: Path | None, prefix: str, suffix: str = "") -> Path:
    """
    Create an empty scratch file for a dump or a fetched backup.

    The caller owns the file and removes it when done.
    """
    if work_dir is not None:
        work_dir.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=work_dir)
    os.close(fd)
    return Path(name)
