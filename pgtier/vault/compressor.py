# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgtier Compressor - zstd compression for dump files.

Dumps are streamed file-to-file so memory use does not grow with the
database size. Restores detect compression from the zstd frame magic,
so plain SQL backups written by older versions still restore.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import aiofiles
import structlog
import zstandard as zstd

from pgtier.exceptions import ApplyError, DumpError

logger = structlog.get_logger()

# Thread pool for CPU-bound compression
_executor = ThreadPoolExecutor(max_workers=2)

ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"

# Level 19 is too slow for multi-gigabyte dumps
DEFAULT_ZSTD_LEVEL = 9


async def is_zstd_file(path: Path) -> bool:
    """
    Check if a file starts with a zstd frame.

    Args:
        path: File to inspect

    Returns:
        True if the file is zstd-compressed
    """
    async with aiofiles.open(path, "rb") as f:
        header = await f.read(len(ZSTD_MAGIC))
    return header == ZSTD_MAGIC


async def compress_dump(path: Path, level: int = DEFAULT_ZSTD_LEVEL) -> Path:
    """
    Compress a dump file, replacing it with `<name>.zst`.

    Args:
        path: Plain dump file (removed on success)
        level: zstd compression level (1-22)

    Returns:
        Path to the compressed file

    Raises:
        DumpError: If compression fails
    """
    target = path.with_name(path.name + ".zst")
    try:
        loop = asyncio.get_running_loop()
        original_size, compressed_size = await loop.run_in_executor(
            _executor, _compress_file_sync, path, target, level
        )
    except Exception as e:
        target.unlink(missing_ok=True)
        raise DumpError(
            f"Compression failed for {path.name}: {e}",
            details={"path": str(path)},
        )

    path.unlink(missing_ok=True)

    ratio = original_size / compressed_size if compressed_size else 0
    logger.debug(
        "dump_compressed",
        path=str(target),
        original_size=original_size,
        compressed_size=compressed_size,
        compression_ratio=f"{ratio:.2f}x",
    )
    return target


async def decompress_backup(path: Path) -> Path:
    """
    Decompress a fetched backup into `<name>.sql` next to it.

    Args:
        path: zstd-compressed backup file (left in place)

    Returns:
        Path to the decompressed file

    Raises:
        ApplyError: If the file is not valid zstd
    """
    target = path.with_name(path.name + ".sql")
    try:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(_executor, _decompress_file_sync, path, target)
    except Exception as e:
        target.unlink(missing_ok=True)
        raise ApplyError(
            f"Decompression failed for {path.name}: {e}",
            details={"path": str(path)},
        )
    return target


def _compress_file_sync(source: Path, target: Path, level: int) -> tuple[int, int]:
    """Synchronous streaming zstd compression."""
    cctx = zstd.ZstdCompressor(level=level)
    with open(source, "rb") as src, open(target, "wb") as dst:
        read, written = cctx.copy_stream(src, dst)
    return read, written


def _decompress_file_sync(source: Path, target: Path) -> None:
    """Synchronous streaming zstd decompression."""
    dctx = zstd.ZstdDecompressor()
    with open(source, "rb") as src, open(target, "wb") as dst:
        dctx.copy_stream(src, dst)
