# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Vault - Run journal and dump compression.
"""

from pgtier.vault.journal import (
    init_journal_db,
    record_run,
    record_action,
    write_run,
    list_runs,
    get_run_actions,
    RunRecord,
    ActionRecord,
)

from pgtier.vault.compressor import (
    compress_dump,
    decompress_backup,
    is_zstd_file,
)

__all__ = [
    # Journal functions
    "init_journal_db",
    "record_run",
    "record_action",
    "write_run",
    "list_runs",
    "get_run_actions",
    # Types
    "RunRecord",
    "ActionRecord",
    # Compressor
    "compress_dump",
    "decompress_backup",
    "is_zstd_file",
]
