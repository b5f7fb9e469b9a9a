# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Listing Parser - Turn raw remote directory listings into timestamp sets.

Only tokens made entirely of ASCII digits are backups. Anything else in
the directory (temp files, editor leftovers, blank lines) is ignored.
"""

import re
from typing import FrozenSet

_TIMESTAMP_TOKEN = re.compile(r"[0-9]+")


def is_timestamp_token(token: str) -> bool:
    """Check if a listing token names a backup."""
    return _TIMESTAMP_TOKEN.fullmatch(token) is not None


def parse_listing(raw: str | bytes | None) -> FrozenSet[int]:
    """
    Parse a tier listing into the set of backup timestamps it contains.

    Never raises. Order and duplicates in the listing are irrelevant.

    Args:
        raw: Listing text, one name per whitespace-separated token

    Returns:
        Frozen set of timestamps
    """
    if raw is None:
        return frozenset()
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    return frozenset(int(token) for token in raw.split() if is_timestamp_token(token))
