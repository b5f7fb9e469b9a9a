# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for pgtier tests.

Provides an in-memory store, fake database and notifiers, and test
configuration helpers. No test talks to a real database, ssh host or
bucket.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Set, Tuple

import pytest

from pgtier.config import BackupConfig
from pgtier.core import BackupOrchestrator
from pgtier.exceptions import (
    ApplyError,
    DumpError,
    ListingError,
    NotifyError,
    TransferError,
)
from pgtier.retention import Tier

# Set test environment variables
os.environ["PGTIER_ADMIN_API_KEY"] = "test-api-key-12345"

# 2024-02-04 00:00:00 UTC in epoch milliseconds
FIXED_NOW = 1707004800000


class FakeStore:
    """
    In-memory store implementing the transfer and listing contracts.

    Failures are injected per operation name: "store", "move", "remove",
    "fetch", "list". `fail_on_call` fails only the n-th call (1-based)
    of that operation.
    """

    def __init__(self, work_dir: Path):
        self.work_dir = work_dir
        self.tiers: Dict[Tier, Set[int]] = {tier: set() for tier in Tier}
        self.contents: Dict[Tuple[Tier, int], bytes] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, str] = {}
        self.fail_on_call: Dict[str, int] = {}
        self._counts: Dict[str, int] = {}
        self.extra_listing: Dict[Tier, str] = {}

    def seed(self, tier: Tier, *timestamps: int) -> None:
        for ts in timestamps:
            self.tiers[tier].add(ts)
            self.contents[(tier, ts)] = f"-- backup {ts}\n".encode()

    def mutations(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in ("store", "move", "remove")]

    def _check(self, operation: str, error_cls) -> None:
        self._counts[operation] = self._counts.get(operation, 0) + 1
        if operation in self.failures:
            raise error_cls(self.failures[operation])
        if self.fail_on_call.get(operation) == self._counts[operation]:
            raise error_cls(f"{operation} failed on call {self._counts[operation]}")

    async def store(self, file: Path, tier: Tier, timestamp: int) -> None:
        self.calls.append(("store", tier, timestamp))
        self._check("store", TransferError)
        self.tiers[tier].add(timestamp)
        self.contents[(tier, timestamp)] = file.read_bytes()

    async def move(self, timestamp: int, from_tier: Tier, to_tier: Tier) -> None:
        self.calls.append(("move", timestamp, from_tier, to_tier))
        self._check("move", TransferError)
        self.tiers[from_tier].remove(timestamp)
        self.tiers[to_tier].add(timestamp)
        self.contents[(to_tier, timestamp)] = self.contents.pop((from_tier, timestamp))

    async def remove(self, timestamp: int, tier: Tier) -> None:
        self.calls.append(("remove", timestamp, tier))
        self._check("remove", TransferError)
        self.tiers[tier].remove(timestamp)
        self.contents.pop((tier, timestamp), None)

    async def fetch(self, tier: Tier, timestamp: int) -> Path:
        self.calls.append(("fetch", tier, timestamp))
        self._check("fetch", TransferError)
        target = self.work_dir / f"fetched-{timestamp}"
        target.write_bytes(self.contents[(tier, timestamp)])
        return target

    async def list(self, tier: Tier) -> str:
        self.calls.append(("list", tier))
        self._check("list", ListingError)
        names = [str(ts) for ts in sorted(self.tiers[tier], reverse=True)]
        extra = self.extra_listing.get(tier, "")
        return "\n".join(names) + ("\n" + extra if extra else "")


class FakeDumpProducer:
    """Writes a small dump file into the work directory."""

    def __init__(self, work_dir: Path):
        self.work_dir = work_dir
        self.error: str | None = None
        self.produced: List[Path] = []

    async def produce_dump(self) -> Path:
        if self.error:
            raise DumpError(self.error)
        path = self.work_dir / f"dump-{len(self.produced)}.sql"
        path.write_bytes(b"CREATE TABLE t (id int);\n")
        self.produced.append(path)
        return path


class FakeDatabase:
    """Records the content of every applied backup."""

    def __init__(self):
        self.applied: List[bytes] = []
        self.error: str | None = None

    async def apply(self, file: Path) -> None:
        if self.error:
            raise ApplyError(self.error)
        self.applied.append(file.read_bytes())


class RecordingNotifier:
    def __init__(self):
        self.messages: List[str] = []

    async def notify(self, message: str) -> None:
        self.messages.append(message)


class FailingNotifier(RecordingNotifier):
    async def notify(self, message: str) -> None:
        self.messages.append(message)
        raise NotifyError("SMTP unavailable")


class Clock:
    """Deterministic clock advancing one day per call."""

    def __init__(self, start: int = FIXED_NOW, step: int = 86_400_000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> BackupConfig:
    """Create a test configuration."""
    return BackupConfig(
        db_user="app",
        db_name="appdb",
        store="backup-host",
        work_dir=temp_dir / "work",
    )


@pytest.fixture
def journal_config(test_config: BackupConfig, temp_dir: Path) -> BackupConfig:
    """Test configuration with the run journal enabled."""
    return test_config.with_updates(journal_path=temp_dir / "journal.db")


@pytest.fixture
def store(temp_dir: Path) -> FakeStore:
    work = temp_dir / "store-work"
    work.mkdir()
    return FakeStore(work)


@pytest.fixture
def dump_producer(temp_dir: Path) -> FakeDumpProducer:
    work = temp_dir / "dumps"
    work.mkdir()
    return FakeDumpProducer(work)


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def fixed_now() -> int:
    """Timestamp of the first backup taken with the test clock."""
    return FIXED_NOW


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


@pytest.fixture
def build_orchestrator(store, dump_producer, database, notifier, clock):
    """Factory for orchestrators wired to the in-memory collaborators."""

    def _build(config: BackupConfig, notifier=notifier) -> BackupOrchestrator:
        return BackupOrchestrator(
            config=config,
            dump_producer=dump_producer,
            transfer=store,
            listing=store,
            database=database,
            notifier=notifier,
            clock=clock,
        )

    return _build


@pytest.fixture
def orchestrator(build_orchestrator, test_config) -> BackupOrchestrator:
    """Orchestrator using the default test configuration."""
    return build_orchestrator(test_config)
