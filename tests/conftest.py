"""
Pytest configuration and shared fixtures.

Provides:
- File-backed database paths that are kept on test failure for inspection
- In-memory stores for fast unit tests
- A controllable clock
- Builders for producer source directories
"""

import json
from pathlib import Path
from typing import Any, Generator

import pytest

# 2024-05-01T12:00:00Z
FIXED_NOW = 1714564800.0


class FakeClock:
    """Callable clock returning epoch seconds; advance it explicitly."""

    def __init__(self, start: float = FIXED_NOW):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SourceDirs:
    """Producer directories under one base path, with JSON writers."""

    def __init__(self, base: Path):
        self.base = base
        self.trades = base / "trades"
        self.life_events = base / "life_events"
        self.events = base / "events"
        self.online_players = base / "api" / "online_players.json"

    def write(self, directory: Path, name: str, body: Any) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(json.dumps(body))
        return path

    def write_raw(self, directory: Path, name: str, text: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(text)
        return path

    def sources(self):
        from telemetry_archive.ingest.sources import default_sources

        return default_sources(self.trades, self.life_events, self.events)


@pytest.fixture
def db_path(request, tmp_path) -> Generator[Path, None, None]:
    """Provide a database path that is removed only when the test passes.

    Usage:
        def test_something(db_path):
            store = ArchiveStore(db_path)
    """
    db_file = tmp_path / "data" / f"{request.node.name.replace('[', '_').replace(']', '')}.duckdb"

    yield db_file

    rep_call = getattr(request.node, "rep_call", None)
    if rep_call is not None and rep_call.passed:
        for path in (db_file, Path(f"{db_file}.wal")):
            if path.exists():
                path.unlink()


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Hook to make test results available to fixtures.

    This allows the db_path fixture to know if the test passed or failed.
    """
    outcome = yield
    rep = outcome.get_result()
    setattr(item, f"rep_{rep.when}", rep)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def archive_store():
    from telemetry_archive.persistence.archive_store import ArchiveStore

    store = ArchiveStore()
    yield store
    store.close()


@pytest.fixture
def snapshot_store(clock):
    from telemetry_archive.persistence.snapshot_store import SnapshotStore

    store = SnapshotStore(clock=clock)
    yield store
    store.close()


@pytest.fixture
def source_dirs(tmp_path) -> SourceDirs:
    return SourceDirs(tmp_path / "SST")


@pytest.fixture
def pipeline(archive_store, source_dirs, clock):
    from telemetry_archive.ingest.pipeline import IngestionPipeline

    return IngestionPipeline(archive_store, source_dirs.sources(), clock=clock)
