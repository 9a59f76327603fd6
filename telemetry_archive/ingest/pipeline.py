"""
Ingestion Pipeline

Migrates the producer's per-entity JSON logs into the archive store.

One run processes the families in order (trades, life events, generic
events). Each family's records go in with one transaction; source files are
deleted only after their family has committed, and only if they parsed.
Every run that gets past the lease writes exactly one ledger row.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Literal

from pydantic import BaseModel, Field

from ..errors import SourceFileError
from ..persistence.archive_store import ArchiveStore
from ..persistence.models import ArchiveRunRecord, ArchiveRunStatus
from .sources import ParseContext, SourceFamily

logger = logging.getLogger(__name__)

RunStatus = Literal["completed", "error", "already_running"]


class FamilyResult(BaseModel):
    """What one run did for one family."""

    family: str
    archived: int = Field(0, description="Records committed")
    files: int = Field(0, description="Files listed")
    parsed_files: int = Field(0, description="Files that parsed")
    failed_files: list[str] = Field(default_factory=list, description="Unparseable file names")
    files_cleared: int = Field(0, description="Source files deleted")
    error: str | None = Field(None, description="Listing or transaction failure")


class ArchiveRunResult(BaseModel):
    """Outcome of ``run_archive``, mirroring the ledger row."""

    status: RunStatus
    run_id: int | None = None
    archive_date: str | None = None
    trades_archived: int = 0
    life_events_archived: int = 0
    events_archived: int = 0
    files_cleared: int = 0
    duration_ms: int = 0
    error: str | None = None
    families: list[FamilyResult] = Field(default_factory=list)

    def family(self, name: str) -> FamilyResult | None:
        for result in self.families:
            if result.family == name:
                return result
        return None


class IngestionPipeline:
    """Run-once archival of producer logs, guarded by a single-run lease.

    Usage:
        pipeline = IngestionPipeline(archive_store, default_sources(...))
        result = pipeline.run_archive(clear_files=True)
        if result.status == "error":
            ...
    """

    def __init__(
        self,
        store: ArchiveStore,
        sources: list[SourceFamily],
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.sources = list(sources)
        self._clock = clock
        self._lease = threading.Lock()
        self._inserters = {
            "trades": store.insert_trades,
            "life_events": store.insert_life_events,
            "events": store.insert_generic_events,
        }

    @property
    def is_running(self) -> bool:
        return self._lease.locked()

    def run_archive(self, clear_files: bool = True) -> ArchiveRunResult:
        """Archive every family once.

        Never raises for per-file or per-family failures; a family that
        fails in any way is reported in the result and the ledger row
        instead. A concurrent call
        returns status ``already_running`` without touching files or the
        ledger.
        """
        if not self._lease.acquire(blocking=False):
            logger.warning("Archive run requested while another run is in progress")
            return ArchiveRunResult(
                status="already_running",
                error="An archive run is already in progress",
            )

        try:
            return self._run(clear_files)
        finally:
            self._lease.release()

    def _run(self, clear_files: bool) -> ArchiveRunResult:
        started = self._clock()
        run_started = datetime.fromtimestamp(started, tz=timezone.utc).replace(tzinfo=None)
        context = ParseContext(
            run_started=run_started,
            archive_date=run_started.strftime("%Y-%m-%d"),
        )
        logger.info("Starting archive run for %s", context.archive_date)

        families: list[FamilyResult] = []
        committed: list[tuple[FamilyResult, list[Path]]] = []

        for source in self.sources:
            try:
                result, parsed = self._archive_family(source, context)
            except Exception as e:
                logger.exception("Unexpected failure archiving %s", source.name)
                result = FamilyResult(family=source.name, error=str(e) or type(e).__name__)
                parsed = []
            families.append(result)
            if result.error is None:
                committed.append((result, parsed))

        if clear_files:
            for result, parsed in committed:
                result.files_cleared = self._clear_files(result.family, parsed)

        errors = [f"{r.family}: {r.error}" for r in families if r.error is not None]
        status = ArchiveRunStatus.ERROR if errors else ArchiveRunStatus.COMPLETED
        error = errors[0] if errors else None

        counts = {r.family: r.archived for r in families}
        files_cleared = sum(r.files_cleared for r in families)
        duration_ms = max(0, int((self._clock() - started) * 1000))

        run = ArchiveRunRecord(
            run_date=context.archive_date,
            trades_archived=counts.get("trades", 0),
            life_events_archived=counts.get("life_events", 0),
            events_archived=counts.get("events", 0),
            files_cleared=files_cleared,
            duration_ms=duration_ms,
            status=status,
            error=error,
            created_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc).replace(tzinfo=None),
        )

        run_id = None
        try:
            run_id = self.store.insert_run(run)
        except Exception as e:
            logger.exception("Failed to write archive run ledger row")
            status = ArchiveRunStatus.ERROR
            error = error or f"ledger: {e}"

        logger.info(
            "Archive run %s: %d trades, %d life events, %d events, %d files cleared in %dms",
            status.value,
            run.trades_archived,
            run.life_events_archived,
            run.events_archived,
            files_cleared,
            duration_ms,
        )

        return ArchiveRunResult(
            status=status.value,
            run_id=run_id,
            archive_date=context.archive_date,
            trades_archived=run.trades_archived,
            life_events_archived=run.life_events_archived,
            events_archived=run.events_archived,
            files_cleared=files_cleared,
            duration_ms=duration_ms,
            error=error,
            families=families,
        )

    def _archive_family(
        self, source: SourceFamily, context: ParseContext
    ) -> tuple[FamilyResult, list[Path]]:
        result = FamilyResult(family=source.name)

        try:
            files = source.list_files()
        except OSError as e:
            logger.error("Cannot list %s directory %s: %s", source.name, source.directory, e)
            result.error = str(e)
            return result, []

        result.files = len(files)

        records = []
        parsed: list[Path] = []
        for path in files:
            try:
                records.extend(source.parse_file(path, context))
            except SourceFileError as e:
                logger.warning("Skipping unparseable %s file %s", source.name, e)
                result.failed_files.append(path.name)
                continue
            except Exception:
                logger.exception("Unexpected error parsing %s file %s", source.name, path)
                result.failed_files.append(path.name)
                continue
            parsed.append(path)

        result.parsed_files = len(parsed)

        try:
            result.archived = self._inserters[source.name](records)
        except Exception as e:
            logger.exception(
                "Failed to archive %s; %d files kept for the next run", source.name, len(parsed)
            )
            result.error = str(e)
            return result, []

        logger.info(
            "Archived %d %s records from %d files", result.archived, source.name, len(parsed)
        )
        return result, parsed

    def _clear_files(self, family: str, paths: list[Path]) -> int:
        cleared = 0
        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error("Failed to delete %s file %s: %s", family, path, e)
                continue
            cleared += 1
        return cleared
