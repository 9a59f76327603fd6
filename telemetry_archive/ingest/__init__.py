"""Ingestion of producer files into the stores."""

from .pipeline import ArchiveRunResult, FamilyResult, IngestionPipeline
from .sources import SourceFamily, default_sources
from .tracker import CaptureResult, PositionTracker

__all__ = [
    "ArchiveRunResult",
    "CaptureResult",
    "FamilyResult",
    "IngestionPipeline",
    "PositionTracker",
    "SourceFamily",
    "default_sources",
]
