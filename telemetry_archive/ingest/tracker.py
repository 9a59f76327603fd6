"""
Position Tracker

Turns the producer's online-players snapshot into one batch of position
records per capture.

Snapshot layout:
    {
        "generatedAt": "2024-05-01T12:00:00Z",
        "players": [
            {"playerId": "...", "playerName": "...", "isOnline": true,
             "posX": 1.0, "posY": 2.0, "posZ": 3.0,
             "health": 100, "blood": 5000, "isAlive": true, "isUnconscious": false},
            ...
        ]
    }
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from ..errors import SourceFileError
from ..persistence.models import PositionRecord
from ..persistence.snapshot_store import SnapshotStore
from .sources import read_source_file

logger = logging.getLogger(__name__)


class CaptureResult(BaseModel):
    """Outcome of one position capture."""

    recorded: int = 0
    online: int = 0
    skipped: int = 0
    generated_at: str | None = None


def _flag(value: Any) -> bool:
    return value is True or value == 1


def _coordinate(value: Any) -> float:
    return float(value) if value else 0.0


class PositionTracker:
    """Reads the online-players snapshot and records online players.

    Usage:
        tracker = PositionTracker(snapshot_store, config.online_players_file)
        tracker.capture()
    """

    def __init__(
        self,
        store: SnapshotStore,
        online_players_file: Path,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.online_players_file = Path(online_players_file)
        self._clock = clock

    def capture(self) -> CaptureResult:
        """Record every online player from the current snapshot.

        A missing snapshot file records nothing.

        Raises:
            SourceFileError: If the snapshot exists but cannot be read
            duckdb.Error: If the batch cannot be written
        """
        if not self.online_players_file.exists():
            logger.debug("No online players snapshot at %s", self.online_players_file)
            return CaptureResult()

        body = read_source_file(self.online_players_file)

        players = body.get("players") or []
        if not isinstance(players, list):
            raise SourceFileError(self.online_players_file, "'players' must be an array")

        recorded_at = body.get("generatedAt") or (
            datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()
        )

        records = []
        skipped = 0
        online = [p for p in players if isinstance(p, dict) and _flag(p.get("isOnline"))]
        for player in online:
            try:
                records.append(PositionRecord(
                    entity_id=str(player.get("playerId") or ""),
                    entity_name=player.get("playerName"),
                    pos_x=_coordinate(player.get("posX")),
                    pos_y=_coordinate(player.get("posY")),
                    pos_z=_coordinate(player.get("posZ")),
                    health=player.get("health"),
                    blood=player.get("blood"),
                    is_alive=_flag(player.get("isAlive")),
                    is_unconscious=_flag(player.get("isUnconscious")),
                    recorded_at=str(recorded_at),
                ))
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning("Skipping player entry in %s: %s", self.online_players_file, e)
                skipped += 1

        recorded = self.store.record_batch(records)
        if recorded:
            logger.info("Recorded %d player positions", recorded)

        return CaptureResult(
            recorded=recorded,
            online=len(online),
            skipped=skipped,
            generated_at=str(recorded_at),
        )
