"""
Durable progress snapshots.

One JSON file per input dataset, named after the input's base name so that
a checkpoint still matches after the project is moved to another machine.
Writes go to a temporary sibling first and are renamed into place, so a
reader only ever sees a complete record.
"""
import json
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from .config import ERROR_SENTINEL
from .errors import CheckpointError

logger = logging.getLogger(__name__)

CHECKPOINT_SUFFIX = ".checkpoint.json"


def checkpoint_identity(input_path: Path, tag: str = "") -> str:
    return f"{Path(input_path).stem}{tag}"


@dataclass
class CheckpointRecord:
    source_file: str
    translations: Dict[str, str]
    processed_rows: int
    total_rows: int
    timestamp: str = ""
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def completed(self) -> int:
        return sum(1 for value in self.translations.values() if value)

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "processedRows": self.processed_rows,
            "translations": self.translations,
            "totalRows": self.total_rows,
            "sourceFile": self.source_file,
        }
        if self.config:
            payload["config"] = self.config
        return payload

    @classmethod
    def from_json(cls, data: Any) -> "CheckpointRecord":
        if not isinstance(data, dict):
            raise ValueError("checkpoint is not a JSON object")
        translations = data.get("translations")
        if not isinstance(translations, dict):
            raise ValueError("checkpoint has no translations map")
        for key, value in translations.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValueError("checkpoint translations must map strings to strings")
        return cls(
            source_file=str(data.get("sourceFile") or ""),
            translations=dict(translations),
            processed_rows=int(data.get("processedRows") or 0),
            total_rows=int(data.get("totalRows") or 0),
            timestamp=str(data.get("timestamp") or ""),
            config=dict(data.get("config") or {}),
        )


class CheckpointStore:
    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, identity: str) -> Path:
        return self.directory / f"{identity}{CHECKPOINT_SUFFIX}"

    def save(self, record: CheckpointRecord) -> Path:
        target = self.path_for(record.source_file)
        temp_path = target.with_name(target.name + ".tmp")
        if not record.timestamp:
            record.timestamp = datetime.now(timezone.utc).isoformat()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as handle:
                json.dump(record.to_json(), handle, ensure_ascii=False, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            with open(temp_path, "r", encoding="utf-8") as handle:
                CheckpointRecord.from_json(json.load(handle))
            os.replace(temp_path, target)
        except (OSError, ValueError, TypeError) as exc:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as cleanup_exc:
                logger.debug("Could not remove %s: %s", temp_path, cleanup_exc)
            raise CheckpointError(f"Failed to save checkpoint {target}: {exc}") from exc

        percent = (
            100.0 * record.processed_rows / record.total_rows
            if record.total_rows
            else 100.0
        )
        logger.info(
            "Checkpoint saved: %d/%d texts (%.0f%%) -> %s",
            record.processed_rows,
            record.total_rows,
            percent,
            target,
        )
        return target

    def load(self, identity: str) -> Optional[CheckpointRecord]:
        path = self.path_for(identity)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                record = CheckpointRecord.from_json(json.load(handle))
        except FileNotFoundError:
            logger.info("No previous checkpoint found at %s, starting fresh", path)
            return None
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Ignoring unreadable checkpoint %s: %s", path, exc)
            return None

        if record.source_file and record.source_file != identity:
            logger.warning(
                "Checkpoint %s belongs to %r, not %r; ignoring it",
                path,
                record.source_file,
                identity,
            )
            return None

        total = len(record.translations)
        completed = sum(
            1
            for value in record.translations.values()
            if value and value != ERROR_SENTINEL
        )
        percent = 100.0 * completed / total if total else 0.0
        logger.info(
            "Resuming from checkpoint %s: %d texts, %d translated, %d remaining "
            "(%.0f%%), saved %s",
            path,
            total,
            completed,
            total - completed,
            percent,
            record.timestamp or "N/A",
        )
        return record

    def delete(self, identity: str) -> bool:
        path = self.path_for(identity)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Removed checkpoint %s", path)
        return True


class CheckpointScheduler:
    """Decides when to snapshot the cache and writes it, best effort."""

    def __init__(
        self,
        store: CheckpointStore,
        identity: str,
        every_batches: int,
        interval: float,
        config_snapshot: Optional[Mapping[str, Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.identity = identity
        self.every_batches = every_batches
        self.interval = interval
        self.config_snapshot = dict(config_snapshot or {})
        self._clock = clock
        self._last_save = clock()
        self._batches_since_save = 0
        self.saves = 0
        self.failed_saves = 0

    def record_batch(self) -> None:
        self._batches_since_save += 1

    def is_due(self, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        if self._batches_since_save >= self.every_batches:
            return True
        return self._batches_since_save > 0 and now - self._last_save >= self.interval

    def save(self, cache: Mapping[str, str]) -> bool:
        record = CheckpointRecord(
            source_file=self.identity,
            translations=dict(cache),
            processed_rows=sum(1 for value in cache.values() if value),
            total_rows=len(cache),
            config=self.config_snapshot,
        )
        self._batches_since_save = 0
        self._last_save = self._clock()
        try:
            self.store.save(record)
        except CheckpointError as exc:
            self.failed_saves += 1
            logger.warning("%s; continuing in memory", exc)
            return False
        self.saves += 1
        return True

    def maybe_save(self, cache: Mapping[str, str], now: Optional[float] = None) -> bool:
        if not self.is_due(now):
            return False
        return self.save(cache)
