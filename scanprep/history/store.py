"""Processing history persisted as a JSON file.

Keeps a bounded list of recently processed images, newest first. Embedded
image previews (``file_data_url``) are the bulk of the storage, so when the
history grows past its byte quota they are dropped before whole records
are evicted.
"""

import base64
import json
import threading
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from scanprep.preprocessing.raster import OutputArtifact
from scanprep.utils.config import FilterConfig, HistoryConfig
from scanprep.utils.logger import get_logger

logger = get_logger(__name__)

PAYLOAD_KEY = "file_data_url"


class StorageQuotaError(Exception):
    """A history record cannot be stored within the byte quota."""


def build_record(
    artifact: OutputArtifact,
    filename: str,
    config: FilterConfig,
    include_preview: bool = True,
) -> dict[str, Any]:
    """Build a history record describing a processed image.

    Args:
        artifact: Pipeline output.
        filename: Display name of the source file.
        config: Filter options used for the run.
        include_preview: Whether to embed the image as a ``data:`` URL.

    Returns:
        JSON-serializable record.
    """
    record: dict[str, Any] = {
        "filename": filename,
        "mime_type": artifact.mime_type,
        "width": artifact.width,
        "height": artifact.height,
        "size_bytes": len(artifact.data),
        "settings": config.model_dump(by_alias=True),
    }
    if artifact.metrics is not None:
        record["sharpness_after"] = artifact.metrics.sharpness_after
        record["contrast_after"] = artifact.metrics.contrast_after
    if include_preview:
        encoded = base64.b64encode(artifact.data).decode("ascii")
        record[PAYLOAD_KEY] = f"data:{artifact.mime_type};base64,{encoded}"
    return record


def _strip_payload(record: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if k != PAYLOAD_KEY}


def _size(records: list[dict[str, Any]]) -> int:
    return len(json.dumps(records).encode("utf-8"))


class HistoryStore:
    """Bounded, quota-aware store of processing history records.

    Args:
        path: JSON file holding the history list.
        max_items: Maximum number of records retained.
        payload_items: Number of newest records allowed to keep their
            embedded preview.
        quota_bytes: Maximum serialized size of the history file.
    """

    def __init__(
        self,
        path: Path,
        max_items: int = 50,
        payload_items: int = 10,
        quota_bytes: int = 5 * 1024 * 1024,
    ) -> None:
        self.path = Path(path)
        self.max_items = max_items
        self.payload_items = payload_items
        self.quota_bytes = quota_bytes
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: HistoryConfig) -> "HistoryStore":
        return cls(
            Path(config.path),
            max_items=config.max_items,
            payload_items=config.payload_items,
            quota_bytes=config.quota_bytes,
        )

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("History file %s is corrupt, starting fresh: %s", self.path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("History file %s is not a list, starting fresh", self.path)
            return []
        if not all(isinstance(r, dict) for r in data):
            logger.warning(
                "History file %s holds non-record entries, starting fresh", self.path
            )
            return []
        return sorted(data, key=lambda r: r.get("created_date", ""), reverse=True)

    def _save(self, records: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(records))

    def _fit(self, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Shrink ``records`` until it fits the quota.

        Previews are stripped from older records first, then from the
        newest record, and only then are the oldest records evicted.
        """
        if _size(records) <= self.quota_bytes:
            return records

        logger.warning("History exceeds %d bytes, dropping previews", self.quota_bytes)
        records = [records[0]] + [_strip_payload(r) for r in records[1:]]
        if _size(records) <= self.quota_bytes:
            return records

        records = [_strip_payload(r) for r in records]
        while len(records) > 1 and _size(records) > self.quota_bytes:
            evicted = records.pop()
            logger.warning("Evicted history record %s", evicted.get("id"))

        if _size(records) > self.quota_bytes:
            raise StorageQuotaError(
                f"History record does not fit in {self.quota_bytes} bytes"
            )
        return records

    def add(self, record: dict[str, Any]) -> dict[str, Any]:
        """Store a new record at the head of the history.

        Args:
            record: Record fields; ``id`` and ``created_date`` are assigned.

        Returns:
            The stored record, without its preview if it had to be dropped.

        Raises:
            StorageQuotaError: If the record cannot fit even on its own.
                The history file is left untouched.
        """
        stored = {
            **record,
            "id": uuid.uuid4().hex,
            "created_date": datetime.now(UTC).isoformat(),
        }
        with self._lock:
            records = [stored, *self._load()][: self.max_items]
            records = [
                r if i < self.payload_items else _strip_payload(r)
                for i, r in enumerate(records)
            ]
            records = self._fit(records)
            self._save(records)

        logger.debug("Stored history record %s (%d total)", stored["id"], len(records))
        return records[0]

    def records(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Return stored records, newest first."""
        with self._lock:
            records = self._load()
        return records if limit is None else records[:limit]

    def remove(self, record_id: str) -> bool:
        """Delete a record by id. Returns whether it existed."""
        with self._lock:
            records = self._load()
            kept = [r for r in records if r.get("id") != record_id]
            if len(kept) == len(records):
                return False
            self._save(kept)
        return True

    def clear(self) -> None:
        """Remove all history records."""
        with self._lock:
            self._save([])
        logger.info("Cleared history at %s", self.path)


def record_run(
    history: HistoryStore | None,
    artifact: OutputArtifact,
    filename: str,
    config: FilterConfig,
) -> None:
    """Record a pipeline run, logging rather than raising on failure."""
    if history is None:
        return
    try:
        history.add(build_record(artifact, filename, config))
    except (StorageQuotaError, OSError) as exc:
        logger.warning("Could not record history for %s: %s", filename, exc)
