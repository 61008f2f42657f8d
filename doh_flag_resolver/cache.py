"""
Resolution result caching
Hostname-keyed records whose freshness is judged at read time
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ResolutionRecord:
    """Cached outcome of a successful resolution"""

    ip: str
    enrichment: dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0  # seconds since the epoch

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, now: float, ttl: float) -> bool:
        return self.age(now) < ttl

    @property
    def country_code(self) -> str | None:
        return self.enrichment.get("country_code")

    def to_dict(self) -> dict[str, Any]:
        return {"ip": self.ip, "enrichment": self.enrichment, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResolutionRecord":
        """
        Rebuild a record from its serialized form

        Raises:
            ValueError: If required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise ValueError(f"Cached record must be an object, got {type(data).__name__}")
        try:
            ip = data["ip"]
            timestamp = float(data["timestamp"])
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed cached record: {e}") from e
        enrichment = data.get("enrichment") or {}
        if not isinstance(ip, str) or not isinstance(enrichment, dict):
            raise ValueError("Malformed cached record: bad ip or enrichment")
        return cls(ip=ip, enrichment=enrichment, timestamp=timestamp)


class ResultCache(ABC):
    """
    Key-value store for resolution records

    At most one record per hostname; put() overwrites. Nothing is ever
    evicted here, the resolver decides whether a record is still fresh.
    """

    @abstractmethod
    def get(self, hostname: str) -> ResolutionRecord | None:
        """Return the record for hostname, or None when absent"""

    @abstractmethod
    def put(self, hostname: str, record: ResolutionRecord) -> None:
        """Store record under hostname, replacing any previous one"""

    @abstractmethod
    def __len__(self) -> int:
        ...

    def __contains__(self, hostname: str) -> bool:
        return self.get(hostname) is not None


class InMemoryResultCache(ResultCache):
    """Process-local cache backed by a dict"""

    def __init__(self):
        self._records: dict[str, ResolutionRecord] = {}

    def get(self, hostname: str) -> ResolutionRecord | None:
        return self._records.get(hostname)

    def put(self, hostname: str, record: ResolutionRecord) -> None:
        self._records[hostname] = record

    def __len__(self) -> int:
        return len(self._records)


class JsonFileResultCache(ResultCache):
    """
    Persistent cache stored as one JSON object keyed by hostname

    The file is read lazily on first access and rewritten atomically on
    every put. An unreadable file is logged and treated as empty; the
    next put replaces it.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._entries: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._entries is not None:
            return self._entries
        self._entries = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.error("Could not read result cache %s: %s", self.path, e)
            else:
                if isinstance(data, dict):
                    self._entries = data
                else:
                    logger.error("Result cache %s is not a JSON object, ignoring it", self.path)
        return self._entries

    def get(self, hostname: str) -> ResolutionRecord | None:
        entry = self._load().get(hostname)
        if entry is None:
            return None
        try:
            return ResolutionRecord.from_dict(entry)
        except ValueError as e:
            logger.error("Error while reading cached record for %s: %s", hostname, e)
            return None

    def put(self, hostname: str, record: ResolutionRecord) -> None:
        entries = self._load()
        entries[hostname] = record.to_dict()
        self._write(entries)

    def _write(self, entries: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(entries, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def __len__(self) -> int:
        return len(self._load())
