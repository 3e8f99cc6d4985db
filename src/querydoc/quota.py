"""Cloud usage counters enforcing the free request quota."""
from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from querydoc.config import Settings

LOGGER = logging.getLogger(__name__)

CLOUD_QUOTA_LIMIT = 5


class UsageCounter(ABC):
    """Counts completed cloud requests against a fixed limit."""

    def __init__(self, limit: int = CLOUD_QUOTA_LIMIT) -> None:
        if limit < 0:
            raise ValueError("limit must be a non-negative integer")
        self.limit = limit

    @abstractmethod
    def get(self) -> int:
        """Return the number of cloud requests used so far."""

    @abstractmethod
    def increment(self) -> int:
        """Record one completed cloud request and return the new total."""

    def remaining(self) -> int:
        return max(self.limit - self.get(), 0)

    def exhausted(self) -> bool:
        return self.get() >= self.limit


class InMemoryUsageCounter(UsageCounter):
    def __init__(self, limit: int = CLOUD_QUOTA_LIMIT, used: int = 0) -> None:
        super().__init__(limit)
        self._used = used

    def get(self) -> int:
        return self._used

    def increment(self) -> int:
        self._used += 1
        return self._used

    def reset(self) -> None:
        self._used = 0


class JsonFileUsageCounter(UsageCounter):
    """Keeps the counter in a small JSON file so it survives restarts."""

    def __init__(self, path: Path, limit: int = CLOUD_QUOTA_LIMIT) -> None:
        super().__init__(limit)
        self.path = Path(path)
        self._lock = threading.Lock()

    def get(self) -> int:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return 0
        except (OSError, ValueError) as error:
            LOGGER.warning("Unreadable usage file %s (%s); treating usage as 0", self.path, error)
            return 0
        used = payload.get("used", 0) if isinstance(payload, dict) else 0
        return used if isinstance(used, int) and used >= 0 else 0

    def increment(self) -> int:
        with self._lock:
            used = self.get() + 1
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({"used": used}), encoding="utf-8")
            return used


def build_usage_counter(settings: Settings) -> UsageCounter:
    """File-backed counter when ``CLOUD_USAGE_PATH`` is set, otherwise per-process."""

    if settings.cloud_usage_path is not None:
        return JsonFileUsageCounter(settings.cloud_usage_path, settings.cloud_quota_limit)
    return InMemoryUsageCounter(settings.cloud_quota_limit)


__all__ = [
    "CLOUD_QUOTA_LIMIT",
    "InMemoryUsageCounter",
    "JsonFileUsageCounter",
    "UsageCounter",
    "build_usage_counter",
]
