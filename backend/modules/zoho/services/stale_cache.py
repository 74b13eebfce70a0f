# backend/modules/zoho/services/stale_cache.py

from typing import Any, Callable, Dict, Optional, Tuple
import json
import time


class StaleReadCache:
    """Last successful read per request, served while Zoho is rate limiting"""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    @staticmethod
    def key_for(table_name: str, **params: Any) -> str:
        return json.dumps({"table": table_name, "params": params}, sort_keys=True, default=str)

    def set(self, key: str, payload: Any) -> None:
        now = self.clock()
        self.prune(now)
        self._entries[key] = (now, payload)

    def prune(self, now: Optional[float] = None) -> None:
        """Drop every expired entry."""
        now = self.clock() if now is None else now
        expired = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, payload = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return payload

    def clear(self) -> None:
        self._entries.clear()
