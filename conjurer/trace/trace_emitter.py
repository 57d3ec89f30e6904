from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .trace_store_jsonl import TraceStoreJSONL


class TraceEmitter:
    def __init__(self, store: TraceStoreJSONL, run_id: str):
        self._store = store
        self._run_id = run_id

    @property
    def run_id(self) -> str:
        return self._run_id

    def emit(
        self,
        event_type: str,
        *,
        unit_id: str | None = None,
        generator: str | None = None,
        message: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        event: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "run_id": self._run_id,
            "event_type": event_type,
        }
        if unit_id is not None:
            event["unit_id"] = unit_id
        if generator is not None:
            event["generator"] = generator
        if message is not None:
            event["message"] = message
        if data is not None:
            event["data"] = data

        self._store.append(event)
