from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional


class Replay:
    """
    Minimal JSONL replay reader.
    """

    def __init__(self, path: Path):
        self._path = path

    def iter_events(self, *, run_id: Optional[str] = None) -> Iterable[Dict[str, Any]]:
        if not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                event = json.loads(line)
                if run_id is not None and event.get("run_id") != run_id:
                    continue
                yield event

    def last_run_id(self) -> Optional[str]:
        last = None
        for event in self.iter_events():
            last = event.get("run_id", last)
        return last
