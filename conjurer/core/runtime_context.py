from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping


def snapshot_env(overrides: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ)
    if overrides:
        env.update({str(k): str(v) for k, v in overrides.items()})
    return env


@dataclass(frozen=True)
class RuntimeContext:
    """
    Runtime configuration for one generation step.

    Hard rules:
    - The environment is captured once and handed to every external process.
    - A configured timeout disables in-process execution (in-process calls cannot be cancelled).
    """

    run_id: str
    workers: int | None = None
    timeout_s: float | None = None
    allow_in_process: bool = True
    trace_path: Path = Path("conjurer-trace.jsonl")
    env: dict[str, str] = field(default_factory=snapshot_env)

    @property
    def in_process_enabled(self) -> bool:
        return self.allow_in_process and self.timeout_s is None
