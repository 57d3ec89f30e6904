from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from conjurer.distribution.launcher import analyze
from conjurer.registry.entry_registry import EntryRegistry

from .base import GeneratorRunner, log
from .external_process import ExternalProcessRunner
from .in_process import InProcessRunner


def create_runner(
    entry_point: Path,
    *,
    registry: Optional[EntryRegistry] = None,
    env: Optional[Dict[str, str]] = None,
    timeout_s: Optional[float] = None,
    allow_in_process: bool = True,
    logger: Optional[logging.Logger] = None,
) -> GeneratorRunner:
    """
    Pick the strategy for an entry point.

    In-process when the entry point is a recognized launcher whose entry symbol is registered
    and in-process execution is allowed (no timeout configured); otherwise an external process.
    Raises LauncherCorruption when a recognized launcher references missing files.
    """
    logger = logger or log
    ep = Path(entry_point)
    info = analyze(ep) if ep.is_file() else None

    if info is not None and allow_in_process and timeout_s is None and registry is not None:
        entry = registry.get(info.entry_symbol)
        if entry is not None:
            logger.info("Using in-process runner for %s (%s)", ep.name, info.entry_symbol)
            return InProcessRunner(ep, info, entry)
        logger.debug("Entry symbol %s is not registered; %s will run as an external process", info.entry_symbol, ep.name)

    return ExternalProcessRunner(ep, env=env, timeout_s=timeout_s)


RunnerFactory = Callable[[Path], GeneratorRunner]


class RunnerCache:
    """
    One runner per entry point for the lifetime of a build.
    """

    def __init__(self, factory: RunnerFactory):
        self._factory = factory
        self._lock = threading.Lock()
        self._runners: Dict[Path, GeneratorRunner] = {}

    @staticmethod
    def _key(entry_point: Path) -> Path:
        return Path(os.path.abspath(str(entry_point)))

    def get(self, entry_point: Path) -> GeneratorRunner:
        key = self._key(entry_point)
        with self._lock:
            runner = self._runners.get(key)
            if runner is None:
                runner = self._factory(key)
                self._runners[key] = runner
            return runner

    def invoke(
        self,
        entry_point: Path,
        failed_to: str,
        unlogged_args: Sequence[str],
        logged_args: Sequence[str],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.get(entry_point).invoke(failed_to, unlogged_args, logged_args, logger=logger)

    def close(self) -> None:
        with self._lock:
            runners = list(self._runners.values())
            self._runners.clear()
        for r in runners:
            r.close()

    def __enter__(self) -> "RunnerCache":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()
