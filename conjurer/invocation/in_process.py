from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, NoReturn, Optional, Sequence

from conjurer.distribution.launcher import LauncherInfo
from conjurer.registry.entry_registry import EntryFunc, ExitFunc

from .base import GeneratorRunner, invocation_failed, log


class ExitInvoked(BaseException):
    """
    Raised by the exit capability handed to an in-process generator.

    A BaseException so a generator's own `except Exception` cannot swallow it.
    """

    def __init__(self, status: int, token: object) -> None:
        super().__init__(f"Exited with status {status}")
        self.status = status
        self.token = token


def _exit_status(code: Any) -> int:
    # Mirrors interpreter exit semantics: None -> 0, int -> itself, anything else -> 1.
    if code is None:
        return 0
    if isinstance(code, bool):
        return int(code)
    if isinstance(code, int):
        return code
    return 1


def _make_exit(token: object) -> ExitFunc:
    def _exit(status: int = 0) -> NoReturn:
        raise ExitInvoked(_exit_status(status), token)

    return _exit


class InProcessRunner(GeneratorRunner):
    """
    Runs a registered entry function inside this process, saving the per-invocation
    startup cost of the generator's own runtime.
    """

    mode = "in_process"

    def __init__(self, entry_point: Path, launcher: LauncherInfo, entry: EntryFunc):
        super().__init__(entry_point)
        self._launcher = launcher
        self._entry = entry

    @property
    def launcher(self) -> LauncherInfo:
        return self._launcher

    def invoke(
        self,
        failed_to: str,
        unlogged_args: Sequence[str],
        logged_args: Sequence[str],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        logger = logger or log
        logger.info("Running in-process %s with args: %s", self._launcher.entry_symbol, list(logged_args))
        argv = [*unlogged_args, *logged_args]
        command_line = self.command_line(unlogged_args, logged_args)

        # One token per call: an exit raised for another invocation is not ours to absorb.
        token = object()
        try:
            returned = self._entry(list(argv), _make_exit(token))
        except ExitInvoked as e:
            if e.token is not token:
                raise
            status = e.status
        except SystemExit as e:
            status = _exit_status(e.code)
        except Exception as e:  # noqa: BLE001
            raise invocation_failed(
                code="invocation.fault",
                entry_point=self.entry_point,
                command_line=command_line,
                failed_to=failed_to,
                status=None,
                output=None,
                mode=self.mode,
                detail="failed",
                extra={"error": repr(e)},
            ) from e
        else:
            status = returned if isinstance(returned, int) and not isinstance(returned, bool) else 0

        logger.debug("Entry %s completed with status %d", self._launcher.entry_symbol, status)
        if status != 0:
            raise invocation_failed(
                code="invocation.exit_status",
                entry_point=self.entry_point,
                command_line=command_line,
                failed_to=failed_to,
                status=status,
                output=None,
                mode=self.mode,
                detail=f"failed with exit code {status}",
            )
