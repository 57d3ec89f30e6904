from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Dict, Optional, Sequence

from .base import GeneratorRunner, invocation_failed, log


def _decode(output: Optional[bytes]) -> str:
    if not output:
        return ""
    if isinstance(output, str):
        return output
    return output.decode("utf-8", errors="replace")


class ExternalProcessRunner(GeneratorRunner):
    """
    Spawns the entry point as a subprocess, capturing stdout and stderr into one buffer.
    """

    mode = "external_process"

    def __init__(
        self,
        entry_point: Path,
        *,
        env: Optional[Dict[str, str]] = None,
        timeout_s: Optional[float] = None,
        cwd: Optional[Path] = None,
    ):
        super().__init__(entry_point)
        self._env = dict(env) if env is not None else None
        self._timeout_s = timeout_s
        self._cwd = cwd

    def invoke(
        self,
        failed_to: str,
        unlogged_args: Sequence[str],
        logged_args: Sequence[str],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        logger = logger or log
        logger.info("Running with args: %s", list(logged_args))
        command_line = self.command_line(unlogged_args, logged_args)

        try:
            cp = subprocess.run(
                command_line,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=self._env,
                cwd=str(self._cwd) if self._cwd else None,
                timeout=self._timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise invocation_failed(
                code="invocation.timeout",
                entry_point=self.entry_point,
                command_line=command_line,
                failed_to=failed_to,
                status=None,
                output=_decode(e.output),
                mode=self.mode,
                detail=f"timed out after {self._timeout_s}s",
                extra={"timed_out": True},
            ) from e
        except OSError as e:
            raise invocation_failed(
                code="invocation.spawn_failed",
                entry_point=self.entry_point,
                command_line=command_line,
                failed_to=failed_to,
                status=None,
                output=None,
                mode=self.mode,
                detail="could not be started",
                extra={"error": repr(e)},
            ) from e

        output = _decode(cp.stdout)
        logger.debug("Executable %s completed with status %d output:\n%s", self.entry_point.name, cp.returncode, output)
        if cp.returncode != 0:
            raise invocation_failed(
                code="invocation.exit_status",
                entry_point=self.entry_point,
                command_line=command_line,
                failed_to=failed_to,
                status=cp.returncode,
                output=output,
                mode=self.mode,
                detail=f"failed with exit code {cp.returncode}",
            )
