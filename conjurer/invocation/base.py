from __future__ import annotations

import abc
import logging
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from conjurer.core.errors import InvocationError


log = logging.getLogger("conjurer.invocation")


def invocation_failed(
    *,
    code: str,
    entry_point: Path,
    command_line: Sequence[str],
    failed_to: str,
    status: Optional[int],
    output: Optional[str],
    mode: str,
    detail: str,
    extra: Optional[Dict[str, Any]] = None,
) -> InvocationError:
    """
    Build the InvocationError both runner strategies raise, so callers see the same
    diagnostics whichever strategy was selected.
    """
    data: Dict[str, Any] = {
        "entry_point": entry_point.name,
        "command_line": list(command_line),
        "failed_to": failed_to,
        "status": status,
        "output": output,
        "mode": mode,
    }
    if extra:
        data.update(extra)
    return InvocationError(
        code=code,
        message="Failed to {}. The command '{}' {}.".format(failed_to, shlex.join(list(command_line)), detail),
        data=data,
    )


class GeneratorRunner(abc.ABC):
    """
    Executes one generator entry point. A runner is created once per entry point and
    reused for every invocation against it within a build.
    """

    mode = "abstract"

    def __init__(self, entry_point: Path):
        self._entry_point = Path(entry_point)

    @property
    def entry_point(self) -> Path:
        return self._entry_point

    def command_line(self, unlogged_args: Sequence[str], logged_args: Sequence[str]) -> List[str]:
        return [str(self._entry_point), *unlogged_args, *logged_args]

    @abc.abstractmethod
    def invoke(
        self,
        failed_to: str,
        unlogged_args: Sequence[str],
        logged_args: Sequence[str],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Run the generator. unlogged_args (input/output paths) are never logged;
        logged_args (user-visible flags) are. Raises InvocationError on failure.
        """

    def close(self) -> None:
        pass
