from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ConjurerError(Exception):
    code: str
    message: str
    data: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(ConjurerError):
    pass


class OptionValidationError(ValidationError):
    pass


class ExtractionError(ConjurerError):
    pass


class LauncherCorruption(ConjurerError):
    pass


class InvocationError(ConjurerError):
    """
    A generator invocation failed.

    Both runner strategies populate `data` with the same keys:
    entry_point, command_line, failed_to, status, output.
    """

    @property
    def status(self) -> int | None:
        return (self.data or {}).get("status")

    @property
    def command_line(self) -> list[str]:
        return list((self.data or {}).get("command_line") or [])

    @property
    def output(self) -> str | None:
        return (self.data or {}).get("output")


class GenerationFailed(ConjurerError):
    """
    Raised once every unit of work is terminal and at least one failed.
    data["failures"] holds one entry per failed unit.
    """

    @property
    def failures(self) -> list[dict[str, Any]]:
        return list((self.data or {}).get("failures") or [])

    def report(self) -> str:
        lines = [str(self)]
        for f in self.failures:
            lines.append("")
            lines.append("- {} {} {}".format(f.get("generator"), f.get("verb"), f.get("input_file")))
            lines.append("  {}".format(f.get("message")))
            output = f.get("output")
            if output:
                for line in str(output).rstrip().splitlines():
                    lines.append("  | " + line)
        return "\n".join(lines)
