from .base import GeneratorRunner, invocation_failed
from .external_process import ExternalProcessRunner
from .in_process import ExitInvoked, InProcessRunner
from .runner import RunnerCache, create_runner

__all__ = [
  "GeneratorRunner",
  "invocation_failed",
  "ExternalProcessRunner",
  "ExitInvoked",
  "InProcessRunner",
  "RunnerCache",
  "create_runner",
]
