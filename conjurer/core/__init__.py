from .errors import (
  ConjurerError,
  ExtractionError,
  GenerationFailed,
  InvocationError,
  LauncherCorruption,
  OptionValidationError,
  ValidationError,
)
from .options import GeneratorOptions, render
from .runtime_context import RuntimeContext
from .versions import ProjectInfo

__all__ = [
  "ConjurerError",
  "ExtractionError",
  "GenerationFailed",
  "InvocationError",
  "LauncherCorruption",
  "OptionValidationError",
  "ValidationError",
  "GeneratorOptions",
  "render",
  "RuntimeContext",
  "ProjectInfo",
]
