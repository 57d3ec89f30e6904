from .entry_registry import ENTRY_POINT_GROUP, EntryFunc, EntryRegistry, ExitFunc
from .generator_registry import GeneratorKind, GeneratorRegistry

__all__ = [
  "ENTRY_POINT_GROUP",
  "EntryFunc",
  "EntryRegistry",
  "ExitFunc",
  "GeneratorKind",
  "GeneratorRegistry",
]
