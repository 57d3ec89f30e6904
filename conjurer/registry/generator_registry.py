from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from conjurer.core.errors import ValidationError
from conjurer.core.options import RequiredDefaults
from conjurer.core.versions import ProjectInfo


RequiredDefaultsFactory = Callable[[ProjectInfo, Path], RequiredDefaults]


def no_required_defaults(_project: ProjectInfo, _input_file: Path) -> RequiredDefaults:
    return {}


@dataclass(frozen=True)
class GeneratorKind:
    kind: str
    title: str
    required_defaults: RequiredDefaultsFactory = no_required_defaults
    default_executable: Optional[str] = None
    verb: str = "generate"
    requires_verb_flag: bool = False

    def describe(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "default_executable": self.default_executable,
            "verb": self.verb,
            "requires_verb_flag": self.requires_verb_flag,
        }


class GeneratorRegistry:
    """
    Generator kinds by name. A kind decides which options a generator requires and how
    their defaults are derived from the project and input file.
    """

    def __init__(self) -> None:
        self._kinds: Dict[str, GeneratorKind] = {}

    def register(self, kind: GeneratorKind) -> None:
        if kind.kind in self._kinds:
            raise ValidationError(code="registry.kind_duplicate", message=f"Duplicate generator kind: {kind.kind}")
        self._kinds[kind.kind] = kind

    def get(self, kind: str) -> Optional[GeneratorKind]:
        return self._kinds.get(kind)

    def require(self, kind: str) -> GeneratorKind:
        k = self.get(kind)
        if k is None:
            raise ValidationError(
                code="registry.kind_unknown",
                message=f"Unknown generator kind: {kind}",
                data={"kind": kind, "known": sorted(self._kinds.keys())},
            )
        return k

    def list_kinds(self) -> List[Dict[str, Any]]:
        return [self._kinds[k].describe() for k in sorted(self._kinds.keys())]
