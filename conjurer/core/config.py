from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from conjurer.contract_store import ContractStore
from conjurer.resources import contracts_schemas_dir

from .errors import ValidationError
from .options import GeneratorOptions
from .versions import ProjectInfo


GENERATION_SCHEMA = "generation.schema.json"

LAYOUT_SHARED = "shared"
LAYOUT_PER_FILE = "per_file"

_CONTRACTS: Optional[ContractStore] = None


def _contracts() -> ContractStore:
    global _CONTRACTS
    if _CONTRACTS is None:
        store = ContractStore(contracts_schemas_dir())
        store.load()
        _CONTRACTS = store
    return _CONTRACTS


@dataclass(frozen=True)
class GeneratorConfig:
    name: str
    kind: str
    inputs: Tuple[Path, ...]
    output_dir: Path
    layout: str
    options: GeneratorOptions
    verb: Optional[str] = None
    verb_flag: Optional[str] = None
    distribution: Optional[Path] = None
    executable: Optional[str] = None
    extract_dir: Optional[Path] = None
    entry_point: Optional[Path] = None


@dataclass(frozen=True)
class GenerationConfig:
    path: Path
    project: ProjectInfo
    generators: Tuple[GeneratorConfig, ...]
    workers: Optional[int] = None
    timeout_s: Optional[float] = None
    allow_in_process: bool = True
    trace_path: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict)


def _resolve(base: Path, value: str) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else base / p


def load_config_text(text: str, *, path: Path) -> GenerationConfig:
    """
    Parse and validate a generation config. Relative paths resolve against `path`'s directory.
    """
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(code="config.yaml_invalid", message=f"Config is not valid YAML: {path}", data={"path": str(path)}) from e
    if not isinstance(raw, dict):
        raise ValidationError(code="config.invalid", message="Config must be a mapping", data={"path": str(path)})

    errors = _contracts().validate(GENERATION_SCHEMA, raw)
    if errors:
        raise ValidationError(
            code="config.schema_invalid",
            message=f"Config does not validate against {GENERATION_SCHEMA}",
            data={"path": str(path), "errors": errors},
        )

    base = path.resolve().parent
    project_raw = raw["project"]
    project = ProjectInfo(
        name=project_raw["name"],
        version=project_raw.get("version"),
        root=_resolve(base, project_raw["root"]) if "root" in project_raw else base,
    )

    generators: List[GeneratorConfig] = []
    seen = set()
    for g in raw["generators"]:
        name = g["name"]
        if name in seen:
            raise ValidationError(code="config.generator_duplicate", message=f"Duplicate generator name: {name}", data={"generator": name})
        seen.add(name)
        generators.append(_generator_config(base, g))

    trace_path = raw.get("trace_path")
    return GenerationConfig(
        path=path,
        project=project,
        generators=tuple(generators),
        workers=raw.get("workers"),
        timeout_s=raw.get("timeout_s"),
        allow_in_process=bool(raw.get("allow_in_process", True)),
        trace_path=_resolve(base, trace_path) if trace_path else None,
        env=dict(raw.get("env") or {}),
    )


def _generator_config(base: Path, g: Dict[str, Any]) -> GeneratorConfig:
    name = g["name"]
    inputs = tuple(_resolve(base, s) for s in g["inputs"])
    layout = g.get("layout") or (LAYOUT_SHARED if len(inputs) == 1 else LAYOUT_PER_FILE)
    if layout == LAYOUT_SHARED and len(inputs) > 1:
        raise ValidationError(
            code="config.layout_invalid",
            message=f"Generator {name}: layout 'shared' takes a single input; use 'per_file' for {len(inputs)} inputs",
            data={"generator": name, "inputs": len(inputs)},
        )

    distribution = _resolve(base, g["distribution"]) if "distribution" in g else None
    extract_dir = None
    if distribution is not None:
        extract_dir = _resolve(base, g["extract_dir"]) if "extract_dir" in g else base / "build" / "conjurer" / name

    return GeneratorConfig(
        name=name,
        kind=g["kind"],
        inputs=inputs,
        output_dir=_resolve(base, g["output_dir"]),
        layout=layout,
        options=GeneratorOptions(g.get("options") or {}),
        verb=g.get("verb"),
        verb_flag=g.get("verb_flag"),
        distribution=distribution,
        executable=g.get("executable"),
        extract_dir=extract_dir,
        entry_point=_resolve(base, g["entry_point"]) if "entry_point" in g else None,
    )


def load_config(path: Path) -> GenerationConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(code="config.unreadable", message=f"Cannot read config: {path}", data={"path": str(path)}) from e
    return load_config_text(text, path=path)
