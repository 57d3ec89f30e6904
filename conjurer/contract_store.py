from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

import jsonschema
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012


@dataclass(frozen=True)
class SchemaRef:
    name: str
    path: Path
    file_uri: str
    schema: Dict[str, Any]


class ContractStore:
    """
    Loads `contracts/schemas/*.json` and provides validation helpers.

    Notes:
    - Relative $ref such as "defs.schema.json#/$defs/Options" resolve through a
      `referencing.Registry` holding every schema under its file URI and its $id.
    """

    def __init__(self, schemas_dir: Path):
        self._schemas_dir = schemas_dir
        self._schemas: Dict[str, SchemaRef] = {}
        self._registry: Registry = Registry()

    @property
    def schemas_dir(self) -> Path:
        return self._schemas_dir

    def load(self) -> None:
        if not self._schemas_dir.exists():
            raise FileNotFoundError(str(self._schemas_dir))

        resources: List[Tuple[str, Resource]] = []
        for p in sorted(self._schemas_dir.glob("*.json")):
            schema = json.loads(p.read_text(encoding="utf-8"))
            file_uri = p.resolve().as_uri()
            self._schemas[p.name] = SchemaRef(name=p.name, path=p, file_uri=file_uri, schema=schema)

            resource = Resource.from_contents(schema, default_specification=DRAFT202012)
            resources.append((file_uri, resource))
            schema_id = schema.get("$id")
            if isinstance(schema_id, str) and schema_id:
                resources.append((schema_id, resource))

        if "defs.schema.json" not in self._schemas:
            raise FileNotFoundError("defs.schema.json is required in contracts/schemas/")
        self._registry = Registry().with_resources(resources)

    def list_schema_names(self) -> List[str]:
        return sorted(self._schemas.keys())

    def _get(self, schema_name: str) -> SchemaRef:
        ref = self._schemas.get(schema_name)
        if ref is None:
            raise KeyError(schema_name)
        return ref

    def check_schemas(self) -> List[Tuple[str, str]]:
        """
        Returns a list of (schema_name, error_message) for invalid schemas.
        """
        errors: List[Tuple[str, str]] = []
        for name in self.list_schema_names():
            try:
                jsonschema.Draft202012Validator.check_schema(self._get(name).schema)
            except jsonschema.SchemaError as e:
                errors.append((name, e.message))
        return errors

    def validate(self, schema_name: str, instance: Any) -> List[str]:
        """
        Validates an instance and returns a list of error strings (empty means valid).
        Each error is prefixed with its JSON path.
        """
        ref = self._get(schema_name)
        validator = jsonschema.Draft202012Validator(ref.schema, registry=self._registry)
        out: List[str] = []
        for e in sorted(validator.iter_errors(instance), key=lambda err: (list(map(str, err.absolute_path)), err.message)):
            out.append("{}: {}".format(e.json_path, e.message))
        return out
