from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from .errors import OptionValidationError


log = logging.getLogger("conjurer.options")

# Keys must be defined in camelCase.
_KEY_RE = re.compile(r"^[a-z][a-zA-Z0-9]*$")
RESERVED_KEYS = frozenset({"properties"})

RequiredDefaults = Mapping[str, Callable[[], Any]]


class GeneratorOptions(Mapping[str, Any]):
    """
    Ordered, immutable generator options.

    Built once per generator configuration; per-invocation flags are added with
    with_property()/with_properties(), which return a new instance.
    """

    __slots__ = ("_storage",)

    def __init__(self, properties: Optional[Mapping[str, Any]] = None) -> None:
        storage: Dict[str, Any] = {}
        for name, value in (properties or {}).items():
            _check_property(name, value)
            storage[name] = value
        self._storage = storage

    def with_property(self, name: str, value: Any) -> "GeneratorOptions":
        return self.with_properties({name: value})

    def with_properties(self, properties: Mapping[str, Any]) -> "GeneratorOptions":
        merged = dict(self._storage)
        for name, value in properties.items():
            _check_property(name, value)
            merged[name] = value
        out = GeneratorOptions()
        out._storage = merged
        return out

    @property
    def properties(self) -> Dict[str, Any]:
        return dict(self._storage)

    def __getitem__(self, name: str) -> Any:
        if name not in self._storage:
            raise KeyError(f"Unknown property: {name}")
        return self._storage[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._storage)

    def __len__(self) -> int:
        return len(self._storage)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, GeneratorOptions):
            return list(self._storage.items()) == list(other._storage.items())
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple((k, repr(v)) for k, v in self._storage.items()))

    def __repr__(self) -> str:
        return f"GeneratorOptions({self._storage!r})"


def _check_property(name: Any, value: Any) -> None:
    if not isinstance(name, str) or not name:
        raise OptionValidationError(code="options.key_invalid", message="Option key must be a non-empty string")
    if name in RESERVED_KEYS:
        raise OptionValidationError(
            code="options.key_reserved",
            message=f"Can't override the '{name}' property",
            data={"key": name},
        )
    if not _KEY_RE.match(name):
        raise OptionValidationError(
            code="options.key_invalid",
            message=f"Key must be camelCase: {name}",
            data={"key": name},
        )
    if value is None:
        raise OptionValidationError(
            code="options.value_null",
            message=f"Property '{name}': value cannot be null",
            data={"key": name},
        )


def _stringify(key: str, value: Any) -> str:
    if value is None:
        raise OptionValidationError(code="options.value_null", message="Value cannot be null", data={"key": key})
    try:
        text = str(value)
    except TypeError as e:
        # __str__ returned a non-string (e.g. None)
        raise OptionValidationError(code="options.value_null", message="Value cannot be null", data={"key": key}) from e
    return text


def render(
    options: Union[GeneratorOptions, Mapping[str, Any]],
    required_defaults: Optional[RequiredDefaults] = None,
) -> List[str]:
    """
    Render generator options to command-line arguments.

    - required_defaults maps option name -> supplier of its default value; a supplier is
      only called for keys it names, at most once per render.
    - True renders as "--key", False is omitted, anything else as "--key=value".
    """
    properties: Dict[str, Any] = dict(options.items())
    resolved: Dict[str, Any] = dict(properties)

    for key, supplier in (required_defaults or {}).items():
        default_value = supplier()
        if key not in properties:
            log.info("Field '%s' was not defined in options, falling back to default: %s", key, default_value)
            resolved[key] = default_value
        elif _stringify(key, default_value) == _stringify(key, properties[key]):
            log.warning(
                "Field '%s' was defined in options but its value is the same as the default: %s",
                key,
                default_value,
            )

    args: List[str] = []
    for key, value in resolved.items():
        if "=" in key:
            raise OptionValidationError(
                code="options.key_invalid",
                message=f"Generator parameter '{key}' cannot contain '='",
                data={"key": key},
            )
        if value is True:
            args.append(f"--{key}")
            continue
        if value is False:
            continue
        args.append(f"--{key}={_stringify(key, value)}")
    return args
