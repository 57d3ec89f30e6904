from __future__ import annotations

import importlib
import logging
import re
from importlib import metadata
from typing import Any, Callable, Dict, List, NoReturn, Optional

from conjurer.core.errors import ValidationError


log = logging.getLogger(__name__)

ExitFunc = Callable[[int], NoReturn]
# entry(argv, exit) -> optional status
EntryFunc = Callable[[List[str], ExitFunc], Optional[int]]

ENTRY_POINT_GROUP = "conjurer.entries"

_SYMBOL_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*(\.[A-Za-z_$][A-Za-z0-9_$]*)*$")


def import_object(spec: str) -> Any:
    """
    Import by "module:attr" spec.
    """
    if ":" not in spec:
        raise ValidationError(code="registry.entry_invalid", message="entry spec must be 'module:object'")
    mod_name, attr = spec.split(":", 1)
    if not mod_name or not attr:
        raise ValidationError(code="registry.entry_invalid", message="entry spec must be 'module:object'")
    try:
        mod = importlib.import_module(mod_name)
    except Exception as e:  # noqa: BLE001
        raise ValidationError(code="registry.entry_not_found", message="Failed to import entry module", data={"module": mod_name}) from e
    obj: Any = mod
    for part in attr.split("."):
        if not hasattr(obj, part):
            raise ValidationError(code="registry.entry_not_found", message="Entry object not found in module", data={"module": mod_name, "attr": attr})
        obj = getattr(obj, part)
    return obj


class EntryRegistry:
    """
    Registry of generator entry functions that can run in-process.

    A launcher's entry symbol (e.g. com.palantir.conjure.python.cli.ConjurePythonCli) is looked
    up here by name; when found, the generator runs inside this process instead of booting
    its own runtime.
    """

    def __init__(self) -> None:
        self._defs: Dict[str, Dict[str, Any]] = {}
        self._impls: Dict[str, EntryFunc] = {}

    def register(self, entry_symbol: str, impl: EntryFunc, *, description: str = "", source: str = "explicit") -> None:
        if not isinstance(entry_symbol, str) or not _SYMBOL_RE.match(entry_symbol):
            raise ValidationError(
                code="registry.entry_invalid",
                message=f"Invalid entry symbol: {entry_symbol!r}",
                data={"entry_symbol": entry_symbol},
            )
        if not callable(impl):
            raise ValidationError(
                code="registry.entry_invalid",
                message=f"Entry for {entry_symbol} must be callable",
                data={"entry_symbol": entry_symbol},
            )
        if entry_symbol in self._impls:
            raise ValidationError(
                code="registry.entry_duplicate",
                message=f"Duplicate entry symbol: {entry_symbol}",
                data={"entry_symbol": entry_symbol},
            )
        self._defs[entry_symbol] = {"entry_symbol": entry_symbol, "description": description, "source": source}
        self._impls[entry_symbol] = impl

    def register_spec(self, entry_symbol: str, spec: str, *, description: str = "") -> None:
        self.register(entry_symbol, import_object(spec), description=description, source=spec)

    def get(self, entry_symbol: str) -> Optional[EntryFunc]:
        return self._impls.get(entry_symbol)

    def describe(self, entry_symbol: str) -> Optional[Dict[str, Any]]:
        d = self._defs.get(entry_symbol)
        return dict(d) if d else None

    def list_entries(self) -> List[Dict[str, Any]]:
        return [dict(self._defs[k]) for k in sorted(self._defs.keys())]

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> int:
        """
        Register entries advertised by installed distributions, e.g. in a generator's pyproject:

            [project.entry-points."conjurer.entries"]
            "com.palantir.conjure.python.cli.ConjurePythonCli" = "conjure_python.cli:main"

        Entries that fail to load are skipped; their launchers fall back to external processes.
        """
        loaded = 0
        for ep in metadata.entry_points(group=group):
            if ep.name in self._impls:
                log.debug("Entry %s already registered; skipping %s", ep.name, ep.value)
                continue
            try:
                impl = ep.load()
                self.register(ep.name, impl, source=ep.value)
            except Exception as e:  # noqa: BLE001
                log.warning("Failed to load generator entry %s (%s): %r", ep.name, ep.value, e)
                continue
            loaded += 1
        return loaded
