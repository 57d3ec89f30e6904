from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from conjurer.core.errors import LauncherCorruption


LAUNCHER_MARKER = "#!/usr/bin/env"
APP_HOME_PLACEHOLDER = "$APP_HOME"

# CLASSPATH=$APP_HOME/lib/conjure-4.13.0.jar:$APP_HOME/lib/conjure-api.jar
_CLASSPATH_RE = re.compile(r"CLASSPATH=([^\n]*)\n")

# eval set -- $DEFAULT_JVM_OPTS $JAVA_OPTS -classpath "\"$CLASSPATH\"" com.palantir.conjure.cli.ConjureCli "$APP_ARGS"
_ENTRY_SYMBOL_RE = re.compile(r"-classpath [^ ]+ ([A-Za-z_$][A-Za-z0-9_$.]*)")


@dataclass(frozen=True)
class LauncherInfo:
    classpath: Tuple[Path, ...]
    entry_symbol: str


def analyze(entry_point: Path) -> Optional[LauncherInfo]:
    """
    Reverse engineer a generated start script to find the program it boots.

    Returns None when the entry point is not a recognized launcher (a native binary, a
    Windows .bat, an unknown script). Raises LauncherCorruption when a recognized launcher
    references classpath files that do not exist.
    """
    contents = _read_text(Path(entry_point))
    if contents is None:
        return None
    if not contents.startswith(LAUNCHER_MARKER):
        return None
    app_home = Path(entry_point).absolute().parent.parent
    return parse_unix_launcher(app_home, contents)


def parse_unix_launcher(app_home: Path, contents: str) -> Optional[LauncherInfo]:
    classpath_match = _CLASSPATH_RE.search(contents)
    if not classpath_match:
        return None
    entry_match = _ENTRY_SYMBOL_RE.search(contents)
    if not entry_match:
        return None

    classpath = tuple(
        _resolve_entry(app_home, raw) for raw in classpath_match.group(1).strip().strip('"').split(":") if raw
    )
    missing = [str(p) for p in classpath if not p.exists()]
    if missing:
        raise LauncherCorruption(
            code="launcher.classpath_missing",
            message="All classpath files referenced by the launcher must exist",
            data={"app_home": str(app_home), "missing": missing},
        )
    return LauncherInfo(classpath=classpath, entry_symbol=entry_match.group(1))


def _resolve_entry(app_home: Path, raw: str) -> Path:
    s = raw.replace("${APP_HOME}", APP_HOME_PLACEHOLDER)
    if s == APP_HOME_PLACEHOLDER:
        return app_home.resolve()
    if s.startswith(APP_HOME_PLACEHOLDER + "/"):
        s = s[len(APP_HOME_PLACEHOLDER) + 1 :]
    return (app_home / s).resolve()


def _read_text(path: Path) -> Optional[str]:
    """
    Launchers are text; anything that is not well-formed UTF-8 is probably a go/rust binary.
    """
    data = path.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None
