from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ValidationError


log = logging.getLogger(__name__)

UNSPECIFIED_VERSION = "unspecified"

_GIT_VERSION_RE = re.compile(
    r"^"
    r"(?P<tag>[0-9]+\.[0-9]+\.[0-9]+)"
    r"(-rc(?P<rc>[0-9]+))?"
    r"(-(?P<distance>[0-9]+)-g(?P<hash>[a-f0-9]+))?"
    r"(\.(?P<dirty>dirty))?"
    r"$"
)

# foo-1.0.0.json, foo-baz-1.0.0-rc1-gabcd.conjure.json
_PRODUCT_FILE_RE = re.compile(
    r"^(?P<name>.+)-(?P<version>[0-9]+\.[0-9]+\.[0-9]+(?:-rc[0-9]+)?(?:-[0-9]+)?(?:-g[a-f0-9]+)?)(?:\.conjure)?\.json$"
)


@dataclass(frozen=True)
class ProductNameAndVersion:
    name: str
    version: str


def format_python_version(version: str) -> str:
    """
    Convert a git-describe style version into a PEP 440 version.

    Examples:
      1.2.3                 -> 1.2.3
      1.2.3-rc4             -> 1.2.3rc4
      1.2.3-5-gabc123       -> 1.2.3+5.gabc123
      1.2.3-rc4-5-gabc.dirty -> 1.2.3rc4+5.gabc.dirty
    """
    if version == UNSPECIFIED_VERSION:
        return version

    m = _GIT_VERSION_RE.match(version)
    if not m:
        raise ValidationError(
            code="version.invalid",
            message=f"Invalid project version {version}",
            data={"version": version},
        )

    out = m.group("tag")
    if m.group("rc"):
        out += "rc" + m.group("rc")
    if m.group("distance"):
        # 'g' prefix keeps leading zeros of the hash from being stripped by conda
        out += "+" + m.group("distance") + ".g" + m.group("hash")
    if m.group("dirty"):
        out += "." + m.group("dirty")
    return out


def parse_product_name_and_version(filename: str) -> ProductNameAndVersion:
    m = _PRODUCT_FILE_RE.match(filename)
    if not m:
        raise ValidationError(
            code="version.product_name_invalid",
            message=f"Cannot parse product name and version from IR file name: {filename}",
            data={"filename": filename},
        )
    return ProductNameAndVersion(name=m.group("name"), version=m.group("version"))


def strip_version(filename: str) -> str:
    """
    Name used for per-file output directories: product name without version and extension.
    Falls back to the name without ".conjure.json"/".json" when no version is present.
    """
    m = _PRODUCT_FILE_RE.match(filename)
    if m:
        return m.group("name")
    for suffix in (".conjure.json", ".json"):
        if filename.endswith(suffix) and len(filename) > len(suffix):
            return filename[: -len(suffix)]
    return filename


def git_describe_version(cwd: Path) -> Optional[str]:
    """
    Version derived from version-control state, or None when unavailable.
    """
    try:
        cp = subprocess.run(
            ["git", "describe", "--tags", "--always", "--first-parent"],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        log.debug("git describe unavailable: %r", e)
        return None
    if cp.returncode != 0:
        log.debug("git describe failed: %s", cp.stderr.strip() or cp.stdout.strip())
        return None
    out = cp.stdout.strip()
    return out or None


class ProjectInfo:
    """
    Project metadata used for required option defaults.

    The version is resolved lazily: `git describe` only runs when a default actually needs it.
    """

    def __init__(self, name: str, version: Optional[str] = None, root: Optional[Path] = None) -> None:
        self.name = name
        self.root = root or Path(".")
        self._version = version

    @property
    def version(self) -> str:
        if self._version is None:
            described = git_describe_version(self.root)
            self._version = described if described else UNSPECIFIED_VERSION
        return self._version

    def __repr__(self) -> str:
        return f"ProjectInfo(name={self.name!r}, version={self._version!r}, root={str(self.root)!r})"
