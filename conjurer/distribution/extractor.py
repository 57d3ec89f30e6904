from __future__ import annotations

import contextlib
import io
import logging
import os
import shutil
import stat
import tarfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import BinaryIO, ContextManager, Set, Union

from conjurer.core.errors import ExtractionError
from conjurer.core.os_utils import append_dot_bat_if_windows, is_windows
from conjurer.core.scope import canonical_root, is_strictly_within_root


log = logging.getLogger(__name__)

# https://www.gnu.org/software/tar/manual/html_node/Standard.html
TUEXEC = 0o100
TGEXEC = 0o010
TOEXEC = 0o001

ArchiveSource = Union[bytes, bytearray, str, os.PathLike, BinaryIO]


@dataclass(frozen=True)
class ExtractedDistribution:
    root: Path
    executable: Path


def _open_archive(archive: ArchiveSource) -> ContextManager[BinaryIO]:
    if isinstance(archive, (bytes, bytearray)):
        return contextlib.closing(io.BytesIO(bytes(archive)))
    if isinstance(archive, (str, os.PathLike)):
        return open(archive, "rb")
    return contextlib.nullcontext(archive)


def _is_absolute(name: str) -> bool:
    return PurePosixPath(name).is_absolute() or bool(PureWindowsPath(name).drive) or name.startswith("\\")


def _strip_dot_prefix(name: str) -> str:
    while name.startswith("./"):
        name = name[2:]
    return name


def _reset_destination(destination_root: Path) -> Path:
    try:
        if destination_root.exists():
            shutil.rmtree(destination_root)
        destination_root.mkdir(parents=True)
    except OSError as e:
        raise ExtractionError(
            code="extract.destination_failed",
            message=f"Failed to prepare extraction directory: {destination_root}",
            data={"destination": str(destination_root)},
        ) from e
    return canonical_root(destination_root)


def extract(archive: ArchiveSource, destination_root: Path, executable_name: str) -> ExtractedDistribution:
    """
    Extract a gzip'd tar generator distribution into `destination_root`.

    The archive must hold exactly one root directory (e.g. foo-1.2.3/); it is stripped, so
    foo-1.2.3/bin/foo lands at <destination_root>/bin/foo. The destination is owned by this
    call and re-created on every extraction.
    """
    root = _reset_destination(Path(destination_root))
    roots: Set[str] = set()

    try:
        with _open_archive(archive) as fileobj:
            with tarfile.open(fileobj=fileobj, mode="r|gz") as tar:
                for member in tar:
                    _extract_member(tar, member, root, roots)
    except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
        raise ExtractionError(
            code="extract.failed",
            message="Failed to extract the generator distribution",
            data={"destination": str(root)},
        ) from e

    if len(roots) != 1:
        raise ExtractionError(
            code="extract.root_invalid",
            message="Expected exactly one root directory in archive, aborting: {}".format(sorted(roots)),
            data={"roots": sorted(roots)},
        )

    executable = append_dot_bat_if_windows(root / "bin" / executable_name)
    if not executable.is_file():
        raise ExtractionError(
            code="extract.executable_missing",
            message=f"Couldn't find expected file after extracting archive: {executable}",
            data={"executable": str(executable)},
        )

    log.info("Extracted into %s", root)
    return ExtractedDistribution(root=root, executable=executable)


def _extract_member(tar: tarfile.TarFile, member: tarfile.TarInfo, root: Path, roots: Set[str]) -> None:
    name = _strip_dot_prefix(member.name)
    if not name or name == ".":
        return
    if _is_absolute(name):
        raise ExtractionError(
            code="extract.absolute_path",
            message=f"Absolute paths aren't supported. Found path: '{member.name}'",
            data={"entry": member.name},
        )

    root_name, _, new_path = name.partition("/")
    roots.add(root_name)
    if len(roots) > 1:
        raise ExtractionError(
            code="extract.root_invalid",
            message="Expected exactly one root directory in archive, aborting: {}".format(sorted(roots)),
            data={"roots": sorted(roots)},
        )

    # Directories are implied by file paths; links and devices are never materialized.
    if not member.isfile():
        return

    if not new_path:
        raise ExtractionError(
            code="extract.empty_path",
            message=f"Invalid empty path: '{member.name}'",
            data={"entry": member.name},
        )

    output_location = root / new_path
    if not is_strictly_within_root(output_location, root):
        raise ExtractionError(
            code="extract.path_traversal",
            message=f"Tar entry cannot be extracted outside of the destination root: '{new_path}'",
            data={"entry": member.name},
        )
    output_location = Path(os.path.normpath(str(output_location)))
    output_location.parent.mkdir(parents=True, exist_ok=True)

    src = tar.extractfile(member)
    if src is None:
        return
    with src, open(output_location, "wb") as dst:
        shutil.copyfileobj(src, dst)

    if not is_windows() and (member.mode & (TUEXEC | TGEXEC | TOEXEC)) != 0:
        current = output_location.stat().st_mode
        os.chmod(output_location, current | stat.S_IXUSR | (member.mode & (TUEXEC | TGEXEC | TOEXEC)))
