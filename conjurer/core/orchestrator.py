from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import ConjurerError, GenerationFailed, ValidationError
from .scope import canonical_root, is_within_root, overlapping_pairs
from ..invocation.in_process import ExitInvoked
from ..invocation.runner import RunnerCache
from ..trace.trace_emitter import TraceEmitter


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationRequest:
    """
    One generator invocation against one input file.

    The command line is `<entry_point> <verb> <input_file> <output_dir> <arguments...>`;
    only `arguments` are ever logged.
    """

    entry_point: Path
    input_file: Path
    output_dir: Path
    action: str
    verb: str = "generate"
    arguments: Tuple[str, ...] = ()
    generator: str = ""

    @property
    def unlogged_args(self) -> List[str]:
        return [self.verb, str(self.input_file), str(self.output_dir)]

    @property
    def logged_args(self) -> List[str]:
        return list(self.arguments)


class UnitStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class UnitResult:
    unit_id: str
    request: InvocationRequest
    status: UnitStatus
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is UnitStatus.SUCCEEDED


def check_isolation(requests: Sequence[InvocationRequest], protected: Sequence[Path] = ()) -> None:
    """
    Every unit deletes its output directory before running, so no two units may share an
    output directory or nest one inside another, and no input, entry point or extracted
    distribution may live inside one. Output directories may not live inside a
    distribution either; distributions stay read-only once extracted.
    """
    pairs = overlapping_pairs([r.output_dir for r in requests])
    if pairs:
        raise ValidationError(
            code="orchestrator.output_overlap",
            message="Output directories of different inputs must not overlap",
            data={"pairs": [[str(a), str(b)] for a, b in pairs]},
        )
    outputs = [canonical_root(r.output_dir) for r in requests]
    for r in requests:
        inp = canonical_root(r.input_file)
        clobbered = [str(o) for o in outputs if is_within_root(inp, o)]
        if clobbered:
            raise ValidationError(
                code="orchestrator.input_in_output",
                message=f"Input file lives inside an output directory that is deleted before generation: {r.input_file}",
                data={"input_file": str(r.input_file), "output_dirs": clobbered},
            )

    for p in [*dict.fromkeys(r.entry_point for r in requests), *protected]:
        path = canonical_root(p)
        clobbered = [str(o) for o in outputs if is_within_root(path, o)]
        if clobbered:
            raise ValidationError(
                code="orchestrator.entry_point_in_output",
                message=f"Generator lives inside an output directory that is deleted before generation: {p}",
                data={"path": str(p), "output_dirs": clobbered},
            )
    for root in protected:
        dist = canonical_root(root)
        nested = [str(o) for o in outputs if is_within_root(o, dist)]
        if nested:
            raise ValidationError(
                code="orchestrator.output_in_distribution",
                message=f"Output directories must not live inside the extracted distribution {root}",
                data={"path": str(root), "output_dirs": nested},
            )


def _failure_entry(result: UnitResult) -> Dict[str, Any]:
    e = result.error
    req = result.request
    entry: Dict[str, Any] = {
        "unit_id": result.unit_id,
        "generator": req.generator,
        "verb": req.verb,
        "input_file": str(req.input_file),
        "message": str(e),
        "code": e.code if isinstance(e, ConjurerError) else "orchestrator.unit_fault",
        "status": None,
        "output": None,
    }
    if isinstance(e, ConjurerError) and e.data:
        entry["status"] = e.data.get("status")
        entry["output"] = e.data.get("output")
    elif isinstance(e, ExitInvoked):
        entry["status"] = e.status
    return entry


def _reset_output_dir(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
    path.mkdir(parents=True, exist_ok=True)


class Orchestrator:
    """
    Fans generation units out to a bounded worker pool and aggregates failures at the end.
    Always emits trace events for auditing.
    """

    def __init__(
        self,
        runners: RunnerCache,
        trace: TraceEmitter,
        *,
        workers: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if workers is not None and workers < 1:
            raise ValidationError(code="orchestrator.workers_invalid", message="workers must be >= 1", data={"workers": workers})
        self._runners = runners
        self._trace = trace
        self._workers = workers
        self._log = logger or log

    @staticmethod
    def plan(
        entry_point: Path,
        input_files: Sequence[Path],
        output_dir_for: Callable[[Path], Path],
        arguments_for: Callable[[Path], Sequence[str]],
        *,
        action: str,
        verb: str = "generate",
        generator: str = "",
    ) -> List[InvocationRequest]:
        requests = [
            InvocationRequest(
                entry_point=Path(entry_point),
                input_file=Path(f),
                output_dir=Path(output_dir_for(Path(f))),
                action=action,
                verb=verb,
                arguments=tuple(arguments_for(Path(f))),
                generator=generator,
            )
            for f in input_files
        ]
        check_isolation(requests)
        return requests

    def run(self, requests: Sequence[InvocationRequest], protected: Sequence[Path] = ()) -> List[UnitResult]:
        if not requests:
            return []
        check_isolation(requests, protected)

        units = [(f"unit-{i + 1}", r) for i, r in enumerate(requests)]
        self._trace.emit("run_started", message="Generation started", data={"units": len(units)})
        for unit_id, req in units:
            self._trace.emit(
                "unit_queued",
                unit_id=unit_id,
                generator=req.generator or None,
                data={"status": UnitStatus.QUEUED.value, "input_file": req.input_file.name},
            )

        results: List[Optional[UnitResult]] = [None] * len(units)
        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="conjurer") as pool:
            futures = {pool.submit(self._run_unit, unit_id, req): i for i, (unit_id, req) in enumerate(units)}
            for fut in as_completed(futures):
                results[futures[fut]] = fut.result()

        done = [r for r in results if r is not None]
        failed = [r for r in done if not r.ok]
        self._trace.emit(
            "run_finished",
            message="Generation finished",
            data={"ok": not failed, "succeeded": len(done) - len(failed), "failed": len(failed)},
        )
        if failed:
            raise GenerationFailed(
                code="generation.failed",
                message=f"{len(failed)} of {len(done)} generation unit(s) failed",
                data={"failures": [_failure_entry(r) for r in failed]},
            )
        return done

    def _run_unit(self, unit_id: str, req: InvocationRequest) -> UnitResult:
        generator = req.generator or None
        self._trace.emit(
            "unit_started",
            unit_id=unit_id,
            generator=generator,
            data={"status": UnitStatus.RUNNING.value, "input_file": req.input_file.name},
        )
        try:
            _reset_output_dir(req.output_dir)
            self._runners.invoke(req.entry_point, req.action, req.unlogged_args, req.logged_args, logger=self._log)
        except (Exception, ExitInvoked) as e:  # noqa: BLE001
            code = e.code if isinstance(e, ConjurerError) else "orchestrator.unit_fault"
            self._log.error("Unit %s failed to %s (%s)", unit_id, req.action, code)
            self._trace.emit(
                "unit_failed",
                unit_id=unit_id,
                generator=generator,
                message=str(e),
                data={"status": UnitStatus.FAILED.value, "code": code, "input_file": req.input_file.name},
            )
            return UnitResult(unit_id=unit_id, request=req, status=UnitStatus.FAILED, error=e)

        self._trace.emit(
            "unit_succeeded",
            unit_id=unit_id,
            generator=generator,
            data={"status": UnitStatus.SUCCEEDED.value, "input_file": req.input_file.name},
        )
        return UnitResult(unit_id=unit_id, request=req, status=UnitStatus.SUCCEEDED)
