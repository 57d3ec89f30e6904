from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from conjurer.distribution.extractor import extract
from conjurer.invocation.runner import RunnerCache, create_runner
from conjurer.registry.entry_registry import EntryRegistry
from conjurer.registry.generator_registry import GeneratorRegistry
from conjurer.trace.trace_emitter import TraceEmitter
from conjurer.trace.trace_store_jsonl import TraceStoreJSONL

from .config import LAYOUT_SHARED, GenerationConfig, GeneratorConfig
from .errors import ConjurerError, ValidationError
from .options import render
from .orchestrator import InvocationRequest, Orchestrator, UnitResult, check_isolation
from .os_utils import append_dot_bat_if_windows
from .runtime_context import RuntimeContext, snapshot_env
from .versions import ProjectInfo, strip_version


log = logging.getLogger(__name__)


def build_context(
    config: GenerationConfig,
    *,
    run_id: str,
    workers: Optional[int] = None,
    timeout_s: Optional[float] = None,
    allow_in_process: Optional[bool] = None,
    trace_path: Optional[Path] = None,
) -> RuntimeContext:
    """
    RuntimeContext for a config; explicit arguments win over config values.
    """
    return RuntimeContext(
        run_id=run_id,
        workers=workers if workers is not None else config.workers,
        timeout_s=timeout_s if timeout_s is not None else config.timeout_s,
        allow_in_process=config.allow_in_process if allow_in_process is None else allow_in_process,
        trace_path=trace_path or config.trace_path or config.path.resolve().parent / "conjurer-trace.jsonl",
        env=snapshot_env(config.env),
    )


class Kernel:
    """
    One generation step: Config -> Extract -> Analyze -> Render -> Fan out -> Trace.

    Hard rules:
    - every distribution is extracted and every runner prepared before the first unit runs.
    - setup errors abort before anything is scheduled; unit failures are reported together.
    - trace every step.
    """

    def __init__(self, generators: GeneratorRegistry, entries: Optional[EntryRegistry] = None):
        self._generators = generators
        self._entries = entries or EntryRegistry()

    def render_arguments(self, gen: GeneratorConfig, project: ProjectInfo, input_file: Path) -> List[str]:
        """
        Logged arguments for one input: the verb flag (if any), then rendered options
        with the kind's required defaults filled in.
        """
        kind = self._generators.require(gen.kind)
        args = render(gen.options, kind.required_defaults(project, input_file))
        return ([gen.verb_flag] if gen.verb_flag else []) + args

    def plan(self, config: GenerationConfig, entry_points: Dict[str, Path]) -> List[InvocationRequest]:
        requests: List[InvocationRequest] = []
        for gen in config.generators:
            kind = self._generators.require(gen.kind)
            if kind.requires_verb_flag and not gen.verb_flag:
                raise ValidationError(
                    code="config.verb_flag_missing",
                    message=f"Generator {gen.name}: kind '{kind.kind}' needs a verb_flag (e.g. --objects)",
                    data={"generator": gen.name},
                )
            missing = [str(f) for f in gen.inputs if not f.is_file()]
            if missing:
                raise ValidationError(
                    code="config.input_missing",
                    message=f"Generator {gen.name}: input file(s) not found",
                    data={"generator": gen.name, "missing": missing},
                )

            def output_dir_for(f: Path, gen: GeneratorConfig = gen) -> Path:
                return gen.output_dir if gen.layout == LAYOUT_SHARED else gen.output_dir / strip_version(f.name)

            def arguments_for(f: Path, gen: GeneratorConfig = gen) -> List[str]:
                return self.render_arguments(gen, config.project, f)

            requests.extend(
                Orchestrator.plan(
                    entry_points[gen.name],
                    gen.inputs,
                    output_dir_for,
                    arguments_for,
                    action=f"generate {gen.kind} code with {gen.name}",
                    verb=gen.verb or kind.verb,
                    generator=gen.name,
                )
            )
        return requests

    def _entry_point(self, gen: GeneratorConfig, trace: TraceEmitter, dist_roots: List[Path]) -> Path:
        if gen.entry_point is not None:
            if not gen.entry_point.is_file():
                raise ValidationError(
                    code="config.entry_point_missing",
                    message=f"Generator {gen.name}: entry point not found: {gen.entry_point}",
                    data={"generator": gen.name, "entry_point": str(gen.entry_point)},
                )
            return gen.entry_point

        executable = gen.executable or self._generators.require(gen.kind).default_executable
        if not executable:
            raise ValidationError(
                code="config.executable_missing",
                message=f"Generator {gen.name}: 'executable' is required for kind '{gen.kind}'",
                data={"generator": gen.name},
            )
        if gen.distribution is None or gen.extract_dir is None:
            raise ValidationError(
                code="config.distribution_missing",
                message=f"Generator {gen.name}: needs either a distribution (with extract_dir) or an entry_point",
                data={"generator": gen.name},
            )
        dist = extract(gen.distribution, gen.extract_dir, executable)
        trace.emit(
            "distribution_extracted",
            generator=gen.name,
            message="Distribution extracted",
            data={"root": str(dist.root), "executable": append_dot_bat_if_windows(executable).name},
        )
        dist_roots.append(dist.root)
        return dist.executable

    def generate(self, ctx: RuntimeContext, config: GenerationConfig) -> Dict[str, Any]:
        store = TraceStoreJSONL(ctx.trace_path)
        trace = TraceEmitter(store=store, run_id=ctx.run_id)
        trace.emit(
            "config_loaded",
            message="Generation config loaded",
            data={"config": str(config.path), "generators": [g.name for g in config.generators]},
        )

        def factory(entry_point: Path):
            return create_runner(
                entry_point,
                registry=self._entries,
                env=ctx.env,
                timeout_s=ctx.timeout_s,
                allow_in_process=ctx.in_process_enabled,
            )

        with RunnerCache(factory) as runners:
            try:
                dist_roots: List[Path] = []
                entry_points = {gen.name: self._entry_point(gen, trace, dist_roots) for gen in config.generators}
                for gen_name, ep in entry_points.items():
                    runner = runners.get(ep)
                    trace.emit("runner_selected", generator=gen_name, message="Runner selected", data={"mode": runner.mode})
                requests = self.plan(config, entry_points)
                check_isolation(requests, dist_roots)
                orchestrator = Orchestrator(runners, trace, workers=ctx.workers)
            except ConjurerError as e:
                trace.emit("error", message=str(e), data={"code": e.code})
                raise
            results = orchestrator.run(requests, dist_roots)

        log.info("Generated %d unit(s)", len(results))
        return {"run_id": ctx.run_id, "units": [_unit_summary(r) for r in results]}


def _unit_summary(r: UnitResult) -> Dict[str, Any]:
    return {
        "unit_id": r.unit_id,
        "generator": r.request.generator,
        "input_file": str(r.request.input_file),
        "output_dir": str(r.request.output_dir),
        "status": r.status.value,
    }
