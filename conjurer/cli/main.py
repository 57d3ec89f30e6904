from __future__ import annotations

import argparse
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List

from conjurer.bootstrap_generators import build_generator_registry
from conjurer.core.config import load_config
from conjurer.core.errors import ConjurerError, GenerationFailed, ValidationError
from conjurer.core.kernel import Kernel, build_context
from conjurer.distribution.extractor import extract
from conjurer.distribution.launcher import analyze
from conjurer.logging_utils import configure_logging
from conjurer.registry.entry_registry import EntryRegistry
from conjurer.trace.replay import Replay


_MAX_OUTPUT_CHARS = 4000


def _format_cli_error(e: Exception) -> str:
    """
    Print-friendly error formatting for CLI commands.
    - Always includes code/message (via __str__) when it's a ConjurerError
    - Includes structured `data` payload when present
    """
    if isinstance(e, GenerationFailed):
        return e.report()
    if isinstance(e, ConjurerError) and isinstance(e.data, dict) and e.data:
        data = dict(e.data)
        # Keep captured generator output bounded.
        if isinstance(data.get("output"), str) and len(data["output"]) > _MAX_OUTPUT_CHARS:
            data["output"] = data["output"][:_MAX_OUTPUT_CHARS] + "...(truncated)"
        return str(e) + "\n" + json.dumps(data, ensure_ascii=False, indent=2, default=str)
    return str(e)


def _build_entry_registry(*, load_installed: bool) -> EntryRegistry:
    reg = EntryRegistry()
    if load_installed:
        reg.load_entry_points()
    return reg


def cmd_extract(args: argparse.Namespace) -> int:
    dist = extract(Path(args.archive), Path(args.dest), args.executable)
    print(json.dumps({"root": str(dist.root), "executable": str(dist.executable)}, ensure_ascii=False, indent=2))
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    entry_point = Path(args.entry_point)
    if not entry_point.is_file():
        raise ValidationError(code="cli.entry_point_missing", message=f"Not a file: {entry_point}")
    info = analyze(entry_point)
    if info is None:
        out: Dict[str, Any] = {"launcher": None}
    else:
        out = {"launcher": {"entry_symbol": info.entry_symbol, "classpath": [str(p) for p in info.classpath]}}
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    config = load_config(Path(args.config))
    kernel = Kernel(build_generator_registry())
    out: List[Dict[str, Any]] = []
    for gen in config.generators:
        if args.generator and gen.name != args.generator:
            continue
        for f in gen.inputs:
            out.append({"generator": gen.name, "input_file": str(f), "arguments": kernel.render_arguments(gen, config.project, f)})
    if args.generator and not out:
        raise ValidationError(code="cli.generator_unknown", message=f"No generator named {args.generator} in {args.config}")
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    config = load_config(Path(args.config))
    ctx = build_context(
        config,
        run_id=args.run_id or "run_" + uuid.uuid4().hex[:12],
        workers=args.workers,
        timeout_s=args.timeout,
        allow_in_process=False if args.no_in_process else None,
        trace_path=Path(args.trace) if args.trace else None,
    )
    kernel = Kernel(build_generator_registry(), _build_entry_registry(load_installed=not args.no_entry_points))
    out = kernel.generate(ctx, config)
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0


def cmd_list_generators(args: argparse.Namespace) -> int:
    kinds = build_generator_registry().list_kinds()
    if args.json:
        print(json.dumps(kinds, ensure_ascii=False, indent=2))
    else:
        for k in kinds:
            print("{kind} - {title}".format(**k))
    return 0


def cmd_list_entries(args: argparse.Namespace) -> int:
    entries = _build_entry_registry(load_installed=True).list_entries()
    if args.json:
        print(json.dumps(entries, ensure_ascii=False, indent=2))
    else:
        for e in entries:
            print("{entry_symbol} -> {source}".format(**e))
    return 0


def cmd_show_trace(args: argparse.Namespace) -> int:
    replay = Replay(Path(args.trace))
    events = list(replay.iter_events(run_id=args.run_id))

    if args.event_type:
        events = [e for e in events if e.get("event_type") == args.event_type]

    if args.tail is not None and args.tail >= 0:
        events = events[-args.tail :] if args.tail else []

    for e in events:
        print(json.dumps(e, ensure_ascii=False, indent=2 if args.pretty else None))
    return 0


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(prog="conjurer", description="Extract and run code generators over IR files")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    ap.add_argument("--log-file", help="Also write logs to this file")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_extract = sub.add_parser("extract", help="Extract a generator distribution (.tgz)")
    p_extract.add_argument("archive", help="Path to the gzip'd tar distribution")
    p_extract.add_argument("--dest", required=True, help="Destination directory (re-created)")
    p_extract.add_argument("--executable", required=True, help="Executable name under bin/")
    p_extract.set_defaults(func=cmd_extract)

    p_analyze = sub.add_parser("analyze", help="Inspect a generator entry point's launcher script")
    p_analyze.add_argument("entry_point", help="Path to bin/<executable>")
    p_analyze.set_defaults(func=cmd_analyze)

    p_render = sub.add_parser("render", help="Print the rendered generator arguments for each input file")
    p_render.add_argument("--config", required=True, help="Generation config (YAML)")
    p_render.add_argument("--generator", help="Only this generator")
    p_render.set_defaults(func=cmd_render)

    p_gen = sub.add_parser("generate", help="Run every configured generator over its input files")
    p_gen.add_argument("--config", required=True, help="Generation config (YAML)")
    p_gen.add_argument("--run-id", help="Run ID for trace correlation (default: random)")
    p_gen.add_argument("--trace", help="Trace output path (jsonl) (default: from config)")
    p_gen.add_argument("--workers", type=int, help="Max concurrent generator invocations")
    p_gen.add_argument("--timeout", type=float, help="Per-invocation timeout in seconds (disables in-process runs)")
    p_gen.add_argument("--no-in-process", action="store_true", help="Always spawn generators as external processes")
    p_gen.add_argument("--no-entry-points", action="store_true", help="Do not load installed in-process entries")
    p_gen.set_defaults(func=cmd_generate)

    p_list_gen = sub.add_parser("list-generators", help="List generator kinds")
    p_list_gen.add_argument("--json", action="store_true", help="Output JSON")
    p_list_gen.set_defaults(func=cmd_list_generators)

    p_list_entries = sub.add_parser("list-entries", help="List installed in-process generator entries")
    p_list_entries.add_argument("--json", action="store_true", help="Output JSON")
    p_list_entries.set_defaults(func=cmd_list_entries)

    p_show_trace = sub.add_parser("show-trace", help="Show trace events from a JSONL file")
    p_show_trace.add_argument("--trace", required=True, help="Trace path (jsonl)")
    p_show_trace.add_argument("--run-id", help="Filter by run_id")
    p_show_trace.add_argument("--event-type", help="Filter by event_type")
    p_show_trace.add_argument("--tail", type=int, help="Show only last N events")
    p_show_trace.add_argument("--pretty", action="store_true", help="Pretty-print each event as JSON")
    p_show_trace.set_defaults(func=cmd_show_trace)

    args = ap.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, Path(args.log_file) if args.log_file else None)
    try:
        return int(args.func(args))
    except Exception as e:  # noqa: BLE001
        print(_format_cli_error(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
