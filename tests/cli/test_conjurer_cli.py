import io
import json
import os
import tarfile
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path

from conjurer.cli.main import main as conjurer_main


def _run(argv):
    buf = io.StringIO()
    with redirect_stdout(buf):
        rc = conjurer_main(argv)
    return rc, buf.getvalue()


class TestConjurerCli(unittest.TestCase):
    def test_list_generators_outputs_json(self) -> None:
        rc, out = _run(["list-generators", "--json"])
        self.assertEqual(rc, 0)
        kinds = [k["kind"] for k in json.loads(out)]
        self.assertIn("python", kinds)
        self.assertIn("java", kinds)

    def test_list_entries_outputs_json(self) -> None:
        rc, out = _run(["list-entries", "--json"])
        self.assertEqual(rc, 0)
        self.assertIsInstance(json.loads(out), list)

    def test_show_trace_outputs_events(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "t.jsonl"
            p.write_text(
                "\n".join(
                    [
                        json.dumps({"ts": "2026-02-03T00:00:00Z", "run_id": "r1", "event_type": "config_loaded"}),
                        json.dumps({"ts": "2026-02-03T00:00:01Z", "run_id": "r1", "event_type": "run_finished"}),
                    ]
                )
                + "\n",
                encoding="utf-8",
            )
            rc, out = _run(["show-trace", "--trace", str(p), "--tail", "1"])
            self.assertEqual(rc, 0)
            lines = [l for l in out.splitlines() if l.strip()]
            self.assertEqual(len(lines), 1)
            self.assertEqual(json.loads(lines[0])["event_type"], "run_finished")

    def test_analyze_native_binary(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "conjure-rust"
            p.write_bytes(b"\x7fELF\xff\xfe")
            rc, out = _run(["analyze", str(p)])
            self.assertEqual(rc, 0)
            self.assertEqual(json.loads(out), {"launcher": None})

    def test_extract_reports_errors_with_code(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            archive = Path(td) / "bad.tgz"
            archive.write_bytes(b"not a tarball")
            rc, out = _run(["extract", str(archive), "--dest", str(Path(td) / "dest"), "--executable", "conjure-foo"])
            self.assertEqual(rc, 1)
            self.assertIn("extract.failed", out)

    def test_extract(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            archive = Path(td) / "foo.tgz"
            data = b"#!/bin/sh\n"
            with tarfile.open(archive, mode="w:gz") as tar:
                info = tarfile.TarInfo("foo-1.0.0/bin/conjure-foo")
                info.size = len(data)
                info.mode = 0o755
                tar.addfile(info, io.BytesIO(data))
            rc, out = _run(["extract", str(archive), "--dest", str(Path(td) / "dest"), "--executable", "conjure-foo"])
            self.assertEqual(rc, 0)
            self.assertTrue(json.loads(out)["executable"].endswith(os.path.join("bin", "conjure-foo")))

    def test_render_prints_arguments_per_input(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = Path(td) / "conjurer.yml"
            cfg.write_text(
                "project: {name: demo, version: 1.0.0}\n"
                "generators:\n"
                "  - name: py\n"
                "    kind: python\n"
                "    entry_point: bin/conjure-python\n"
                "    inputs: [api-1.0.0.json]\n"
                "    output_dir: out\n"
                "    options: {rawSource: true}\n",
                encoding="utf-8",
            )
            rc, out = _run(["render", "--config", str(cfg)])
            self.assertEqual(rc, 0)
            rendered = json.loads(out)
            self.assertEqual(rendered[0]["generator"], "py")
            self.assertEqual(rendered[0]["arguments"], ["--rawSource", "--packageName=demo", "--packageVersion=1.0.0"])

            rc, out = _run(["render", "--config", str(cfg), "--generator", "nope"])
            self.assertEqual(rc, 1)
            self.assertIn("cli.generator_unknown", out)

    def test_generate_with_invalid_config(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = Path(td) / "conjurer.yml"
            cfg.write_text("project: {name: demo}\n", encoding="utf-8")
            rc, out = _run(["generate", "--config", str(cfg), "--no-entry-points"])
            self.assertEqual(rc, 1)
            self.assertIn("config.schema_invalid", out)


if __name__ == "__main__":
    unittest.main()
