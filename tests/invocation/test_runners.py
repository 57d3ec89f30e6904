import os
import tempfile
import unittest
from pathlib import Path

from conjurer.core.errors import InvocationError
from conjurer.invocation.external_process import ExternalProcessRunner
from conjurer.invocation.in_process import InProcessRunner
from conjurer.invocation.runner import RunnerCache, create_runner
from conjurer.registry.entry_registry import EntryRegistry


_SYMBOL = "com.example.conjure.FakeGeneratorCli"


def _install_launcher(root: Path, body: str) -> Path:
    """
    A launcher that is recognized for in-process execution and also runs under sh.
    """
    (root / "bin").mkdir(parents=True)
    (root / "lib").mkdir(parents=True)
    (root / "lib" / "fake.jar").write_bytes(b"PK")
    entry = root / "bin" / "conjure-fake"
    entry.write_text(
        "#!/usr/bin/env sh\n"
        "CLASSPATH=$APP_HOME/lib/fake.jar\n"
        f"# exec java -classpath \"$CLASSPATH\" {_SYMBOL} \"$@\"\n"
        f"{body}\n",
        encoding="utf-8",
    )
    entry.chmod(0o755)
    return entry


def _registry(entry) -> EntryRegistry:
    reg = EntryRegistry()
    reg.register(_SYMBOL, entry)
    return reg


@unittest.skipIf(os.name == "nt", "requires a POSIX shell")
class TestDualModeEquivalence(unittest.TestCase):
    def test_exit_status_three_fails_the_same_way_in_both_modes(self) -> None:
        def entry(argv, exit):
            exit(3)

        with tempfile.TemporaryDirectory() as td:
            ep = _install_launcher(Path(td) / "dist", "exit 3")
            external = create_runner(ep)
            in_process = create_runner(ep, registry=_registry(entry))
            self.assertIsInstance(external, ExternalProcessRunner)
            self.assertIsInstance(in_process, InProcessRunner)

            unlogged = ["generate", str(Path(td) / "api.json"), str(Path(td) / "out")]
            logged = ["--packageName=foo"]
            errors = []
            for runner in (external, in_process):
                with self.assertRaises(InvocationError) as ctx:
                    runner.invoke("generate python code", unlogged, logged)
                errors.append(ctx.exception)

            ext, inp = errors
            self.assertEqual(ext.code, inp.code)
            self.assertEqual(ext.code, "invocation.exit_status")
            self.assertEqual(ext.status, 3)
            self.assertEqual(inp.status, 3)
            self.assertEqual(ext.command_line, inp.command_line)
            self.assertEqual(ext.command_line, [str(ep), *unlogged, *logged])
            self.assertEqual(ext.message, inp.message)
            self.assertIn("failed with exit code 3", ext.message)
            self.assertEqual(set((ext.data or {}).keys()), set((inp.data or {}).keys()))
            self.assertEqual((ext.data or {})["entry_point"], "conjure-fake")
            self.assertIsNone(inp.output)

    def test_external_output_is_captured(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            ep = _install_launcher(Path(td) / "dist", 'echo "stdout line"\necho "stderr line" >&2\nexit 1')
            runner = create_runner(ep)
            with self.assertRaises(InvocationError) as ctx:
                runner.invoke("generate", ["generate", "in", "out"], [])
            self.assertIn("stdout line", ctx.exception.output or "")
            self.assertIn("stderr line", ctx.exception.output or "")

    def test_external_success(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            out = Path(td) / "out"
            out.mkdir()
            ep = _install_launcher(Path(td) / "dist", 'echo "$@" > "$3/args.txt"')
            create_runner(ep).invoke("generate", ["generate", "in.json", str(out)], ["--flag"])
            self.assertEqual((out / "args.txt").read_text(encoding="utf-8").strip(), f"generate in.json {out} --flag")

    def test_external_timeout(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            ep = _install_launcher(Path(td) / "dist", "exec sleep 5")
            runner = create_runner(ep, timeout_s=0.2)
            with self.assertRaises(InvocationError) as ctx:
                runner.invoke("generate", ["generate", "in", "out"], [])
            self.assertEqual(ctx.exception.code, "invocation.timeout")
            self.assertIsNone(ctx.exception.status)
            self.assertTrue((ctx.exception.data or {}).get("timed_out"))

    def test_logged_args_are_logged_and_paths_are_not(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            ep = _install_launcher(Path(td) / "dist", "exit 0")
            secret_input = str(Path(td) / "secret-input.json")
            with self.assertLogs("conjurer.invocation", level="INFO") as logs:
                create_runner(ep).invoke("generate", ["generate", secret_input, "out"], ["--packageName=foo"])
            text = "\n".join(logs.output)
            self.assertIn("--packageName=foo", text)
            self.assertNotIn(secret_input, text)


class TestInProcessRunner(unittest.TestCase):
    def _runner(self, td: str, entry) -> InProcessRunner:
        ep = _install_launcher(Path(td) / "dist", "exit 0")
        runner = create_runner(ep, registry=_registry(entry))
        self.assertIsInstance(runner, InProcessRunner)
        assert isinstance(runner, InProcessRunner)
        return runner

    def test_success_passes_unlogged_then_logged_args(self) -> None:
        seen = []

        def entry(argv, exit):
            seen.append(list(argv))

        with tempfile.TemporaryDirectory() as td:
            self._runner(td, entry).invoke("generate", ["generate", "a.json", "out"], ["--x=1"])
        self.assertEqual(seen, [["generate", "a.json", "out", "--x=1"]])

    def test_exit_zero_is_success(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self._runner(td, lambda argv, exit: exit(0)).invoke("generate", ["generate", "a", "b"], [])

    def test_exit_cannot_be_swallowed_by_generic_handler(self) -> None:
        def entry(argv, exit):
            try:
                exit(4)
            except Exception:  # noqa: BLE001
                return 0
            return 0

        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(InvocationError) as ctx:
                self._runner(td, entry).invoke("generate", ["generate", "a", "b"], [])
            self.assertEqual(ctx.exception.status, 4)

    def test_system_exit_is_captured(self) -> None:
        def entry(argv, exit):
            raise SystemExit(2)

        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(InvocationError) as ctx:
                self._runner(td, entry).invoke("generate", ["generate", "a", "b"], [])
            self.assertEqual(ctx.exception.status, 2)

    def test_nonzero_return_is_failure(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(InvocationError) as ctx:
                self._runner(td, lambda argv, exit: 5).invoke("generate", ["generate", "a", "b"], [])
            self.assertEqual(ctx.exception.status, 5)

    def test_uncaught_exception_is_wrapped(self) -> None:
        def entry(argv, exit):
            raise ValueError("bad IR")

        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(InvocationError) as ctx:
                self._runner(td, entry).invoke("generate", ["generate", "a", "b"], [])
            self.assertEqual(ctx.exception.code, "invocation.fault")
            self.assertIsNone(ctx.exception.status)
            self.assertIsInstance(ctx.exception.__cause__, ValueError)


class TestRunnerSelection(unittest.TestCase):
    def test_timeout_disables_in_process(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            ep = _install_launcher(Path(td) / "dist", "exit 0")
            runner = create_runner(ep, registry=_registry(lambda argv, exit: None), timeout_s=10)
            self.assertIsInstance(runner, ExternalProcessRunner)

    def test_unregistered_symbol_runs_externally(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            ep = _install_launcher(Path(td) / "dist", "exit 0")
            self.assertIsInstance(create_runner(ep, registry=EntryRegistry()), ExternalProcessRunner)

    def test_in_process_can_be_disallowed(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            ep = _install_launcher(Path(td) / "dist", "exit 0")
            runner = create_runner(ep, registry=_registry(lambda argv, exit: None), allow_in_process=False)
            self.assertIsInstance(runner, ExternalProcessRunner)

    def test_spawn_failure_is_an_invocation_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            runner = create_runner(Path(td) / "bin" / "missing")
            with self.assertRaises(InvocationError) as ctx:
                runner.invoke("generate", ["generate", "a", "b"], [])
            self.assertEqual(ctx.exception.code, "invocation.spawn_failed")

    def test_cache_reuses_runner_per_entry_point(self) -> None:
        calls = []

        def factory(p: Path):
            calls.append(p)
            return ExternalProcessRunner(p)

        with tempfile.TemporaryDirectory() as td:
            cache = RunnerCache(factory)
            a = cache.get(Path(td) / "bin" / "gen")
            b = cache.get(Path(td) / "bin" / "." / "gen")
            c = cache.get(Path(td) / "bin" / "other")
            cache.close()
        self.assertIs(a, b)
        self.assertIsNot(a, c)
        self.assertEqual(len(calls), 2)


if __name__ == "__main__":
    unittest.main()
