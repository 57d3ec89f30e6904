import json
import tempfile
import threading
import unittest
from pathlib import Path

from conjurer.trace.replay import Replay
from conjurer.trace.trace_emitter import TraceEmitter
from conjurer.trace.trace_store_jsonl import TraceStoreJSONL


class TestTraceJSONL(unittest.TestCase):
    def test_concurrent_appends_stay_line_delimited(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "nested" / "trace.jsonl"
            emitter = TraceEmitter(TraceStoreJSONL(path), run_id="run_threads")

            def work(n: int) -> None:
                for i in range(50):
                    emitter.emit("unit_started", unit_id=f"unit-{n}-{i}", data={"payload": "x" * 200})

            threads = [threading.Thread(target=work, args=(n,)) for n in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            events = list(Replay(path).iter_events())
            self.assertEqual(len(events), 400)
            self.assertEqual(len({e["unit_id"] for e in events}), 400)

    def test_optional_fields_are_omitted(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "trace.jsonl"
            TraceEmitter(TraceStoreJSONL(path), run_id="r1").emit("run_finished")
            event = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(set(event.keys()), {"ts", "run_id", "event_type"})
            self.assertTrue(event["ts"].endswith("Z"))

    def test_replay_filters_by_run(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "trace.jsonl"
            store = TraceStoreJSONL(path)
            TraceEmitter(store, run_id="r1").emit("run_started")
            TraceEmitter(store, run_id="r2").emit("run_started")
            TraceEmitter(store, run_id="r2").emit("run_finished")

            replay = Replay(path)
            self.assertEqual(len(list(replay.iter_events(run_id="r2"))), 2)
            self.assertEqual(replay.last_run_id(), "r2")

    def test_replay_of_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            replay = Replay(Path(td) / "missing.jsonl")
            self.assertEqual(list(replay.iter_events()), [])
            self.assertIsNone(replay.last_run_id())


if __name__ == "__main__":
    unittest.main()
