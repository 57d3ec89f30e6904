from .trace_emitter import TraceEmitter
from .trace_store_jsonl import TraceStoreJSONL
from .replay import Replay

__all__ = ["TraceEmitter", "TraceStoreJSONL", "Replay"]
