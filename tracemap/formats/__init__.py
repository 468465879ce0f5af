from .tracefile import TraceFile, load_trace, save_trace

__all__ = [
    "TraceFile",
    "load_trace",
    "save_trace",
]
