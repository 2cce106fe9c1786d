"""Simple in-process latency and counter collector."""
import time
from contextlib import contextmanager
from collections import defaultdict

_timers = defaultdict(list)
_counters = defaultdict(int)

@contextmanager
def record_latency(name: str):
    start = time.perf_counter()
    try:
        yield
    finally:
        _timers[name].append((time.perf_counter() - start) * 1000.0)

def increment(name: str, amount: int = 1) -> None:
    _counters[name] += amount

def get_metrics_snapshot():
    timers = {k: {
        "count": len(v),
        "avg_ms": (sum(v) / len(v)) if v else 0.0,
        "p95_ms": sorted(v)[max(int(len(v) * 0.95) - 1, 0)] if v else 0.0
    } for k, v in _timers.items()}
    return {"timers": timers, "counters": dict(_counters)}

def reset_metrics() -> None:
    _timers.clear()
    _counters.clear()
