"""Raw measurement producers.

``measure_ips`` estimates iterations per second by running the callable
in fixed-size cycles; every cycle contributes one rate sample.
``measure_memory`` runs the callable once under ``tracemalloc``.

Both return plain dicts that become a result's ``result_data``.
"""

from __future__ import annotations

import gc
import time
import tracemalloc
from typing import Any, Callable

# Target duration of one measurement cycle during the warm-up estimate.
CYCLE_TARGET_S = 0.1


def _run_cycle(fn: Callable[[], Any], iterations: int) -> float:
    """Call *fn* *iterations* times, returning the elapsed seconds."""
    start = time.perf_counter()
    for _ in range(iterations):
        fn()
    return time.perf_counter() - start


def _warmup(fn: Callable[[], Any], warmup_s: float) -> int:
    """Warm *fn* up and return how many calls fit in one cycle."""
    calls = 0
    start = time.perf_counter()
    deadline = start + max(warmup_s, 0.0)
    while True:
        fn()
        calls += 1
        now = time.perf_counter()
        if now >= deadline:
            break
    elapsed = max(now - start, 1e-9)
    return max(1, int(calls * CYCLE_TARGET_S / elapsed))


def measure_ips(
    fn: Callable[[], Any],
    *,
    time_s: float = 1.0,
    warmup_s: float = 0.2,
) -> dict[str, Any]:
    """Measure *fn*'s throughput in iterations per second.

    Args:
        fn: Zero-argument callable to benchmark.
        time_s: Measurement duration in seconds.
        warmup_s: Warm-up duration used to size each cycle.

    Returns:
        ``{"samples": [...], "iterations": n, "cycles": k,
        "measured_us": ...}`` where each sample is the rate of one cycle.
    """
    per_cycle = _warmup(fn, warmup_s)
    samples: list[float] = []
    iterations = 0
    measured = 0.0
    deadline = time.perf_counter() + max(time_s, 0.0)
    while True:
        elapsed = _run_cycle(fn, per_cycle)
        iterations += per_cycle
        measured += elapsed
        samples.append(per_cycle / max(elapsed, 1e-9))
        if time.perf_counter() >= deadline:
            break
    return {
        "samples": samples,
        "iterations": iterations,
        "cycles": len(samples),
        "measured_us": round(measured * 1_000_000, 3),
    }


def measure_memory(fn: Callable[[], Any]) -> dict[str, Any]:
    """Measure the memory *fn* allocates during one call.

    Returns:
        ``{"allocated": bytes, "retained": bytes, "peak": bytes,
        "objects": n}``.  ``allocated`` counts every allocation made
        during the call, ``retained`` what is still alive once the
        return value has been dropped and a collection has run.
    """
    gc.collect()
    was_tracing = tracemalloc.is_tracing()
    if not was_tracing:
        tracemalloc.start()
    try:
        tracemalloc.clear_traces()
        before = tracemalloc.take_snapshot()
        value = fn()
        during = tracemalloc.take_snapshot()
        _, peak = tracemalloc.get_traced_memory()
        del value
        gc.collect()
        after = tracemalloc.take_snapshot()
    finally:
        if not was_tracing:
            tracemalloc.stop()

    allocated_stats = during.compare_to(before, "lineno")
    retained_stats = after.compare_to(before, "lineno")
    return {
        "allocated": sum(max(s.size_diff, 0) for s in allocated_stats),
        "retained": sum(max(s.size_diff, 0) for s in retained_stats),
        "peak": peak,
        "objects": sum(max(s.count_diff, 0) for s in allocated_stats),
    }
