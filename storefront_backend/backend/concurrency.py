"""
PATH: backend/concurrency.py

THREAD FAN-OUT HELPER

Used by:
- analytics aggregation (independent read queries)
- bulk order status updates (independent single-order writes)

Rules:
- Every task runs with its own DB connection; it is closed when the task
  finishes so pool threads never leak connections.
- parallel=False runs tasks inline in submission order (tests share a
  single DB connection and transaction).
- The first task exception is re-raised after all tasks have settled.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Mapping

from django.db import connections

logger = logging.getLogger(__name__)


def _close_thread_connections() -> None:
    for conn in connections.all(initialized_only=True):
        conn.close()


def _run_in_worker(fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    finally:
        _close_thread_connections()


def run_parallel(
    tasks: Mapping[str, Callable[[], Any]],
    *,
    parallel: bool = True,
    max_workers: int = 8,
) -> dict[str, Any]:
    """
    Run named zero-argument callables and return {name: result}.
    """
    if not tasks:
        return {}

    if not parallel:
        return {name: fn() for name, fn in tasks.items()}

    workers = max(1, min(int(max_workers), len(tasks)))
    results: dict[str, Any] = {}
    first_error: BaseException | None = None

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {name: pool.submit(_run_in_worker, fn) for name, fn in tasks.items()}

        for name, future in futures.items():
            exc = future.exception()
            if exc is not None:
                logger.warning(
                    "Parallel task failed",
                    extra={"task": name, "error": str(exc)},
                )
                if first_error is None:
                    first_error = exc
                continue
            results[name] = future.result()

    if first_error is not None:
        raise first_error

    return results
