from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass


@dataclass
class StoreTiming:
    elapsed_ms: float = 0.0
    queries: int = 0


_store_timing: ContextVar[StoreTiming | None] = ContextVar("store_timing", default=None)


def start_db_timer() -> object:
    return _store_timing.set(StoreTiming())


def stop_db_timer(token: object) -> None:
    _store_timing.reset(token)


def add_db_time(delta_ms: float) -> None:
    current = _store_timing.get()
    if current is None:
        return
    current.elapsed_ms += delta_ms
    current.queries += 1


def is_db_timer_active() -> bool:
    return _store_timing.get() is not None


def get_db_timing() -> StoreTiming | None:
    return _store_timing.get()
