"""One-way progress/lifecycle notifications for long running operations.

Operations call ``emit`` and never look at what listeners do; a listener that
raises is logged and otherwise ignored. Background units of work run on a
shared thread pool and report their final outcome through a ``Future``.
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, List, Optional, Tuple

_log = logging.getLogger(__name__)

SCAN_STARTED = "scan://started"
SCAN_PROGRESS = "scan://progress"
SCAN_COMPLETE = "scan://complete"
SCAN_ERROR = "scan://error"

PRUNE_START = "prune://start"
PRUNE_PROGRESS = "prune://progress"
PRUNE_COMPLETE = "prune://complete"
PRUNE_ERROR = "prune://error"

PRESET_APPLY_START = "preset://apply_start"
PRESET_APPLY_PROGRESS = "preset://apply_progress"
PRESET_APPLY_COMPLETE = "preset://apply_complete"
PRESET_APPLY_ERROR = "preset://apply_error"

Listener = Callable[[str, Any], None]


@dataclass(frozen=True)
class ScanProgress:
    processed: int
    total: int
    current_path: Optional[str]
    message: str


@dataclass(frozen=True)
class ApplyProgress:
    processed: int
    total: int
    current_id: Optional[int]
    message: str


class EventBus:
    """Fan-out of named events to subscribed callables."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)
        self._wildcard: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, name: str, listener: Listener) -> None:
        with self._lock:
            self._listeners[name].append(listener)

    def subscribe_all(self, listener: Listener) -> None:
        with self._lock:
            self._wildcard.append(listener)

    def emit(self, name: str, payload: Any = None) -> None:
        with self._lock:
            targets = list(self._listeners.get(name, ())) + list(self._wildcard)
        for listener in targets:
            try:
                listener(name, payload)
            except Exception:
                _log.exception("Event listener failed for %s", name)


class RecordingSink:
    """Listener that keeps every event it receives, in order."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Any]] = []
        self._lock = threading.Lock()

    def __call__(self, name: str, payload: Any) -> None:
        with self._lock:
            self.events.append((name, payload))

    def names(self) -> List[str]:
        with self._lock:
            return [n for n, _ in self.events]

    def payloads(self, name: str) -> List[Any]:
        with self._lock:
            return [p for n, p in self.events if n == name]


def recording_bus() -> Tuple[EventBus, RecordingSink]:
    bus = EventBus()
    sink = RecordingSink()
    bus.subscribe_all(sink)
    return bus, sink


class BackgroundRunner:
    """Thread pool for scans and imports, owned by the application entry point.

    Work cannot be cancelled once submitted; callers only observe the final
    outcome through the returned ``Future`` and progress through events.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="modmgr-bg")

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
