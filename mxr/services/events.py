"""
Minimal observer registry: listeners subscribe per event name and dispose explicitly.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

Listener = Callable[[Any], None]


class Subscription:
    """Handle returned by ``EventEmitter.subscribe``; call ``dispose()`` to unsubscribe."""

    def __init__(self, emitter: "EventEmitter", event: str, listener: Listener):
        self._emitter = emitter
        self.event = event
        self.listener = listener
        self.disposed = False

    def dispose(self) -> None:
        if not self.disposed:
            self._emitter._remove(self.event, self.listener)
            self.disposed = True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


class EventEmitter:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()
        self.logger = logger

    def subscribe(self, event: str, listener: Listener) -> Subscription:
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)
        return Subscription(self, event, listener)

    def emit(self, event: str, payload: Any = None) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            try:
                listener(payload)
            except Exception:  # pylint: disable=broad-except
                # 리스너 오류가 인덱스/스캔을 중단시키지 않도록 로그만 남김
                if self.logger:
                    self.logger.exception(f"Listener for '{event}' failed")

    def listener_count(self, event: Optional[str] = None) -> int:
        with self._lock:
            if event is not None:
                return len(self._listeners.get(event, ()))
            return sum(len(listeners) for listeners in self._listeners.values())

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def _remove(self, event: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(event)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[event]


__all__ = ["EventEmitter", "Subscription"]
