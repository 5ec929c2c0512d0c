"""
Host lifecycle hooks.

The progress port cannot see tab visibility, app backgrounding or process
exit on its own. The host wires those events into a LifecycleHooks instance
and the port subscribes with on_interrupt().
"""

from __future__ import annotations

import atexit
import threading
from enum import Enum
from typing import Callable

from loguru import logger


class InterruptSignal(str, Enum):
    """Moments after which the process may disappear without warning."""
    HIDDEN = "hidden"  # tab hidden, app backgrounded
    UNLOAD = "unload"  # page unload, process exit


InterruptCallback = Callable[[InterruptSignal], None]


class LifecycleHooks:
    """Registry of interruption callbacks, fired by the host."""

    def __init__(self):
        self._callbacks: list[InterruptCallback] = []
        self._lock = threading.Lock()
        self._exit_hook_installed = False

    def on_interrupt(self, callback: InterruptCallback) -> Callable[[], None]:
        """Register a callback. Returns a function that unregisters it."""
        with self._lock:
            self._callbacks.append(callback)

        def unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unregister

    def fire(self, signal: InterruptSignal) -> None:
        """Run every callback synchronously. A failing callback does not stop the rest."""
        with self._lock:
            callbacks = list(self._callbacks)

        logger.debug("Lifecycle signal {} -> {} callbacks", signal.value, len(callbacks))
        for callback in callbacks:
            try:
                callback(signal)
            except Exception:
                logger.exception("Interrupt callback failed on {}", signal.value)

    def install_process_exit_hook(self) -> None:
        """Fire UNLOAD at interpreter exit (server and CLI contexts)."""
        if self._exit_hook_installed:
            return
        atexit.register(self.fire, InterruptSignal.UNLOAD)
        self._exit_hook_installed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)
