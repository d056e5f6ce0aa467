"""Subscriber registry used by the position source and navigation engine."""

import itertools
from typing import Callable, Optional

from .logger import Logger


class Subscribers:
    """Callbacks keyed by subscription handle, called in registration order.

    The same callback may be registered more than once; each registration
    gets its own handle and its own unsubscribe function.
    """

    def __init__(self, name: str, logger: Optional[Logger] = None):
        self.name = name
        self.logger = logger
        self._callbacks: dict[int, Callable] = {}
        self._handles = itertools.count(1)

    def add(self, callback: Callable) -> Callable[[], None]:
        """Register a callback and return a function that removes it"""
        handle = next(self._handles)
        self._callbacks[handle] = callback

        def unsubscribe():
            self._callbacks.pop(handle, None)

        return unsubscribe

    def broadcast(self, *args):
        """Call every subscriber; a subscriber that raises does not stop the rest"""
        # Copy so callbacks may unsubscribe while we iterate
        for handle, callback in list(self._callbacks.items()):
            try:
                callback(*args)
            except Exception as e:
                if self.logger:
                    self.logger.error(f"{self.name} subscriber failed", {
                        "handle": handle,
                        "error": repr(e),
                    })
