from __future__ import annotations

import asyncio
import threading
from typing import Dict
from weakref import WeakKeyDictionary

__all__ = ["PerEventLoopSingleton", ]

# loop -> {class -> instance | _BUILDING}; an entry disappears with its loop
_registry: "WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[type, object]]" = WeakKeyDictionary()
_registry_lock = threading.Lock()
_BUILDING = object()


def _current_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class PerEventLoopSingleton(type):
    """
    Metaclass giving each class one instance per running event loop.

    httpx connection pools belong to the loop that opened them, so a client
    shared across ``asyncio.run()`` calls would break. Keying on the loop
    keeps one client per loop and lets it go when the loop is collected.

    Only the first call in a loop constructs; later calls return that instance
    and ignore their arguments. Calling outside a running loop raises RuntimeError.
    """

    def __call__(cls, *args, **kwargs):
        loop = _current_loop()
        if loop is None:
            raise RuntimeError(f"'{cls.__name__}' requires a running event loop. Create it from async code.")

        with _registry_lock:
            slots = _registry.setdefault(loop, {})
            current = slots.get(cls)
            if current is _BUILDING:
                raise RuntimeError(f"'{cls.__name__}' is already being constructed in this event loop.")
            if current is not None:
                return current
            slots[cls] = _BUILDING

        try:
            instance = super().__call__(*args, **kwargs)
        except BaseException:
            with _registry_lock:
                slots.pop(cls, None)
            raise

        with _registry_lock:
            slots[cls] = instance
        return instance

    def get_instance(cls, loop: asyncio.AbstractEventLoop | None = None) -> object | None:
        """The instance bound to ``loop`` (the running one by default), or None. Never constructs."""
        loop = loop or _current_loop()
        if loop is None:
            return None
        with _registry_lock:
            current = _registry.get(loop, {}).get(cls)
        return None if current is _BUILDING else current

    def delete_instance(cls) -> bool:
        """Unbind the running loop's instance. True if there was one."""
        loop = _current_loop()
        if loop is None:
            return False
        with _registry_lock:
            slots = _registry.get(loop, {})
            if slots.get(cls) in (None, _BUILDING):
                return False
            del slots[cls]
        return True

    def delete_all_instances(cls) -> None:
        """Unbind this class in every loop. Meant for test teardown."""
        with _registry_lock:
            for slots in _registry.values():
                slots.pop(cls, None)
