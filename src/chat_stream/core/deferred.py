"""
Cancelable deferred actions bound to a turn.

A DeferredAction runs a callback once after a delay unless it is cancelled
first. Owners (accumulator, permission gate) cancel their actions in the same
cleanup step that resets turn state, and callbacks re-check turn identity
before touching anything, so a timer can never bleed into a later turn.
"""

from __future__ import annotations

import asyncio

from collections.abc import Callable

from chat_stream.utils.logger import logger


class DeferredAction:
    """One-shot callback scheduled on the running event loop."""

    __slots__ = ("_callback", "_delay", "_handle", "_name")

    def __init__(self, delay: float, callback: Callable[[], None], *, name: str = "deferred") -> None:
        self._delay = delay
        self._callback = callback
        self._name = name
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        """Whether the action is scheduled and has neither fired nor been cancelled."""
        return self._handle is not None

    def start(self) -> DeferredAction:
        """Schedule the callback. Must be called from within a running event loop."""
        if self._handle is None:
            loop = asyncio.get_running_loop()
            self._handle = loop.call_later(self._delay, self._fire)
        return self

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self._callback()
        except Exception as e:
            logger.warning(f"Deferred action '{self._name}' failed: {e}")


class DeferredGroup:
    """Tracks every deferred action of one owner so they can be cancelled together."""

    def __init__(self) -> None:
        self._actions: list[DeferredAction] = []

    def schedule(self, delay: float, callback: Callable[[], None], *, name: str = "deferred") -> DeferredAction:
        self._actions = [action for action in self._actions if action.pending]
        action = DeferredAction(delay, callback, name=name).start()
        self._actions.append(action)
        return action

    def cancel_all(self) -> None:
        for action in self._actions:
            action.cancel()
        self._actions.clear()

    def __len__(self) -> int:
        return sum(1 for action in self._actions if action.pending)
