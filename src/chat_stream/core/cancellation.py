"""
Per-turn cancellation.

The session controller creates one token per turn and hands it to the read
loop. A stop request reaches the loop two ways: the task blocked inside
``cancellation_scope()`` is cancelled outright, and ``check()`` raises at the
next frame boundary. Both surface as asyncio.CancelledError.
"""

from __future__ import annotations

import asyncio
import contextlib

from collections.abc import AsyncIterator, Callable

from chat_stream.utils.logger import logger

Listener = Callable[[], None]


class CancellationToken:
    """One-shot stop signal for a single turn.

    Usage:
        token = CancellationToken()

        async with token.cancellation_scope():
            async for frame in frames:
                token.check()
                ...

        # elsewhere, e.g. a stop button
        token.cancel("stopped by user")
    """

    __slots__ = ("_listeners", "_reason", "_requested")

    def __init__(self) -> None:
        self._requested = False
        self._reason: str | None = None
        self._listeners: list[Listener] = []

    @property
    def is_cancelled(self) -> bool:
        return self._requested

    @property
    def cancel_reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """Fire the token.

        Returns:
            False if the token had already fired
        """
        if self._requested:
            return False
        self._requested = True
        self._reason = reason
        for listener in list(self._listeners):
            self._notify(listener)
        return True

    def add_listener(self, listener: Listener) -> Listener:
        """Run ``listener`` on cancel, or right away if the token already fired."""
        if self._requested:
            self._notify(listener)
        else:
            self._listeners.append(listener)
        return listener

    def remove_listener(self, listener: Listener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def check(self) -> None:
        """Raise asyncio.CancelledError if the token has fired."""
        if self._requested:
            raise asyncio.CancelledError(self._reason or "turn cancelled")

    @contextlib.asynccontextmanager
    async def cancellation_scope(self) -> AsyncIterator[None]:
        """Bind the token to the current task for the duration of the block.

        A cancel from another task interrupts whatever the bound task is
        awaiting. Leaving the block after the token fired raises CancelledError
        even if the body finished on its own.
        """
        self.check()
        bound = asyncio.current_task()

        def interrupt() -> None:
            # The bound task cannot cancel its own await; check() covers that case
            if bound is None or bound.done() or bound is _current_task():
                return
            bound.cancel(self._reason)

        self.add_listener(interrupt)
        try:
            yield
        finally:
            self.remove_listener(interrupt)
        self.check()

    def _notify(self, listener: Listener) -> None:
        try:
            listener()
        except Exception as e:
            logger.warning(f"Cancellation listener failed: {e}")


def _current_task() -> asyncio.Task[object] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


__all__ = ["CancellationToken"]
