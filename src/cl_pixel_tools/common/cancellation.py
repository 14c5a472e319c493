"""Cooperative cancellation tokens.

A token is canceled once and stays canceled. Child tokens follow their parent,
but canceling a child never reaches the parent or its siblings, so one job can
be stopped without touching the others.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from .errors import OperationCanceled


class CancellationToken:
    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._canceled: bool = False
        self._event: asyncio.Event | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._children: list[CancellationToken] = []
        self._parent: CancellationToken | None = parent
        if parent is not None:
            parent._adopt(self)

    @property
    def canceled(self) -> bool:
        return self._canceled

    def cancel(self) -> None:
        """Cancel this token and every token derived from it."""
        if self._canceled:
            return
        self._canceled = True
        if self._event is not None:
            self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in cancellation callback: {e}")

        children, self._children = self._children, []
        for child in children:
            child.cancel()

    def child(self) -> CancellationToken:
        """Derive a token that is canceled with this one, but not the reverse."""
        return CancellationToken(parent=self)

    def release(self) -> None:
        """Detach from the parent once the owning operation has finished."""
        if self._parent is not None and self in self._parent._children:
            self._parent._children.remove(self)
        self._parent = None

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation (immediately if already canceled).

        Returns a callable that removes the callback again.
        """
        if self._canceled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def raise_if_canceled(self) -> None:
        if self._canceled:
            raise OperationCanceled()

    async def wait(self) -> None:
        """Suspend until the token is canceled."""
        if self._canceled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        _ = await self._event.wait()

    def _adopt(self, child: CancellationToken) -> None:
        if self._canceled:
            child.cancel()
        else:
            self._children.append(child)
