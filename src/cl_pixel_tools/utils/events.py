"""In-process listener registry used by the job queue."""

from collections.abc import Callable
from typing import Generic, TypeVar
from uuid import uuid4

from loguru import logger

E = TypeVar("E")


class ListenerRegistry(Generic[E]):
    """Ordered set of callbacks, each receiving every published event.

    Publishing iterates over a snapshot, so a listener may unsubscribe itself
    (or others) from inside its callback.
    """

    def __init__(self) -> None:
        self.subscriptions: dict[str, Callable[[E], None]] = {}

    def subscribe(self, callback: Callable[[E], None]) -> str:
        """Register ``callback`` and return its subscription id."""
        subscription_id = str(uuid4())
        self.subscriptions[subscription_id] = callback
        logger.debug(f"Listener registered (subscription_id: {subscription_id})")
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns False if the id is unknown."""
        if self.subscriptions.pop(subscription_id, None) is None:
            return False
        logger.debug(f"Listener removed (subscription_id: {subscription_id})")
        return True

    def publish(self, event: E) -> None:
        for subscription_id, callback in list(self.subscriptions.items()):
            if subscription_id not in self.subscriptions:
                continue
            try:
                callback(event)
            except Exception as callback_error:
                logger.error(
                    f"Error in listener for subscription {subscription_id}: {callback_error}"
                )
