"""
Change notification for the ledger services.

Each service owns its own subscriber list instead of sharing a global
store. Listeners are called synchronously, in subscription order, after
the in-memory state has changed.
"""

from typing import Any, Callable

import structlog

Listener = Callable[[str, dict[str, Any]], None]

CATEGORIES_CHANGED = "categories_changed"
WALLETS_CHANGED = "wallets_changed"
TRANSACTION_ADDED = "transaction_added"
TRANSACTION_UPDATED = "transaction_updated"
TRANSACTION_DELETED = "transaction_deleted"

logger = structlog.get_logger(__name__)


class Observable:
    """Mixin giving a service subscribe/unsubscribe and _notify."""

    def __init__(self):
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns a callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str, **payload: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                # A broken view must not undo a mutation that already happened
                logger.exception("listener_failed", ledger_event=event)
