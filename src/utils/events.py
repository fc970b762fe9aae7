"""Callback-based event emitter used by the selection and visibility models.

Uses plain callbacks instead of Qt signals so the models can be used and
tested without a QApplication.
"""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Event names
SELECTION_CHANGED = "selection-changed"
HIGHLIGHTED_RESIDUES_CHANGED = "highlighted-residues-changed"
VISIBILITY_OPERATION_RESULT = "visibility-operation-result"


class EventEmitter:
    """Registry of listeners keyed by event name."""

    def __init__(self):
        self._listeners: dict[str, list[Callable[[Any], None]]] = {}

    def add_listener(self, event: str, callback: Callable[[Any], None]) -> None:
        """Add a listener for an event.

        Args:
            event: Event name.
            callback: Function called with the event payload.
        """
        listeners = self._listeners.setdefault(event, [])
        if callback not in listeners:
            listeners.append(callback)

    def remove_listener(self, event: str, callback: Callable[[Any], None]) -> None:
        """Remove a previously registered listener.

        Args:
            event: Event name.
            callback: Previously registered callback.
        """
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event: str, payload: Any = None) -> None:
        """Notify all listeners of an event.

        A failing listener is logged and does not prevent the others from
        being called.

        Args:
            event: Event name.
            payload: Value passed to every listener.
        """
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(payload)
            except Exception:
                logger.exception(f"Error in listener for '{event}'")

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))
