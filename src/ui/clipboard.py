"""Qt-backed clipboard for the copy action."""

import logging

from PyQt6.QtCore import QObject, pyqtSignal
from PyQt6.QtGui import QGuiApplication

from src.models.sync_bridge import Clipboard, MemoryClipboard

logger = logging.getLogger(__name__)


class _ClipboardWriter(QObject):
    """Lives on the GUI thread; copy requests from other threads are queued to it."""

    text_ready = pyqtSignal(str)

    def __init__(self):
        super().__init__()
        self.text_ready.connect(self._set_text)

    def _set_text(self, text: str) -> None:
        QGuiApplication.clipboard().setText(text)


class SystemClipboard(Clipboard):
    """Writes to the system clipboard via Qt.

    Must be created on the GUI thread. Falls back to an in-memory clipboard
    when no Qt application is running (headless use).
    """

    def __init__(self):
        self._fallback = MemoryClipboard()
        self._writer = _ClipboardWriter() if QGuiApplication.instance() is not None else None

    @property
    def fallback_text(self) -> str | None:
        return self._fallback.text

    async def write_text(self, text: str) -> None:
        if self._writer is None:
            logger.debug("No Qt application; copying to in-memory clipboard")
            await self._fallback.write_text(text)
            return
        self._writer.text_ready.emit(text)
