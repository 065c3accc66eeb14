"""Host window abstraction.

The rendering layer that embeds FinTrack owns the real window. It forwards
cross-window messages into :meth:`HostWindow.post_message` and decides how a
popup is opened. The default implementation opens popups in the system
browser.
"""
import logging
import webbrowser
from typing import Any, Optional
from urllib.parse import urlsplit

from PySide6 import QtCore

from ..settings import lib


def origin_of(url: str) -> str:
    """Return the scheme://host[:port] part of ``url``."""
    parts = urlsplit(url)
    return f'{parts.scheme}://{parts.netloc}'


class PopupWindow(QtCore.QObject):
    """Handle to a secondary window opened for sign-in."""

    def __init__(self, url: str, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self.url = url
        self._closed = False

    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True


class HostWindow(QtCore.QObject):
    """The application window as seen by the session bridge.

    Attributes:
        origin (str): The window's own origin. Messages from any other origin are ignored.
    """
    messageReceived = QtCore.Signal(str, object)  # origin, data

    def __init__(self, origin: Optional[str] = None, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self.origin = origin or origin_of(lib.settings['server.app_url'])

    def open_popup(self, url: str) -> Optional[PopupWindow]:
        """Open ``url`` in a popup.

        Returns:
            The popup handle, or None when the popup was blocked.
        """
        try:
            opened = webbrowser.open(url, new=1)
        except webbrowser.Error as ex:
            logging.warning(f'Could not open the sign-in window: {ex}')
            return None
        if not opened:
            logging.warning('Could not open the sign-in window.')
            return None
        return PopupWindow(url, parent=self)

    def post_message(self, origin: str, data: Any) -> None:
        """Deliver a message sent to this window from ``origin``."""
        self.messageReceived.emit(origin, data)
