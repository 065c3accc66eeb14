"""Sign-in popup flow.

The bridge opens Google's consent page in a popup and waits for the popup to
post back ``{"type": "OAUTH_AUTH_SUCCESS", "sessionId": ...}``. The session id
is kept in the local cache and attached to every later API request, so the
session survives even when the browser refuses the server's cookie.
"""
import logging
from typing import Any, Dict, Optional

from PySide6 import QtCore

from .api import ApiClient
from .window import HostWindow, PopupWindow
from ..core import database
from ..core.actions import signals
from ..core.session import SESSION_HEADER_NAME
from ..settings import lib
from ..status import status

SUCCESS_MESSAGE_TYPE: str = 'OAUTH_AUTH_SUCCESS'


def attach_session(headers: Dict[str, str]) -> Dict[str, str]:
    """Add the stored session id to ``headers`` unless a cookie is already set."""
    if any(k.lower() == 'cookie' for k in headers):
        return headers
    session_id = database.get_database().get_session_id()
    if session_id:
        headers[SESSION_HEADER_NAME] = session_id
    return headers


class SessionBridge(QtCore.QObject):
    """Drives the sign-in popup and stores the resulting session id.

    Signals:
        sessionChanged: Emitted after a session id was stored or cleared.
    """
    sessionChanged = QtCore.Signal()

    def __init__(self,
                 window: HostWindow,
                 api: Optional[ApiClient] = None,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self.window = window
        self.api = api or ApiClient()

        self._popup: Optional[PopupWindow] = None
        self._listening = False
        self._attempt = 0

        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(lib.settings['client.poll_interval'])
        self._timer.timeout.connect(self._poll_popup)

    @property
    def is_listening(self) -> bool:
        return self._listening

    def session_id(self) -> Optional[str]:
        return database.get_database().get_session_id()

    def attach_session(self, headers: Dict[str, str]) -> Dict[str, str]:
        return attach_session(headers)

    @QtCore.Slot()
    def begin_login(self) -> bool:
        """Open the sign-in popup.

        Returns:
            bool: False when the authorization URL could not be fetched or the
            popup was blocked. Neither changes the stored session.
        """
        try:
            url = self.api.get_auth_url()
        except status.BaseStatusException as ex:
            logging.error(f'Failed to get the sign-in URL: {ex}')
            return False

        popup = self.window.open_popup(url)
        if popup is None:
            logging.info('Sign-in popup was blocked.')
            return False

        self._stop()
        self._attempt += 1
        self._popup = popup
        self._install_listener()
        self._timer.start()
        logging.debug('Sign-in popup opened, waiting for completion.')
        return True

    def _install_listener(self) -> None:
        if self._listening:
            return
        self.window.messageReceived.connect(self._on_message)
        self._listening = True

    @QtCore.Slot()
    def _remove_listener(self) -> None:
        if not self._listening:
            return
        self.window.messageReceived.disconnect(self._on_message)
        self._listening = False

    def _stop(self) -> None:
        self._timer.stop()
        self._remove_listener()
        self._popup = None

    @QtCore.Slot()
    def _poll_popup(self) -> None:
        """Stop waiting once the popup was closed without completing sign-in."""
        if self._popup is not None and not self._popup.is_closed():
            return

        logging.debug('Sign-in popup closed.')
        self._timer.stop()
        self._popup = None

        attempt = self._attempt

        def _teardown() -> None:
            # A newer attempt owns the listener now
            if attempt == self._attempt:
                self._remove_listener()

        QtCore.QTimer.singleShot(lib.settings['client.grace_period'], _teardown)

    @QtCore.Slot(str, object)
    def _on_message(self, origin: str, data: Any) -> None:
        if origin != self.window.origin:
            logging.debug(f'Ignoring message from foreign origin "{origin}".')
            return
        if not isinstance(data, dict) or data.get('type') != SUCCESS_MESSAGE_TYPE:
            return
        session_id = data.get('sessionId')
        if not session_id or not isinstance(session_id, str):
            logging.warning('Sign-in message carried no session id.')
            return

        database.get_database().set_session_id(session_id)
        logging.info('Sign-in completed.')

        if self._popup is not None:
            self._popup.close()
        self._stop()

        self.sessionChanged.emit()
        signals.sessionChanged.emit()

    @QtCore.Slot()
    def logout(self) -> None:
        """Sign out on the server and forget the stored session id."""
        try:
            self.api.logout()
        except status.BaseStatusException as ex:
            logging.error(f'Server logout failed: {ex}')

        database.get_database().clear_session_id()
        logging.info('Signed out.')

        self.sessionChanged.emit()
        signals.sessionChanged.emit()
