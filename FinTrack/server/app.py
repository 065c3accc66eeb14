"""FastAPI application for FinTrack.

Exchanges the OAuth code for tokens, keeps them in the server-side session
store, and forwards the two Drive calls the client needs. Clients identify
their session with the ``fintrack_sid`` cookie, or with the ``X-Session-ID``
header when the cookie did not survive the sign-in redirect.
"""
import html
import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from ..core import auth, service
from ..core import session as session_mod
from ..core.session import SESSION_COOKIE_NAME, SESSION_HEADER_NAME, SessionRecord, SessionStore
from ..settings import lib
from ..status import status

SUCCESS_MESSAGE_TYPE: str = 'OAUTH_AUTH_SUCCESS'

app = FastAPI(title='FinTrack')


class SaveRequest(BaseModel):
    content: Dict[str, Any]
    fileId: Optional[str] = None


def app_origin() -> str:
    """Return the scheme://host[:port] origin of the configured app URL."""
    parts = urlsplit(lib.settings['server.app_url'])
    return f'{parts.scheme}://{parts.netloc}'


def get_store() -> SessionStore:
    return session_mod.session_store


def get_session(request: Request, store: SessionStore = Depends(get_store)) -> Optional[SessionRecord]:
    """Resolve the caller's session from the cookie or the fallback header."""
    return store.resolve(
        cookie_id=request.cookies.get(SESSION_COOKIE_NAME),
        header_id=request.headers.get(SESSION_HEADER_NAME),
    )


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({'error': message}, status_code=status_code)


def _cookie_flags() -> Dict[str, Any]:
    """Attributes shared by the session cookie and its deletion.

    Browsers reject ``SameSite=None`` without ``Secure``, so plain-HTTP setups fall back to ``Lax``.
    """
    secure = bool(lib.settings['server.cookie_secure'])
    return {
        'secure': secure,
        'httponly': True,
        'samesite': 'none' if secure else 'lax',
    }


def _drive_error(ex: status.BaseStatusException, message: str) -> JSONResponse:
    if ex.http_status == 401:
        return _error('Unauthorized', 401)
    logging.error(f'{message}: {ex}')
    return _error(message, ex.http_status)


def _callback_html(session_id: str) -> str:
    payload = json.dumps({'type': SUCCESS_MESSAGE_TYPE, 'sessionId': session_id})
    origin = json.dumps(app_origin())
    return f"""<html>
  <body>
    <script>
      if (window.opener) {{
        window.opener.postMessage({payload}, {origin});
        window.close();
      }} else {{
        window.location.href = '/';
      }}
    </script>
    <p>Authentication successful. This window should close automatically.</p>
  </body>
</html>"""


@app.get('/api/health')
def health() -> Dict[str, str]:
    return {'status': 'ok'}


@app.get('/api/auth/url')
def auth_url():
    try:
        url = auth.authorization_url()
    except status.BaseStatusException as ex:
        logging.error(f'Failed to build the authorization URL: {ex}')
        return _error('Authentication is not configured', 500)
    return {'url': url}


@app.get('/auth/callback')
def auth_callback(code: Optional[str] = None, error: Optional[str] = None,
                  store: SessionStore = Depends(get_store)):
    logging.debug(f'Auth callback received with code: {"exists" if code else "missing"}')
    if error or not code:
        message = html.escape(error or 'missing authorization code')
        return HTMLResponse(f'Authentication failed: {message}', status_code=400)

    try:
        record = auth.complete_login(code, store=store)
    except status.BaseStatusException as ex:
        logging.error(f'Error during auth callback: {ex}')
        return HTMLResponse('Authentication failed', status_code=500)

    response = HTMLResponse(_callback_html(record.id))
    response.set_cookie(
        SESSION_COOKIE_NAME,
        record.id,
        max_age=int(store.max_age.total_seconds()),
        **_cookie_flags(),
    )
    return response


@app.get('/api/auth/user')
def auth_user(record: Optional[SessionRecord] = Depends(get_session)):
    logging.debug(f'Fetching user from session: {record.profile.email if record else "none"}')
    return {'user': record.profile.to_dict() if record else None}


@app.post('/api/auth/logout')
def auth_logout(request: Request, store: SessionStore = Depends(get_store)):
    store.destroy(request.cookies.get(SESSION_COOKIE_NAME))
    store.destroy(request.headers.get(SESSION_HEADER_NAME))
    response = JSONResponse({'success': True})
    response.delete_cookie(SESSION_COOKIE_NAME, **_cookie_flags())
    return response


@app.get('/api/drive/file')
def drive_file(record: Optional[SessionRecord] = Depends(get_session),
               store: SessionStore = Depends(get_store)):
    if record is None:
        return _error('Unauthorized', 401)

    try:
        with auth.session_credentials(record, store) as creds:
            document = service.load_document(creds)
    except status.BaseStatusException as ex:
        return _drive_error(ex, 'Failed to read from Drive')

    if document is None:
        return {'content': None}
    return {'content': document.content, 'fileId': document.file_id}


@app.post('/api/drive/save')
def drive_save(body: SaveRequest,
               record: Optional[SessionRecord] = Depends(get_session),
               store: SessionStore = Depends(get_store)):
    if record is None:
        return _error('Unauthorized', 401)

    try:
        with auth.session_credentials(record, store) as creds:
            file_id = service.save_document(creds, body.content, body.fileId)
    except status.BaseStatusException as ex:
        return _drive_error(ex, 'Failed to save to Drive')

    return {'success': True, 'fileId': file_id}
