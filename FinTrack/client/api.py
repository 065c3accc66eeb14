"""HTTP transport to the FinTrack server.

Every request carries the stored session id in the ``X-Session-ID`` header
unless the caller supplied a cookie. Transport failures and non-2xx responses
are raised as status exceptions.
"""
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from ..core.models import Profile
from ..settings import lib
from ..status import status


class ApiClient:
    """Thin wrapper around :class:`requests.Session` bound to the server URL.

    Args:
        base_url: Server origin. Defaults to ``server.app_url``.
        http: Session used for requests. A new one is created when omitted.
        timeout: Per-request timeout in seconds. Defaults to ``client.request_timeout``.
        attach: Callable adding session headers to a header dict. Defaults to
            :func:`FinTrack.client.bridge.attach_session`.
    """

    def __init__(self,
                 base_url: Optional[str] = None,
                 http: Optional[requests.Session] = None,
                 timeout: Optional[float] = None,
                 attach: Optional[Callable[[Dict[str, str]], Dict[str, str]]] = None) -> None:
        self.base_url = (base_url or lib.settings['server.app_url']).rstrip('/')
        self.http = http or requests.Session()
        self.timeout = timeout or lib.settings['client.request_timeout']
        self._attach = attach

    def url(self, path: str) -> str:
        return f'{self.base_url}{path}'

    def _headers(self, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(headers or {})
        attach = self._attach
        if attach is None:
            from .bridge import attach_session  # Local import to avoid circular dependencies
            attach = attach_session
        return attach(headers)

    def request(self, method: str, path: str,
                payload: Any = None,
                headers: Optional[Dict[str, str]] = None) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            status.AuthenticationExceptionException: On a 401 response.
            status.ServiceUnavailableException: On transport failures, other
                non-2xx responses and bodies that are not JSON.
        """
        url = self.url(path)
        logging.debug(f'{method} {url}')
        try:
            response = self.http.request(
                method,
                url,
                json=payload,
                headers=self._headers(headers),
                timeout=self.timeout,
            )
        except requests.RequestException as ex:
            raise status.ServiceUnavailableException(f'{method} {path} failed: {ex}') from ex

        if response.status_code == 401:
            raise status.AuthenticationExceptionException(f'{method} {path} was rejected.')
        if not response.ok:
            raise status.ServiceUnavailableException(
                f'{method} {path} returned {response.status_code}: {_error_text(response)}'
            )

        try:
            return response.json()
        except ValueError as ex:
            raise status.ServiceUnavailableException(f'{method} {path} did not return JSON.') from ex

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request('GET', path, **kwargs)

    def post(self, path: str, payload: Any = None, **kwargs: Any) -> Any:
        return self.request('POST', path, payload=payload, **kwargs)

    def get_auth_url(self) -> str:
        data = self.get('/api/auth/url')
        url = data.get('url') if isinstance(data, dict) else None
        if not url:
            raise status.ServiceUnavailableException('The server returned no authorization URL.')
        return url

    def get_user(self) -> Optional[Profile]:
        """Return the signed-in user's profile, or None when the session is anonymous."""
        data = self.get('/api/auth/user')
        user = data.get('user') if isinstance(data, dict) else None
        return Profile.from_dict(user) if isinstance(user, dict) else None

    def logout(self) -> None:
        self.post('/api/auth/logout')

    def get_file(self) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """Return the remote dataset content and its file id.

        Both are None when no remote file exists.
        """
        data = self.get('/api/drive/file')
        if not isinstance(data, dict):
            return None, None
        return data.get('content'), data.get('fileId')

    def save_file(self, content: Dict[str, Any], file_id: Optional[str] = None) -> str:
        """Write ``content`` to the remote file and return its file id."""
        payload: Dict[str, Any] = {'content': content}
        if file_id:
            payload['fileId'] = file_id
        data = self.post('/api/drive/save', payload)
        new_id = data.get('fileId') if isinstance(data, dict) else None
        if not new_id:
            raise status.ServiceUnavailableException('The server returned no file id.')
        return new_id


def _error_text(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict) and data.get('error'):
        return str(data['error'])
    return str(data)[:200]
