"""
Google OAuth2 authentication for the FinTrack server.

Provides the authorization URL for the sign-in popup, the code exchange
performed by the callback, and request-scoped credentials built from a
session's token bundle. No credentials object is shared between requests.
"""

import contextlib
import logging
import socket
import ssl
from typing import Any, Iterator, Optional

import google.auth.exceptions
import google.oauth2.credentials
import google_auth_oauthlib.flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .models import Profile, TokenBundle
from .session import SessionRecord, SessionStore, session_store
from ..settings import lib
from ..status import status

DEFAULT_SCOPES = [
    'openid',
    'https://www.googleapis.com/auth/userinfo.profile',
    'https://www.googleapis.com/auth/userinfo.email',
    'https://www.googleapis.com/auth/drive.file',
]

CALLBACK_PATH = '/auth/callback'


def redirect_uri() -> str:
    """Return the OAuth redirect URI registered for this deployment."""
    return f'{lib.settings["server.app_url"]}{CALLBACK_PATH}'


def _client_section() -> dict:
    if not lib.settings.has_client_secret():
        raise status.ClientSecretNotFoundException
    key = lib.settings.validate_client_secret()
    return lib.settings.get_section('client_secret')[key]


def get_flow() -> google_auth_oauthlib.flow.Flow:
    """
    Build a web-server OAuth flow from the configured client secret.

    Raises:
        status.ClientSecretNotFoundException: If no client id/secret is configured.
        status.ClientSecretInvalidException: If the client secret is malformed.
    """
    _client_section()
    client_config = lib.settings.get_section('client_secret')
    return google_auth_oauthlib.flow.Flow.from_client_config(
        client_config,
        scopes=DEFAULT_SCOPES,
        redirect_uri=redirect_uri(),
        autogenerate_code_verifier=False,
    )


def authorization_url() -> str:
    """Return the Google consent page URL requesting offline access."""
    flow = get_flow()
    url, _ = flow.authorization_url(access_type='offline', prompt='consent')
    logging.debug(f'Generated authorization URL with redirect_uri={redirect_uri()}')
    return url


def bundle_from_credentials(creds: google.oauth2.credentials.Credentials) -> TokenBundle:
    """Extract the token bundle kept in the session store from ``creds``."""
    return TokenBundle(
        token=creds.token,
        refresh_token=creds.refresh_token,
        expiry=creds.expiry,
        scopes=list(creds.scopes or DEFAULT_SCOPES),
    )


def credentials_from_bundle(bundle: TokenBundle) -> google.oauth2.credentials.Credentials:
    """Build a fresh credentials object for a single request."""
    section = _client_section()
    return google.oauth2.credentials.Credentials(
        token=bundle.token,
        refresh_token=bundle.refresh_token,
        token_uri=section['token_uri'],
        client_id=section['client_id'],
        client_secret=section['client_secret'],
        scopes=bundle.scopes or None,
        expiry=bundle.expiry,
    )


def raise_for_provider_error(ex: Exception, action: str) -> None:
    """Translate a Google client error into a status exception.

    Raises:
        status.AuthenticationExceptionException: For 401/403 responses and failed refreshes.
        status.ServiceUnavailableException: For every other provider or transport failure.
    """
    if isinstance(ex, google.auth.exceptions.RefreshError):
        raise status.AuthenticationExceptionException(f'Failed to refresh credentials while {action}: {ex}') from ex
    if isinstance(ex, HttpError):
        stat: Optional[int] = ex.resp.status if ex.resp else None
        if stat in (401, 403):
            raise status.AuthenticationExceptionException(
                f'Access denied (HTTP {stat}) while {action}.'
            ) from ex
        raise status.ServiceUnavailableException(f'Error while {action}: {ex}') from ex
    if isinstance(ex, socket.timeout):
        raise status.ServiceUnavailableException(f'Timeout while {action}: {ex}') from ex
    if isinstance(ex, ssl.SSLError):
        raise status.ServiceUnavailableException(f'SSL error while {action}: {ex}') from ex
    raise status.ServiceUnavailableException(f'Unexpected error while {action}: {ex}') from ex


def fetch_profile(creds: google.oauth2.credentials.Credentials) -> Profile:
    """Fetch the signed-in user's profile from the OAuth2 userinfo endpoint."""
    try:
        service: Any = build('oauth2', 'v2', credentials=creds, cache_discovery=False)
        data = service.userinfo().get().execute()
    except Exception as ex:
        raise_for_provider_error(ex, 'fetching the user profile')
    profile = Profile.from_dict(data or {})
    logging.debug(f'User info acquired: {profile.email}')
    return profile


def complete_login(code: str, store: Optional[SessionStore] = None) -> SessionRecord:
    """
    Exchange an authorization code for tokens and open a session.

    Args:
        code: The authorization code delivered to the callback.
        store: Session store to use. Defaults to the process-wide store.

    Returns:
        SessionRecord: The new session; its ``id`` is handed to the popup.

    Raises:
        status.AuthenticationExceptionException: If the code exchange fails.
    """
    store = session_store if store is None else store
    flow = get_flow()
    try:
        flow.fetch_token(code=code)
    except Exception as ex:
        raise status.AuthenticationExceptionException(f'Token exchange failed: {ex}') from ex

    creds = flow.credentials
    if not creds or not creds.token:
        raise status.AuthenticationExceptionException('Authentication did not complete successfully.')
    logging.debug('Tokens acquired successfully.')

    profile = fetch_profile(creds)
    return store.create(bundle_from_credentials(creds), profile)


@contextlib.contextmanager
def session_credentials(record: Optional[SessionRecord],
                        store: Optional[SessionStore] = None) -> Iterator[google.oauth2.credentials.Credentials]:
    """
    Yield request-scoped credentials for ``record``.

    Tokens refreshed by google-auth during the call are written back to the session.

    Raises:
        status.CredsNotFoundException: If the session carries no token bundle.
        status.AuthenticationExceptionException: If the access token expired and cannot be refreshed.
    """
    store = session_store if store is None else store
    if record is None or record.tokens is None or not record.tokens.token:
        raise status.CredsNotFoundException

    creds = credentials_from_bundle(record.tokens)
    if creds.expired and not creds.refresh_token:
        raise status.AuthenticationExceptionException('Credentials expired; sign in again.')

    try:
        yield creds
    finally:
        if creds.token and creds.token != record.tokens.token:
            logging.debug('Access token was refreshed, updating session.')
            store.update_tokens(record.id, bundle_from_credentials(creds))
