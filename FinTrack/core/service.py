"""Google Drive document store.

Locates, reads, creates and overwrites the single JSON file holding a user's
dataset. The file is found by name among the user's non-trashed files; once
created it is addressed by its Drive file id.
"""

import dataclasses
import io
import json
import logging
from typing import Any, Dict, Optional

import google.oauth2.credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload

from .auth import raise_for_provider_error
from ..settings import lib

MIME_TYPE: str = 'application/json'


@dataclasses.dataclass
class RemoteDocument:
    """Content and Drive id of the user's data file.

    ``content`` is None when the file exists but holds no usable dataset.
    """
    content: Optional[Dict[str, Any]]
    file_id: str


def filename() -> str:
    """Return the agreed name of the data file."""
    return lib.settings['drive.filename']


def get_service(creds: google.oauth2.credentials.Credentials) -> Any:
    """Build a Drive v3 client for one request's credentials."""
    return build('drive', 'v3', credentials=creds, cache_discovery=False)


def _query() -> str:
    name = filename().replace('\\', '\\\\').replace("'", "\\'")
    return f"name = '{name}' and trashed = false"


def _media(content: Any) -> MediaIoBaseUpload:
    data = json.dumps(content, ensure_ascii=False).encode('utf-8')
    return MediaIoBaseUpload(io.BytesIO(data), mimetype=MIME_TYPE, resumable=False)


def find_file_id(service: Any) -> Optional[str]:
    """Return the id of the first matching data file, or None.

    Several matching files is a degenerate state; the first result is used.
    """
    response: Dict[str, Any] = service.files().list(
        q=_query(),
        fields='files(id, name)',
        spaces='drive',
    ).execute()
    files = response.get('files', [])
    if len(files) > 1:
        logging.warning(f'Found {len(files)} files named "{filename()}", using the first.')
    return files[0]['id'] if files else None


def load_document(creds: google.oauth2.credentials.Credentials) -> Optional[RemoteDocument]:
    """
    Load the user's data file.

    Returns:
        None when no file exists, otherwise the parsed content and its file id.
        Unparseable content is returned as ``content=None`` with the file id kept,
        so the next save overwrites the file in place.

    Raises:
        status.AuthenticationExceptionException: If Google rejects the credentials.
        status.ServiceUnavailableException: On any other provider failure.
    """
    try:
        service = get_service(creds)
        file_id = find_file_id(service)
        if not file_id:
            logging.debug(f'No "{filename()}" found on Drive.')
            return None
        raw = service.files().get_media(fileId=file_id).execute()
    except Exception as ex:
        raise_for_provider_error(ex, 'reading from Drive')

    try:
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8')
        content = json.loads(raw) if raw else None
    except (UnicodeDecodeError, json.JSONDecodeError) as ex:
        logging.warning(f'Drive file {file_id} does not contain valid JSON: {ex}')
        content = None
    if content is not None and not isinstance(content, dict):
        logging.warning(f'Drive file {file_id} does not contain a JSON object.')
        content = None

    logging.debug(f'Loaded Drive file {file_id}.')
    return RemoteDocument(content=content, file_id=file_id)


def save_document(creds: google.oauth2.credentials.Credentials,
                  content: Any,
                  file_id: Optional[str] = None) -> str:
    """
    Write ``content`` to the user's data file.

    Args:
        creds: Request-scoped credentials.
        content: JSON-serializable dataset.
        file_id: Id returned by an earlier load or save. When given the file is
            overwritten in place; otherwise a new file is created.

    Returns:
        str: The id of the written file.

    Raises:
        status.AuthenticationExceptionException: If Google rejects the credentials.
        status.ServiceUnavailableException: On any other provider failure.
    """
    try:
        service = get_service(creds)
        if file_id:
            service.files().update(
                fileId=file_id,
                media_body=_media(content),
            ).execute()
            logging.debug(f'Updated Drive file {file_id}.')
            return file_id

        response: Dict[str, Any] = service.files().create(
            body={'name': filename(), 'mimeType': MIME_TYPE},
            media_body=_media(content),
            fields='id',
        ).execute()
    except Exception as ex:
        raise_for_provider_error(ex, 'saving to Drive')

    new_id = response['id']
    logging.info(f'Created Drive file {new_id}.')
    return new_id
