"""
Unit tests for FinTrack.core.service
(locating, reading, creating and overwriting the Drive data file).

Run:
    python -m unittest tests.test_service
"""
import json
from unittest.mock import MagicMock, patch

import httplib2
from googleapiclient.errors import HttpError

from FinTrack.core import service
from FinTrack.core.models import CategoryState
from FinTrack.status import status
from tests.base import BaseTestCase, FakeDrive

CONTENT = {
    'transactions': [
        {'id': 'a1', 'date': '2024-01-01', 'amount': 50.0, 'type': 'EXPENSE', 'category': 'Food', 'note': ''},
    ],
    'categories': CategoryState().to_dict(),
}


class DriveDocumentTests(BaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.drive = FakeDrive()
        self.creds = MagicMock()
        p = patch.object(service, 'get_service', return_value=self.drive)
        p.start()
        self.addCleanup(p.stop)

    def test_query(self):
        service.load_document(self.creds)
        _, kwargs = self.drive.calls[0]
        self.assertEqual(kwargs['q'], "name = 'fintrack_data.json' and trashed = false")
        self.assertEqual(kwargs['spaces'], 'drive')

    def test_query_escapes_quotes(self):
        self.update_section('drive', filename="it's.json")
        self.assertEqual(service._query(), "name = 'it\\'s.json' and trashed = false")

    def test_no_file(self):
        self.assertIsNone(service.load_document(self.creds))
        self.assertEqual(self.drive.count('get_media'), 0)

    def test_trashed_file_is_ignored(self):
        self.drive.add_file('fintrack_data.json', json.dumps(CONTENT).encode(), trashed=True)
        self.assertIsNone(service.load_document(self.creds))

    def test_load_existing(self):
        file_id = self.drive.add_file('fintrack_data.json', json.dumps(CONTENT).encode())
        document = service.load_document(self.creds)
        self.assertEqual(document.file_id, file_id)
        self.assertEqual(document.content, CONTENT)

    def test_first_match_wins(self):
        first = self.drive.add_file('fintrack_data.json', json.dumps(CONTENT).encode())
        self.drive.add_file('fintrack_data.json', b'{}')
        self.assertEqual(service.load_document(self.creds).file_id, first)

    def test_unparseable_content_keeps_file_id(self):
        file_id = self.drive.add_file('fintrack_data.json', b'{corrupt')
        document = service.load_document(self.creds)
        self.assertIsNone(document.content)
        self.assertEqual(document.file_id, file_id)

    def test_undecodable_content_keeps_file_id(self):
        file_id = self.drive.add_file('fintrack_data.json', b'\xff\xfe{"transactions": []}')
        document = service.load_document(self.creds)
        self.assertIsNone(document.content)
        self.assertEqual(document.file_id, file_id)

        # The next save overwrites the same file
        service.save_document(self.creds, CONTENT, document.file_id)
        self.assertEqual(self.drive.count('create'), 0)
        self.assertEqual(service.load_document(self.creds).content, CONTENT)

    def test_non_object_content(self):
        self.drive.add_file('fintrack_data.json', b'[1, 2, 3]')
        self.assertIsNone(service.load_document(self.creds).content)

    def test_save_without_id_creates_one_file(self):
        file_id = service.save_document(self.creds, CONTENT)
        self.assertEqual(self.drive.count('create'), 1)
        self.assertEqual(list(self.drive.files_by_id), [file_id])
        stored = self.drive.files_by_id[file_id]
        self.assertEqual(stored['name'], 'fintrack_data.json')
        self.assertEqual(stored['mimeType'], 'application/json')

    def test_save_with_id_overwrites_in_place(self):
        file_id = service.save_document(self.creds, CONTENT)
        again = service.save_document(self.creds, {'transactions': [], 'categories': CONTENT['categories']}, file_id)
        self.assertEqual(again, file_id)
        self.assertEqual(self.drive.count('create'), 1)
        self.assertEqual(self.drive.count('update'), 1)
        self.assertEqual(len(self.drive.files_by_id), 1)

    def test_save_then_load(self):
        file_id = service.save_document(self.creds, CONTENT)
        document = service.load_document(self.creds)
        self.assertEqual(document.file_id, file_id)
        self.assertEqual(document.content, CONTENT)

    def test_unicode_content(self):
        content = {'transactions': [], 'categories': {'EXPENSE': ['Étterem', '食べ物'], 'INCOME': ['Fizetés']}}
        service.save_document(self.creds, content)
        self.assertEqual(service.load_document(self.creds).content, content)

    def test_auth_failure(self):
        self.drive.error = HttpError(httplib2.Response({'status': 401}), b'{}')
        with self.assertRaises(status.AuthenticationExceptionException):
            service.load_document(self.creds)

    def test_provider_failure(self):
        self.drive.error = HttpError(httplib2.Response({'status': 500}), b'{}')
        with self.assertRaises(status.ServiceUnavailableException):
            service.save_document(self.creds, CONTENT)
        self.assertEqual(self.drive.files_by_id, {})
