"""
Tests for FinTrack.client.sync
(initialization per session state, optimistic mutations and serialized saves).

Run:
    python -m unittest tests.test_sync
"""
import threading
from typing import Any, Dict, List, Optional, Tuple

from FinTrack.client.sync import SyncAPI, SyncState
from FinTrack.core import database, ledger
from FinTrack.core.database import Key
from FinTrack.core.ledger import Op, Operation
from FinTrack.core.models import CategoryState, Dataset, Profile, TransactionType
from FinTrack.status import status
from tests.base import BaseTestCase, TEST_PROFILE

FOOD = {'date': '2024-01-01', 'amount': 50, 'type_': 'EXPENSE', 'category': 'Food'}


class FakeApi:
    """Records calls made by the orchestrator and returns canned responses."""

    def __init__(self, user: Optional[Profile] = None,
                 content: Optional[Dict[str, Any]] = None,
                 file_id: Optional[str] = None) -> None:
        self.user = user
        self.content = content
        self.file_id = file_id
        self.user_error: Optional[Exception] = None
        self.file_error: Optional[Exception] = None
        self.save_error: Optional[Exception] = None
        self.saves: List[Tuple[Dict[str, Any], Optional[str]]] = []
        self.gate: Optional[threading.Event] = None
        self.entered = threading.Event()
        self._created = 0

    def get_user(self) -> Optional[Profile]:
        if self.user_error is not None:
            raise self.user_error
        return self.user

    def get_file(self) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        if self.file_error is not None:
            raise self.file_error
        return self.content, self.file_id

    def save_file(self, content: Dict[str, Any], file_id: Optional[str] = None) -> str:
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.save_error is not None:
            raise self.save_error
        self.saves.append((content, file_id))
        if file_id:
            return file_id
        self._created += 1
        return f'created-{self._created}'


class SyncTestCase(BaseTestCase):
    def make_sync(self, api: FakeApi) -> SyncAPI:
        sync = SyncAPI(api=api)
        self.addCleanup(sync.close)
        return sync


class LocalModeTests(SyncTestCase):
    def test_empty_cache_add_transaction(self):
        sync = self.make_sync(FakeApi())
        self.assertIs(sync.initialize(), SyncState.Local)
        self.assertEqual(sync.transactions, [])
        self.assertEqual(sync.categories, CategoryState())

        t = sync.add_transaction(**FOOD)
        self.assertTrue(t.id)
        self.assertEqual(sync.transactions, [t])

        self.assertTrue(sync.wait_for_saves(5))
        cached = database.get_database().load_dataset()
        self.assertEqual(len(cached.transactions), 1)
        self.assertEqual(cached.transactions[0], t)

    def test_loads_cached_dataset(self):
        t = ledger.make_transaction('2024-02-02', 12, 'INCOME', 'Gifts')
        database.get_database().save_dataset(Dataset(transactions=[t]))
        sync = self.make_sync(FakeApi())
        sync.initialize()
        self.assertEqual(sync.transactions, [t])

    def test_unreachable_server_falls_back_to_local(self):
        api = FakeApi(user=TEST_PROFILE)
        api.user_error = status.ServiceUnavailableException('offline')
        sync = self.make_sync(api)
        self.assertIs(sync.initialize(), SyncState.Local)
        self.assertIsNone(sync.user)

    def test_corrupt_cache_starts_empty(self):
        database.get_database().set_item(Key.Categories, '{oops')
        sync = self.make_sync(FakeApi())
        sync.initialize()
        self.assertEqual(sync.categories, CategoryState())
        self.assertIsNotNone(sync.last_error)

    def test_categories_are_cached(self):
        sync = self.make_sync(FakeApi())
        sync.initialize()
        sync.add_category(TransactionType.EXPENSE, 'Pets')
        sync.wait_for_saves(5)
        self.assertIn('Pets', database.get_database().load_dataset().categories.expense)

    def test_local_mode_never_calls_drive(self):
        api = FakeApi()
        sync = self.make_sync(api)
        sync.initialize()
        sync.add_transaction(**FOOD)
        sync.wait_for_saves(5)
        self.assertEqual(api.saves, [])


class AuthenticatedModeTests(SyncTestCase):
    def test_no_remote_document(self):
        api = FakeApi(user=TEST_PROFILE)
        sync = self.make_sync(api)
        self.assertIs(sync.initialize(), SyncState.Authenticated)
        self.assertEqual(sync.user, TEST_PROFILE)
        self.assertEqual(sync.transactions, [])
        self.assertEqual(sync.categories, CategoryState())
        self.assertIsNone(sync.file_id)

        sync.add_transaction(**FOOD)
        sync.wait_for_saves(5)
        self.assertEqual(api.saves[0][1], None)
        self.assertEqual(sync.file_id, 'created-1')

        sync.add_transaction(**FOOD)
        sync.wait_for_saves(5)
        self.assertEqual(api.saves[1][1], 'created-1')
        self.assertEqual(len(api.saves[1][0]['transactions']), 2)

    def test_existing_remote_document(self):
        t = ledger.make_transaction('2024-01-03', 9.5, 'EXPENSE', 'Transport')
        categories = ledger.add_category(CategoryState(), 'INCOME', 'Bonus')
        content = Dataset(transactions=[t], categories=categories).to_dict()
        api = FakeApi(user=TEST_PROFILE, content=content, file_id='file-9')

        sync = self.make_sync(api)
        sync.initialize()
        self.assertEqual(sync.transactions, [t])
        self.assertIn('Bonus', sync.categories.income)
        self.assertEqual(sync.file_id, 'file-9')

        sync.delete_transaction(t.id)
        sync.wait_for_saves(5)
        self.assertEqual(api.saves, [({'transactions': [], 'categories': categories.to_dict()}, 'file-9')])

    def test_unparseable_remote_document_keeps_file_id(self):
        api = FakeApi(user=TEST_PROFILE, content=None, file_id='file-3')
        sync = self.make_sync(api)
        sync.initialize()
        self.assertEqual(sync.transactions, [])
        sync.add_transaction(**FOOD)
        sync.wait_for_saves(5)
        self.assertEqual(api.saves[0][1], 'file-3')

    def test_remote_load_failure(self):
        api = FakeApi(user=TEST_PROFILE)
        api.file_error = status.ServiceUnavailableException('Drive down')
        sync = self.make_sync(api)
        self.assertIs(sync.initialize(), SyncState.Authenticated)
        self.assertEqual(sync.transactions, [])
        self.assertIsNotNone(sync.last_error)

    def test_save_failure_keeps_optimistic_state(self):
        api = FakeApi(user=TEST_PROFILE)
        api.save_error = status.ServiceUnavailableException('Drive down')
        sync = self.make_sync(api)
        sync.initialize()
        t = sync.add_transaction(**FOOD)
        sync.wait_for_saves(5)
        self.assertEqual(sync.transactions, [t])
        self.assertIsNotNone(sync.last_error)
        self.assertIsNone(sync.file_id)

    def test_authenticated_mode_leaves_local_cache_alone(self):
        sync = self.make_sync(FakeApi(user=TEST_PROFILE))
        sync.initialize()
        sync.add_transaction(**FOOD)
        sync.wait_for_saves(5)
        self.assertIsNone(database.get_database().get_item(Key.Transactions))


class MutationTests(SyncTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.sync = self.make_sync(FakeApi())
        self.sync.initialize()

    def test_unresolved_rejects_mutations(self):
        sync = self.make_sync(FakeApi())
        with self.assertRaises(RuntimeError):
            sync.add_transaction(**FOOD)
        with self.assertRaises(RuntimeError):
            sync.add_category('EXPENSE', 'Pets')

    def test_invalid_input_leaves_state_unchanged(self):
        with self.assertRaises(status.TransactionInvalidException):
            self.sync.add_transaction('2024-01-01', -5, 'EXPENSE', 'Food')
        with self.assertRaises(status.TransactionInvalidException):
            self.sync.add_transaction('2024-01-01', 5, 'EXPENSE', 'Salary')
        self.assertEqual(self.sync.transactions, [])

    def test_update_transaction(self):
        t = self.sync.add_transaction(**FOOD)
        updated = self.sync.update_transaction(t.id, '2024-01-02', 75, 'EXPENSE', 'Rent', note='Late')
        self.assertEqual(updated.id, t.id)
        self.assertEqual(self.sync.transactions, [updated])

    def test_delete_unknown_id(self):
        t = self.sync.add_transaction(**FOOD)
        self.sync.delete_transaction('does-not-exist')
        self.assertEqual(self.sync.transactions, [t])

    def test_remove_category_keeps_transactions(self):
        added = [self.sync.add_transaction(**FOOD) for _ in range(3)]
        self.sync.remove_category(TransactionType.EXPENSE, 'Food')
        self.assertNotIn('Food', self.sync.categories.expense)
        self.assertEqual(self.sync.transactions, list(reversed(added)))
        self.assertTrue(all(t.category == 'Food' for t in self.sync.transactions))

        # Records with a removed label stay editable
        t = added[0]
        self.sync.update_transaction(t.id, t.date, 10, t.type, t.category)

    def test_update_categories(self):
        categories = CategoryState(expense=['Coffee'], income=['Salary'])
        self.sync.update_categories(categories)
        self.assertEqual(self.sync.categories, categories)
        categories.expense.append('Mutated')
        self.assertNotIn('Mutated', self.sync.categories.expense)

    def test_signals(self):
        from FinTrack.core.actions import signals

        received = []

        def _slot(transactions) -> None:
            received.append(transactions)

        signals.transactionsChanged.connect(_slot)
        self.addCleanup(signals.transactionsChanged.disconnect, _slot)
        t = self.sync.add_transaction(**FOOD)
        self.assertEqual(received[-1], [t])

    def test_matches_ledger_replay(self):
        operations = []
        first = self.sync.add_transaction(**FOOD)
        operations.append(Operation(Op.Add, transaction=first))
        second = self.sync.add_transaction('2024-01-05', 1000, 'INCOME', 'Salary')
        operations.append(Operation(Op.Add, transaction=second))
        updated = self.sync.update_transaction(first.id, '2024-01-01', 55, 'EXPENSE', 'Food')
        operations.append(Operation(Op.Update, transaction=updated))
        self.sync.delete_transaction(second.id)
        operations.append(Operation(Op.Delete, id=second.id))
        self.sync.delete_transaction('unknown')
        operations.append(Operation(Op.Delete, id='unknown'))
        third = self.sync.add_transaction('2024-01-06', 3, 'EXPENSE', 'Other')
        operations.append(Operation(Op.Add, transaction=third))

        self.assertEqual(self.sync.transactions, ledger.replay(operations))


class SaveSerializationTests(SyncTestCase):
    def test_saves_are_coalesced(self):
        api = FakeApi(user=TEST_PROFILE)
        api.gate = threading.Event()
        sync = self.make_sync(api)
        sync.initialize()

        sync.add_transaction(**FOOD)
        self.assertTrue(api.entered.wait(5))

        # The first save is blocked; these collapse into one follow-up save
        for amount in (1, 2, 3):
            sync.add_transaction('2024-01-02', amount, 'EXPENSE', 'Food')
        api.gate.set()
        self.assertTrue(sync.wait_for_saves(5))

        self.assertEqual(len(api.saves), 2)
        self.assertEqual(len(api.saves[0][0]['transactions']), 1)
        self.assertEqual(len(api.saves[1][0]['transactions']), 4)
        # The follow-up save carries the id returned by the first
        self.assertIsNone(api.saves[0][1])
        self.assertEqual(api.saves[1][1], 'created-1')

    def test_wait_for_saves_when_idle(self):
        sync = self.make_sync(FakeApi())
        self.assertTrue(sync.wait_for_saves(0))


class ReinitializeTests(SyncTestCase):
    def test_login_switches_to_drive(self):
        api = FakeApi()
        sync = self.make_sync(api)
        sync.initialize()
        sync.add_transaction(**FOOD)

        api.user = TEST_PROFILE
        self.assertIs(sync.reinitialize(), SyncState.Authenticated)
        self.assertEqual(sync.transactions, [])
        self.assertEqual(sync.user, TEST_PROFILE)
        # The local save finished before switching
        self.assertEqual(len(database.get_database().load_dataset().transactions), 1)

    def test_logout_returns_to_local(self):
        api = FakeApi(user=TEST_PROFILE, content=None, file_id='file-1')
        sync = self.make_sync(api)
        sync.initialize()

        api.user = None
        self.assertIs(sync.reinitialize(), SyncState.Local)
        self.assertIsNone(sync.user)
        self.assertIsNone(sync.file_id)

    def test_bridge_triggers_reinitialize(self):
        from FinTrack.client.bridge import SessionBridge
        from FinTrack.client.window import HostWindow

        api = FakeApi()
        window = HostWindow(origin='http://localhost:3000')
        session_bridge = SessionBridge(window, api=api)
        sync = SyncAPI(api=api, bridge=session_bridge)
        self.addCleanup(sync.close)
        sync.initialize()

        api.user = TEST_PROFILE
        database.get_database().set_session_id('sid')
        session_bridge.sessionChanged.emit()
        self.assertIs(sync.state, SyncState.Authenticated)

    def test_initialize_is_idempotent(self):
        api = FakeApi()
        sync = self.make_sync(api)
        sync.initialize()
        api.user = TEST_PROFILE
        self.assertIs(sync.initialize(), SyncState.Local)
