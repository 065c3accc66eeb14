"""Dataset orchestration between the local cache and Google Drive.

:class:`SyncAPI` resolves whether the client is signed in, loads the dataset
from the matching store and applies mutations optimistically: in-memory state
changes first, persistence follows on a single background worker. Saves
never run concurrently; mutations made while a save is in flight are folded
into one follow-up save of the newest snapshot.
"""
import concurrent.futures
import enum
import logging
import threading
from typing import List, Optional, Tuple, Union

from PySide6 import QtCore

from . import bridge as bridge_mod
from .api import ApiClient
from ..core import database, ledger
from ..core.actions import signals
from ..core.models import CategoryState, Dataset, Profile, Transaction, TransactionType
from ..status import status


class SyncState(enum.StrEnum):
    Unresolved = 'unresolved'
    Authenticated = 'authenticated'
    Local = 'local'


class SyncAPI(QtCore.QObject):
    """Owns the in-memory dataset and keeps it persisted.

    Args:
        api: Server transport. Created from settings when omitted.
        cache: Local cache. The shared :class:`~FinTrack.core.database.DatabaseAPI` when omitted.
        bridge: When given, a completed sign-in or sign-out re-initializes the dataset.

    Signals:
        stateChanged (str): The new :class:`SyncState`.
        saveFinished (bool): Emitted from the worker thread after every save attempt.
    """
    stateChanged = QtCore.Signal(str)
    saveFinished = QtCore.Signal(bool)

    def __init__(self,
                 api: Optional[ApiClient] = None,
                 cache: Optional[database.DatabaseAPI] = None,
                 bridge: Optional[bridge_mod.SessionBridge] = None,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self.api = api or ApiClient()
        self._cache = cache

        self._state = SyncState.Unresolved
        self._transactions: List[Transaction] = []
        self._categories = CategoryState()
        self._user: Optional[Profile] = None
        self._file_id: Optional[str] = None
        self._last_error: Optional[str] = None

        self._lock = threading.Lock()
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix='fintrack-save')
        self._pending: Optional[Tuple[SyncState, Dataset]] = None
        self._saving = False
        self._idle = threading.Event()
        self._idle.set()

        if bridge is not None:
            bridge.sessionChanged.connect(self.reinitialize)

    @property
    def cache(self) -> database.DatabaseAPI:
        return database.get_database() if self._cache is None else self._cache

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def transactions(self) -> List[Transaction]:
        """Transactions, newest first."""
        return list(self._transactions)

    @property
    def categories(self) -> CategoryState:
        return self._categories.copy()

    @property
    def user(self) -> Optional[Profile]:
        return self._user

    @property
    def file_id(self) -> Optional[str]:
        with self._lock:
            return self._file_id

    @property
    def last_error(self) -> Optional[str]:
        """Message of the most recent failed load or save, if any."""
        with self._lock:
            return self._last_error

    def _set_error(self, message: Optional[str]) -> None:
        with self._lock:
            self._last_error = message

    def _set_state(self, state: SyncState) -> None:
        self._state = state
        self.stateChanged.emit(state.value)

    @QtCore.Slot()
    def initialize(self) -> SyncState:
        """Resolve the session and load the dataset from the matching store.

        Does nothing once the state is resolved; use :meth:`reinitialize` to start over.

        Returns:
            SyncState: The resolved state.
        """
        if self._state != SyncState.Unresolved:
            return self._state

        signals.syncStarted.emit()
        self._set_error(None)

        try:
            user = self.api.get_user()
        except status.BaseStatusException as ex:
            logging.warning(f'Could not resolve the session, continuing offline: {ex}')
            user = None

        if user is not None:
            dataset = self._load_remote()
            self._user = user
            self._set_state(SyncState.Authenticated)
        else:
            dataset = self._load_local()
            self._set_state(SyncState.Local)

        self._transactions = list(dataset.transactions)
        self._categories = dataset.categories.copy()
        logging.info(f'Initialized in {self._state} mode with {len(self._transactions)} transaction(s).')

        signals.userChanged.emit(self._user)
        self._emit_transactions()
        self._emit_categories()
        signals.syncFinished.emit(self._last_error is None)
        return self._state

    def _load_remote(self) -> Dataset:
        try:
            content, file_id = self.api.get_file()
        except status.BaseStatusException as ex:
            logging.error(f'Failed to load data from Drive: {ex}')
            self._set_error(str(ex))
            return Dataset()

        with self._lock:
            self._file_id = file_id
        if content is None:
            logging.debug('No remote dataset, starting empty.')
        return Dataset.from_dict(content)

    def _load_local(self) -> Dataset:
        try:
            return self.cache.load_dataset()
        except status.CacheInvalidException as ex:
            self._set_error(str(ex))
            return Dataset()

    @QtCore.Slot()
    def reinitialize(self) -> SyncState:
        """Finish pending saves, forget the current dataset and initialize again."""
        self.wait_for_saves()

        with self._lock:
            self._file_id = None
        self._user = None
        self._transactions = []
        self._categories = CategoryState()
        self._set_state(SyncState.Unresolved)
        return self.initialize()

    def _require_resolved(self) -> None:
        if self._state == SyncState.Unresolved:
            raise RuntimeError('Cannot modify data before the session is initialized.')

    def _emit_transactions(self) -> None:
        signals.transactionsChanged.emit(self.transactions)

    def _emit_categories(self) -> None:
        signals.categoriesChanged.emit(self.categories)

    def add_transaction(self,
                        date,
                        amount: float,
                        type_: Union[str, TransactionType],
                        category: str,
                        note: str = '') -> Transaction:
        """Validate and prepend a new transaction.

        Raises:
            status.TransactionInvalidException: If the input is rejected. State is unchanged.
        """
        self._require_resolved()
        transaction = ledger.make_transaction(date, amount, type_, category, note=note, categories=self._categories)
        self._transactions = ledger.add(self._transactions, transaction)
        self._emit_transactions()
        self.schedule_save()
        return transaction

    def update_transaction(self,
                           id_: str,
                           date,
                           amount: float,
                           type_: Union[str, TransactionType],
                           category: str,
                           note: str = '') -> Transaction:
        """Replace the transaction with ``id_``.

        The category is not checked against the current category set so
        records using a removed label stay editable.
        """
        self._require_resolved()
        transaction = ledger.make_transaction(date, amount, type_, category, note=note, id_=id_)
        self._transactions = ledger.update(self._transactions, transaction)
        self._emit_transactions()
        self.schedule_save()
        return transaction

    def delete_transaction(self, id_: str) -> None:
        self._require_resolved()
        self._transactions = ledger.delete(self._transactions, id_)
        self._emit_transactions()
        self.schedule_save()

    def update_categories(self, categories: CategoryState) -> None:
        """Replace the category state. Transactions are left untouched."""
        self._require_resolved()
        self._categories = categories.copy()
        self._emit_categories()
        self.schedule_save()

    def add_category(self, type_: Union[str, TransactionType], label: str) -> None:
        self.update_categories(ledger.add_category(self._categories, type_, label))

    def remove_category(self, type_: Union[str, TransactionType], label: str) -> None:
        self.update_categories(ledger.remove_category(self._categories, type_, label))

    def schedule_save(self) -> None:
        """Queue a save of the current snapshot.

        Only the newest queued snapshot is written once the running save finishes.
        """
        snapshot = Dataset(transactions=list(self._transactions), categories=self._categories.copy())
        with self._lock:
            self._pending = (self._state, snapshot)
            if self._saving:
                return
            self._saving = True
            self._idle.clear()
        self._executor.submit(self._drain)

    def _drain(self) -> None:
        while True:
            with self._lock:
                job = self._pending
                self._pending = None
                if job is None:
                    self._saving = False
                    self._idle.set()
                    return
            try:
                self._persist(*job)
            except Exception as ex:
                logging.exception(f'Unexpected error while saving: {ex}')
                self.saveFinished.emit(False)

    def _persist(self, state: SyncState, dataset: Dataset) -> None:
        try:
            if state == SyncState.Authenticated:
                with self._lock:
                    file_id = self._file_id
                new_id = self.api.save_file(dataset.to_dict(), file_id)
                with self._lock:
                    self._file_id = new_id
            elif state == SyncState.Local:
                self.cache.save_dataset(dataset)
            else:
                return
        except status.BaseStatusException as ex:
            logging.error(f'Failed to save data: {ex}')
            self._set_error(str(ex))
            self.saveFinished.emit(False)
            return

        logging.debug(f'Saved {len(dataset.transactions)} transaction(s) ({state}).')
        self.saveFinished.emit(True)

    def wait_for_saves(self, timeout: Optional[float] = None) -> bool:
        """Block until no save is queued or running.

        Returns:
            bool: False if ``timeout`` elapsed first.
        """
        return self._idle.wait(timeout)

    def close(self) -> None:
        """Finish pending saves and stop the worker."""
        self.wait_for_saves()
        self._executor.shutdown(wait=True)
