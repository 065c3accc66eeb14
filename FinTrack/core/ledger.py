"""Pure transaction and category operations.

Every function returns a new list or :class:`~FinTrack.core.models.CategoryState`
and leaves its inputs untouched, so a sequence of operations can be replayed
against any starting list.
"""
import dataclasses
import datetime
import enum
import math
import uuid
from typing import Iterable, List, Optional, Sequence, Union

from .models import CategoryState, Transaction, TransactionType, parse_date
from ..status import status


class Op(enum.StrEnum):
    Add = 'add'
    Update = 'update'
    Delete = 'delete'


@dataclasses.dataclass(frozen=True)
class Operation:
    """One recorded mutation of the transaction list."""
    op: Op
    transaction: Optional[Transaction] = None
    id: Optional[str] = None


def new_id() -> str:
    """Return a fresh opaque transaction identifier."""
    return str(uuid.uuid4())


def make_transaction(
        date: Union[str, datetime.date],
        amount: float,
        type_: Union[str, TransactionType],
        category: str,
        note: str = '',
        categories: Optional[CategoryState] = None,
        id_: Optional[str] = None,
) -> Transaction:
    """Validate user input and build a :class:`Transaction`.

    When ``categories`` is given the category must belong to the list for
    the transaction's type.

    Raises:
        status.TransactionInvalidException: If a value is rejected.
    """
    try:
        type_ = TransactionType(type_)
    except ValueError:
        raise status.TransactionInvalidException(f'Unknown transaction type "{type_}".')

    try:
        date = parse_date(date)
    except ValueError:
        raise status.TransactionInvalidException(f'Invalid date "{date}".')

    if isinstance(amount, bool):
        raise status.TransactionInvalidException(f'Invalid amount "{amount}".')
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise status.TransactionInvalidException(f'Invalid amount "{amount}".')
    if not math.isfinite(amount) or amount < 0:
        raise status.TransactionInvalidException(f'Amount must be a non-negative number, got {amount}.')

    category = (category or '').strip()
    if not category:
        raise status.TransactionInvalidException('Category must not be empty.')
    if categories is not None and not categories.contains(type_, category):
        raise status.TransactionInvalidException(
            f'Category "{category}" is not a {type_.value.lower()} category.'
        )

    return Transaction(
        id=id_ or new_id(),
        date=date,
        amount=amount,
        type=type_,
        category=category,
        note=note or '',
    )


def add(transactions: Sequence[Transaction], transaction: Transaction) -> List[Transaction]:
    """Prepend ``transaction``."""
    return [transaction, *transactions]


def update(transactions: Sequence[Transaction], transaction: Transaction) -> List[Transaction]:
    """Replace the record sharing ``transaction.id``. Unknown ids leave the list unchanged."""
    return [transaction if t.id == transaction.id else t for t in transactions]


def delete(transactions: Sequence[Transaction], id_: str) -> List[Transaction]:
    """Remove the record with ``id_``. Unknown ids leave the list unchanged."""
    return [t for t in transactions if t.id != id_]


def apply(transactions: Sequence[Transaction], operation: Operation) -> List[Transaction]:
    if operation.op == Op.Add:
        return add(transactions, operation.transaction)
    if operation.op == Op.Update:
        return update(transactions, operation.transaction)
    if operation.op == Op.Delete:
        return delete(transactions, operation.id)
    raise ValueError(f'Unknown operation: {operation.op}')


def replay(operations: Iterable[Operation], initial: Sequence[Transaction] = ()) -> List[Transaction]:
    """Apply ``operations`` in order, starting from ``initial``."""
    transactions = list(initial)
    for operation in operations:
        transactions = apply(transactions, operation)
    return transactions


def add_category(categories: CategoryState, type_: Union[str, TransactionType], label: str) -> CategoryState:
    """Return a copy with ``label`` appended to the list for ``type_``.

    Blank labels and labels already present are ignored.
    """
    label = (label or '').strip()
    result = categories.copy()
    if not label or result.contains(type_, label):
        return result
    result.labels(TransactionType(type_)).append(label)
    return result


def remove_category(categories: CategoryState, type_: Union[str, TransactionType], label: str) -> CategoryState:
    """Return a copy without ``label`` in the list for ``type_``.

    Transactions using the label are not touched.
    """
    result = categories.copy()
    labels = result.labels(TransactionType(type_))
    labels[:] = [c for c in labels if c != label]
    return result
