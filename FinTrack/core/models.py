"""Data model for FinTrack.

Defines the transaction record, the per-type category lists, the Google
profile and token bundle types, and the combined dataset persisted to the
local cache and to the remote document.
"""
import dataclasses
import datetime
import enum
import logging
import math
from typing import Any, Dict, List, Optional


class TransactionType(enum.StrEnum):
    """Kind of a transaction."""
    INCOME = 'INCOME'
    EXPENSE = 'EXPENSE'


DATE_FORMAT = '%Y-%m-%d'

DEFAULT_CATEGORIES: Dict[TransactionType, List[str]] = {
    TransactionType.EXPENSE: [
        'Food', 'Rent', 'Utilities', 'Transport', 'Entertainment', 'Shopping', 'Health', 'Travel', 'Other'
    ],
    TransactionType.INCOME: [
        'Salary', 'Freelance', 'Investments', 'Gifts', 'Other'
    ],
}


def parse_date(value: Any) -> datetime.date:
    """Parse a calendar day from a date, datetime or ISO 8601 string.

    Any time component is discarded.

    Raises:
        ValueError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        return datetime.date.fromisoformat(value[:10])
    raise ValueError(f'Invalid date: {value!r}')


@dataclasses.dataclass(frozen=True)
class Transaction:
    """A single income or expense record.

    Instances are immutable; edits replace the record with the same ``id``.
    """
    id: str
    date: datetime.date
    amount: float
    type: TransactionType
    category: str
    note: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date.strftime(DATE_FORMAT),
            'amount': self.amount,
            'type': self.type.value,
            'category': self.category,
            'note': self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Build a transaction from its JSON form.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If a field cannot be converted.
        """
        amount = data['amount']
        if isinstance(amount, bool) or not math.isfinite(float(amount)):
            raise ValueError(f'Invalid amount: {amount!r}')
        return cls(
            id=str(data['id']),
            date=parse_date(data['date']),
            amount=float(amount),
            type=TransactionType(data['type']),
            category=str(data['category']),
            note=data.get('note') or '',
        )


@dataclasses.dataclass
class CategoryState:
    """Category labels available for each transaction type."""
    expense: List[str] = dataclasses.field(
        default_factory=lambda: list(DEFAULT_CATEGORIES[TransactionType.EXPENSE]))
    income: List[str] = dataclasses.field(
        default_factory=lambda: list(DEFAULT_CATEGORIES[TransactionType.INCOME]))

    def __post_init__(self) -> None:
        # Labels are unique within their list, first occurrence wins
        self.expense = list(dict.fromkeys(self.expense))
        self.income = list(dict.fromkeys(self.income))

    def labels(self, type_: TransactionType) -> List[str]:
        """Return the label list for ``type_``."""
        if TransactionType(type_) == TransactionType.EXPENSE:
            return self.expense
        return self.income

    def contains(self, type_: TransactionType, label: str) -> bool:
        return label in self.labels(type_)

    def copy(self) -> 'CategoryState':
        return CategoryState(expense=list(self.expense), income=list(self.income))

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            TransactionType.EXPENSE.value: list(self.expense),
            TransactionType.INCOME.value: list(self.income),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'CategoryState':
        """Build category state from its JSON form, falling back to defaults per malformed list."""
        if not isinstance(data, dict):
            return cls()

        def _labels(key: TransactionType) -> List[str]:
            value = data.get(key.value)
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                logging.warning(f'Category list "{key.value}" is missing or malformed, using defaults.')
                return list(DEFAULT_CATEGORIES[key])
            return value

        return cls(expense=_labels(TransactionType.EXPENSE), income=_labels(TransactionType.INCOME))


@dataclasses.dataclass(frozen=True)
class Profile:
    """Basic Google profile of the signed-in user."""
    name: str
    email: str
    picture: str
    id: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    locale: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        return cls(
            name=data.get('name') or '',
            email=data.get('email') or '',
            picture=data.get('picture') or '',
            id=data.get('id'),
            given_name=data.get('given_name'),
            family_name=data.get('family_name'),
            locale=data.get('locale'),
        )


@dataclasses.dataclass
class TokenBundle:
    """OAuth tokens held by the server for one session."""
    token: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime.datetime] = None
    scopes: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class Dataset:
    """The full user dataset: transactions (newest first) and categories."""
    transactions: List[Transaction] = dataclasses.field(default_factory=list)
    categories: CategoryState = dataclasses.field(default_factory=CategoryState)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transactions': [t.to_dict() for t in self.transactions],
            'categories': self.categories.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Dataset':
        """Build a dataset from a remote document or cached payload.

        ``None`` or a non-dict yields an empty dataset with default categories.
        """
        if not isinstance(data, dict):
            return cls()
        return cls(
            transactions=transactions_from_list(data.get('transactions')),
            categories=CategoryState.from_dict(data.get('categories')),
        )


def transactions_from_list(items: Any) -> List[Transaction]:
    """Convert a JSON list to transactions, skipping malformed records."""
    if not isinstance(items, list):
        return []

    transactions: List[Transaction] = []
    for item in items:
        try:
            transactions.append(Transaction.from_dict(item))
        except (KeyError, ValueError, TypeError) as ex:
            logging.warning(f'Skipping malformed transaction {item!r}: {ex}')
    return transactions
