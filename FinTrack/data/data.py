"""Data analytics API for transaction analysis.

This module turns the in-memory transaction list into pandas DataFrames and
derives the dashboard figures from them: totals, the expense breakdown by
category, the daily cash flow and monthly totals. It also implements the
filtering and grouping used by the transaction list.
"""
import datetime
import enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from ..core.models import Transaction, TransactionType

TRANSACTION_COLUMNS: List[str] = ['id', 'date', 'amount', 'type', 'category', 'note']


class GroupBy(enum.StrEnum):
    NONE = 'NONE'
    DATE = 'DATE'
    CATEGORY = 'CATEGORY'


def to_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    """Return ``transactions`` as a DataFrame with a datetime ``date`` column.

    Row order follows the input order.
    """
    if not transactions:
        df = pd.DataFrame(columns=TRANSACTION_COLUMNS)
        df['date'] = pd.to_datetime(df['date'])
        df['amount'] = df['amount'].astype('float64')
        return df

    df = pd.DataFrame(
        [
            {
                'id': t.id,
                'date': t.date,
                'amount': t.amount,
                'type': t.type.value,
                'category': t.category,
                'note': t.note,
            }
            for t in transactions
        ],
        columns=TRANSACTION_COLUMNS,
    )
    df['date'] = pd.to_datetime(df['date'])
    df['amount'] = df['amount'].astype('float64')
    return df


def _total(df: pd.DataFrame, type_: TransactionType) -> float:
    return float(df.loc[df['type'] == type_.value, 'amount'].sum())


def get_summary(transactions: Sequence[Transaction]) -> Dict[str, float]:
    """Return total income, total expense and the balance between them."""
    df = to_frame(transactions)
    income = _total(df, TransactionType.INCOME)
    expense = _total(df, TransactionType.EXPENSE)
    return {
        'income': income,
        'expense': expense,
        'balance': income - expense,
    }


def get_category_breakdown(transactions: Sequence[Transaction],
                           type_: TransactionType = TransactionType.EXPENSE) -> pd.DataFrame:
    """Sum amounts per category for one transaction type.

    Returns:
        pd.DataFrame: ``category`` and ``amount`` columns, largest amount first.
    """
    df = to_frame(transactions)
    df = df[df['type'] == TransactionType(type_).value]
    if df.empty:
        return pd.DataFrame(columns=['category', 'amount'])

    out = (
        df.groupby('category', sort=False)['amount']
        .sum()
        .reset_index()
        .sort_values('amount', ascending=False, kind='stable')
        .reset_index(drop=True)
    )
    return out


def get_daily_flow(transactions: Sequence[Transaction],
                   days: int = 7,
                   today: Optional[datetime.date] = None) -> pd.DataFrame:
    """Income and expense per day for the trailing ``days`` days, ending ``today``.

    Days without transactions are present with zero amounts.

    Returns:
        pd.DataFrame: ``date``, ``income`` and ``expense`` columns, oldest day first.
        Empty when ``days`` is less than one.
    """
    if days < 1:
        return pd.DataFrame({'date': [], 'income': [], 'expense': []})

    today = today or datetime.date.today()
    index = pd.date_range(end=pd.Timestamp(today), periods=days, freq='D')

    df = to_frame(transactions)
    df = df[(df['date'] >= index[0]) & (df['date'] <= index[-1])]

    if df.empty:
        pivot = pd.DataFrame(index=index)
    else:
        pivot = df.pivot_table(index='date', columns='type', values='amount', aggfunc='sum')
    pivot = pivot.reindex(index, fill_value=0.0)

    out = pd.DataFrame({
        'date': index.date,
        'income': pivot.get(TransactionType.INCOME.value, pd.Series(0.0, index=index)).fillna(0.0).to_numpy(),
        'expense': pivot.get(TransactionType.EXPENSE.value, pd.Series(0.0, index=index)).fillna(0.0).to_numpy(),
    })
    return out


def get_monthly_totals(transactions: Sequence[Transaction]) -> pd.DataFrame:
    """Income, expense and balance per calendar month.

    Returns:
        pd.DataFrame: ``month`` (``YYYY-MM``), ``income``, ``expense`` and
        ``balance`` columns, oldest month first.
    """
    columns = ['month', 'income', 'expense', 'balance']
    df = to_frame(transactions)
    if df.empty:
        return pd.DataFrame(columns=columns)

    df['month'] = df['date'].dt.strftime('%Y-%m')
    pivot = df.pivot_table(index='month', columns='type', values='amount', aggfunc='sum').fillna(0.0)
    for type_ in TransactionType:
        if type_.value not in pivot.columns:
            pivot[type_.value] = 0.0

    out = pd.DataFrame({
        'month': pivot.index,
        'income': pivot[TransactionType.INCOME.value].to_numpy(),
        'expense': pivot[TransactionType.EXPENSE.value].to_numpy(),
    })
    out['balance'] = out['income'] - out['expense']
    return out.sort_values('month').reset_index(drop=True)[columns]


def filter_transactions(
        transactions: Sequence[Transaction],
        type_: Optional[Union[str, TransactionType]] = None,
        category: Optional[str] = None,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
) -> List[Transaction]:
    """Return the transactions matching every given criterion.

    ``None`` means no constraint. The date range is inclusive on both ends.
    Input order is preserved.
    """
    type_ = TransactionType(type_) if type_ else None

    def _match(t: Transaction) -> bool:
        if type_ is not None and t.type != type_:
            return False
        if category and t.category != category:
            return False
        if start is not None and t.date < start:
            return False
        if end is not None and t.date > end:
            return False
        return True

    return [t for t in transactions if _match(t)]


def group_transactions(transactions: Sequence[Transaction],
                       by: Union[str, GroupBy] = GroupBy.NONE) -> List[Tuple[str, List[Transaction]]]:
    """Group transactions for display.

    Args:
        transactions: The transactions to group.
        by: ``NONE`` returns a single unnamed group, ``DATE`` groups by day
            with the newest day first, ``CATEGORY`` groups alphabetically.

    Returns:
        list: ``(label, transactions)`` pairs. Order within a group follows the input.
    """
    by = GroupBy(by)
    if by == GroupBy.NONE:
        return [('', list(transactions))] if transactions else []

    groups: Dict[str, List[Transaction]] = {}
    for t in transactions:
        key = t.date.isoformat() if by == GroupBy.DATE else t.category
        groups.setdefault(key, []).append(t)

    if by == GroupBy.DATE:
        keys = sorted(groups, reverse=True)
    else:
        keys = sorted(groups, key=str.casefold)
    return [(k, groups[k]) for k in keys]


def used_categories(transactions: Sequence[Transaction]) -> List[str]:
    """Return the distinct categories referenced by ``transactions``, sorted."""
    return sorted({t.category for t in transactions}, key=str.casefold)
