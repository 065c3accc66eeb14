"""
Unit tests for FinTrack.core.ledger
(input validation, list operations and category helpers).

Run:
    python -m unittest tests.test_ledger
"""
import datetime
import random

from FinTrack.core import ledger
from FinTrack.core.ledger import Op, Operation
from FinTrack.core.models import CategoryState, TransactionType
from FinTrack.status import status
from tests.base import BaseTestCase


def _txn(id_: str, amount: float = 10.0, category: str = 'Food'):
    return ledger.make_transaction('2024-01-01', amount, TransactionType.EXPENSE, category, id_=id_)


class MakeTransactionTests(BaseTestCase):
    def test_generates_ids(self):
        a = ledger.make_transaction('2024-01-01', 50, 'EXPENSE', 'Food')
        b = ledger.make_transaction('2024-01-01', 50, 'EXPENSE', 'Food')
        self.assertTrue(a.id)
        self.assertNotEqual(a.id, b.id)
        self.assertEqual(a.date, datetime.date(2024, 1, 1))
        self.assertEqual(a.amount, 50.0)

    def test_zero_amount_is_allowed(self):
        self.assertEqual(ledger.make_transaction('2024-01-01', 0, 'INCOME', 'Gifts').amount, 0.0)

    def test_rejects_negative_amount(self):
        with self.assertRaises(status.TransactionInvalidException):
            ledger.make_transaction('2024-01-01', -1, 'EXPENSE', 'Food')

    def test_rejects_non_numeric_amount(self):
        for amount in ('ten', None, True, float('nan')):
            with self.subTest(amount=amount):
                with self.assertRaises(status.TransactionInvalidException):
                    ledger.make_transaction('2024-01-01', amount, 'EXPENSE', 'Food')

    def test_rejects_infinite_amount(self):
        for amount in (float('inf'), '1e999'):
            with self.subTest(amount=amount):
                with self.assertRaises(status.TransactionInvalidException):
                    ledger.make_transaction('2024-01-01', amount, 'EXPENSE', 'Food')

    def test_rejects_unknown_type(self):
        with self.assertRaises(status.TransactionInvalidException):
            ledger.make_transaction('2024-01-01', 1, 'TRANSFER', 'Food')

    def test_rejects_bad_date(self):
        with self.assertRaises(status.TransactionInvalidException):
            ledger.make_transaction('01/01/2024', 1, 'EXPENSE', 'Food')

    def test_rejects_blank_category(self):
        with self.assertRaises(status.TransactionInvalidException):
            ledger.make_transaction('2024-01-01', 1, 'EXPENSE', '  ')

    def test_category_must_match_type(self):
        categories = CategoryState()
        ledger.make_transaction('2024-01-01', 1, 'INCOME', 'Salary', categories=categories)
        with self.assertRaises(status.TransactionInvalidException):
            ledger.make_transaction('2024-01-01', 1, 'EXPENSE', 'Salary', categories=categories)

    def test_shared_label_is_valid_for_both_types(self):
        categories = CategoryState()
        ledger.make_transaction('2024-01-01', 1, 'INCOME', 'Other', categories=categories)
        ledger.make_transaction('2024-01-01', 1, 'EXPENSE', 'Other', categories=categories)


class ListOperationTests(BaseTestCase):
    def test_add_prepends(self):
        result = ledger.add([_txn('a')], _txn('b'))
        self.assertEqual([t.id for t in result], ['b', 'a'])

    def test_update_replaces_in_place(self):
        result = ledger.update([_txn('a'), _txn('b')], _txn('a', amount=99))
        self.assertEqual([t.id for t in result], ['a', 'b'])
        self.assertEqual(result[0].amount, 99.0)

    def test_update_unknown_id_is_noop(self):
        initial = [_txn('a')]
        self.assertEqual(ledger.update(initial, _txn('zzz')), initial)

    def test_delete(self):
        result = ledger.delete([_txn('a'), _txn('b')], 'a')
        self.assertEqual([t.id for t in result], ['b'])

    def test_delete_unknown_id_is_noop(self):
        initial = [_txn('a'), _txn('b')]
        self.assertEqual(ledger.delete(initial, 'zzz'), initial)

    def test_inputs_are_not_mutated(self):
        initial = [_txn('a')]
        ledger.add(initial, _txn('b'))
        ledger.delete(initial, 'a')
        self.assertEqual([t.id for t in initial], ['a'])

    def test_replay_random_sequences(self):
        rng = random.Random(7)
        for _ in range(20):
            operations = []
            expected = []
            for i in range(30):
                choice = rng.choice(['add', 'update', 'delete'])
                if choice == 'add' or not expected:
                    t = _txn(f'id-{i}', amount=i)
                    operations.append(Operation(Op.Add, transaction=t))
                    expected.insert(0, t)
                elif choice == 'update':
                    target = rng.choice(expected)
                    t = _txn(target.id, amount=1000 + i)
                    operations.append(Operation(Op.Update, transaction=t))
                    expected = [t if e.id == t.id else e for e in expected]
                else:
                    target = rng.choice(expected + [_txn('missing')])
                    operations.append(Operation(Op.Delete, id=target.id))
                    expected = [e for e in expected if e.id != target.id]
            self.assertEqual(ledger.replay(operations), expected)


class CategoryOperationTests(BaseTestCase):
    def test_add_category(self):
        categories = CategoryState()
        result = ledger.add_category(categories, 'EXPENSE', '  Pets ')
        self.assertEqual(result.expense[-1], 'Pets')
        self.assertNotIn('Pets', categories.expense)

    def test_add_category_ignores_blank_and_duplicates(self):
        categories = CategoryState()
        self.assertEqual(ledger.add_category(categories, 'EXPENSE', ''), categories)
        self.assertEqual(ledger.add_category(categories, 'EXPENSE', 'Food'), categories)

    def test_remove_category(self):
        result = ledger.remove_category(CategoryState(), TransactionType.EXPENSE, 'Food')
        self.assertNotIn('Food', result.expense)
        self.assertIn('Other', result.income)

    def test_remove_shared_label_only_affects_one_type(self):
        result = ledger.remove_category(CategoryState(), TransactionType.INCOME, 'Other')
        self.assertNotIn('Other', result.income)
        self.assertIn('Other', result.expense)
