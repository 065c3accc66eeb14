"""
Unit tests for FinTrack.core.exchange.

Run:
    python -m unittest tests.test_exchange
"""
from unittest.mock import MagicMock

import requests

from FinTrack.core import exchange
from FinTrack.status import status
from tests.base import BaseTestCase


def _session(payload=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value.json.return_value = payload
    return session


class ExchangeTests(BaseTestCase):
    def test_fetch_rates(self):
        session = _session({'amount': 1.0, 'base': 'USD', 'rates': {'EUR': 0.9, 'JPY': 150}})
        rates = exchange.fetch_rates('USD', session=session)
        self.assertEqual(rates, {'EUR': 0.9, 'JPY': 150.0})

        args, kwargs = session.get.call_args
        self.assertEqual(args[0], 'https://api.frankfurter.app/latest')
        self.assertEqual(kwargs['params'], {'from': 'USD'})
        self.assertEqual(kwargs['timeout'], 10)

    def test_network_failure(self):
        session = _session(error=requests.ConnectionError('offline'))
        with self.assertRaises(status.RatesUnavailableException) as ctx:
            exchange.fetch_rates('USD', session=session)
        self.assertIn('Could not update rates. Please check your connection.', str(ctx.exception))

    def test_http_error(self):
        session = _session({})
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError('404')
        with self.assertRaises(status.RatesUnavailableException):
            exchange.fetch_rates('XXX', session=session)

    def test_malformed_payload(self):
        with self.assertRaises(status.RatesUnavailableException):
            exchange.fetch_rates('USD', session=_session({'message': 'not found'}))

    def test_convert(self):
        rates = {'EUR': 0.5}
        self.assertEqual(exchange.convert(10, 'USD', 'EUR', rates), 5.0)
        self.assertEqual(exchange.convert(10, 'USD', 'USD', rates), 10)
        self.assertIsNone(exchange.convert(10, 'USD', 'GBP', rates))

    def test_quote_charges_fee(self):
        q = exchange.quote(1000, 'USD', 'EUR', {'EUR': 0.5})
        self.assertAlmostEqual(q.fee, 5.0)
        self.assertAlmostEqual(q.converted, 497.5)
        self.assertEqual(q.rate, 0.5)

    def test_quote_same_currency(self):
        q = exchange.quote(100, 'EUR', 'EUR', {})
        self.assertEqual(q.rate, 1.0)
        self.assertAlmostEqual(q.converted, 99.5)

    def test_catalogue(self):
        codes = [c.code for c in exchange.POPULAR_CURRENCIES]
        self.assertEqual(len(codes), len(set(codes)))
        self.assertEqual(exchange.get_symbol('EUR'), '€')
        self.assertEqual(exchange.get_symbol('ZZZ'), '')
