"""Currency exchange rates and conversion.

Rates come from the Frankfurter API in a single request per base currency.
"""
import dataclasses
import logging
from typing import Dict, List, Optional

import requests

from ..settings import lib
from ..status import status


@dataclasses.dataclass(frozen=True)
class Currency:
    code: str
    name: str
    symbol: str


POPULAR_CURRENCIES: List[Currency] = [
    Currency('USD', 'US Dollar', '$'),
    Currency('EUR', 'Euro', '€'),
    Currency('GBP', 'British Pound', '£'),
    Currency('JPY', 'Japanese Yen', '¥'),
    Currency('AUD', 'Australian Dollar', 'A$'),
    Currency('CAD', 'Canadian Dollar', 'C$'),
    Currency('CHF', 'Swiss Franc', 'Fr'),
    Currency('CNY', 'Chinese Yuan', '¥'),
    Currency('HKD', 'Hong Kong Dollar', 'HK$'),
    Currency('SGD', 'Singapore Dollar', 'S$'),
    Currency('INR', 'Indian Rupee', '₹'),
    Currency('MYR', 'Malaysian Ringgit', 'RM'),
    Currency('THB', 'Thai Baht', '฿'),
    Currency('IDR', 'Indonesian Rupiah', 'Rp'),
    Currency('PHP', 'Philippine Peso', '₱'),
    Currency('VND', 'Vietnamese Dong', '₫'),
]


@dataclasses.dataclass(frozen=True)
class Quote:
    """A transfer quote: the fee is deducted before conversion."""
    amount: float
    fee: float
    converted: float
    rate: float


def get_symbol(code: str) -> str:
    return next((c.symbol for c in POPULAR_CURRENCIES if c.code == code), '')


def fetch_rates(base: str, session: Optional[requests.Session] = None) -> Dict[str, float]:
    """
    Fetch the latest rates from ``base`` to every other supported currency.

    Raises:
        status.RatesUnavailableException: If the request fails or the response is malformed.
    """
    config = lib.settings.get_section('exchange')
    http = session or requests
    logging.debug(f'Fetching exchange rates for {base}.')
    try:
        response = http.get(config['url'], params={'from': base}, timeout=config['timeout'])
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as ex:
        raise status.RatesUnavailableException(str(ex)) from ex

    rates = data.get('rates') if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        raise status.RatesUnavailableException('Response carried no rates.')
    return {k: float(v) for k, v in rates.items()}


def convert(amount: float, base: str, target: str, rates: Dict[str, float]) -> Optional[float]:
    """Convert ``amount`` using ``rates`` fetched for ``base``.

    Returns the amount unchanged when ``base`` equals ``target`` and None when
    no rate to ``target`` is known.
    """
    if target in rates and rates[target]:
        return amount * rates[target]
    if base == target:
        return amount
    return None


def quote(amount: float, base: str, target: str, rates: Dict[str, float]) -> Quote:
    """Return a transfer quote charging the configured fee on ``amount``."""
    fee = amount * lib.settings['exchange.fee']
    rate = rates.get(target) or 1.0
    if base == target:
        rate = 1.0
    return Quote(amount=amount, fee=fee, converted=(amount - fee) * rate, rate=rate)
