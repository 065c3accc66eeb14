"""AI spending advice.

Sends a plain-text summary of the user's transactions to an OpenAI-compatible
chat completion endpoint (Gemini's by default) and returns the model's advice.
A single request is made; failures are reported, never retried.
"""
import logging
from typing import Any, Optional, Sequence

from openai import OpenAI

from .models import Transaction
from ..settings import lib
from ..status import status

EMPTY_MESSAGE: str = 'Start adding some records to get personalized financial advice!'
FALLBACK_MESSAGE: str = "I couldn't generate insights at this moment. Try again later."

PROMPT_TEMPLATE: str = (
    'Analyze this list of recent financial transactions and provide 3 concise, actionable pieces of '
    "advice to improve the user's financial health. Be direct and helpful, like a personal accountant. "
    'Format as a list with bullet points.\n\n'
    'Transactions:\n{summary}'
)


def _format_amount(amount: float) -> str:
    return f'{amount:g}' if amount == int(amount) else f'{amount:.2f}'


def summarize(transactions: Sequence[Transaction]) -> str:
    """Return one ``date: TYPE of $amount in category`` line per transaction."""
    return '\n'.join(
        f'{t.date.isoformat()}: {t.type.value} of ${_format_amount(t.amount)} in {t.category}'
        for t in transactions
    )


def build_prompt(transactions: Sequence[Transaction]) -> str:
    return PROMPT_TEMPLATE.format(summary=summarize(transactions))


def get_client() -> OpenAI:
    """Build a client for the configured endpoint."""
    config = lib.settings.get_section('insights')
    return OpenAI(base_url=config['base_url'], api_key=config['api_key'] or 'unset')


def generate_insights(transactions: Sequence[Transaction], client: Optional[Any] = None) -> str:
    """
    Ask the model for advice on ``transactions``.

    Args:
        transactions: The user's transactions, newest first.
        client: An OpenAI-compatible client. Built from settings when omitted.

    Returns:
        str: The advice text, a prompt to add records when there are none, or a
        fallback message when the model returns nothing.

    Raises:
        status.InsightsUnavailableException: If the request fails.
    """
    if not transactions:
        return EMPTY_MESSAGE

    client = client or get_client()
    model = lib.settings['insights.model']
    logging.debug(f'Requesting insights for {len(transactions)} transaction(s) from "{model}".')
    try:
        response = client.chat.completions.create(
            model=model,
            messages=[{'role': 'user', 'content': build_prompt(transactions)}],
        )
    except Exception as ex:
        raise status.InsightsUnavailableException(str(ex)) from ex

    choices = getattr(response, 'choices', None) or []
    text = choices[0].message.content if choices else None
    return text or FALLBACK_MESSAGE
