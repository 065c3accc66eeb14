"""
Core package for FinTrack providing essential functionality.

This package includes:

- :mod:`FinTrack.core.models` – Transactions, categories, profiles and the persisted dataset.
- :mod:`FinTrack.core.ledger` – Pure transaction and category operations.
- :mod:`FinTrack.core.database` – Local SQLite key-value cache for the unauthenticated dataset and the session id.
- :mod:`FinTrack.core.session` – Server-side session store with a sliding expiry.
- :mod:`FinTrack.core.auth` – Google OAuth2 web flow and request-scoped credentials.
- :mod:`FinTrack.core.service` – Google Drive document store for the user's data file.
- :mod:`FinTrack.core.insights` – AI spending advice.
- :mod:`FinTrack.core.exchange` – Currency rates and conversion.
- :mod:`FinTrack.core.actions` – Application-wide Qt signals.
"""
