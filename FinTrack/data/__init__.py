"""
Data analysis for FinTrack.

- :mod:`FinTrack.data.data` – Dashboard summaries, filtering and grouping of transactions.
"""
