"""
HTTP server for FinTrack.

- :mod:`FinTrack.server.app` – FastAPI application proxying Google sign-in and the Drive data file.
"""
