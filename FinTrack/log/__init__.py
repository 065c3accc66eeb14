"""
Logging subsystem for FinTrack.

Modules:

- :mod:`FinTrack.log.log` – Root logger configuration, the in-memory log tank and the Qt message bridge.
"""
