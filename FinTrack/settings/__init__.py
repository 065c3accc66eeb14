"""
Settings package for FinTrack.

Modules:

- :mod:`FinTrack.settings.lib` – Config paths, schema validation and the :class:`~FinTrack.settings.lib.SettingsAPI`.
"""
