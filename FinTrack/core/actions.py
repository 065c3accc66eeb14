"""Application-wide Qt signals for FinTrack.

A rendering layer connects to these to follow configuration changes, the
session lifecycle, dataset changes and errors without importing the objects
that emit them.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for configuration, session, data and error events."""
    configSectionChanged = QtCore.Signal(str)  # Section name

    sessionChanged = QtCore.Signal()
    userChanged = QtCore.Signal(object)  # Profile or None

    transactionsChanged = QtCore.Signal(list)
    categoriesChanged = QtCore.Signal(object)  # CategoryState

    syncStarted = QtCore.Signal()
    syncFinished = QtCore.Signal(bool)  # success

    showLogs = QtCore.Signal()

    error = QtCore.Signal(str)


signals = Signals()
