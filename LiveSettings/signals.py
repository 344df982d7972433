"""Application-wide Qt signals for LiveSettings.

Coarse broadcast for host applications (store lifecycle, migrations, errors).
Per-key subscriptions live in :mod:`LiveSettings.settings.notifier`.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for store lifecycle, value changes and errors."""
    valueChanged = QtCore.Signal(str)  # KeyPath

    storeOpened = QtCore.Signal(str)  # Path
    storeFlushed = QtCore.Signal(str)
    storeClosed = QtCore.Signal(str)
    storeLoadFailed = QtCore.Signal(str, str)  # Path, reason

    migrationApplied = QtCore.Signal(str)  # Marker key

    errorLogged = QtCore.Signal(str)
    error = QtCore.Signal(str)


signals = Signals()
