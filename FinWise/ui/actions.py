"""Application-wide Qt signals for FinWise.

This module provides:
    - Signals: custom Qt signals for configuration changes, session lifecycle,
      dashboard data lifecycle, mutations, theme and error notices.
"""
import logging

from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for client config, session, data and UI events."""
    configSectionChanged = QtCore.Signal(str)
    themeChanged = QtCore.Signal(str)

    # Session lifecycle
    loggedIn = QtCore.Signal()
    loggedOut = QtCore.Signal()

    # Dashboard data lifecycle
    dataFetchRequested = QtCore.Signal()
    dataAboutToBeFetched = QtCore.Signal()
    dataFetched = QtCore.Signal(object)

    # Mutations
    transactionCreated = QtCore.Signal()
    goalCreated = QtCore.Signal()

    showLogs = QtCore.Signal()

    # Non-blocking notice text
    error = QtCore.Signal(str)

    def __init__(self):
        super().__init__()
        self._connect_signals()

    def _connect_signals(self):
        @QtCore.Slot(str)
        def theme_changed(theme: str) -> None:
            logging.debug(f'Theme changed to "{theme}"')

        self.themeChanged.connect(theme_changed)


signals = Signals()
