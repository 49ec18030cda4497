"""
Wires the FinWise components for one client instance.

The settings supply the backend address and the storage location; the session
store is injected into the gateway consumers; and every time a credential
becomes current the dashboard is loaded once.
"""
import logging
import pathlib
from typing import Optional, Union

from PySide6 import QtCore

from .auth import AuthFlow
from .mutations import GoalSubmitter, TransactionSubmitter
from .service import RemoteGateway
from .session import SessionStore
from .sync import DashboardSynchronizer
from ..settings.lib import LocalStorage, SettingsAPI


class Client(QtCore.QObject):
    """All client components sharing one session.

    Args:
        settings: Client settings; built from ``root`` when omitted.
        gateway: Gateway to use; built from the settings when omitted.
        root: Application data directory override.
    """

    def __init__(self, settings: Optional[SettingsAPI] = None,
                 gateway: Optional[RemoteGateway] = None,
                 root: Optional[Union[str, pathlib.Path]] = None,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.settings = settings or SettingsAPI(root=root)
        self.storage = LocalStorage(self.settings.usersettings_path)
        self.gateway = gateway or RemoteGateway.from_settings(self.settings)

        self.session = SessionStore(self.storage, self.gateway, parent=self)
        self.auth = AuthFlow(self.session, self.gateway, parent=self)
        self.synchronizer = DashboardSynchronizer(self.session, self.gateway, parent=self)
        self.transactions = TransactionSubmitter(self.session, self.gateway, self.synchronizer, parent=self)
        self.goals = GoalSubmitter(self.session, self.gateway, self.synchronizer, parent=self)

        self.session.credentialChanged.connect(self._on_credential_changed)

        self._closed = False
        from ..ui.actions import signals
        signals.dataFetchRequested.connect(self.refresh)

    def start(self) -> Optional[str]:
        """Restore a persisted session; its dashboard load starts automatically.

        Returns:
            The restored credential, or None.
        """
        logging.debug(f'Starting client against {self.gateway.base_url}')
        return self.session.initialize()

    @QtCore.Slot()
    def refresh(self) -> None:
        """Reload the dashboard of the current session, if any."""
        if not self.session.credential:
            logging.debug('Refresh requested while logged out; ignored.')
            return
        self.synchronizer.load_all()

    @QtCore.Slot(object)
    def _on_credential_changed(self, credential: Optional[str]) -> None:
        if credential:
            self.synchronizer.load_all()

    def shutdown(self, msecs: int = 5000) -> None:
        """Cancel the session's in-flight work and join the worker threads."""
        if self._closed:
            return
        self._closed = True

        from ..ui.actions import signals
        signals.dataFetchRequested.disconnect(self.refresh)

        self.auth.cancel()
        self.session.cancel_token.cancel()
        for component in (self.session, self.auth, self.synchronizer, self.transactions, self.goals):
            component.workers.wait(msecs)
        self.gateway.close()
