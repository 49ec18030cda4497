"""Session Store: the current credential, its resolved identity and their persistence.

State machine::

    LoggedOut --login--> Pending --lookup ok--> Resolved
                                 --lookup failed--> IdentityUnknown

``logout`` returns to ``LoggedOut`` from any logged-in state. A failed identity
lookup does not evict the credential; retrying or logging out is left to the caller.
"""
import enum
import functools
import logging
import threading
from typing import Optional

from PySide6 import QtCore

from .service import RemoteGateway, WorkerGroup, mask
from ..data.model import Identity
from ..settings.lib import LocalStorage
from ..status import status


class SessionState(enum.StrEnum):
    LoggedOut = enum.auto()
    Pending = enum.auto()
    Resolved = enum.auto()
    IdentityUnknown = enum.auto()


class CancellationToken:
    """Marks every request started for one credential.

    The token is cancelled when the credential stops being current, so late
    results captured by it can be recognized and dropped.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class SessionStore(QtCore.QObject):
    """Holds the current credential and identity.

    Signals:
        credentialChanged (object): The new credential, or None after logout.
        identityChanged (object): The resolved :class:`Identity`, or None.
        stateChanged (str): The new :class:`SessionState`.
    """
    credentialChanged = QtCore.Signal(object)
    identityChanged = QtCore.Signal(object)
    stateChanged = QtCore.Signal(str)

    def __init__(self, storage: LocalStorage, gateway: RemoteGateway,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.storage = storage
        self.gateway = gateway
        self.workers = WorkerGroup(self)

        self._credential: Optional[str] = None
        self._identity: Optional[Identity] = None
        self._state: SessionState = SessionState.LoggedOut
        self._cancel_token: CancellationToken = CancellationToken()
        self._cancel_token.cancel()

    @property
    def credential(self) -> Optional[str]:
        return self._credential

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def cancel_token(self) -> CancellationToken:
        """Token of the current credential; already cancelled while logged out."""
        return self._cancel_token

    def _set_state(self, state: SessionState) -> None:
        if state == self._state:
            return
        logging.debug(f'Session state: {self._state} -> {state}')
        self._state = state
        self.stateChanged.emit(str(state))

    def _set_identity(self, identity: Optional[Identity]) -> None:
        self._identity = identity
        self.identityChanged.emit(identity)

    def initialize(self) -> Optional[str]:
        """Restore the persisted credential, if any, and start resolving its identity.

        Returns:
            The restored credential, or None.
        """
        credential = self.storage.get_token()
        if not credential:
            logging.debug('No persisted credential found.')
            return None

        logging.debug(f'Restoring persisted credential {mask(credential)}')
        self._activate(credential)
        return credential

    def login(self, credential: str) -> None:
        """Persist a credential, make it current and start resolving its identity.

        Raises:
            ValueError: If credential is empty.
        """
        if not credential:
            raise ValueError('Cannot log in with an empty credential.')

        self.storage.set_token(credential)
        self._activate(credential)

        from ..ui.actions import signals
        signals.loggedIn.emit()

    def logout(self) -> None:
        """Erase the persisted credential and clear the current credential and identity.

        In-flight requests of the old credential are cancelled.
        """
        self.storage.remove_token()
        self._cancel_token.cancel()

        self._credential = None
        self._set_identity(None)
        self._set_state(SessionState.LoggedOut)
        self.credentialChanged.emit(None)
        logging.info('Logged out.')

        from ..ui.actions import signals
        signals.loggedOut.emit()

    def _activate(self, credential: str) -> None:
        self._cancel_token.cancel()
        self._cancel_token = CancellationToken()

        self._credential = credential
        if self._identity is not None:
            self._set_identity(None)
        self._set_state(SessionState.Pending)
        self.credentialChanged.emit(credential)

        self.resolve_identity()

    def resolve_identity(self) -> None:
        """Look up the identity of the current credential.

        Also serves as the retry after a failed lookup. Does nothing while logged out.
        """
        if not self._credential:
            logging.debug('resolve_identity called without a credential.')
            return

        self._set_state(SessionState.Pending)
        token = self._cancel_token
        self.workers.start(
            self.gateway.fetch_identity, self._credential,
            on_result=functools.partial(self._on_identity_resolved, token),
            on_error=functools.partial(self._on_identity_failed, token),
        )

    def _on_identity_resolved(self, token: CancellationToken, identity: Identity) -> None:
        if token.is_cancelled:
            logging.debug('Dropping identity of a closed session.')
            return
        logging.info(f'Identity resolved: {identity.email or identity.name}')
        self._set_identity(identity)
        self._set_state(SessionState.Resolved)

    def _on_identity_failed(self, token: CancellationToken, error: BaseException) -> None:
        if token.is_cancelled:
            logging.debug('Dropping identity failure of a closed session.')
            return
        logging.debug('Identity lookup failed, keeping credential.')
        status.report(error)
        self._set_identity(None)
        self._set_state(SessionState.IdentityUnknown)
