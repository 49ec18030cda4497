"""
Login and registration form controller.

Runs :meth:`RemoteGateway.authenticate` off the GUI thread and hands a fresh
credential to the :class:`SessionStore`. Rejections are kept as an inline
form error instead of touching the session.
"""

import functools
import logging
from typing import Optional

from PySide6 import QtCore

from .service import AuthMode, RemoteGateway, WorkerGroup
from .session import CancellationToken, SessionStore
from ..status import status


class AuthFlow(QtCore.QObject):
    """
    State of the login/register form.

    Signals:
        modeChanged (str): Emitted when switching between login and register.
        loadingChanged (bool): Emitted when a submission starts or settles.
        errorChanged (str): Emitted with the inline error text ('' when cleared).
        authenticated (): Emitted after the session accepted a new credential.
    """
    modeChanged = QtCore.Signal(str)
    loadingChanged = QtCore.Signal(bool)
    errorChanged = QtCore.Signal(str)
    authenticated = QtCore.Signal()

    def __init__(self, session: SessionStore, gateway: RemoteGateway,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.gateway = gateway
        self.workers = WorkerGroup(self)

        self.mode: AuthMode = AuthMode.Login
        self.loading: bool = False
        self.error: str = ''
        self._cancel_token: CancellationToken = CancellationToken()

    def set_mode(self, mode: str) -> None:
        mode = AuthMode(mode)
        if mode == self.mode:
            return
        self.mode = mode
        self.modeChanged.emit(str(mode))

    def toggle_mode(self) -> None:
        self.set_mode(AuthMode.Register if self.mode == AuthMode.Login else AuthMode.Login)

    def _set_loading(self, v: bool) -> None:
        self.loading = v
        self.loadingChanged.emit(v)

    def _set_error(self, message: str) -> None:
        self.error = message
        self.errorChanged.emit(message)

    def submit(self, email: str, password: str, name: str = '') -> bool:
        """Submit the form in the current mode.

        Returns:
            False if a submission is already in progress, True otherwise.
        """
        if self.loading:
            logging.debug('Authentication already in progress; ignoring submit.')
            return False

        self._set_loading(True)
        self._set_error('')

        fields = {'email': email, 'password': password}
        if self.mode == AuthMode.Register:
            fields['name'] = name

        logging.debug(f'Submitting {self.mode} form for "{email}"')
        self._cancel_token = CancellationToken()
        token = self._cancel_token
        self.workers.start(
            self.gateway.authenticate, str(self.mode), fields,
            on_result=functools.partial(self._on_authenticated, token),
            on_error=functools.partial(self._on_failed, token),
        )
        return True

    def cancel(self) -> None:
        """Abandon the submission in progress; its outcome will be ignored."""
        self._cancel_token.cancel()
        if self.loading:
            self._set_loading(False)

    def _on_authenticated(self, token: CancellationToken, credential: str) -> None:
        if token.is_cancelled:
            logging.debug('Authentication finished after it was cancelled; ignored.')
            return
        self._set_loading(False)
        self.session.login(credential)
        self.authenticated.emit()

    def _on_failed(self, token: CancellationToken, error: BaseException) -> None:
        if token.is_cancelled:
            logging.debug('Authentication failed after it was cancelled; ignored.')
            return
        self._set_loading(False)
        message = getattr(error, 'message', None) or str(error) or 'Error'
        status.report(error)
        self._set_error(message)
