"""Dashboard Synchronizer.

Keeps one consistent snapshot of the summary, transactions and goals. A load
fans out the three reads and publishes only after all of them succeeded; a
failed part discards the whole load and the previous snapshot stays visible.

Overlapping loads are ordered by a monotonic token: a load publishes only if
its token is newer than the token of the snapshot on display, so a slow,
earlier load can never overwrite the result of a later one.
"""
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from PySide6 import QtCore

from .service import RemoteGateway, WorkerGroup
from .session import CancellationToken, SessionStore
from ..data.model import Snapshot
from ..status import status

PARTS = ('summary', 'transactions', 'goals')


@dataclass
class LoadOperation:
    """Bookkeeping of one in-flight load."""
    token: int
    cancel_token: CancellationToken
    results: Dict[str, Any] = field(default_factory=dict)
    failed: bool = False

    @property
    def complete(self) -> bool:
        return all(k in self.results for k in PARTS)


class DashboardSynchronizer(QtCore.QObject):
    """Loads and republishes the combined dashboard snapshot.

    Signals:
        snapshotChanged (object): Emitted with the newly published :class:`Snapshot`.
        loadFailed (object): Emitted with the exception that failed the most recent load.
        loadingChanged (bool): Emitted when loads start or all loads settle.
    """
    snapshotChanged = QtCore.Signal(object)
    loadFailed = QtCore.Signal(object)
    loadingChanged = QtCore.Signal(bool)

    def __init__(self, session: SessionStore, gateway: RemoteGateway,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.gateway = gateway
        self.workers = WorkerGroup(self)

        self._snapshot: Snapshot = Snapshot.empty()
        self._pending: Dict[int, LoadOperation] = {}
        self._last_started: int = 0
        self._last_published: int = 0

        self.session.credentialChanged.connect(self._on_credential_changed)

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def is_loading(self) -> bool:
        return bool(self._pending)

    def load_all(self) -> int:
        """Start a combined load of summary, transactions and goals.

        Returns:
            The token of the started load.
        """
        self._last_started += 1
        token = self._last_started

        credential = self.session.credential
        if not credential:
            error = status.CredentialNotFoundError()
            status.report(error)
            self.loadFailed.emit(error)
            return token

        op = LoadOperation(token=token, cancel_token=self.session.cancel_token)
        was_loading = self.is_loading
        self._pending[token] = op
        if not was_loading:
            self.loadingChanged.emit(True)

        from ..ui.actions import signals
        signals.dataAboutToBeFetched.emit()

        logging.debug(f'Load #{token} started')
        fetchers = {
            'summary': self.gateway.fetch_summary,
            'transactions': self.gateway.fetch_transactions,
            'goals': self.gateway.fetch_goals,
        }
        for key in PARTS:
            self.workers.start(
                fetchers[key], credential,
                on_result=functools.partial(self._on_part_loaded, op, key),
                on_error=functools.partial(self._on_part_failed, op, key),
            )
        return token

    def _settle(self, op: LoadOperation) -> None:
        self._pending.pop(op.token, None)
        if not self._pending:
            self.loadingChanged.emit(False)

    def _on_part_loaded(self, op: LoadOperation, key: str, value: Any) -> None:
        if op.failed or op.token not in self._pending:
            return
        op.results[key] = value
        if op.complete:
            self._settle(op)
            self._publish(op)

    def _on_part_failed(self, op: LoadOperation, key: str, error: BaseException) -> None:
        if op.failed or op.token not in self._pending:
            return
        op.failed = True
        self._settle(op)

        if op.cancel_token.is_cancelled:
            logging.debug(f'Load #{op.token} failed after its session closed; ignored.')
            return
        if op.token != self._last_started:
            logging.debug(f'Load #{op.token} failed on "{key}" but a newer load exists; ignored.')
            return

        logging.debug(f'Load #{op.token} failed on "{key}"; keeping snapshot #{self._snapshot.token}')
        status.report(error)
        self.loadFailed.emit(error)

    def _publish(self, op: LoadOperation) -> None:
        if op.cancel_token.is_cancelled:
            logging.debug(f'Load #{op.token} finished after its session closed; discarded.')
            return
        if op.token <= self._last_published:
            logging.debug(f'Load #{op.token} is older than snapshot #{self._last_published}; discarded.')
            return

        self._snapshot = Snapshot(
            summary=op.results['summary'],
            transactions=tuple(op.results['transactions']),
            goals=tuple(op.results['goals']),
            token=op.token,
        )
        self._last_published = op.token
        logging.debug(
            f'Snapshot #{op.token} published: {len(self._snapshot.transactions)} transactions, '
            f'{len(self._snapshot.goals)} goals'
        )
        self.snapshotChanged.emit(self._snapshot)

        from ..ui.actions import signals
        signals.dataFetched.emit(self._snapshot)

    def reset(self) -> None:
        """Drop the snapshot and every in-flight load."""
        was_loading = self.is_loading
        self._pending.clear()
        self._last_published = self._last_started
        self._snapshot = Snapshot.empty()
        self.snapshotChanged.emit(self._snapshot)
        if was_loading:
            self.loadingChanged.emit(False)

    @QtCore.Slot(object)
    def _on_credential_changed(self, credential: Optional[str]) -> None:
        # Data of the previous credential must not leak into the next session
        if self._snapshot.token or self._pending:
            self.reset()
