"""Mutation submitters for new transactions and goals.

Form values arrive as strings. They are coerced into the wire shape before any
request is made (a ``ValueError`` is raised for values that cannot be coerced),
submitted through the gateway, and only a successful submission triggers a
dashboard refresh. Failures are reported on ``submitFailed``; the form is left
untouched so the entry can be corrected and resubmitted.
"""
import datetime
import functools
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from PySide6 import QtCore

from .service import RemoteGateway, WorkerGroup
from .session import CancellationToken, SessionStore
from .sync import DashboardSynchronizer
from ..data.model import DEFAULT_CATEGORY, TransactionType
from ..status import status


def parse_amount(text: Any, default: Optional[float] = None) -> float:
    """Coerce a numeric form input into a float.

    Args:
        text: The raw input value.
        default: Returned for blank input. Blank input is an error when None.

    Raises:
        ValueError: If the value is blank without a default, or not a finite number.
    """
    if text is None or str(text).strip() == '':
        if default is None:
            raise ValueError('Amount is required.')
        return float(default)
    try:
        value = float(str(text).strip())
    except ValueError:
        raise ValueError(f'"{text}" is not a number.') from None
    if not math.isfinite(value):
        raise ValueError(f'"{text}" is not a finite number.')
    return value


def parse_date(text: Any) -> Optional[datetime.datetime]:
    """Coerce a ``YYYY-MM-DD`` form input into local start-of-day as an aware datetime.

    Returns:
        None for blank input.

    Raises:
        ValueError: If the value is not an ISO date.
    """
    if text is None or str(text).strip() == '':
        return None
    day = datetime.date.fromisoformat(str(text).strip())
    return datetime.datetime.combine(day, datetime.time.min).astimezone()


def _today() -> str:
    return datetime.date.today().isoformat()


@dataclass
class TransactionForm:
    """Raw values of the new-transaction form."""
    type: str = TransactionType.Expense.value
    amount: str = ''
    category: str = DEFAULT_CATEGORY
    date: str = field(default_factory=_today)
    note: str = ''

    def to_fields(self) -> Dict[str, Any]:
        """Convert the form into gateway fields.

        Raises:
            ValueError: If type, amount or date cannot be coerced.
        """
        return {
            'type': TransactionType(self.type).value,
            'amount': parse_amount(self.amount),
            'category': self.category.strip() or DEFAULT_CATEGORY,
            'date': parse_date(self.date) or parse_date(_today()),
            'note': self.note,
        }

    def clear_amount_and_note(self) -> None:
        # Type, category and date are kept for fast repeated entry
        self.amount = ''
        self.note = ''


@dataclass
class GoalForm:
    """Raw values of the new-goal form."""
    name: str = ''
    target_amount: str = ''
    current_amount: str = ''
    deadline: str = ''

    def to_fields(self) -> Dict[str, Any]:
        """Convert the form into gateway fields.

        Raises:
            ValueError: If the name is blank or an amount or the deadline cannot be coerced.
        """
        if not self.name.strip():
            raise ValueError('Goal name is required.')
        return {
            'name': self.name.strip(),
            'target_amount': parse_amount(self.target_amount),
            'current_amount': parse_amount(self.current_amount, default=0.0),
            'deadline': parse_date(self.deadline),
        }


class BaseSubmitter(QtCore.QObject):
    """Shared plumbing: credential check, background submission, refresh on success.

    Signals:
        submitted (): Emitted after the server accepted the entry.
        submitFailed (object): Emitted with the exception when the entry was not saved.
        busyChanged (bool): Emitted when a submission starts or settles.
    """
    submitted = QtCore.Signal()
    submitFailed = QtCore.Signal(object)
    busyChanged = QtCore.Signal(bool)

    def __init__(self, session: SessionStore, gateway: RemoteGateway,
                 synchronizer: DashboardSynchronizer,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.gateway = gateway
        self.synchronizer = synchronizer
        self.workers = WorkerGroup(self)

    @property
    def busy(self) -> bool:
        return len(self.workers) > 0

    def _submit(self, func: Callable[[str, Dict[str, Any]], Any], fields: Dict[str, Any]) -> bool:
        credential = self.session.credential
        if not credential:
            error = status.CredentialNotFoundError()
            status.report(error)
            self.submitFailed.emit(error)
            return False

        token = self.session.cancel_token
        self.workers.start(
            func, credential, fields,
            on_result=functools.partial(self._on_result, token),
            on_error=functools.partial(self._on_error, token),
        )
        self.busyChanged.emit(True)
        return True

    def _on_result(self, token: CancellationToken, _result: Any) -> None:
        self.busyChanged.emit(self.busy)
        if token.is_cancelled:
            logging.debug(f'{type(self).__name__}: result arrived after the session closed; ignored.')
            return
        self.on_success()
        self.submitted.emit()
        self.synchronizer.load_all()

    def _on_error(self, token: CancellationToken, error: BaseException) -> None:
        self.busyChanged.emit(self.busy)
        if token.is_cancelled:
            logging.debug(f'{type(self).__name__}: failure arrived after the session closed; ignored.')
            return
        logging.debug(f'{type(self).__name__}: entry was not saved')
        status.report(error)
        self.submitFailed.emit(error)

    def on_success(self) -> None:
        """Hook run before the refresh once the server accepted the entry."""


class TransactionSubmitter(BaseSubmitter):
    """Submits :attr:`form` as a new transaction."""

    def __init__(self, session: SessionStore, gateway: RemoteGateway,
                 synchronizer: DashboardSynchronizer,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(session, gateway, synchronizer, parent=parent)
        self.form = TransactionForm()

    def submit(self) -> bool:
        """Coerce and submit the form.

        Returns:
            True if a request was started.

        Raises:
            ValueError: If the form values cannot be coerced.
        """
        fields = self.form.to_fields()
        logging.debug(f'Submitting {fields["type"]} of {fields["amount"]} in "{fields["category"]}"')
        return self._submit(self.gateway.create_transaction, fields)

    def on_success(self) -> None:
        self.form.clear_amount_and_note()

        from ..ui.actions import signals
        signals.transactionCreated.emit()


class GoalSubmitter(BaseSubmitter):
    """Submits goal forms. Clearing the form is left to the presentation layer."""

    def submit(self, form: GoalForm) -> bool:
        """Coerce and submit a goal form.

        Returns:
            True if a request was started.

        Raises:
            ValueError: If the form values cannot be coerced.
        """
        fields = form.to_fields()
        logging.debug(f'Submitting goal "{fields["name"]}" targeting {fields["target_amount"]}')
        return self._submit(self.gateway.create_goal, fields)

    def on_success(self) -> None:
        from ..ui.actions import signals
        signals.goalCreated.emit()
