"""Remote Data Gateway over the FinWise HTTP API.

Every call is a single blocking attempt with a bounded timeout; there are no
retries. Blocking calls are run off the GUI thread with :class:`AsyncWorker`
and their outcome is delivered back on the GUI thread by :class:`WorkerGroup`.
"""

import datetime
import enum
import logging
from typing import Any, Callable, Dict, List, Optional

import requests
from PySide6 import QtCore

from ..data.model import (
    DEFAULT_CATEGORY,
    Goal,
    Identity,
    Summary,
    Transaction,
    TransactionType,
    format_instant,
    parse_list,
)
from ..status import status

DEFAULT_TIMEOUT: int = 30


class AuthMode(enum.StrEnum):
    Login = 'login'
    Register = 'register'


AUTH_FIELDS: Dict[AuthMode, tuple] = {
    AuthMode.Login: ('email', 'password'),
    AuthMode.Register: ('name', 'email', 'password'),
}


def mask(credential: Optional[str]) -> str:
    """Return a log-safe representation of a credential."""
    if not credential:
        return '<none>'
    return f'{credential[:4]}…'


def _to_instant(value: Any) -> Optional[str]:
    """Normalize a date/datetime/ISO string into a UTC instant string."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime.datetime):
        dt = value if value.tzinfo else value.astimezone()
    elif isinstance(value, datetime.date):
        dt = datetime.datetime.combine(value, datetime.time.min).astimezone()
    else:
        dt = datetime.datetime.fromisoformat(str(value))
        if dt.tzinfo is None:
            dt = dt.astimezone()
    return format_instant(dt)


def _error_detail(response: requests.Response) -> Optional[str]:
    """Extract the server-supplied ``detail`` message from an error response."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    detail = data.get('detail')
    if detail is None:
        return None
    if isinstance(detail, str):
        return detail
    # Validation errors arrive as a list of {loc, msg, type}
    if isinstance(detail, list):
        msgs = [str(d.get('msg', d)) if isinstance(d, dict) else str(d) for d in detail]
        return '; '.join(msgs)
    return str(detail)


class RemoteGateway:
    """Typed wrapper around the remote service.

    Args:
        base_url: Root URL of the API, e.g. ``http://localhost:8000``.
        timeout: Per-request timeout in seconds.
        http: Optional pre-configured :class:`requests.Session`.
    """

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT,
                 http: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> 'RemoteGateway':
        """Build a gateway from a :class:`FinWise.settings.lib.SettingsAPI`."""
        return cls(settings.backend_url, timeout=settings.timeout)

    def close(self) -> None:
        self.http.close()

    def _request(self, method: str, path: str, credential: Optional[str] = None,
                 body: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Issue one request.

        Raises:
            status.NetworkError: On connection failures and timeouts.
        """
        url = f'{self.base_url}{path}'
        headers = {'Content-Type': 'application/json'}
        if credential:
            headers['Authorization'] = f'Bearer {credential}'

        logging.debug(f'{method} {url} (credential={mask(credential)})')
        try:
            response = self.http.request(method, url, json=body, headers=headers, timeout=self.timeout)
        except requests.Timeout as ex:
            raise status.NetworkError(f'{method} {path} timed out after {self.timeout}s.') from ex
        except requests.RequestException as ex:
            raise status.NetworkError(f'{method} {path} failed: {ex}') from ex

        logging.debug(f'{method} {url} -> {response.status_code}')
        return response

    def _read(self, path: str, credential: str) -> Any:
        """GET a bearer-authenticated resource and return its decoded JSON body.

        Raises:
            status.NetworkError: On transport failures.
            status.ServerError: On a non-success status or a body that is not JSON.
        """
        response = self._request('GET', path, credential=credential)
        if not response.ok:
            raise status.ServerError(
                _error_detail(response) or f'GET {path} returned HTTP {response.status_code}.',
                status_code=response.status_code
            )
        try:
            return response.json()
        except ValueError as ex:
            raise status.ServerError(f'GET {path} returned invalid JSON.',
                                     status_code=response.status_code) from ex

    def _write(self, path: str, credential: str, body: Dict[str, Any]) -> bool:
        response = self._request('POST', path, credential=credential, body=body)
        if not response.ok:
            raise status.ServerError(
                _error_detail(response) or f'POST {path} returned HTTP {response.status_code}.',
                status_code=response.status_code
            )
        return True

    def authenticate(self, mode: str, fields: Dict[str, Any]) -> str:
        """Log in or register, returning a fresh credential.

        Args:
            mode: ``'login'`` or ``'register'``.
            fields: ``email`` and ``password``, plus ``name`` when registering.

        Raises:
            ValueError: If mode is unknown.
            status.AuthError: If the server rejects the request.
            status.NetworkError: On transport failures.
        """
        mode = AuthMode(mode)
        body = {k: fields.get(k, '') for k in AUTH_FIELDS[mode]}

        response = self._request('POST', f'/auth/{mode}', body=body)
        if not response.ok:
            raise status.AuthError(_error_detail(response))

        try:
            token = response.json().get('access_token')
        except (ValueError, AttributeError):
            token = None
        if not token:
            raise status.AuthError('The server did not return an access token.')

        logging.info(f'Authenticated via "{mode}" (credential={mask(token)})')
        return token

    def fetch_identity(self, credential: str) -> Identity:
        """Resolve the user behind a credential.

        Raises:
            status.AuthError: On any failure, including transport failures.
        """
        try:
            response = self._request('GET', '/me', credential=credential)
        except status.NetworkError as ex:
            raise status.AuthError(ex.message) from ex

        if not response.ok:
            raise status.AuthError(_error_detail(response))

        try:
            user = response.json().get('user')
            if not isinstance(user, dict):
                raise TypeError('"user" is not an object')
            return Identity.from_dict(user)
        except (ValueError, TypeError, AttributeError) as ex:
            raise status.AuthError(f'Malformed identity response: {ex}') from ex

    def fetch_summary(self, credential: str) -> Summary:
        data = self._read('/stats/summary', credential)
        try:
            if not isinstance(data, dict):
                raise TypeError(f'expected an object, got {type(data).__name__}')
            return Summary.from_dict(data)
        except (KeyError, TypeError, ValueError) as ex:
            raise status.ServerError(f'Malformed summary response: {ex}') from ex

    def fetch_transactions(self, credential: str) -> List[Transaction]:
        data = self._read('/transactions', credential)
        try:
            return parse_list(data, Transaction)
        except (KeyError, TypeError, ValueError) as ex:
            raise status.ServerError(f'Malformed transactions response: {ex}') from ex

    def fetch_goals(self, credential: str) -> List[Goal]:
        data = self._read('/goals', credential)
        try:
            return parse_list(data, Goal)
        except (KeyError, TypeError, ValueError) as ex:
            raise status.ServerError(f'Malformed goals response: {ex}') from ex

    def create_transaction(self, credential: str, fields: Dict[str, Any]) -> bool:
        """Create a transaction. The date is sent as a UTC instant, today when omitted.

        Returns:
            True once the server accepted the transaction.

        Raises:
            status.ServerError: If the server rejects the transaction.
            status.NetworkError: On transport failures.
        """
        body = {
            'type': str(TransactionType(fields.get('type', TransactionType.Expense))),
            'amount': float(fields['amount']),
            'category': fields.get('category') or DEFAULT_CATEGORY,
            'date': _to_instant(fields.get('date') or datetime.date.today()),
            'note': fields.get('note', ''),
        }
        return self._write('/transactions', credential, body)

    def create_goal(self, credential: str, fields: Dict[str, Any]) -> bool:
        """Create a goal. A missing deadline is sent as null.

        Returns:
            True once the server accepted the goal.

        Raises:
            status.ServerError: If the server rejects the goal.
            status.NetworkError: On transport failures.
        """
        body = {
            'name': fields['name'],
            'target_amount': float(fields['target_amount']),
            'current_amount': float(fields.get('current_amount') or 0),
            'deadline': _to_instant(fields.get('deadline')),
        }
        return self._write('/goals', credential, body)


class AsyncWorker(QtCore.QThread):
    """
    Runs a blocking function once in a background thread.

    Signals:
        resultReady (object): Emitted with the function's result on success.
        errorOccurred (object): Emitted with the raised exception on failure.
    """
    resultReady = QtCore.Signal(object)
    errorOccurred = QtCore.Signal(object)

    def __init__(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs

        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.settled: bool = False

        self.on_result: Optional[Callable[[Any], None]] = None
        self.on_error: Optional[Callable[[BaseException], None]] = None

    def run(self) -> None:
        try:
            self.result = self.func(*self.args, **self.kwargs)
        except Exception as ex:
            self.error = ex
            self.settled = True
            self.errorOccurred.emit(ex)
            return
        self.settled = True
        self.resultReady.emit(self.result)


class WorkerGroup(QtCore.QObject):
    """Owns running workers and invokes their callbacks on this object's thread.

    Callbacks may be any callable, including :func:`functools.partial` objects;
    they always run on the thread the group lives in, never on the worker thread.
    """

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._workers: List[AsyncWorker] = []

    def __len__(self) -> int:
        return len(self._workers)

    def start(self, func: Callable[..., Any], *args: Any,
              on_result: Callable[[Any], None],
              on_error: Callable[[BaseException], None]) -> AsyncWorker:
        worker = AsyncWorker(func, *args)
        worker.on_result = on_result
        worker.on_error = on_error
        worker.resultReady.connect(self._dispatch)
        worker.errorOccurred.connect(self._dispatch)
        self._workers.append(worker)
        worker.start()
        return worker

    @QtCore.Slot(object)
    def _dispatch(self, _value: Any = None) -> None:
        for worker in [w for w in self._workers if w.settled]:
            self._workers.remove(worker)
            worker.wait()
            try:
                if worker.error is not None:
                    worker.on_error(worker.error)
                else:
                    worker.on_result(worker.result)
            finally:
                worker.deleteLater()

    def wait(self, msecs: int = -1) -> bool:
        """Block until every worker thread has exited; pending callbacks are not run.

        Returns:
            True if all threads exited within the deadline.
        """
        ok = True
        for worker in list(self._workers):
            ok = (worker.wait() if msecs < 0 else worker.wait(msecs)) and ok
        return ok
