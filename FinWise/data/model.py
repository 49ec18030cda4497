"""Typed records for the FinWise client.

Server payloads are converted into frozen dataclasses at the gateway boundary.
Transactions and goals are created by the client but never mutated by it, and
the Summary is an opaque, server-computed snapshot replaced wholesale.
"""
import datetime
import enum
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_CATEGORY: str = 'General'


class TransactionType(enum.StrEnum):
    """Direction of a transaction."""
    Income = 'income'
    Expense = 'expense'


def parse_instant(value: Any) -> Optional[datetime.datetime]:
    """Parse an ISO-8601 instant sent by the server.

    Returns:
        An aware datetime (naive values are taken as UTC), or None for empty values.

    Raises:
        ValueError: If the value is not a valid ISO-8601 string.
    """
    if value in (None, ''):
        return None
    if isinstance(value, datetime.datetime):
        dt = value
    else:
        dt = datetime.datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


def format_instant(dt: datetime.datetime) -> str:
    """Format an aware datetime as a UTC instant string, e.g. ``2025-01-02T00:00:00.000Z``."""
    utc = dt.astimezone(datetime.timezone.utc)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f'{utc.microsecond // 1000:03d}Z'


def goal_percent(current_amount: float, target_amount: float) -> int:
    """Progress of a goal as a whole percentage in ``[0, 100]``.

    Rounds half up. A zero or negative target has no meaningful progress and yields 0.
    """
    if not target_amount or target_amount <= 0:
        return 0
    ratio = current_amount / target_amount * 100
    if math.isnan(ratio):
        return 0
    return max(0, min(100, math.floor(ratio + 0.5)))


@dataclass(frozen=True)
class Identity:
    """Resolved user profile of a credential."""
    name: str
    email: str
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Identity':
        data = dict(data)
        return cls(
            name=str(data.pop('name', '') or ''),
            email=str(data.pop('email', '') or ''),
            extra=data,
        )


@dataclass(frozen=True)
class Transaction:
    """A single income or expense entry. The id is assigned by the server."""
    id: str
    type: TransactionType
    amount: float
    category: str
    date: datetime.datetime
    note: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=str(data['id']),
            type=TransactionType(data['type']),
            amount=float(data['amount']),
            category=data.get('category') or DEFAULT_CATEGORY,
            date=parse_instant(data['date']),
            note=data.get('note') or None,
        )


@dataclass(frozen=True)
class Goal:
    """A savings goal. The id is assigned by the server."""
    id: str
    name: str
    target_amount: float
    current_amount: float = 0.0
    deadline: Optional[datetime.datetime] = None

    @property
    def percent(self) -> int:
        return goal_percent(self.current_amount, self.target_amount)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Goal':
        return cls(
            id=str(data['id']),
            name=str(data['name']),
            target_amount=float(data['target_amount']),
            current_amount=float(data.get('current_amount') or 0.0),
            deadline=parse_instant(data.get('deadline')),
        )


@dataclass(frozen=True)
class MonthlyTotal:
    month: str
    income: float
    expense: float


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: float


@dataclass(frozen=True)
class Summary:
    """Server-computed aggregate: totals, monthly trend and category breakdown."""
    income: float = 0.0
    expenses: float = 0.0
    savings: float = 0.0
    monthly: Tuple[MonthlyTotal, ...] = ()
    by_category: Tuple[CategoryTotal, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Summary':
        return cls(
            income=float(data.get('income', 0) or 0),
            expenses=float(data.get('expenses', 0) or 0),
            savings=float(data.get('savings', 0) or 0),
            monthly=tuple(
                MonthlyTotal(
                    month=str(m['month']),
                    income=float(m.get('income', 0) or 0),
                    expense=float(m.get('expense', 0) or 0),
                )
                for m in data.get('monthly') or []
            ),
            by_category=tuple(
                CategoryTotal(category=str(c['category']), total=float(c.get('total', 0) or 0))
                for c in data.get('by_category') or []
            ),
        )


@dataclass(frozen=True)
class Snapshot:
    """Summary, transactions and goals loaded together by one refresh.

    Attributes:
        token: The monotonic load token that produced this snapshot, 0 for the empty snapshot.
    """
    summary: Summary
    transactions: Tuple[Transaction, ...]
    goals: Tuple[Goal, ...]
    token: int = field(default=0, compare=False)

    @classmethod
    def empty(cls) -> 'Snapshot':
        return cls(summary=Summary(), transactions=(), goals=())


def parse_list(items: Any, record_type) -> List[Any]:
    """Convert a JSON array into a list of records.

    Raises:
        TypeError: If items is not a list.
    """
    if not isinstance(items, list):
        raise TypeError(f'Expected a list of {record_type.__name__} records, got {type(items).__name__}.')
    return [record_type.from_dict(item) for item in items]
