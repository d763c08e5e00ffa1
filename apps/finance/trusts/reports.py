"""
Read-only analytics over the trust transaction log.

Everything below the query boundary (``load_transaction_rows``) is a pure
function over ``TransactionRow`` records, so summaries can be recomputed on
every request and tested without a database.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from django.conf import settings
from django.utils import timezone

from .models import TrustTransaction


INFLOW = TrustTransaction.TYPE_INFLOW
OUTFLOW = TrustTransaction.TYPE_OUTFLOW
ZERO = Decimal('0.00')


@dataclass(frozen=True)
class TransactionRow:
    id: int
    trust_id: int
    trust_name: str
    type: str
    amount: Decimal
    created_at: datetime
    notes: str = ''
    student_id: Optional[int] = None
    student_name: str = ''
    roll_number: str = ''
    course_id: Optional[int] = None
    course_name: str = ''
    academic_year_id: Optional[int] = None
    academic_year_name: str = ''
    academic_year_session: str = ''
    fees_type: str = ''

    @classmethod
    def from_model(cls, entry: TrustTransaction) -> 'TransactionRow':
        student = entry.student
        course = entry.course
        year = entry.academic_year
        return cls(
            id=entry.pk,
            trust_id=entry.trust_id,
            trust_name=entry.trust.name,
            type=entry.type,
            amount=entry.amount,
            created_at=entry.created_at,
            notes=entry.notes,
            student_id=entry.student_id,
            student_name=student.fullname if student else '',
            roll_number=(student.roll_number or '') if student else '',
            course_id=entry.course_id,
            course_name=course.name if course else '',
            academic_year_id=entry.academic_year_id,
            academic_year_name=year.academic_year_name if year else '',
            academic_year_session=entry.academic_year_session,
            fees_type=entry.fees_type,
        )

    @property
    def is_inflow(self) -> bool:
        return self.type == INFLOW

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_inflow else -self.amount

    @property
    def local_date(self) -> date:
        return _local_date(self.created_at)


@dataclass(frozen=True)
class TransactionFilters:
    trust_id: Optional[int] = None
    course_id: Optional[int] = None
    type: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'search', (self.search or '').strip())
        if self.type not in (None, INFLOW, OUTFLOW):
            raise ValueError(f"Unknown transaction type: {self.type!r}")
        # Datetimes collapse to their local day; date_to then covers the whole day.
        for field_name in ('date_from', 'date_to'):
            value = getattr(self, field_name)
            if isinstance(value, datetime):
                object.__setattr__(self, field_name, _local_date(value))

    def matches(self, row: TransactionRow) -> bool:
        if self.trust_id is not None and row.trust_id != self.trust_id:
            return False
        if self.course_id is not None and row.course_id != self.course_id:
            return False
        if self.type is not None and row.type != self.type:
            return False
        if self.date_from is not None and row.local_date < self.date_from:
            return False
        if self.date_to is not None and row.local_date > self.date_to:
            return False
        if self.search and not _row_mentions(row, self.search):
            return False
        return True


@dataclass(frozen=True)
class CourseSummary:
    course_id: int
    course_name: str
    total_outflow: Decimal
    transaction_count: int


@dataclass(frozen=True)
class TrustSummary:
    trust_id: int
    trust_name: str
    total_inflow: Decimal
    total_outflow: Decimal

    @property
    def net(self) -> Decimal:
        return self.total_inflow - self.total_outflow


@dataclass(frozen=True)
class StatementRow:
    row: TransactionRow
    balance: Decimal


NO_FILTERS = TransactionFilters()


def _local_date(value: datetime) -> date:
    if timezone.is_aware(value):
        return timezone.localtime(value).date()
    return value.date()


def _row_mentions(row: TransactionRow, text: str) -> bool:
    needle = text.casefold()
    return any(needle in value.casefold() for value in (row.student_name, row.roll_number, row.notes))


def _newest_first(rows: Iterable[TransactionRow]) -> List[TransactionRow]:
    return sorted(rows, key=lambda row: (row.created_at, row.id), reverse=True)


def filter_transactions(
    rows: Iterable[TransactionRow],
    filters: Optional[TransactionFilters] = None,
) -> List[TransactionRow]:
    filters = filters or NO_FILTERS
    return _newest_first(row for row in rows if filters.matches(row))


def summarize_by_course(
    rows: Iterable[TransactionRow],
    filters: Optional[TransactionFilters] = None,
) -> List[CourseSummary]:
    totals = {}
    for row in filter_transactions(rows, filters):
        # Inflows and outflows without a course never count towards a course.
        if row.type != OUTFLOW or row.course_id is None:
            continue
        name, total, count = totals.get(row.course_id, (row.course_name, ZERO, 0))
        totals[row.course_id] = (name, total + row.amount, count + 1)

    summaries = [
        CourseSummary(course_id=course_id, course_name=name, total_outflow=total, transaction_count=count)
        for course_id, (name, total, count) in totals.items()
    ]
    return sorted(summaries, key=lambda item: (item.course_name.lower(), item.course_id))


def detail_for_course(
    rows: Iterable[TransactionRow],
    course_id: int,
    filters: Optional[TransactionFilters] = None,
) -> List[TransactionRow]:
    filters = replace(filters or NO_FILTERS, course_id=course_id)
    return filter_transactions(rows, filters)


def summarize_by_trust(
    rows: Iterable[TransactionRow],
    filters: Optional[TransactionFilters] = None,
) -> List[TrustSummary]:
    totals = {}
    for row in filter_transactions(rows, filters):
        name, inflow, outflow = totals.get(row.trust_id, (row.trust_name, ZERO, ZERO))
        if row.is_inflow:
            inflow += row.amount
        else:
            outflow += row.amount
        totals[row.trust_id] = (name, inflow, outflow)

    summaries = [
        TrustSummary(trust_id=trust_id, trust_name=name, total_inflow=inflow, total_outflow=outflow)
        for trust_id, (name, inflow, outflow) in totals.items()
    ]
    return sorted(summaries, key=lambda item: (item.trust_name.lower(), item.trust_id))


def running_balance(rows: Iterable[TransactionRow], opening_balance: Decimal = ZERO) -> List[StatementRow]:
    """Chronological statement with the balance after each row."""
    balance = opening_balance
    statement = []
    for row in sorted(rows, key=lambda item: (item.created_at, item.id)):
        balance += row.signed_amount
        statement.append(StatementRow(row=row, balance=balance))
    return statement


def load_transaction_rows(date_from=None, date_to=None, trust=None, limit=None) -> List[TransactionRow]:
    queryset = TrustTransaction.objects.with_related().between(date_from, date_to)
    if trust is not None:
        queryset = queryset.for_trust(trust)

    limit = limit or settings.TRUST_REPORT_ROW_LIMIT
    entries = queryset.order_by('-created_at', '-id')[:limit]
    return [TransactionRow.from_model(entry) for entry in entries]
