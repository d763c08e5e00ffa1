from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from apps.core.fees.services import book_trust_payment, resolve_fee_type
from apps.core.students.models import Student, StudentAcademicYear

from .exceptions import (
    AcademicYearNotFound,
    BalanceLimitExceeded,
    InsufficientBalance,
    InvalidAmount,
    LedgerValidationError,
    MissingRequiredField,
    StorageFailure,
    StudentNotFound,
    TrustNotFound,
)
from .models import Trust, TrustTransaction


logger = logging.getLogger(__name__)

MAX_AMOUNT = Decimal('9999999999.99')


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def _clean_amount(amount) -> Decimal:
    if amount is None or isinstance(amount, bool):
        raise InvalidAmount(amount)
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(amount) from None
    if not value.is_finite():
        raise InvalidAmount(amount)

    value = _quantize(value)
    if value <= 0 or value > MAX_AMOUNT:
        raise InvalidAmount(amount)
    return value


def _pk(value):
    return getattr(value, 'pk', value)


def _trust_pk(trust):
    if isinstance(trust, Trust):
        return trust.pk
    return get_trust(trust).pk


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


# Ledger store

def get_trust(trust_id) -> Trust:
    try:
        return Trust.objects.get(pk=_pk(trust_id))
    except (Trust.DoesNotExist, ValueError, TypeError):
        raise TrustNotFound(_pk(trust_id)) from None


def list_trusts():
    return Trust.objects.order_by('name', 'id')


def create_trust(*, name, details='', created_by=None) -> Trust:
    if _is_blank(name):
        raise MissingRequiredField('name')

    trust = Trust(
        name=name.strip(),
        details=(details or '').strip(),
        balance=Decimal('0.00'),
        created_by=created_by,
    )
    trust.full_clean()
    trust.save()
    logger.info('Trust created: id=%s name=%r', trust.pk, trust.name)
    return trust


def _adjust_balance(trust_id, delta: Decimal) -> Trust:
    """Apply ``delta`` to the trust balance as one conditional UPDATE.

    Debits only match while ``balance >= -delta`` and credits only while the
    result stays within ``MAX_AMOUNT``, so the check and the write cannot be
    split by a concurrent writer. Must be called inside the caller's atomic
    block.
    """
    rows = Trust.objects.filter(pk=trust_id)
    if delta < 0:
        rows = rows.filter(balance__gte=-delta)
    else:
        rows = rows.filter(balance__lte=MAX_AMOUNT - delta)

    updated = rows.update(balance=F('balance') + delta, updated_at=timezone.now())
    if not updated:
        available = Trust.objects.filter(pk=trust_id).values_list('balance', flat=True).first()
        if available is None:
            raise TrustNotFound(trust_id)
        if delta > 0:
            raise BalanceLimitExceeded(balance=available, amount=delta, limit=MAX_AMOUNT)
        raise InsufficientBalance(available=available, requested=-delta)

    return Trust.objects.get(pk=trust_id)


# Transaction recorder

def record_transaction(
    *,
    trust: Trust,
    type: str,
    amount: Decimal,
    notes='',
    student=None,
    academic_year=None,
    fees_type='',
    created_by=None,
) -> TrustTransaction:
    """Append one immutable ledger row. The id and timestamp are assigned here."""
    entry = TrustTransaction(
        trust=trust,
        type=type,
        amount=amount,
        notes=(notes or '').strip(),
        student=student,
        academic_year=academic_year,
        course=academic_year.course if academic_year else None,
        academic_year_session=academic_year.academic_year_session if academic_year else '',
        fees_type=fees_type or '',
        created_by=created_by,
    )
    entry.full_clean()
    entry.save()
    return entry


# Balance invariant enforcer

def apply_inflow(*, trust, amount, notes='', created_by=None) -> TrustTransaction:
    if _is_blank(_pk(trust)):
        raise MissingRequiredField('trust')
    amount = _clean_amount(amount)
    trust_id = _trust_pk(trust)

    try:
        with transaction.atomic():
            updated_trust = _adjust_balance(trust_id, amount)
            entry = record_transaction(
                trust=updated_trust,
                type=TrustTransaction.TYPE_INFLOW,
                amount=amount,
                notes=notes,
                created_by=created_by,
            )
    except BalanceLimitExceeded:
        logger.warning('Trust inflow rejected: trust=%s amount=%s exceeds balance limit', trust_id, amount)
        raise
    except DatabaseError as exc:
        logger.exception('Inflow to trust %s failed at the database', trust_id)
        raise StorageFailure(f"Could not record inflow for trust {trust_id}.") from exc

    if isinstance(trust, Trust):
        trust.balance = updated_trust.balance

    logger.info(
        'Trust inflow applied: trust=%s amount=%s balance=%s tx=%s',
        trust_id, amount, updated_trust.balance, entry.pk,
    )
    return entry


def _resolve_student(student):
    if isinstance(student, Student):
        return student
    try:
        return Student.objects.get(pk=student)
    except (Student.DoesNotExist, ValueError, TypeError):
        raise StudentNotFound(student) from None


def _resolve_academic_year(academic_year):
    if isinstance(academic_year, StudentAcademicYear):
        return academic_year
    try:
        return StudentAcademicYear.objects.select_related('course').get(pk=academic_year)
    except (StudentAcademicYear.DoesNotExist, ValueError, TypeError):
        raise AcademicYearNotFound(academic_year) from None


def apply_outflow(
    *,
    trust,
    student,
    academic_year,
    amount,
    fees_type,
    notes='',
    created_by=None,
) -> TrustTransaction:
    required = (
        ('trust', _pk(trust)),
        ('student', _pk(student)),
        ('academic_year', _pk(academic_year)),
        ('fees_type', fees_type),
    )
    for field_name, value in required:
        if _is_blank(value):
            raise MissingRequiredField(field_name)

    amount = _clean_amount(amount)
    trust_id = _trust_pk(trust)
    student = _resolve_student(student)
    academic_year = _resolve_academic_year(academic_year)
    if academic_year.student_id != student.pk:
        raise LedgerValidationError('Academic year does not belong to selected student.')
    fee_type = resolve_fee_type(fees_type)

    try:
        with transaction.atomic():
            updated_trust = _adjust_balance(trust_id, -amount)
            entry = record_transaction(
                trust=updated_trust,
                type=TrustTransaction.TYPE_OUTFLOW,
                amount=amount,
                notes=notes,
                student=student,
                academic_year=academic_year,
                fees_type=fee_type.name,
                created_by=created_by,
            )
            book_trust_payment(trust_transaction=entry, received_by=created_by)
    except InsufficientBalance as exc:
        logger.warning(
            'Trust outflow rejected: trust=%s student=%s amount=%s available=%s',
            trust_id, student.pk, amount, exc.available,
        )
        raise
    except DatabaseError as exc:
        logger.exception('Outflow from trust %s failed at the database', trust_id)
        raise StorageFailure(f"Could not record outflow for trust {trust_id}.") from exc

    if isinstance(trust, Trust):
        trust.balance = updated_trust.balance

    logger.info(
        'Trust outflow applied: trust=%s student=%s year=%s amount=%s balance=%s tx=%s',
        trust_id, student.pk, academic_year.pk, amount, updated_trust.balance, entry.pk,
    )
    return entry


# Procedure-style entry points used by the trust screens

def add_trust_inflow(trust_id, amount, notes='', created_by=None) -> TrustTransaction:
    return apply_inflow(trust=trust_id, amount=amount, notes=notes, created_by=created_by)


def assign_trust_fund_to_student(
    trust_id,
    student_id,
    academic_year_id,
    amount,
    notes,
    academic_year_session,
    trust_name,
    fees_type,
    created_by=None,
) -> TrustTransaction:
    """Outflow with the labels the form displayed, re-checked against the database."""
    if not _is_blank(academic_year_id) and not _is_blank(academic_year_session):
        academic_year = _resolve_academic_year(academic_year_id)
        if academic_year.academic_year_session != academic_year_session.strip():
            raise ValidationError('Selected academic year session is out of date. Reload and try again.')
    if not _is_blank(trust_id) and not _is_blank(trust_name):
        if get_trust(trust_id).name != trust_name.strip():
            raise ValidationError('Selected trust has changed. Reload and try again.')

    return apply_outflow(
        trust=trust_id,
        student=student_id,
        academic_year=academic_year_id,
        amount=amount,
        fees_type=fees_type,
        notes=notes,
        created_by=created_by,
    )


def reconcile_trust(trust: Trust):
    """Compare the stored balance with the balance implied by the ledger."""
    trust.refresh_from_db(fields=['balance'])
    rows = TrustTransaction.objects.for_trust(trust)
    expected = rows.inflows().total_amount() - rows.outflows().total_amount()
    return {
        'trust': trust,
        'expected': _quantize(expected),
        'actual': trust.balance,
        'matches': _quantize(expected) == trust.balance,
    }
