from django.core.exceptions import ValidationError
from django.utils import timezone

from .models import FeeType, StudentPayment


def active_fee_type_names():
    return list(FeeType.objects.filter(is_active=True).order_by('name').values_list('name', flat=True))


def resolve_fee_type(name):
    name = (name or '').strip()
    fee_type = FeeType.objects.filter(name=name, is_active=True).first()
    if fee_type is None:
        raise ValidationError(f"Fees type '{name}' is not configured.")
    return fee_type


def book_trust_payment(*, trust_transaction, received_by=None):
    """Mirror a trust outflow into the student's payment history.

    Must run inside the caller's atomic block so the payment and the
    ledger entry commit together.
    """
    trust = trust_transaction.trust
    payment = StudentPayment(
        student=trust_transaction.student,
        academic_year=trust_transaction.academic_year,
        academic_year_session=trust_transaction.academic_year_session,
        amount=trust_transaction.amount,
        payment_method=StudentPayment.METHOD_TRUST,
        fees_type=trust_transaction.fees_type,
        payment_date=timezone.localdate(trust_transaction.created_at),
        trust=trust,
        trust_name=trust.name[:255],
        trust_transaction=trust_transaction,
        notes=trust_transaction.notes,
        received_by=received_by,
    )
    payment.full_clean()
    payment.save()
    return payment
