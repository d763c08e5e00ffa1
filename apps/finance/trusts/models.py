from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q, Sum

from apps.core.academics.models import Course
from apps.core.fees.models import FinancialRecordModel
from apps.core.students.models import Student, StudentAcademicYear


class Trust(models.Model):
    name = models.CharField(max_length=255)
    details = models.TextField(blank=True)
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='trusts_created',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name', 'id']
        constraints = [
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name='trust_balance_non_negative',
            ),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'Trust name is required.'})

    def delete(self, *args, **kwargs):
        raise ValidationError('Trusts cannot be deleted; they are retained for audit.')

    def __str__(self):
        return self.name


class TrustTransactionQuerySet(models.QuerySet):
    def inflows(self):
        return self.filter(type=TrustTransaction.TYPE_INFLOW)

    def outflows(self):
        return self.filter(type=TrustTransaction.TYPE_OUTFLOW)

    def for_trust(self, trust):
        return self.filter(trust=trust)

    def between(self, date_from=None, date_to=None):
        queryset = self
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)
        return queryset

    def total_amount(self):
        return self.aggregate(total=Sum('amount')).get('total') or Decimal('0.00')

    def with_related(self):
        return self.select_related('trust', 'student', 'course', 'academic_year')


class TrustTransaction(FinancialRecordModel):
    TYPE_INFLOW = 'inflow'
    TYPE_OUTFLOW = 'outflow'
    TYPE_CHOICES = (
        (TYPE_INFLOW, 'Inflow'),
        (TYPE_OUTFLOW, 'Outflow'),
    )

    trust = models.ForeignKey(
        Trust,
        on_delete=models.PROTECT,
        related_name='transactions',
    )
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    notes = models.TextField(blank=True)

    student = models.ForeignKey(
        Student,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='trust_transactions',
    )
    academic_year = models.ForeignKey(
        StudentAcademicYear,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='trust_transactions',
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='trust_transactions',
    )
    academic_year_session = models.CharField(max_length=20, blank=True)
    fees_type = models.CharField(max_length=120, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='trust_transactions_created',
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = TrustTransactionQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name='trust_transaction_amount_positive',
            ),
            models.CheckConstraint(
                condition=(
                    Q(type='inflow', student__isnull=True, academic_year__isnull=True)
                    | (
                        Q(type='outflow', student__isnull=False, academic_year__isnull=False)
                        & ~Q(fees_type='')
                    )
                ),
                name='trust_transaction_shape',
            ),
        ]
        indexes = [
            models.Index(fields=['trust', '-created_at'], name='trust_tx_trust_created_idx'),
            models.Index(fields=['type', '-created_at'], name='trust_tx_type_created_idx'),
            models.Index(fields=['course', '-created_at'], name='trust_tx_course_created_idx'),
        ]

    @property
    def is_inflow(self):
        return self.type == self.TYPE_INFLOW

    @property
    def signed_amount(self):
        return self.amount if self.is_inflow else -self.amount

    def clean(self):
        super().clean()

        if self.amount is None or self.amount <= 0:
            raise ValidationError({'amount': 'Transaction amount must be greater than zero.'})

        if self.type == self.TYPE_INFLOW:
            if self.student_id or self.academic_year_id:
                raise ValidationError('Inflow transactions cannot reference a student.')
        elif self.type == self.TYPE_OUTFLOW:
            if not (self.student_id and self.academic_year_id):
                raise ValidationError('Outflow transactions require a student and an academic year.')
            if not self.fees_type:
                raise ValidationError({'fees_type': 'Fees type is required for outflows.'})
            if self.academic_year.student_id != self.student_id:
                raise ValidationError({'academic_year': 'Academic year does not belong to selected student.'})

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Trust transactions are immutable once recorded.')
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.type} {self.amount} ({self.trust_id})"
