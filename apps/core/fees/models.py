from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.core.students.models import Student, StudentAcademicYear


class FinancialRecordModel(models.Model):
    class Meta:
        abstract = True

    def delete(self, *args, **kwargs):
        raise ValidationError('Financial records cannot be deleted.')


class FeeType(models.Model):
    name = models.CharField(max_length=120)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name', 'id']
        constraints = [
            models.UniqueConstraint(fields=['name'], name='unique_fee_type_name'),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'Fee type name is required.'})

    def delete(self, *args, **kwargs):
        if self.is_active:
            self.is_active = False
            self.save(update_fields=['is_active'])

    def __str__(self):
        return self.name


class StudentPayment(FinancialRecordModel):
    METHOD_CASH = 'cash'
    METHOD_CHEQUE = 'cheque'
    METHOD_ONLINE = 'online'
    METHOD_TRUST = 'trust'
    PAYMENT_METHOD_CHOICES = (
        (METHOD_CASH, 'Cash'),
        (METHOD_CHEQUE, 'Cheque'),
        (METHOD_ONLINE, 'Online'),
        (METHOD_TRUST, 'Trust'),
    )

    student = models.ForeignKey(
        Student,
        on_delete=models.PROTECT,
        related_name='payments',
    )
    academic_year = models.ForeignKey(
        StudentAcademicYear,
        on_delete=models.PROTECT,
        related_name='payments',
    )
    academic_year_session = models.CharField(max_length=20)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default=METHOD_CASH)
    fees_type = models.CharField(max_length=120)
    payment_date = models.DateField(default=timezone.localdate)

    bank_name = models.CharField(max_length=120, blank=True)
    cheque_number = models.CharField(max_length=40, blank=True)
    transaction_reference = models.CharField(max_length=120, blank=True)

    trust = models.ForeignKey(
        'trusts.Trust',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='student_payments',
    )
    trust_name = models.CharField(max_length=255, blank=True)
    trust_transaction = models.OneToOneField(
        'trusts.TrustTransaction',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='student_payment',
    )

    notes = models.TextField(blank=True)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_student_payments',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-payment_date', '-id']
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name='student_payment_amount_positive',
            ),
            models.CheckConstraint(
                condition=~Q(payment_method='trust') | Q(trust__isnull=False),
                name='trust_payment_has_trust',
            ),
        ]
        indexes = [
            models.Index(fields=['student', 'payment_date'], name='payment_student_date_idx'),
            models.Index(fields=['academic_year_session'], name='payment_session_idx'),
        ]

    def clean(self):
        super().clean()

        if self.amount is None or self.amount <= 0:
            raise ValidationError({'amount': 'Payment amount must be greater than zero.'})
        if self.academic_year_id and self.student_id and self.academic_year.student_id != self.student_id:
            raise ValidationError({'academic_year': 'Academic year does not belong to selected student.'})
        if self.payment_method == self.METHOD_TRUST and not self.trust_id:
            raise ValidationError({'trust': 'Trust is required for trust payments.'})

    def __str__(self):
        return f"{self.student_id} {self.amount} via {self.payment_method}"
