from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.core.academics.models import Course
from apps.core.students.models import Student, StudentAcademicYear
from apps.finance.trusts.services import apply_inflow, create_trust

from .models import FeeType, StudentPayment
from .services import active_fee_type_names, resolve_fee_type


class FeesBaseTestCase(TestCase):
    def setUp(self):
        self.course = Course.objects.create(name='BMS', code='BMS')
        self.student = Student.objects.create(fullname='Sana Qureshi', roll_number='BMS-44')
        self.year = StudentAcademicYear.objects.create(
            student=self.student,
            course=self.course,
            academic_year_name='SY',
            academic_year_session='2025-26',
        )
        self.tuition = FeeType.objects.create(name='Tuition')
        self.exam = FeeType.objects.create(name='Exam')


class FeeTypeTests(FeesBaseTestCase):
    def test_active_fee_type_names_are_sorted(self):
        FeeType.objects.create(name='Library', is_active=False)
        self.assertEqual(active_fee_type_names(), ['Exam', 'Tuition'])

    def test_resolve_fee_type(self):
        self.assertEqual(resolve_fee_type(' Tuition '), self.tuition)

    def test_resolve_unknown_or_inactive_fee_type(self):
        with self.assertRaises(ValidationError):
            resolve_fee_type('Hostel')

        self.exam.delete()
        with self.assertRaises(ValidationError):
            resolve_fee_type('Exam')

    def test_delete_deactivates_fee_type(self):
        self.exam.delete()
        self.exam.refresh_from_db()
        self.assertFalse(self.exam.is_active)


class StudentPaymentTests(FeesBaseTestCase):
    def build_payment(self, **kwargs):
        params = {
            'student': self.student,
            'academic_year': self.year,
            'academic_year_session': '2025-26',
            'amount': Decimal('1500.00'),
            'fees_type': 'Tuition',
        }
        params.update(kwargs)
        return StudentPayment(**params)

    def test_cash_payment_is_valid(self):
        payment = self.build_payment()
        payment.full_clean()
        payment.save()
        self.assertEqual(payment.payment_method, StudentPayment.METHOD_CASH)

    def test_trust_payment_requires_trust(self):
        payment = self.build_payment(payment_method=StudentPayment.METHOD_TRUST)
        with self.assertRaises(ValidationError) as ctx:
            payment.full_clean()
        self.assertIn('trust', ctx.exception.message_dict)

        trust = create_trust(name='Memon Trust')
        apply_inflow(trust=trust, amount=5000)
        payment = self.build_payment(payment_method=StudentPayment.METHOD_TRUST, trust=trust, trust_name=trust.name)
        payment.full_clean()

    def test_amount_must_be_positive(self):
        with self.assertRaises(ValidationError):
            self.build_payment(amount=Decimal('0.00')).full_clean()

    def test_year_must_belong_to_student(self):
        other = Student.objects.create(fullname='Farhan Ansari')
        with self.assertRaises(ValidationError):
            self.build_payment(student=other).full_clean()

    def test_payments_cannot_be_deleted(self):
        payment = self.build_payment()
        payment.save()
        with self.assertRaises(ValidationError):
            payment.delete()
        self.assertTrue(StudentPayment.objects.filter(pk=payment.pk).exists())
