import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import CommandError, call_command
from django.db import DatabaseError, IntegrityError, connection, transaction
from django.test import SimpleTestCase, TestCase, TransactionTestCase, skipUnlessDBFeature
from django.urls import reverse
from django.utils import timezone

from apps.core.academics.models import Course
from apps.core.fees.models import FeeType, StudentPayment
from apps.core.students.models import Student, StudentAcademicYear
from apps.core.users.models import AuditLog

from .exceptions import (
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
from .reports import (
    TransactionFilters,
    TransactionRow,
    detail_for_course,
    filter_transactions,
    load_transaction_rows,
    running_balance,
    summarize_by_course,
    summarize_by_trust,
)
from .services import (
    add_trust_inflow,
    apply_inflow,
    apply_outflow,
    assign_trust_fund_to_student,
    create_trust,
    get_trust,
    reconcile_trust,
)


class TrustBaseTestCase(TestCase):
    def setUp(self):
        self.accountant = get_user_model().objects.create_user(
            username='trust_accountant',
            password='pass12345',
            role='accountant',
        )
        self.course = Course.objects.create(name='B.Com', code='BCOM')
        self.student = Student.objects.create(fullname='Ayesha Khan', roll_number='BCOM-101')
        self.year = StudentAcademicYear.objects.create(
            student=self.student,
            course=self.course,
            academic_year_name='FY',
            academic_year_session='2025-26',
        )
        self.other_student = Student.objects.create(fullname='Rahul Patil', roll_number='BSC-207')
        self.other_year = StudentAcademicYear.objects.create(
            student=self.other_student,
            course=None,
            academic_year_name='SY',
            academic_year_session='2025-26',
        )
        FeeType.objects.create(name='Tuition')
        self.trust = create_trust(name='Alumni Fund', details='Old students association')

    def outflow(self, amount, **kwargs):
        params = {
            'trust': self.trust,
            'student': self.student,
            'academic_year': self.year,
            'amount': amount,
            'fees_type': 'Tuition',
            'created_by': self.accountant,
        }
        params.update(kwargs)
        return apply_outflow(**params)


class TrustStoreTests(TrustBaseTestCase):
    def test_create_trust_starts_at_zero(self):
        self.assertEqual(self.trust.balance, Decimal('0.00'))
        self.assertEqual(get_trust(self.trust.pk), self.trust)

    def test_create_trust_requires_name(self):
        with self.assertRaises(MissingRequiredField):
            create_trust(name='   ')

    def test_duplicate_trust_names_are_allowed(self):
        duplicate = create_trust(name='Alumni Fund')
        self.assertNotEqual(duplicate.pk, self.trust.pk)
        self.assertEqual(Trust.objects.filter(name='Alumni Fund').count(), 2)

    def test_trusts_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            self.trust.delete()
        self.assertTrue(Trust.objects.filter(pk=self.trust.pk).exists())

    def test_get_trust_unknown_id(self):
        with self.assertRaises(TrustNotFound):
            get_trust(999999)
        with self.assertRaises(TrustNotFound):
            get_trust('not-a-number')

    def test_database_rejects_negative_balance(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Trust.objects.filter(pk=self.trust.pk).update(balance=Decimal('-1.00'))


class InflowTests(TrustBaseTestCase):
    def test_inflow_increases_balance_and_records_transaction(self):
        entry = apply_inflow(trust=self.trust, amount='5000', notes='Annual donation', created_by=self.accountant)

        self.trust.refresh_from_db()
        self.assertEqual(self.trust.balance, Decimal('5000.00'))
        self.assertEqual(TrustTransaction.objects.count(), 1)
        self.assertEqual(entry.type, TrustTransaction.TYPE_INFLOW)
        self.assertEqual(entry.amount, Decimal('5000.00'))
        self.assertIsNotNone(entry.pk)
        self.assertIsNotNone(entry.created_at)
        self.assertIsNone(entry.student_id)
        self.assertIsNone(entry.academic_year_id)

    def test_inflow_refreshes_passed_instance(self):
        apply_inflow(trust=self.trust, amount=Decimal('250.50'))
        self.assertEqual(self.trust.balance, Decimal('250.50'))

    def test_inflow_accepts_trust_id(self):
        add_trust_inflow(self.trust.pk, 100, 'Cash donation')
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('100.00'))

    def test_invalid_amounts_are_rejected(self):
        for amount in (0, -5, '', 'abc', None, Decimal('NaN'), 'Infinity', True, '0.001'):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidAmount):
                    apply_inflow(trust=self.trust, amount=amount)
        self.assertFalse(TrustTransaction.objects.exists())
        self.trust.refresh_from_db()
        self.assertEqual(self.trust.balance, Decimal('0.00'))

    def test_unknown_trust(self):
        with self.assertRaises(TrustNotFound):
            apply_inflow(trust=999999, amount=10)

    def test_missing_trust(self):
        with self.assertRaises(MissingRequiredField):
            apply_inflow(trust=None, amount=10)

    def test_storage_failure_rolls_back_balance(self):
        with mock.patch(
            'apps.finance.trusts.services.record_transaction',
            side_effect=DatabaseError('connection lost'),
        ):
            with self.assertRaises(StorageFailure):
                apply_inflow(trust=self.trust.pk, amount=500)

        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('0.00'))
        self.assertFalse(TrustTransaction.objects.exists())


    def test_inflow_cannot_push_balance_past_limit(self):
        apply_inflow(trust=self.trust, amount='9999999999.99')

        with self.assertRaises(BalanceLimitExceeded) as ctx:
            apply_inflow(trust=self.trust, amount='0.01')

        self.assertIsInstance(ctx.exception, LedgerValidationError)
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('9999999999.99'))
        self.assertEqual(TrustTransaction.objects.count(), 1)

    def test_inflow_up_to_limit_is_accepted(self):
        Trust.objects.filter(pk=self.trust.pk).update(balance=Decimal('9999999000.00'))
        apply_inflow(trust=self.trust, amount='999.99')
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('9999999999.99'))


class OutflowTests(TrustBaseTestCase):
    def setUp(self):
        super().setUp()
        apply_inflow(trust=self.trust, amount=5000)

    def test_outflow_decreases_balance_and_links_student(self):
        entry = self.outflow(2000, notes='Merit scholarship')

        self.trust.refresh_from_db()
        self.assertEqual(self.trust.balance, Decimal('3000.00'))
        self.assertEqual(entry.type, TrustTransaction.TYPE_OUTFLOW)
        self.assertEqual(entry.student, self.student)
        self.assertEqual(entry.academic_year, self.year)
        self.assertEqual(entry.course, self.course)
        self.assertEqual(entry.academic_year_session, '2025-26')
        self.assertEqual(entry.fees_type, 'Tuition')

    def test_outflow_books_trust_payment_for_student(self):
        entry = self.outflow(1500)

        payment = StudentPayment.objects.get(trust_transaction=entry)
        self.assertEqual(payment.payment_method, StudentPayment.METHOD_TRUST)
        self.assertEqual(payment.student, self.student)
        self.assertEqual(payment.academic_year, self.year)
        self.assertEqual(payment.amount, Decimal('1500.00'))
        self.assertEqual(payment.trust, self.trust)
        self.assertEqual(payment.trust_name, 'Alumni Fund')
        self.assertEqual(payment.fees_type, 'Tuition')

    def test_outflow_exceeding_balance_is_rejected_without_side_effects(self):
        self.outflow(2000)

        with self.assertRaises(InsufficientBalance) as ctx:
            self.outflow(5000)

        self.assertEqual(ctx.exception.available, Decimal('3000.00'))
        self.assertEqual(ctx.exception.shortfall, Decimal('2000.00'))
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('3000.00'))
        self.assertEqual(TrustTransaction.objects.count(), 2)
        self.assertEqual(StudentPayment.objects.count(), 1)

    def test_outflow_may_drain_balance_to_zero(self):
        self.outflow(5000)
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('0.00'))

    def test_stale_instance_cannot_overdraw(self):
        Trust.objects.filter(pk=self.trust.pk).update(balance=Decimal('100.00'))
        first_view = Trust.objects.get(pk=self.trust.pk)
        second_view = Trust.objects.get(pk=self.trust.pk)

        self.outflow(60, trust=first_view)
        with self.assertRaises(InsufficientBalance):
            self.outflow(60, trust=second_view)

        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('40.00'))

    def test_required_fields(self):
        cases = (
            ('trust', {'trust': None}),
            ('student', {'student': None}),
            ('academic_year', {'academic_year': ''}),
            ('fees_type', {'fees_type': '  '}),
        )
        for field_name, override in cases:
            with self.subTest(field=field_name):
                with self.assertRaises(MissingRequiredField) as ctx:
                    self.outflow(100, **override)
                self.assertEqual(ctx.exception.field_name, field_name)

    def test_academic_year_must_belong_to_student(self):
        with self.assertRaises(LedgerValidationError):
            self.outflow(100, academic_year=self.other_year)

    def test_unknown_fee_type(self):
        with self.assertRaises(ValidationError):
            self.outflow(100, fees_type='Hostel')
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('5000.00'))

    def test_unknown_student(self):
        with self.assertRaises(StudentNotFound):
            self.outflow(100, student=999999)

    def test_procedure_wrapper_checks_displayed_labels(self):
        with self.assertRaises(ValidationError):
            assign_trust_fund_to_student(
                self.trust.pk, self.student.pk, self.year.pk, 100, '',
                '2024-25', 'Alumni Fund', 'Tuition',
            )
        with self.assertRaises(ValidationError):
            assign_trust_fund_to_student(
                self.trust.pk, self.student.pk, self.year.pk, 100, '',
                '2025-26', 'Renamed Fund', 'Tuition',
            )

        entry = assign_trust_fund_to_student(
            self.trust.pk, self.student.pk, self.year.pk, 100, 'Bursary',
            '2025-26', 'Alumni Fund', 'Tuition',
        )
        self.assertEqual(entry.amount, Decimal('100.00'))
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('4900.00'))


class LedgerInvariantTests(TrustBaseTestCase):
    def test_balance_matches_ledger_after_mixed_activity(self):
        apply_inflow(trust=self.trust, amount=1000)
        self.outflow(300)
        apply_inflow(trust=self.trust, amount='250.25')
        self.outflow('450.25')
        with self.assertRaises(InsufficientBalance):
            self.outflow(10000)

        result = reconcile_trust(self.trust)
        self.assertTrue(result['matches'])
        self.assertEqual(result['actual'], Decimal('500.00'))

        for entry in TrustTransaction.objects.all():
            self.assertGreater(entry.amount, 0)
            if entry.type == TrustTransaction.TYPE_OUTFLOW:
                self.assertIsNotNone(entry.student_id)
                self.assertIsNotNone(entry.academic_year_id)
            else:
                self.assertIsNone(entry.student_id)
                self.assertIsNone(entry.academic_year_id)

    def test_reconcile_detects_tampering(self):
        apply_inflow(trust=self.trust, amount=1000)
        Trust.objects.filter(pk=self.trust.pk).update(balance=Decimal('900.00'))

        result = reconcile_trust(self.trust)
        self.assertFalse(result['matches'])
        self.assertEqual(result['expected'], Decimal('1000.00'))

    def test_transactions_are_immutable(self):
        entry = apply_inflow(trust=self.trust, amount=10)

        entry.amount = Decimal('99.00')
        with self.assertRaises(ValidationError):
            entry.save()
        with self.assertRaises(ValidationError):
            entry.delete()
        self.assertEqual(TrustTransaction.objects.get(pk=entry.pk).amount, Decimal('10.00'))

    def test_database_rejects_malformed_transactions(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                TrustTransaction.objects.create(trust=self.trust, type='inflow', amount=Decimal('0.00'))
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                TrustTransaction.objects.create(trust=self.trust, type='outflow', amount=Decimal('5.00'))


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentOutflowTests(TransactionTestCase):
    def setUp(self):
        self.course = Course.objects.create(name='B.Sc IT')
        self.student = Student.objects.create(fullname='Imran Shaikh', roll_number='BSCIT-9')
        self.year = StudentAcademicYear.objects.create(
            student=self.student,
            course=self.course,
            academic_year_name='TY',
            academic_year_session='2025-26',
        )
        FeeType.objects.create(name='Tuition')
        self.trust = create_trust(name='Concurrency Fund')
        apply_inflow(trust=self.trust, amount=100)

    def test_only_one_of_two_competing_outflows_succeeds(self):
        barrier = threading.Barrier(2)
        outcomes = []

        def worker():
            try:
                barrier.wait()
                apply_outflow(
                    trust=self.trust.pk,
                    student=self.student.pk,
                    academic_year=self.year.pk,
                    amount=60,
                    fees_type='Tuition',
                )
                outcomes.append('ok')
            except InsufficientBalance:
                outcomes.append('insufficient')
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes), ['insufficient', 'ok'])
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('40.00'))
        self.assertEqual(TrustTransaction.objects.outflows().count(), 1)


def _row(pk, type, amount, created_at, trust_id=1, course_id=None, course_name='', student_id=None):
    if type == 'outflow' and student_id is None:
        student_id = 1
    return TransactionRow(
        id=pk,
        trust_id=trust_id,
        trust_name=f'Trust {trust_id}',
        type=type,
        amount=Decimal(amount),
        created_at=created_at,
        student_id=student_id,
        course_id=course_id,
        course_name=course_name,
    )


class ReportTests(SimpleTestCase):
    def setUp(self):
        self.day = date(2025, 6, 30)
        start = timezone.make_aware(datetime(2025, 6, 30, 0, 0))
        self.rows = [
            _row(1, 'inflow', '5000.00', start, trust_id=1),
            _row(2, 'outflow', '2000.00', start + timedelta(hours=10), trust_id=1, course_id=7, course_name='B.Com'),
            _row(3, 'outflow', '500.00', start + timedelta(hours=23, minutes=30), trust_id=2, course_id=7, course_name='B.Com'),
            _row(4, 'outflow', '300.00', start + timedelta(hours=12), trust_id=2, course_id=8, course_name='BMS'),
            _row(5, 'outflow', '100.00', start + timedelta(hours=13), trust_id=1),
            _row(6, 'inflow', '750.00', start + timedelta(days=1, minutes=10), trust_id=2),
        ]

    def test_filter_returns_newest_first(self):
        result = filter_transactions(self.rows)
        self.assertEqual([row.id for row in result], [6, 3, 5, 4, 2, 1])

    def test_date_range_is_inclusive_through_end_of_day(self):
        result = filter_transactions(self.rows, TransactionFilters(date_from=self.day, date_to=self.day))
        self.assertEqual({row.id for row in result}, {1, 2, 3, 4, 5})

    def test_datetime_bounds_cover_whole_days(self):
        late = timezone.make_aware(datetime(2025, 6, 30, 8, 0))
        result = filter_transactions(self.rows, TransactionFilters(date_from=late, date_to=late))
        self.assertEqual({row.id for row in result}, {1, 2, 3, 4, 5})

    def test_trust_course_and_type_predicates(self):
        self.assertEqual(
            {row.id for row in filter_transactions(self.rows, TransactionFilters(trust_id=2))},
            {3, 4, 6},
        )
        self.assertEqual(
            {row.id for row in filter_transactions(self.rows, TransactionFilters(course_id=7))},
            {2, 3},
        )
        self.assertEqual(
            {row.id for row in filter_transactions(self.rows, TransactionFilters(type='inflow'))},
            {1, 6},
        )

    def test_unknown_type_filter(self):
        with self.assertRaises(ValueError):
            TransactionFilters(type='transfer')

    def test_summarize_by_course_skips_inflows_and_orphans(self):
        summary = summarize_by_course(self.rows)
        self.assertEqual(
            [(item.course_id, item.course_name, item.total_outflow, item.transaction_count) for item in summary],
            [(7, 'B.Com', Decimal('2500.00'), 2), (8, 'BMS', Decimal('300.00'), 1)],
        )
        # The course-less outflow is still part of the plain listing.
        self.assertIn(5, [row.id for row in filter_transactions(self.rows)])

    def test_summarize_by_course_respects_filters(self):
        summary = summarize_by_course(self.rows, TransactionFilters(trust_id=1))
        self.assertEqual([(item.course_id, item.total_outflow) for item in summary], [(7, Decimal('2000.00'))])

    def test_range_without_transactions_is_empty(self):
        filters = TransactionFilters(date_from=date(2024, 1, 1), date_to=date(2024, 1, 31))
        self.assertEqual(filter_transactions(self.rows, filters), [])
        self.assertEqual(summarize_by_course(self.rows, filters), [])
        self.assertEqual(summarize_by_trust(self.rows, filters), [])

    def test_detail_for_course_reuses_filters(self):
        self.assertEqual([row.id for row in detail_for_course(self.rows, 7)], [3, 2])
        self.assertEqual(
            [row.id for row in detail_for_course(self.rows, 7, TransactionFilters(trust_id=2, course_id=8))],
            [3],
        )

    def test_summarize_by_trust(self):
        summary = summarize_by_trust(self.rows)
        self.assertEqual(
            [(item.trust_id, item.total_inflow, item.total_outflow, item.net) for item in summary],
            [
                (1, Decimal('5000.00'), Decimal('2100.00'), Decimal('2900.00')),
                (2, Decimal('750.00'), Decimal('800.00'), Decimal('-50.00')),
            ],
        )

    def test_running_balance_is_chronological(self):
        trust_rows = filter_transactions(self.rows, TransactionFilters(trust_id=1))
        statement = running_balance(trust_rows)
        self.assertEqual([item.row.id for item in statement], [1, 2, 5])
        self.assertEqual(
            [item.balance for item in statement],
            [Decimal('5000.00'), Decimal('3000.00'), Decimal('2900.00')],
        )


    def test_search_matches_student_name_roll_and_notes(self):
        rows = [
            replace(self.rows[1], student_name='Ayesha Khan', roll_number='BCOM-101'),
            replace(self.rows[3], student_name='Rahul Patil', roll_number='BMS-207', notes='Merit award'),
            replace(self.rows[0], notes='Annual donation'),
        ]

        def ids(text):
            return [row.id for row in filter_transactions(rows, TransactionFilters(search=text))]

        self.assertEqual(ids('ayesha'), [2])
        self.assertEqual(ids('bms-2'), [4])
        self.assertEqual(ids('  MERIT '), [4])
        self.assertEqual(ids('donation'), [1])
        self.assertEqual(ids('nobody'), [])
        self.assertEqual(ids(''), [4, 2, 1])

    def test_drill_down_keeps_search(self):
        rows = [
            replace(self.rows[1], student_name='Ayesha Khan'),
            replace(self.rows[2], student_name='Rahul Patil'),
        ]
        result = detail_for_course(rows, 7, TransactionFilters(search='rahul'))
        self.assertEqual([row.id for row in result], [3])


class ReportQueryTests(TrustBaseTestCase):
    def test_course_summary_from_ledger(self):
        apply_inflow(trust=self.trust, amount=5000)
        apply_outflow(
            trust=self.trust,
            student=self.student,
            academic_year=self.year,
            amount=2000,
            fees_type='Tuition',
        )

        rows = load_transaction_rows()
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0].type, 'outflow')
        self.assertEqual(rows[0].student_name, 'Ayesha Khan')
        self.assertEqual(rows[0].roll_number, 'BCOM-101')
        self.assertEqual(rows[0].academic_year_name, 'FY')

        summary = summarize_by_course(rows)
        self.assertEqual(len(summary), 1)
        self.assertEqual(summary[0].course_id, self.course.pk)
        self.assertEqual(summary[0].course_name, 'B.Com')
        self.assertEqual(summary[0].total_outflow, Decimal('2000.00'))

    def test_query_date_range(self):
        apply_inflow(trust=self.trust, amount=10)
        today = timezone.localdate()

        self.assertEqual(len(load_transaction_rows(date_from=today, date_to=today)), 1)
        self.assertEqual(load_transaction_rows(date_to=today - timedelta(days=1)), [])

    def test_query_limit(self):
        for amount in (1, 2, 3):
            apply_inflow(trust=self.trust, amount=amount)
        rows = load_transaction_rows(limit=2)
        self.assertEqual([row.amount for row in rows], [Decimal('3.00'), Decimal('2.00')])


class TrustViewTests(TrustBaseTestCase):
    def setUp(self):
        super().setUp()
        self.client.login(username='trust_accountant', password='pass12345')

    def submit_token(self, url_name):
        response = self.client.get(reverse(url_name))
        return response.context['submit_token']

    def test_manage_lists_and_creates_trusts(self):
        response = self.client.get(reverse('trust_manage'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Alumni Fund')

        response = self.client.post(reverse('trust_manage'), {'name': 'Anjuman Trust', 'details': ''})
        self.assertRedirects(response, reverse('trust_manage'))
        trust = Trust.objects.get(name='Anjuman Trust')
        self.assertEqual(trust.balance, Decimal('0.00'))
        self.assertEqual(trust.created_by, self.accountant)
        self.assertTrue(AuditLog.objects.filter(action='trusts.trust_created', target_id=str(trust.pk)).exists())

    def test_inflow_view(self):
        response = self.client.post(reverse('trust_inflow'), {
            'submit_token': self.submit_token('trust_inflow'),
            'trust': self.trust.pk,
            'amount': '1200.00',
            'notes': 'Donation',
        })
        self.assertRedirects(response, reverse('trust_inflow'))
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('1200.00'))
        self.assertTrue(AuditLog.objects.filter(action='trusts.inflow_added').exists())

    def test_inflow_view_rejects_non_positive_amount(self):
        response = self.client.post(reverse('trust_inflow'), {'trust': self.trust.pk, 'amount': '0'})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(TrustTransaction.objects.exists())

    def test_outflow_search_and_year_selection(self):
        response = self.client.get(reverse('trust_outflow'), {'q': 'ayes'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['search_results'], [self.student])

        response = self.client.get(reverse('trust_outflow'), {'student': self.student.pk})
        self.assertEqual(response.context['selected_student'], self.student)
        self.assertEqual(response.context['academic_years'], [self.year])
        self.assertEqual(response.context['form'].initial['academic_year'], self.year.pk)

    def test_outflow_view_assigns_funds(self):
        apply_inflow(trust=self.trust, amount=5000)
        response = self.client.post(reverse('trust_outflow'), {
            'submit_token': self.submit_token('trust_outflow'),
            'trust': self.trust.pk,
            'student': self.student.pk,
            'academic_year': self.year.pk,
            'fees_type': 'Tuition',
            'amount': '2000',
            'notes': '',
        })
        self.assertRedirects(response, reverse('trust_outflow'))
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('3000.00'))
        self.assertTrue(AuditLog.objects.filter(action='trusts.fund_assigned').exists())

    def test_outflow_view_rejects_overdraw(self):
        apply_inflow(trust=self.trust, amount=3000)
        response = self.client.post(reverse('trust_outflow'), {
            'trust': self.trust.pk,
            'student': self.student.pk,
            'academic_year': self.year.pk,
            'fees_type': 'Tuition',
            'amount': '5000',
        })
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context['form'].non_field_errors())
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('3000.00'))
        self.assertEqual(TrustTransaction.objects.outflows().count(), 0)

    def test_analytics_defaults_and_drill_down(self):
        apply_inflow(trust=self.trust, amount=5000)
        self.outflow(2000)

        response = self.client.get(reverse('trust_analytics'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context['transactions']), 2)
        self.assertEqual(response.context['course_summary'][0].total_outflow, Decimal('2000.00'))

        today = timezone.localdate().isoformat()
        response = self.client.get(reverse('trust_analytics'), {
            'date_from': today,
            'date_to': today,
            'detail_course': self.course.pk,
        })
        self.assertEqual(response.context['selected_course_id'], self.course.pk)
        self.assertEqual([row.type for row in response.context['transactions']], ['outflow'])

    def test_analytics_empty_range(self):
        apply_inflow(trust=self.trust, amount=5000)
        response = self.client.get(reverse('trust_analytics'), {
            'date_from': '2001-01-01',
            'date_to': '2001-01-31',
        })
        self.assertEqual(response.context['transactions'], [])
        self.assertEqual(response.context['course_summary'], [])

    def test_inflow_view_reports_balance_limit(self):
        Trust.objects.filter(pk=self.trust.pk).update(balance=Decimal('9999999000.00'))
        response = self.client.post(reverse('trust_inflow'), {
            'submit_token': self.submit_token('trust_inflow'),
            'trust': self.trust.pk,
            'amount': '5000.00',
        })
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context['form'].non_field_errors())
        self.assertFalse(TrustTransaction.objects.exists())

    def test_double_submitted_inflow_is_booked_once(self):
        data = {
            'submit_token': self.submit_token('trust_inflow'),
            'trust': self.trust.pk,
            'amount': '700.00',
        }
        first = self.client.post(reverse('trust_inflow'), data)
        second = self.client.post(reverse('trust_inflow'), data)

        self.assertRedirects(first, reverse('trust_inflow'))
        self.assertRedirects(second, reverse('trust_inflow'))
        self.assertEqual(TrustTransaction.objects.count(), 1)
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('700.00'))

    def test_double_submitted_outflow_is_booked_once(self):
        apply_inflow(trust=self.trust, amount=5000)
        data = {
            'submit_token': self.submit_token('trust_outflow'),
            'trust': self.trust.pk,
            'student': self.student.pk,
            'academic_year': self.year.pk,
            'fees_type': 'Tuition',
            'amount': '1000',
        }
        self.client.post(reverse('trust_outflow'), data)
        self.client.post(reverse('trust_outflow'), data)

        self.assertEqual(TrustTransaction.objects.outflows().count(), 1)
        self.assertEqual(StudentPayment.objects.count(), 1)
        self.assertEqual(get_trust(self.trust.pk).balance, Decimal('4000.00'))

    def test_post_without_token_books_nothing(self):
        response = self.client.post(reverse('trust_inflow'), {'trust': self.trust.pk, 'amount': '10'})
        self.assertRedirects(response, reverse('trust_inflow'))
        self.assertFalse(TrustTransaction.objects.exists())

    def test_analytics_search_narrows_transactions_only(self):
        apply_inflow(trust=self.trust, amount=5000, notes='Annual gala')
        self.outflow(2000)

        response = self.client.get(reverse('trust_analytics'), {'q': 'bcom-101'})
        self.assertEqual([row.type for row in response.context['transactions']], ['outflow'])
        self.assertEqual(response.context['trust_summary'][0].total_inflow, Decimal('5000.00'))

        response = self.client.get(reverse('trust_analytics'), {'q': 'GALA'})
        self.assertEqual([row.type for row in response.context['transactions']], ['inflow'])

    def test_statement_shows_running_balance(self):
        apply_inflow(trust=self.trust, amount=5000)
        self.outflow(2000)

        response = self.client.get(reverse('trust_statement', args=[self.trust.pk]))
        self.assertEqual(response.status_code, 200)
        balances = [item.balance for item in response.context['statement']]
        self.assertEqual(balances, [Decimal('3000.00'), Decimal('5000.00')])
        self.assertEqual(response.context['opening_balance'], Decimal('0.00'))


class TrustCommandTests(TrustBaseTestCase):
    def test_reconcile_passes_for_consistent_ledger(self):
        apply_inflow(trust=self.trust, amount=500)
        out = StringIO()
        call_command('reconcile_trusts', stdout=out)
        self.assertIn('All trust balances reconcile.', out.getvalue())

    def test_reconcile_fails_on_mismatch(self):
        Trust.objects.filter(pk=self.trust.pk).update(balance=Decimal('42.00'))
        with self.assertRaises(CommandError):
            call_command('reconcile_trusts', stdout=StringIO())

    def test_seed_builds_consistent_demo_ledger(self):
        call_command('seed_trusts', students=5, trusts=2, seed=7, stdout=StringIO())

        self.assertEqual(Trust.objects.exclude(pk=self.trust.pk).count(), 2)
        for trust in Trust.objects.all():
            self.assertTrue(reconcile_trust(trust)['matches'])
