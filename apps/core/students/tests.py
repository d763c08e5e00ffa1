from django.test import TestCase, override_settings

from apps.core.academics.models import Course

from .models import Student, StudentAcademicYear
from .services import academic_years_for_student, search_students


class StudentSearchTests(TestCase):
    def setUp(self):
        self.ayesha = Student.objects.create(fullname='Ayesha Khan', roll_number='BCOM-101')
        self.rahul = Student.objects.create(fullname='Rahul Patil', roll_number='BSC-207')
        Student.objects.create(fullname='Zoya Shaikh', roll_number=None)

    def test_short_query_returns_nothing(self):
        self.assertEqual(search_students('ay'), [])
        self.assertEqual(search_students('   '), [])

    def test_matches_name_case_insensitive(self):
        self.assertEqual(search_students('ayes'), [self.ayesha])

    def test_matches_roll_number(self):
        self.assertEqual(search_students('bsc-2'), [self.rahul])

    @override_settings(STUDENT_SEARCH_LIMIT=1)
    def test_results_are_limited(self):
        Student.objects.create(fullname='Ayesha Ansari', roll_number='BCOM-102')
        self.assertEqual(len(search_students('ayesha')), 1)


class StudentAcademicYearTests(TestCase):
    def setUp(self):
        self.course = Course.objects.create(name='B.Com', code='BCOM')
        self.student = Student.objects.create(fullname='Ayesha Khan', roll_number='BCOM-101')

    def test_most_recent_session_first(self):
        older = StudentAcademicYear.objects.create(
            student=self.student,
            course=self.course,
            academic_year_name='FY',
            academic_year_session='2024-25',
        )
        newer = StudentAcademicYear.objects.create(
            student=self.student,
            course=self.course,
            academic_year_name='SY',
            academic_year_session='2025-26',
        )
        self.assertEqual(academic_years_for_student(self.student), [newer, older])

    def test_label_falls_back_when_course_missing(self):
        year = StudentAcademicYear.objects.create(
            student=self.student,
            course=None,
            academic_year_name='FY',
            academic_year_session='2025-26',
        )
        self.assertEqual(year.full_label, 'FY (N/A - 2025-26)')
        self.assertEqual(year.course_name, 'N/A')
