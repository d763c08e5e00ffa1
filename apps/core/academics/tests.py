from django.core.exceptions import ValidationError
from django.test import TestCase

from .models import Course


class CourseTests(TestCase):
    def test_name_is_stripped_and_required(self):
        course = Course(name='  B.Sc IT  ')
        course.full_clean()
        self.assertEqual(course.name, 'B.Sc IT')

        with self.assertRaises(ValidationError):
            Course(name='   ').full_clean()

    def test_delete_is_soft(self):
        course = Course.objects.create(name='BMS')
        course.delete()

        course.refresh_from_db()
        self.assertFalse(course.is_active)
