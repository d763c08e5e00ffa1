from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from apps.core.academics.models import Course


class Student(models.Model):
    STATUS_ACTIVE = 'active'
    STATUS_PASSED = 'passed'
    STATUS_DROPPED = 'dropped'
    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_PASSED, 'Passed'),
        (STATUS_DROPPED, 'Dropped'),
    )

    fullname = models.CharField(max_length=200)
    roll_number = models.CharField(max_length=30, null=True, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['fullname', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['roll_number'],
                condition=Q(roll_number__isnull=False),
                name='unique_student_roll_number',
            ),
        ]
        indexes = [
            models.Index(fields=['status'], name='student_status_idx'),
        ]

    def clean(self):
        super().clean()
        if self.fullname:
            self.fullname = self.fullname.strip()
        if not self.fullname:
            raise ValidationError({'fullname': 'Student name is required.'})
        if self.roll_number is not None:
            self.roll_number = self.roll_number.strip() or None

    def __str__(self):
        if self.roll_number:
            return f"{self.fullname} ({self.roll_number})"
        return self.fullname


class StudentAcademicYear(models.Model):
    """One academic-year enrollment of a student in a course (e.g. FY B.Com, 2025-26)."""

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='academic_years')
    course = models.ForeignKey(
        Course,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='student_academic_years',
    )
    academic_year_name = models.CharField(max_length=50)  # FY, SY, TY
    academic_year_session = models.CharField(max_length=20)  # 2025-26
    is_current = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-academic_year_session', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'academic_year_session', 'academic_year_name'],
                name='unique_student_year_per_session',
            ),
        ]

    @property
    def course_name(self):
        return self.course.name if self.course_id else 'N/A'

    @property
    def full_label(self):
        return f"{self.academic_year_name} ({self.course_name} - {self.academic_year_session})"

    def __str__(self):
        return f"{self.student.fullname} - {self.full_label}"
