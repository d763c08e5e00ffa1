from __future__ import annotations

from django.conf import settings
from django.db.models import Q

from .models import Student, StudentAcademicYear


def search_students(query: str, limit: int | None = None):
    """Name or roll-number lookup used by the trust outflow screen.

    Queries shorter than ``STUDENT_SEARCH_MIN_CHARS`` return nothing.
    """
    query = (query or '').strip()
    if len(query) < settings.STUDENT_SEARCH_MIN_CHARS:
        return []

    limit = limit or settings.STUDENT_SEARCH_LIMIT
    return list(
        Student.objects.filter(
            Q(fullname__icontains=query) | Q(roll_number__icontains=query)
        ).order_by('fullname', 'id')[:limit]
    )


def academic_years_for_student(student: Student):
    return list(
        StudentAcademicYear.objects.filter(student=student)
        .select_related('course')
        .order_by('-academic_year_session', '-id')
    )
