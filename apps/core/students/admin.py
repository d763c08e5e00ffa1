from django.contrib import admin

from .models import Student, StudentAcademicYear


class StudentAcademicYearInline(admin.TabularInline):
    model = StudentAcademicYear
    extra = 0


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('fullname', 'roll_number', 'status')
    list_filter = ('status',)
    search_fields = ('fullname', 'roll_number')
    inlines = [StudentAcademicYearInline]


@admin.register(StudentAcademicYear)
class StudentAcademicYearAdmin(admin.ModelAdmin):
    list_display = ('student', 'academic_year_name', 'academic_year_session', 'course', 'is_current')
    list_filter = ('academic_year_session', 'course', 'is_current')
    search_fields = ('student__fullname', 'student__roll_number')
