from django.contrib import admin

from .models import Course


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'duration_years', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name', 'code')
