from django.contrib import admin

from .models import FeeType, StudentPayment


@admin.register(FeeType)
class FeeTypeAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name',)


@admin.register(StudentPayment)
class StudentPaymentAdmin(admin.ModelAdmin):
    list_display = (
        'student',
        'academic_year_session',
        'fees_type',
        'amount',
        'payment_method',
        'trust_name',
        'payment_date',
    )
    list_filter = ('payment_method', 'academic_year_session', 'fees_type')
    search_fields = ('student__fullname', 'student__roll_number', 'trust_name')

    def has_delete_permission(self, request, obj=None):
        return False
