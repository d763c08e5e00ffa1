from django.contrib import admin

from .models import Trust, TrustTransaction


@admin.register(Trust)
class TrustAdmin(admin.ModelAdmin):
    list_display = ('name', 'balance', 'created_at', 'updated_at')
    search_fields = ('name', 'details')
    readonly_fields = ('balance', 'created_by', 'created_at', 'updated_at')

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(TrustTransaction)
class TrustTransactionAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'trust', 'type', 'amount', 'student', 'course', 'fees_type')
    list_filter = ('type', 'trust', 'course', 'created_at')
    search_fields = ('notes', 'student__fullname', 'student__roll_number', 'trust__name')
    date_hierarchy = 'created_at'
    list_select_related = ('trust', 'student', 'course')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
