from django.contrib import admin

from .models import DeviationReport


@admin.register(DeviationReport)
class DeviationReportAdmin(admin.ModelAdmin):
    list_display = ['id', 'protocol_code', 'protocol_title', 'type', 'severity',
                    'resolution_status', 'reported_by', 'report_submission_date']
    list_filter = ['severity', 'type', 'resolution_status']
    search_fields = ['protocol_title', 'protocol_code', 'reported_by']
    readonly_fields = ['version', 'created_at', 'updated_at']
    ordering = ['-created_at']
