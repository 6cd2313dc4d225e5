from django.contrib import admin

from .models import FormSubmission


@admin.register(FormSubmission)
class FormSubmissionAdmin(admin.ModelAdmin):
    list_display = ['id', 'form_id', 'submitted_by', 'submitted_at']
    list_filter = ['form_id']
    search_fields = ['form_id', 'submitted_by__email']
    ordering = ['-submitted_at']
