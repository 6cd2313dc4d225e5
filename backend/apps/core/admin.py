"""
Django admin configuration for core models.
"""

from django.contrib import admin
from .models import UserAccount


@admin.register(UserAccount)
class UserAccountAdmin(admin.ModelAdmin):
    list_display = ['email', 'full_name', 'role', 'user', 'created_at']
    list_filter = ['role']
    search_fields = ['email', 'full_name']
    ordering = ['email']
