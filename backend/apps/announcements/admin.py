from django.contrib import admin

from .models import Announcement, Notification


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'audience', 'created_by_email', 'created_at']
    list_filter = ['audience']
    search_fields = ['title', 'description']
    readonly_fields = ['created_at']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'type', 'broadcast', 'created_at']
    list_filter = ['type', 'broadcast']
    search_fields = ['title', 'description']
