from django.contrib import admin

from .models import AssignedReview, Proposal, Review


@admin.register(Proposal)
class ProposalAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'researcher_name', 'status', 'created_at']
    list_filter = ['status']
    search_fields = ['title', 'protocol_title', 'researcher_name']


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['id', 'proposal', 'reviewer', 'status', 'due_date', 'recommendation']
    list_filter = ['status', 'recommendation']
    raw_id_fields = ['proposal']


@admin.register(AssignedReview)
class AssignedReviewAdmin(admin.ModelAdmin):
    list_display = ['id', 'proposal', 'reviewer', 'status', 'assigned_at', 'due_date']
    list_filter = ['status']
    raw_id_fields = ['proposal']
