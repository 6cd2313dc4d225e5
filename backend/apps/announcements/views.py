"""
Views for announcements and notifications.

Pages:
    - create_announcement_page: /staff/announcements/new   (Staff)
    - announcements_page:       /announcements             (every role)

API (/api/v1/announcements/):
    - announcements_api   GET list for the caller's audience / POST publish (Staff)
    - notifications_api   GET notifications/  (caller's own and broadcasts)
"""

import logging

from django.contrib import messages
from django.shortcuts import redirect, render
from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.auth_helpers import ROLES, HasRole, require_roles, user_role
from apps.core.gateway import PersistenceError

from .models import Announcement, Notification
from .services import (
    AnnouncementInvalid,
    AttachmentUploadFailed,
    announcements_for_role,
    create_announcement,
    notifications_for,
)

logger = logging.getLogger(__name__)


class AnnouncementSerializer(serializers.ModelSerializer):
    class Meta:
        model = Announcement
        fields = ['id', 'title', 'description', 'audience', 'attachments',
                  'created_by_email', 'created_at']


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'title', 'description', 'type', 'broadcast', 'created_at']


@require_roles(['Staff'])
def create_announcement_page(request):
    """
    Staff form for publishing an announcement.

    Side effects: uploads attachments, inserts one announcements row
    """
    errors = {}
    upload_failures = []
    values = {'title': '', 'description': '', 'audience': ''}

    if request.method == 'POST':
        values = {key: request.POST.get(key, '') for key in values}
        try:
            create_announcement(
                values['title'],
                values['description'],
                values['audience'],
                files=request.FILES.getlist('attachments'),
                created_by=request.user,
            )
            messages.success(request, 'Announcement published successfully!')
            return redirect('announcements:create')
        except AnnouncementInvalid as e:
            errors = e.errors
        except AttachmentUploadFailed as e:
            upload_failures = e.errors
            messages.error(request, 'Some files failed to upload. Nothing was published.')
        except PersistenceError as e:
            logger.error('Publishing announcement failed: %s', e)
            messages.error(request, 'Publish failed. Please try again.')

    return render(request, 'announcements/create.html', {
        'values': values,
        'errors': errors,
        'upload_errors': upload_failures,
        'audience_choices': Announcement.AUDIENCE_CHOICES,
    })


@require_roles(list(ROLES))
def announcements_page(request):
    error = None
    try:
        items = announcements_for_role(user_role(request))
    except PersistenceError as e:
        logger.error('Loading announcements failed: %s', e)
        items = []
        error = 'Announcements could not be loaded.'
    return render(request, 'announcements/list.html', {'announcements': items, 'error': error})


@api_view(['GET', 'POST'])
@permission_classes([HasRole])
def announcements_api(request):
    """
    Announcements visible to the caller, or publish one (Staff only).

    GET  -> {results: [...]} ; degrades to {results: [], message} on read failure
    POST -> 201 announcement | 400 {error, errors} | 403 | 503
            multipart fields: title, description, audience, attachments (files)
    """
    role = user_role(request)

    if request.method == 'GET':
        try:
            items = announcements_for_role(role)
        except PersistenceError as e:
            logger.error('Loading announcements failed: %s', e)
            return Response({'results': [], 'message': 'Announcements could not be loaded.'})
        return Response({'results': AnnouncementSerializer(items, many=True).data})

    if role != 'Staff':
        return Response({'error': 'Only staff can publish announcements'},
                        status=status.HTTP_403_FORBIDDEN)
    try:
        announcement = create_announcement(
            request.data.get('title', ''),
            request.data.get('description', ''),
            request.data.get('audience'),
            files=request.FILES.getlist('attachments'),
            created_by=request.user,
        )
    except AnnouncementInvalid as e:
        return Response({'error': 'Validation failed', 'errors': e.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    except AttachmentUploadFailed as e:
        return Response({'error': 'Upload failed', 'errors': e.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    except PersistenceError as e:
        logger.error('Publishing announcement failed: %s', e)
        return Response({'error': 'Could not publish the announcement'},
                        status=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(AnnouncementSerializer(announcement).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([HasRole])
def notifications_api(request):
    try:
        items = notifications_for(request.user.email)
    except PersistenceError as e:
        logger.error('Loading notifications failed: %s', e)
        return Response({'results': [], 'message': 'Notifications could not be loaded.'})
    return Response({'results': NotificationSerializer(items, many=True).data})
