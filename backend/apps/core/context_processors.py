"""Template context for the signed-in user's role and sidebar menu."""

from .auth_helpers import get_user_context


def user_context(request):
    return {'portal_user': get_user_context(request)}
