"""
URL configuration for core app.
Handles login, logout, sign-up, landing and the Unauthorized page.
"""

from django.urls import path
from . import views, auth_views

app_name = 'core'

urlpatterns = [
    path('', views.home, name='home'),
    path('login', auth_views.login_view, name='login'),
    path('signup', auth_views.signup_view, name='signup'),
    path('logout', auth_views.logout_view, name='logout'),
    path('unauthorized', views.unauthorized, name='unauthorized'),
]
