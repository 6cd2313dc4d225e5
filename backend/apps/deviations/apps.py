from django.apps import AppConfig


class DeviationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.deviations'
    verbose_name = 'Deviation Reports'

    def ready(self):
        from .realtime import connect_signals
        connect_signals()
