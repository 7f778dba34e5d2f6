from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'clippings.core'

    def ready(self):
        """Register the endpoint configuration check"""
        import clippings.core.checks  # noqa: F401
