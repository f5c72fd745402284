from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'mbs.core'

    def ready(self):
        """Import signals when app is ready"""
        import mbs.core.model_cache  # noqa: F401  # Cache invalidation signals
