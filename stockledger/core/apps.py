from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'stockledger.core'

    def ready(self):
        """Import signals when app is ready"""
        import stockledger.core.signals  # noqa: F401  # Profile creation
        import stockledger.core.cache_signals  # noqa: F401  # Cache invalidation signals
