from django.apps import AppConfig


class DeoEarningsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "deo_earnings"
    verbose_name = "DEO earnings"

    def ready(self) -> None:
        # Import signals so the handlers are registered when the app starts.
        from . import signals  # noqa: F401
