from django.apps import AppConfig


class ClinicalConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.clinical'
    verbose_name = 'Clinical'

    def ready(self):
        """Connect the vitals notification receiver."""
        from . import signals  # noqa: F401
