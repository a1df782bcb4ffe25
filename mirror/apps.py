from django.apps import AppConfig


class MirrorConfig(AppConfig):
    name = "mirror"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        # Register the sync bookkeeping models, which live outside models.py
        from mirror.sync import models  # noqa: F401
