from django.apps import AppConfig


class TallymanConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "tallyman"
    verbose_name = "Tallyman - Orders & Loyalty"
