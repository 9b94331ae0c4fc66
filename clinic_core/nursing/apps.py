from django.apps import AppConfig


class NursingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "clinic_core.nursing"
