from django.apps import AppConfig


class ServiceRequestsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hc_core.service_requests"
