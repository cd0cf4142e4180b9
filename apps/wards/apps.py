from django.apps import AppConfig


class WardsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.wards'
    label = 'wards'
    verbose_name = 'Wards & Beds'
