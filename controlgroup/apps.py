from django.apps import AppConfig


class ControlgroupConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'controlgroup'
