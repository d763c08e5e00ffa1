from django.apps import AppConfig


class TrustsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.finance.trusts'
    label = 'trusts'
    verbose_name = 'Trust Management'
