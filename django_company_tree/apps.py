from django.apps import AppConfig


class CompanyTreeConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "django_company_tree"
    verbose_name = "Company tree"

    def ready(self) -> None:  # pragma: no cover - import side effects
        from . import signals

        signals.connect_company_signals()
