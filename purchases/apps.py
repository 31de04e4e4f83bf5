from django.apps import AppConfig


class PurchasesConfig(AppConfig):
    """App configuration for purchases, promo codes and access grants."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "purchases"
