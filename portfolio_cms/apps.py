"""Django app configuration for portfolio_cms."""
from django.apps import AppConfig


class PortfolioCMSConfig(AppConfig):
    """Configuration for the portfolio CMS app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "portfolio_cms"
    verbose_name = "Portfolio CMS"
