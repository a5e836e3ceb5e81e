# sales/apps.py

"""
SALES APP CONFIG

POS transactions:
- Sale aggregate (pending -> completed -> cancelled/refunded)
- Transaction orchestration over the products stock services
"""

from django.apps import AppConfig


class SalesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sales"
    verbose_name = "Sales"
