# products/apps.py

"""
PRODUCTS APP CONFIG

Inventory module:
- Product catalog + stock_on_hand projection
- StockBatch lots (FEFO)
- StockMovement ledger
"""

from django.apps import AppConfig


class ProductsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "products"
    verbose_name = "Products & Inventory"
