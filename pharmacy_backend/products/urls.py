# products/urls.py

"""
PRODUCTS URLS

Purpose:
- Register product domain routes under /api/products/
- Includes viewset actions like:
    /products/products/alerts/low-stock/
    /products/stock-batches/<id>/quarantine/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from products.views import ProductViewSet, StockBatchViewSet, StockMovementViewSet

router = DefaultRouter()

router.register(r"products", ProductViewSet, basename="products")
router.register(r"stock-batches", StockBatchViewSet, basename="stock-batches")
router.register(r"stock-movements", StockMovementViewSet, basename="stock-movements")

urlpatterns = [
    path("", include(router.urls)),
]
