# sales/api/urls.py

"""
SALES API URLS (CANONICAL)

Rules:
- The viewset is mounted at the module root (/api/sales/), so a
  SimpleRouter is used: DefaultRouter's API-root view would shadow list.
- detail=False actions ("revenue") resolve before <pk> routes.

Provides:
    /api/sales/                      list / create (pending)
    /api/sales/<uuid>/               retrieve
    /api/sales/<uuid>/complete/
    /api/sales/<uuid>/undo/
    /api/sales/<uuid>/edit/
    /api/sales/<uuid>/cancel/
    /api/sales/revenue/
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from sales.api.viewsets.sale import SaleViewSet

router = SimpleRouter()

router.register(r"", SaleViewSet, basename="sales")

urlpatterns = [
    path("", include(router.urls)),
]
