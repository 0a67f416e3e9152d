"""
Analytics services: one class per dashboard area, all built on
AnalyticsService (query engine + clock).
"""

from restaurant_analytics.services.base import AnalyticsService
from restaurant_analytics.services.custom_query_service import CustomQueryService
from restaurant_analytics.services.customer_service import CustomerService
from restaurant_analytics.services.filter_options_service import FilterOptionsService
from restaurant_analytics.services.metrics_service import MetricsService
from restaurant_analytics.services.operations_service import OperationsService
from restaurant_analytics.services.product_service import ProductService
from restaurant_analytics.services.sales_service import SalesService

__all__ = [
    "AnalyticsService",
    "CustomQueryService",
    "CustomerService",
    "FilterOptionsService",
    "MetricsService",
    "OperationsService",
    "ProductService",
    "SalesService",
]
