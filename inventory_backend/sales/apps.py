# sales/apps.py

"""
SALES APP CONFIG

Orders, order lines, the order lifecycle and FIFO fulfillment.
"""

from django.apps import AppConfig


class SalesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sales"
    verbose_name = "Sales Orders"
