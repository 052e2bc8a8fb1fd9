"""API v1 routers."""

from ticket_allocation.api.v1 import admin, orders, payments, raffles

__all__ = ["admin", "orders", "payments", "raffles"]
