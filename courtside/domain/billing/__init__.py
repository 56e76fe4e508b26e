"""Billing domain - Charges, installments, payments and subscriptions"""

__all__ = []
