# sales/models/__init__.py

"""
SALES MODELS PACKAGE EXPORTS
"""

from .accounts_receivable import AccountsReceivable
from .customer import Customer
from .sale import Sale
from .sale_item import SaleItem
from .sale_payment import SalePayment

__all__ = [
    "AccountsReceivable",
    "Customer",
    "Sale",
    "SaleItem",
    "SalePayment",
]
