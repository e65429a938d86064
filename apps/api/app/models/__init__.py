"""Expose ORM models."""
from .product import Product
from .purchase import Purchase
from .transaction import Transaction, TransactionStatus

__all__ = [
    "Product",
    "Purchase",
    "Transaction",
    "TransactionStatus",
]
