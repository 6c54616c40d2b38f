from .models import Customer, LineItem, Operator, Product, Sale, ShopDetails, StockLogEntry
from .discounts import Discount, RemoveDiscount, REMOVE_DISCOUNT, apply_discount, parse_discount
from .bill import BillDraft, CustomerRef, empty_bill
from .errors import AppError, ValidationError, NotFoundError, PersistenceError

__all__ = [
    "Customer",
    "LineItem",
    "Operator",
    "Product",
    "Sale",
    "ShopDetails",
    "StockLogEntry",
    "Discount",
    "RemoveDiscount",
    "REMOVE_DISCOUNT",
    "apply_discount",
    "parse_discount",
    "BillDraft",
    "CustomerRef",
    "empty_bill",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
]
