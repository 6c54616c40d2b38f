from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from posbill.domain.discounts import Discount

CASH = "CASH"
UPI = "UPI"
NET_BANKING = "NET_BANKING"
PAYMENT_METHODS = (CASH, UPI, NET_BANKING)

SALE_REASON = "Sale"
INITIAL_STOCK_REASON = "Initial Stock"
MANUAL_ADJUSTMENT_REASON = "Manual Adjustment"

# float slack when comparing a redemption against balance or subtotal
WALLET_TOLERANCE = 1e-9


@dataclass(frozen=True)
class StockLogEntry:
    id: str
    date: str
    change: float
    previous_stock: float
    new_stock: float
    reason: str
    user_id: str


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    brand: str
    price: float
    expire_date: str
    stock: float
    stock_history: tuple[StockLogEntry, ...] = ()


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    mobile: str
    wallet_balance: float = 0.0
    is_premium: bool = False
    email: Optional[str] = None


@dataclass(frozen=True)
class Operator:
    id: str
    username: str


@dataclass(frozen=True)
class LineItem:
    product_id: str
    name: str
    brand: str
    unit_price: float
    quantity: float
    discount: Optional[Discount] = None


@dataclass(frozen=True)
class Sale:
    id: str
    date: str
    items: tuple[LineItem, ...]
    total: float
    tax_amount: float
    employee_id: str
    payment_method: str
    wallet_used: float = 0.0
    wallet_credited: float = 0.0
    customer_name: Optional[str] = None
    customer_mobile: Optional[str] = None
    invoice_number: Optional[str] = None


@dataclass(frozen=True)
class ShopDetails:
    name: str
    address: str = ""
    contact: str = ""
    gst_number: Optional[str] = None
    default_gst_rate: float = 0.0
    upi_id: Optional[str] = None
