"""Commands produced by input adapters (barcode, QR, voice, camera) for PosSession.dispatch."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from posbill.domain.discounts import DiscountChange
from posbill.domain.models import CASH


@dataclass(frozen=True)
class AddItem:
    product_id: str
    quantity: float = 1


@dataclass(frozen=True)
class RemoveItem:
    product_id: str


@dataclass(frozen=True)
class SetCustomer:
    name: str
    mobile: str


@dataclass(frozen=True)
class DiscountBill:
    discount: DiscountChange


@dataclass(frozen=True)
class Checkout:
    payment_method: str = CASH


@dataclass(frozen=True)
class ClearBill:
    pass


Command = Union[AddItem, RemoveItem, SetCustomer, DiscountBill, Checkout, ClearBill]
