"""
Draft bill aggregate and its structural mutations.

Every mutation here is a pure function returning a new BillDraft; derived totals
(subtotal, tax_amount, total) are left untouched and must be refreshed with
PricingCalculator.recompute, which PosSession does after each call.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional
from uuid import uuid4

from posbill.domain.discounts import Discount, DiscountChange, RemoveDiscount
from posbill.domain.errors import NotFoundError, ValidationError
from posbill.domain.models import LineItem, Product


@dataclass(frozen=True)
class CustomerRef:
    name: str
    mobile: str


@dataclass(frozen=True)
class BillDraft:
    bill_id: str
    customer: Optional[CustomerRef] = None
    items: tuple[LineItem, ...] = ()
    bill_discount: Optional[Discount] = None
    wallet_redeemed: float = 0.0
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_item(self, product_id: str) -> Optional[LineItem]:
        for it in self.items:
            if it.product_id == product_id:
                return it
        return None


def new_bill_id() -> str:
    return f"sale_{uuid4().hex}"


def empty_bill() -> BillDraft:
    return BillDraft(bill_id=new_bill_id())


def _number(value: object, label: str) -> float:
    try:
        num = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{label} must be a number. Received: {value!r}") from e
    if not math.isfinite(num):
        raise ValidationError(f"{label} must be a finite number.")
    return num


def _require_line(bill: BillDraft, product_id: str) -> LineItem:
    item = bill.find_item(product_id)
    if item is None:
        raise NotFoundError(f"Product {product_id} is not on the bill.")
    return item


def _replace_line(bill: BillDraft, product_id: str, new_item: Optional[LineItem]) -> BillDraft:
    items: list[LineItem] = []
    for it in bill.items:
        if it.product_id != product_id:
            items.append(it)
        elif new_item is not None:
            items.append(new_item)
    return replace(bill, items=tuple(items))


def add_item(bill: BillDraft, product: Product, quantity: float = 1, discount: Optional[Discount] = None) -> BillDraft:
    qty = _number(quantity, "Quantity")
    if qty <= 0:
        raise ValidationError("Quantity must be > 0.")
    if float(product.price) < 0:
        raise ValidationError("Unit price must be >= 0.")

    existing = bill.find_item(product.id)
    if existing:
        merged = replace(
            existing,
            quantity=existing.quantity + qty,
            discount=discount or existing.discount,
        )
        return _replace_line(bill, product.id, merged)

    line = LineItem(
        product_id=product.id,
        name=product.name,
        brand=product.brand,
        unit_price=float(product.price),
        quantity=qty,
        discount=discount,
    )
    return replace(bill, items=bill.items + (line,))


def set_quantity(bill: BillDraft, product_id: str, quantity: float) -> BillDraft:
    qty = _number(quantity, "Quantity")
    if qty < 0:
        raise ValidationError("Quantity must be >= 0.")
    item = _require_line(bill, product_id)
    if qty == 0:
        return _replace_line(bill, product_id, None)
    return _replace_line(bill, product_id, replace(item, quantity=qty))


def change_quantity(bill: BillDraft, product_id: str, delta: float) -> BillDraft:
    item = _require_line(bill, product_id)
    new_qty = item.quantity + _number(delta, "Quantity change")
    if new_qty < 0:
        raise ValidationError(f"Quantity cannot go below 0. Current: {item.quantity:g}")
    return set_quantity(bill, product_id, new_qty)


def remove_item(bill: BillDraft, product_id: str) -> BillDraft:
    _require_line(bill, product_id)
    return _replace_line(bill, product_id, None)


def set_item_discount(bill: BillDraft, product_id: str, change: DiscountChange) -> BillDraft:
    item = _require_line(bill, product_id)
    discount = None if isinstance(change, RemoveDiscount) else change
    return _replace_line(bill, product_id, replace(item, discount=discount))


def set_bill_discount(bill: BillDraft, change: DiscountChange) -> BillDraft:
    discount = None if isinstance(change, RemoveDiscount) else change
    return replace(bill, bill_discount=discount)


def set_customer(bill: BillDraft, name: str, mobile: str) -> BillDraft:
    mobile_clean = (mobile or "").strip()
    if not mobile_clean:
        raise ValidationError("Customer mobile is required.")
    name_clean = (name or "").strip() or "Walk-in"

    redeemed = bill.wallet_redeemed
    if bill.customer is None or bill.customer.mobile != mobile_clean:
        # a redemption belongs to the customer it was made for
        redeemed = 0.0
    return replace(bill, customer=CustomerRef(name=name_clean, mobile=mobile_clean), wallet_redeemed=redeemed)


def clear_customer(bill: BillDraft) -> BillDraft:
    return replace(bill, customer=None, wallet_redeemed=0.0)


def set_wallet_redeemed(bill: BillDraft, amount: float) -> BillDraft:
    value = _number(amount, "Wallet redemption")
    if value < 0:
        raise ValidationError("Wallet redemption must be >= 0.")
    if value > 0 and bill.customer is None:
        raise ValidationError("Bind a customer before redeeming wallet balance.")
    return replace(bill, wallet_redeemed=value)
