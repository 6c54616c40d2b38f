from __future__ import annotations

import logging
from typing import Optional

from posbill.domain import bill as bills
from posbill.domain.bill import BillDraft
from posbill.domain.commands import AddItem, Checkout, ClearBill, Command, DiscountBill, RemoveItem, SetCustomer
from posbill.domain.discounts import Discount, DiscountChange
from posbill.domain.errors import NotFoundError, ValidationError
from posbill.domain.models import CASH, Customer, Operator, Sale
from posbill.services.pricing_service import PricingCalculator
from posbill.services.wallet_service import WalletService

log = logging.getLogger(__name__)


class PosSession:
    """
    One operator terminal and the draft bill it is building.

    Every mutation goes through the pure bill functions and is then priced, so
    the totals on `bill` always match its items, discounts and redemption.
    A failed mutation or checkout leaves the current draft as it was.
    """

    def __init__(
        self,
        operator: Operator,
        inventory,
        customers,
        sales,
        settings,
        wallet: WalletService | None = None,
        suggestions=None,
    ):
        self.operator = operator
        self.inventory = inventory
        self.customers = customers
        self.sales = sales
        self.settings = settings
        self.wallet = wallet or WalletService()
        self.suggestions = suggestions
        self._bill = self._priced(bills.empty_bill())

    @property
    def bill(self) -> BillDraft:
        return self._bill

    def _priced(self, draft: BillDraft) -> BillDraft:
        return PricingCalculator(self.settings.gst_rate()).recompute(draft)

    def _apply(self, draft: BillDraft) -> BillDraft:
        priced = self._priced(draft)
        ceiling = max(priced.subtotal, 0.0)
        if priced.wallet_redeemed > ceiling:
            # the bill shrank under an earlier redemption
            log.info("wallet_redeem_clamped bill=%s from=%.2f to=%.2f", priced.bill_id, priced.wallet_redeemed, ceiling)
            priced = self._priced(bills.set_wallet_redeemed(priced, ceiling))
        self._bill = priced
        return self._bill

    def refresh_totals(self) -> BillDraft:
        """Re-price the draft, e.g. after the shop's GST rate changed."""
        return self._apply(self._bill)

    # ---------- items ----------
    def add_item(self, product_id: str, quantity: float = 1, discount: Optional[Discount] = None) -> BillDraft:
        product = self.inventory.find_product(product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")

        draft = bills.add_item(self._bill, product, quantity, discount)
        wanted = draft.find_item(product.id).quantity
        if product.stock < wanted:
            # stock is not enforced at the counter
            log.warning("stock_low product=%s stock=%s wanted=%s", product.id, product.stock, wanted)
        return self._apply(draft)

    def remove_item(self, product_id: str) -> BillDraft:
        return self._apply(bills.remove_item(self._bill, product_id))

    def set_quantity(self, product_id: str, quantity: float) -> BillDraft:
        return self._apply(bills.set_quantity(self._bill, product_id, quantity))

    def change_quantity(self, product_id: str, delta: float) -> BillDraft:
        return self._apply(bills.change_quantity(self._bill, product_id, delta))

    def set_item_discount(self, product_id: str, change: DiscountChange) -> BillDraft:
        return self._apply(bills.set_item_discount(self._bill, product_id, change))

    def set_bill_discount(self, change: DiscountChange) -> BillDraft:
        return self._apply(bills.set_bill_discount(self._bill, change))

    # ---------- customer & wallet ----------
    def set_customer(self, name: str, mobile: str) -> BillDraft:
        customer = self.customers.get_by_mobile(mobile)
        if customer and not (name or "").strip():
            name = customer.name
        return self._apply(bills.set_customer(self._bill, name, mobile))

    def clear_customer(self) -> BillDraft:
        return self._apply(bills.clear_customer(self._bill))

    @property
    def active_customer(self) -> Optional[Customer]:
        if self._bill.customer is None:
            return None
        return self.customers.get_by_mobile(self._bill.customer.mobile)

    def redeem_wallet(self) -> BillDraft:
        customer = self.active_customer
        if customer is None:
            raise ValidationError("No registered customer on this bill.")
        return self._apply(self.wallet.redeem_wallet(self._bill, customer))

    # ---------- lifecycle ----------
    def clear(self) -> BillDraft:
        self._bill = self._priced(bills.empty_bill())
        return self._bill

    def checkout(self, payment_method: str = CASH) -> Sale:
        sale = self.sales.finalize(self._bill, payment_method, self.operator)
        self.clear()
        return sale

    def upsell_hint(self) -> Optional[str]:
        if self.suggestions is None:
            return None
        return self.suggestions.suggest_upsell(it.name for it in self._bill.items)

    def dispatch(self, command: Command):
        if isinstance(command, AddItem):
            return self.add_item(command.product_id, command.quantity)
        if isinstance(command, RemoveItem):
            return self.remove_item(command.product_id)
        if isinstance(command, SetCustomer):
            return self.set_customer(command.name, command.mobile)
        if isinstance(command, DiscountBill):
            return self.set_bill_discount(command.discount)
        if isinstance(command, Checkout):
            return self.checkout(command.payment_method)
        if isinstance(command, ClearBill):
            return self.clear()
        raise ValidationError(f"Unsupported command: {type(command).__name__}")
