from __future__ import annotations

from dataclasses import replace

from posbill.domain.bill import BillDraft
from posbill.domain.discounts import apply_discount
from posbill.domain.errors import ValidationError
from posbill.domain.models import LineItem


class PricingCalculator:
    """
    Derives subtotal, tax and total of a draft bill.

    Order of application:
      line net   = unit_price * quantity - line discount
      subtotal   = sum(line net)                (not clamped)
      after_bill = subtotal - bill discount on subtotal
      after_wallet = after_bill - wallet_redeemed
      tax        = after_wallet * gst_rate / 100   (only when gst_rate > 0)
      total      = max(0, after_wallet + tax)
    """

    def __init__(self, gst_rate_percent: float = 0.0):
        rate = float(gst_rate_percent or 0.0)
        if rate < 0 or rate > 100:
            raise ValidationError("GST rate must be between 0 and 100.")
        self.gst_rate_percent = rate

    @staticmethod
    def line_gross(item: LineItem) -> float:
        return float(item.unit_price) * float(item.quantity)

    def line_net(self, item: LineItem) -> float:
        gross = self.line_gross(item)
        return gross - apply_discount(gross, item.discount)

    def recompute(self, bill: BillDraft) -> BillDraft:
        subtotal = sum((self.line_net(it) for it in bill.items), 0.0)

        after_bill_discount = subtotal - apply_discount(subtotal, bill.bill_discount)
        after_wallet = after_bill_discount - float(bill.wallet_redeemed or 0.0)

        tax_amount = 0.0
        if self.gst_rate_percent > 0:
            tax_amount = after_wallet * (self.gst_rate_percent / 100)

        total = max(0.0, after_wallet + tax_amount)
        return replace(bill, subtotal=subtotal, tax_amount=tax_amount, total=total)
