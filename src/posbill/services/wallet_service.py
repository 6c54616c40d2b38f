from __future__ import annotations

import logging
import math
from typing import Optional

from posbill.domain.bill import BillDraft, set_wallet_redeemed
from posbill.domain.errors import ValidationError
from posbill.domain.models import Customer

log = logging.getLogger("posbill.wallet")

# Premium totals carry a 5% surcharge on a tax-inclusive base; the credit hands it back.
PREMIUM_SURCHARGE_NUMERATOR = 5
PREMIUM_SURCHARGE_DENOMINATOR = 105


class WalletService:
    def redeem_wallet(self, bill: BillDraft, customer: Customer) -> BillDraft:
        """
        Redeem as much store credit as the bill allows: min(subtotal, balance).

        Overwrites any earlier redemption. Nothing is debited until checkout.
        The result still needs PricingCalculator.recompute.
        """
        if bill.customer is None or bill.customer.mobile != customer.mobile:
            raise ValidationError("Wallet can only be redeemed for the customer bound to the bill.")

        amount = max(0.0, min(float(bill.subtotal), float(customer.wallet_balance)))
        log.info("wallet_redeem_requested customer=%s amount=%.2f", customer.id, amount)
        return set_wallet_redeemed(bill, amount)

    @staticmethod
    def premium_credit(customer: Optional[Customer], total: float) -> int:
        if customer is None or not customer.is_premium:
            return 0
        return math.floor(float(total) * PREMIUM_SURCHARGE_NUMERATOR / PREMIUM_SURCHARGE_DENOMINATOR)

    @staticmethod
    def settled_balance(customer: Customer, wallet_used: float, wallet_credited: float) -> float:
        return float(customer.wallet_balance) - float(wallet_used) + float(wallet_credited)
