from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

import logging
from posbill.domain.bill import BillDraft
from posbill.domain.errors import AppError, PersistenceError, ValidationError
from posbill.domain.models import PAYMENT_METHODS, WALLET_TOLERANCE, Customer, Operator, Sale
from posbill.repositories.contracts import Store
from posbill.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from posbill.services.wallet_service import WalletService

log = logging.getLogger("posbill.sales")
wallet_log = logging.getLogger("posbill.wallet")


def _invoice_number(now: datetime) -> str:
    millis = int(now.timestamp() * 1000) % 1_000_000
    return f"RG-INV-{now:%Y%m%d}-{millis:06d}"


class SalesService:
    def __init__(
        self,
        repo: Store,
        wallet: WalletService | None = None,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.wallet = wallet or WalletService()
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def finalize(self, bill: BillDraft, payment_method: str, operator: Operator) -> Sale:
        """
        Turn a priced draft into a stored Sale.

        The sale row, the customer's wallet settlement and every stock decrement
        (with its "Sale" log entry) are written together or not at all. The sale id
        is the draft's bill_id, so finalizing the same draft twice returns the stored
        sale without touching stock or wallet again.
        """
        if bill.is_empty:
            raise ValidationError("Add items to bill first.")
        method = (payment_method or "").strip().upper()
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method: {payment_method!r}")

        existing = self.repo.get_sale(bill.bill_id)
        if existing:
            log.info("sale_replayed sale_id=%s", existing.id)
            return existing

        customer: Optional[Customer] = None
        if bill.customer is not None:
            customer = self.repo.get_customer_by_mobile(bill.customer.mobile)

        wallet_used = float(bill.wallet_redeemed or 0.0)
        if wallet_used > 0:
            if customer is None:
                raise ValidationError("Wallet redemption needs a registered customer.")
            if wallet_used > max(float(bill.subtotal), 0.0) + WALLET_TOLERANCE:
                raise ValidationError(
                    f"Wallet redemption {wallet_used:.2f} exceeds the bill subtotal {float(bill.subtotal):.2f}."
                )
        wallet_credited = self.wallet.premium_credit(customer, bill.total)

        now = datetime.now()
        sale = Sale(
            id=bill.bill_id,
            date=now.replace(microsecond=0).isoformat(sep=" "),
            items=tuple(bill.items),
            total=float(bill.total),
            tax_amount=float(bill.tax_amount),
            employee_id=operator.id,
            payment_method=method,
            wallet_used=wallet_used,
            wallet_credited=float(wallet_credited),
            customer_name=bill.customer.name if bill.customer else None,
            customer_mobile=bill.customer.mobile if bill.customer else None,
            invoice_number=_invoice_number(now),
        )

        try:
            with self.uow_factory() as uow:
                created = uow.finalize_sale(sale, customer.id if customer else None)
        except AppError:
            raise
        except Exception as e:
            log.exception("sale_finalize_failed sale_id=%s", sale.id)
            raise PersistenceError(f"Could not save sale {sale.id}: {e}") from e

        if not created:
            stored = self.repo.get_sale(sale.id)
            log.info("sale_replayed sale_id=%s", sale.id)
            return stored or sale

        log.info(
            "sale_finalized sale_id=%s items=%s total=%.2f method=%s actor=%s",
            sale.id, len(sale.items), sale.total, method, operator.id,
        )
        if customer is not None:
            wallet_log.info(
                "wallet_settled customer=%s used=%.2f credited=%.2f balance=%.2f",
                customer.id, wallet_used, wallet_credited,
                self.wallet.settled_balance(customer, wallet_used, wallet_credited),
            )
        return sale

    def get_sale(self, sale_id: str) -> Optional[Sale]:
        return self.repo.get_sale(sale_id)

    def list_sales(self) -> list[Sale]:
        return self.repo.list_sales()
