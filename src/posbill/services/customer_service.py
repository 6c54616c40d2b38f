from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional
from uuid import uuid4

from posbill.domain.errors import NotFoundError, ValidationError
from posbill.domain.models import Customer, Sale

log = logging.getLogger(__name__)


class CustomerService:
    def __init__(self, repo):
        self.repo = repo

    def list_customers(self) -> list[Customer]:
        return self.repo.list_customers()

    def get_by_mobile(self, mobile: str) -> Optional[Customer]:
        mobile = (mobile or "").strip()
        if not mobile:
            return None
        return self.repo.get_customer_by_mobile(mobile)

    def get_customer(self, customer_id: str) -> Customer:
        c = self.repo.get_customer(str(customer_id))
        if not c:
            raise NotFoundError("Customer not found.")
        return c

    def _check_mobile_free(self, mobile: str, owner_id: Optional[str]) -> None:
        other = self.repo.get_customer_by_mobile(mobile)
        if other and other.id != owner_id:
            raise ValidationError(f"Mobile {mobile} already belongs to {other.name}.")

    def create_customer(
        self,
        name: str,
        mobile: str,
        email: Optional[str] = None,
        is_premium: bool = False,
        wallet_balance: float = 0.0,
    ) -> Customer:
        name = (name or "").strip()
        mobile = (mobile or "").strip()
        if not name or not mobile:
            raise ValidationError("Name and mobile are required.")
        if float(wallet_balance) < 0:
            raise ValidationError("Wallet balance must be >= 0.")
        self._check_mobile_free(mobile, None)

        customer = Customer(
            id=f"cust_{uuid4().hex[:12]}",
            name=name,
            mobile=mobile,
            wallet_balance=float(wallet_balance),
            is_premium=bool(is_premium),
            email=(email or "").strip() or None,
        )
        self.repo.save_customer(customer)
        log.info("customer_created customer=%s premium=%s", customer.id, customer.is_premium)
        return customer

    def update_customer(
        self,
        customer_id: str,
        name: str,
        mobile: str,
        email: Optional[str] = None,
        is_premium: bool = False,
    ) -> Customer:
        """Edit profile fields. The wallet balance only moves through checkout."""
        name = (name or "").strip()
        mobile = (mobile or "").strip()
        if not name or not mobile:
            raise ValidationError("Name and mobile are required.")
        current = self.get_customer(customer_id)
        self._check_mobile_free(mobile, current.id)

        updated = replace(
            current,
            name=name,
            mobile=mobile,
            email=(email or "").strip() or None,
            is_premium=bool(is_premium),
        )
        self.repo.save_customer(updated)
        return updated

    def delete_customer(self, customer_id: str) -> None:
        if not self.repo.delete_customer(str(customer_id)):
            raise NotFoundError("Customer not found.")
        log.info("customer_deleted customer=%s", customer_id)

    def sales_for_customer(self, mobile: str) -> list[Sale]:
        return self.repo.sales_for_mobile((mobile or "").strip())
