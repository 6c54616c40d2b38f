from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Optional
from uuid import uuid4

from posbill.domain.errors import NotFoundError, ValidationError
from posbill.domain.models import (
    INITIAL_STOCK_REASON,
    MANUAL_ADJUSTMENT_REASON,
    Operator,
    Product,
    StockLogEntry,
)

log = logging.getLogger("posbill.inventory")


def _log_entry(previous: float, new: float, reason: str, operator: Operator) -> StockLogEntry:
    return StockLogEntry(
        id=f"log_{uuid4().hex}",
        date=datetime.now().replace(microsecond=0).isoformat(sep=" "),
        change=float(new) - float(previous),
        previous_stock=float(previous),
        new_stock=float(new),
        reason=reason,
        user_id=operator.id,
    )


class InventoryService:
    def __init__(self, repo, low_stock_threshold: float = 10):
        self.repo = repo
        self.low_stock_threshold = float(low_stock_threshold)

    def list_products(self) -> list[Product]:
        return self.repo.list_products()

    def low_stock(self, threshold: Optional[float] = None) -> list[Product]:
        limit = self.low_stock_threshold if threshold is None else float(threshold)
        return [p for p in self.repo.list_products() if p.stock <= limit]

    def get_product(self, product_id: str) -> Product:
        p = self.repo.get_product(str(product_id))
        if not p:
            raise NotFoundError("Product not found.")
        return p

    def find_product(self, product_id: str) -> Optional[Product]:
        return self.repo.get_product(str(product_id))

    def add_product(
        self,
        name: str,
        brand: str,
        price: float,
        expire_date: str,
        stock: float,
        operator: Operator,
        product_id: Optional[str] = None,
    ) -> Product:
        name = (name or "").strip()
        brand = (brand or "").strip() or "Generic"
        pid = (product_id or "").strip() or f"prod_{uuid4().hex[:12]}"
        if not name:
            raise ValidationError("Product name is required.")
        if float(price) < 0:
            raise ValidationError("Price must be >= 0.")
        if float(stock) < 0:
            raise ValidationError("Stock must be >= 0.")
        if self.repo.get_product(pid):
            raise ValidationError(f"Product id already exists: {pid}")

        product = Product(
            id=pid,
            name=name,
            brand=brand,
            price=float(price),
            expire_date=(expire_date or "").strip(),
            stock=float(stock),
            stock_history=(_log_entry(0.0, float(stock), INITIAL_STOCK_REASON, operator),),
        )
        self.repo.insert_product(product)
        log.info("product_created product=%s stock=%s actor=%s", pid, product.stock, operator.id)
        return product

    def update_product(self, product_id: str, name: str, brand: str, price: float, expire_date: str) -> Product:
        if not (name or "").strip():
            raise ValidationError("Product name is required.")
        if float(price) < 0:
            raise ValidationError("Price must be >= 0.")
        current = self.get_product(product_id)
        updated = replace(
            current,
            name=name.strip(),
            brand=(brand or "").strip() or "Generic",
            price=float(price),
            expire_date=(expire_date or "").strip(),
        )
        self.repo.save_product(updated)
        return self.get_product(current.id)

    def edit_stock(self, product_id: str, new_stock: float, operator: Operator, reason: Optional[str] = None) -> Product:
        """
        Set an absolute stock figure and record the delta in the product's history.

        The delta is taken against the stock read inside the write transaction, so a
        sale committed meanwhile is kept in the log. A figure equal to the current
        stock records nothing.
        """
        try:
            target = float(new_stock)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Stock must be a number. Received: {new_stock!r}") from e
        if not math.isfinite(target) or target < 0:
            raise ValidationError("Stock must be >= 0.")

        current = self.get_product(product_id)
        entry = self.repo.adjust_stock(
            current.id, target, (reason or "").strip() or MANUAL_ADJUSTMENT_REASON, operator.id
        )
        if entry is not None:
            log.info(
                "stock_edited product=%s previous=%s new=%s reason=%s actor=%s",
                current.id, entry.previous_stock, entry.new_stock, entry.reason, operator.id,
            )
        return self.get_product(current.id)

    def delete_product(self, product_id: str) -> None:
        if not self.repo.delete_product(str(product_id)):
            raise NotFoundError("Product not found.")
        log.info("product_deleted product=%s", product_id)

    def history(self, product_id: str) -> list[StockLogEntry]:
        """Stock log entries for audit display, newest first."""
        self.get_product(product_id)
        return self.repo.stock_history(str(product_id))

    def replay_stock(self, product_id: str) -> float:
        """Rebuild the stock figure by summing every logged change from the initial value."""
        product = self.get_product(product_id)
        if not product.stock_history:
            return product.stock
        replayed = product.stock_history[0].previous_stock
        for entry in product.stock_history:
            replayed += entry.change
        return replayed
