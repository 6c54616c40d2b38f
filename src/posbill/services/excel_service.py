from __future__ import annotations

from datetime import datetime

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from posbill.domain.errors import AppError, ValidationError
from posbill.domain.models import Operator
import logging

log = logging.getLogger(__name__)

EXCEL_IMPORT_REASON = "Excel Import"


def _bold_row(ws, r: int) -> None:
    for c in ws[r]:
        c.font = Font(bold=True)


def _set_widths(ws, widths: dict[str, int]) -> None:
    for col, w in widths.items():
        ws.column_dimensions[col].width = w


class ExcelService:
    def __init__(self, repo, inventory_service):
        self.repo = repo
        self.inventory = inventory_service

    def export_customers_excel(self, path: str) -> int:
        wb = Workbook()
        ws = wb.active
        ws.title = "Customers"
        ws.append(["ID", "Name", "Mobile", "Email", "Wallet Balance", "Premium"])
        _bold_row(ws, 1)

        customers = self.repo.list_customers()
        for i, c in enumerate(customers, start=2):
            ws.append([c.id, c.name, c.mobile, c.email or "", float(c.wallet_balance), "Yes" if c.is_premium else "No"])
            ws[f"E{i}"].number_format = "#,##0.00"

        ws.freeze_panes = "A2"
        _set_widths(ws, {"A": 20, "B": 28, "C": 16, "D": 28, "E": 16, "F": 10})
        wb.save(path)
        return len(customers)

    def export_stock_history_excel(self, path: str, product_id: str) -> int:
        product = self.inventory.get_product(product_id)
        history = self.inventory.history(product_id)

        wb = Workbook()
        ws = wb.active
        ws.title = "Stock History"
        ws["A1"] = f"Stock History: {product.name}"
        ws["A1"].font = Font(bold=True, size=14)
        ws["A2"] = f"Current stock: {product.stock:g}"

        ws.append([])
        ws.append(["Date", "User", "Change", "Previous", "New Stock", "Reason"])
        _bold_row(ws, 4)
        for e in history:
            ws.append([e.date, e.user_id, e.change, e.previous_stock, e.new_stock, e.reason])

        ws.freeze_panes = "A5"
        _set_widths(ws, {"A": 22, "B": 18, "C": 10, "D": 12, "E": 12, "F": 28})
        wb.save(path)
        return len(history)

    def import_products_excel(self, path: str, operator: Operator) -> tuple[int, int]:
        """
        Headers:
          id | name | brand | price | expire_date | stock

        stock is the absolute figure; existing products get a stock edit
        logged as "Excel Import" when it differs.
        """
        wb = load_workbook(path)
        ws = wb.active

        headers = {}
        for col in range(1, ws.max_column + 1):
            v = ws.cell(row=1, column=col).value
            if isinstance(v, str):
                headers[v.strip().lower()] = col

        required = ["id", "name", "brand", "price", "expire_date", "stock"]
        for r in required:
            if r not in headers:
                raise ValidationError(f"Missing column header: {r}")

        ok = 0
        skipped = 0

        for row in range(2, ws.max_row + 1):
            values = {k: ws.cell(row=row, column=headers[k]).value for k in required}
            if not values["id"] or not values["name"] or values["price"] is None or values["stock"] is None:
                skipped += 1
                continue
            try:
                pid = str(values["id"]).strip()
                name = str(values["name"]).strip()
                brand = str(values["brand"] or "").strip()
                price = float(values["price"])
                expire_raw = values["expire_date"]
                if isinstance(expire_raw, datetime):
                    expire = expire_raw.date().isoformat()
                else:
                    expire = str(expire_raw or "").strip()
                stock = float(values["stock"])

                existing = self.repo.get_product(pid)
                if existing:
                    self.inventory.update_product(pid, name, brand, price, expire)
                    self.inventory.edit_stock(pid, stock, operator, reason=EXCEL_IMPORT_REASON)
                else:
                    self.inventory.add_product(name, brand, price, expire, stock, operator, product_id=pid)
                ok += 1
            except (AppError, ValueError, TypeError) as e:
                log.warning("Excel import skipped row %s: %s", row, e)
                skipped += 1

        return ok, skipped
