from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import Workbook, load_workbook

from conftest import build_pos

from posbill.domain.errors import ValidationError
from posbill.domain.models import Operator
from posbill.services.excel_service import EXCEL_IMPORT_REASON


ADMIN = Operator(id="admin-1", username="admin")


def _sheet(path: Path, headers, rows) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for r in rows:
        ws.append(r)
    wb.save(path)
    return path


def test_export_customers(tmp_path: Path):
    pos = build_pos(tmp_path)
    pos.customers.create_customer("Asha", "9000000001", wallet_balance=12.5, is_premium=True)
    pos.customers.create_customer("Ravi", "9000000002")
    out = tmp_path / "customers.xlsx"

    assert pos.excel.export_customers_excel(str(out)) == 2

    ws = load_workbook(out).active
    assert [c.value for c in ws[1]] == ["ID", "Name", "Mobile", "Email", "Wallet Balance", "Premium"]
    assert ws["B2"].value == "Asha"
    assert ws["E2"].value == 12.5
    assert ws["F2"].value == "Yes"
    assert ws["F3"].value == "No"


def test_import_creates_and_updates_products(tmp_path: Path):
    pos = build_pos(tmp_path)
    pos.inventory.add_product("Old Name", "Tata", 20.0, "", 5, ADMIN, product_id="salt")
    src = _sheet(
        tmp_path / "products.xlsx",
        ["ID", "Name", "Brand", "Price", "Expire_Date", "Stock"],
        [
            ["salt", "Salt (1kg)", "Tata", 22, datetime(2027, 5, 1), 18],
            ["jam", "Mixed Fruit Jam", "Kissan", 140, "2027-02-01", 6],
            ["", "No id", "X", 1, "", 1],
            ["bad", "Bad Stock", "X", 1, "", -4],
        ],
    )

    ok, skipped = pos.excel.import_products_excel(str(src), ADMIN)

    assert (ok, skipped) == (2, 2)
    salt = pos.inventory.get_product("salt")
    assert (salt.name, salt.price, salt.stock, salt.expire_date) == ("Salt (1kg)", 22.0, 18, "2027-05-01")
    latest = pos.inventory.history("salt")[0]
    assert latest.reason == EXCEL_IMPORT_REASON
    assert latest.change == 13

    jam = pos.inventory.get_product("jam")
    assert jam.stock == 6
    assert [e.reason for e in jam.stock_history] == ["Initial Stock"]
    assert pos.inventory.find_product("bad") is None


def test_import_requires_all_headers(tmp_path: Path):
    pos = build_pos(tmp_path)
    src = _sheet(tmp_path / "p.xlsx", ["id", "name", "price", "stock"], [["a", "A", 1, 1]])

    with pytest.raises(ValidationError, match="brand"):
        pos.excel.import_products_excel(str(src), ADMIN)


def test_export_stock_history(tmp_path: Path):
    pos = build_pos(tmp_path)
    pos.inventory.add_product("Honey", "Dabur", 199.0, "", 8, ADMIN, product_id="honey")
    pos.inventory.edit_stock("honey", 5, ADMIN, reason="Damaged")
    out = tmp_path / "honey.xlsx"

    assert pos.excel.export_stock_history_excel(str(out), "honey") == 2

    ws = load_workbook(out).active
    assert ws["A1"].value == "Stock History: Honey"
    assert [c.value for c in ws[4]] == ["Date", "User", "Change", "Previous", "New Stock", "Reason"]
    assert ws["C5"].value == -3
    assert ws["F5"].value == "Damaged"
    assert ws["F6"].value == "Initial Stock"
