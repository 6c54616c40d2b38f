from pathlib import Path

import pytest

from conftest import build_pos, cashier

from posbill.application.container import build_container
from posbill.config import BillingSettings
from posbill.domain.commands import AddItem, Checkout, ClearBill, DiscountBill, RemoveItem, SetCustomer
from posbill.domain.discounts import REMOVE_DISCOUNT, Discount
from posbill.domain.errors import NotFoundError, ValidationError
from posbill.domain.models import Operator, Sale, ShopDetails


ADMIN = Operator(id="admin-1", username="admin")


def _stocked(tmp_path: Path, gst_rate: float = 0.0):
    pos = build_pos(tmp_path, gst_rate=gst_rate)
    pos.inventory.add_product("Paneer (200g)", "Amul", 90.0, "2026-12-01", 12, ADMIN, product_id="paneer")
    pos.inventory.add_product("Curd (400g)", "Mother Dairy", 35.0, "2026-11-01", 2, ADMIN, product_id="curd")
    return pos


def test_commands_drive_a_full_sale(tmp_path: Path):
    pos = _stocked(tmp_path)
    pos.customers.create_customer("Kiran", "9000000007")
    session = pos.open_session(cashier())

    session.dispatch(AddItem("paneer", 2))
    session.dispatch(AddItem("curd"))
    session.dispatch(RemoveItem("curd"))
    session.dispatch(SetCustomer("", "9000000007"))
    draft = session.dispatch(DiscountBill(Discount.fixed(30)))

    assert [it.product_id for it in draft.items] == ["paneer"]
    assert draft.customer.name == "Kiran"
    assert draft.total == pytest.approx(150.0)

    sale = session.dispatch(Checkout("UPI"))
    assert isinstance(sale, Sale)
    assert sale.payment_method == "UPI"
    assert session.bill.is_empty


def test_discount_command_with_remove_clears_bill_discount(tmp_path: Path):
    pos = _stocked(tmp_path)
    session = pos.open_session(cashier())
    session.dispatch(AddItem("paneer", 1))
    session.dispatch(DiscountBill(Discount.percentage(10)))

    draft = session.dispatch(DiscountBill(REMOVE_DISCOUNT))

    assert draft.bill_discount is None
    assert draft.total == pytest.approx(90.0)


def test_clear_command_starts_fresh_bill(tmp_path: Path):
    pos = _stocked(tmp_path)
    session = pos.open_session(cashier())
    session.dispatch(AddItem("paneer", 1))
    old_id = session.bill.bill_id

    draft = session.dispatch(ClearBill())

    assert draft.is_empty
    assert draft.bill_id != old_id
    assert pos.inventory.get_product("paneer").stock == 12


def test_unsupported_command_rejected(tmp_path: Path):
    pos = _stocked(tmp_path)
    with pytest.raises(ValidationError):
        pos.open_session(cashier()).dispatch("scan 123")


def test_unknown_product_leaves_draft_untouched(tmp_path: Path):
    pos = _stocked(tmp_path)
    session = pos.open_session(cashier())
    session.add_item("paneer", 1)
    before = session.bill

    with pytest.raises(NotFoundError):
        session.dispatch(AddItem("ghost", 1))

    assert session.bill == before


def test_adding_more_than_stock_is_allowed(tmp_path: Path):
    pos = _stocked(tmp_path)
    session = pos.open_session(cashier())

    draft = session.add_item("curd", 5)

    assert draft.items[0].quantity == 5
    sale = session.checkout("CASH")
    assert pos.inventory.get_product("curd").stock == -3
    assert pos.inventory.replay_stock("curd") == pytest.approx(-3)
    assert sale.total == pytest.approx(175.0)


def test_line_edits_reprice_the_draft(tmp_path: Path):
    pos = _stocked(tmp_path, gst_rate=5)
    session = pos.open_session(cashier())
    session.add_item("paneer", 1)

    session.change_quantity("paneer", 1)
    draft = session.set_item_discount("paneer", Discount.fixed(20))
    assert draft.subtotal == pytest.approx(160.0)
    assert draft.total == pytest.approx(168.0)

    draft = session.set_quantity("paneer", 0)
    assert draft.is_empty
    assert draft.total == 0.0


def test_redeem_wallet_requires_registered_customer(tmp_path: Path):
    pos = _stocked(tmp_path)
    session = pos.open_session(cashier())
    session.add_item("paneer", 1)

    with pytest.raises(ValidationError):
        session.redeem_wallet()

    session.set_customer("Walk-in", "9222222222")
    with pytest.raises(ValidationError):
        session.redeem_wallet()


def test_clearing_customer_drops_redemption(tmp_path: Path):
    pos = _stocked(tmp_path)
    pos.customers.create_customer("Kiran", "9000000007", wallet_balance=25.0)
    session = pos.open_session(cashier())
    session.add_item("paneer", 1)
    session.set_customer("Kiran", "9000000007")
    assert session.redeem_wallet().total == pytest.approx(65.0)

    draft = session.clear_customer()

    assert draft.customer is None
    assert draft.wallet_redeemed == 0.0
    assert draft.total == pytest.approx(90.0)


def test_gst_comes_from_shop_settings_without_override(tmp_path: Path):
    pos = build_container(tmp_path / "shop.db", BillingSettings())
    pos.inventory.add_product("Paneer (200g)", "Amul", 100.0, "", 12, ADMIN, product_id="paneer")
    pos.settings.save_shop_details(ShopDetails(name="RG Shop", default_gst_rate=12))

    session = pos.open_session(cashier())
    draft = session.add_item("paneer", 1)

    assert draft.tax_amount == pytest.approx(12.0)
    assert draft.total == pytest.approx(112.0)

    pos.settings.save_shop_details(ShopDetails(name="RG Shop", default_gst_rate=0))
    assert session.refresh_totals().total == pytest.approx(100.0)


class _FakeSuggestions:
    def __init__(self):
        self.seen = None

    def suggest_upsell(self, item_names):
        self.seen = list(item_names)
        return "Bread"


def test_upsell_hint_uses_item_names(tmp_path: Path):
    pos = _stocked(tmp_path)
    session = pos.open_session(cashier())
    fake = _FakeSuggestions()
    session.suggestions = fake
    session.add_item("paneer", 1)

    assert session.upsell_hint() == "Bread"
    assert fake.seen == ["Paneer (200g)"]


def test_upsell_hint_without_service_is_none(tmp_path: Path):
    pos = _stocked(tmp_path)
    session = pos.open_session(cashier())
    session.suggestions = None
    session.add_item("paneer", 1)
    assert session.upsell_hint() is None


def test_infinite_discount_never_reaches_the_draft(tmp_path: Path):
    pos = _stocked(tmp_path)
    session = pos.open_session(cashier())
    session.add_item("paneer", 1)
    before = session.bill

    with pytest.raises(ValidationError):
        session.set_item_discount("paneer", Discount.fixed(float("inf")))

    assert session.bill == before
