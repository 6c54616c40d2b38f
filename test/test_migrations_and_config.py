import json
import logging
from pathlib import Path

import pytest

from conftest import build_pos

from posbill.config import BillingSettings, load_settings
from posbill.domain.errors import ValidationError
from posbill.domain.models import ShopDetails
from posbill.logging_config import DEDICATED_LOGS, is_posbill_handler, setup_logging
from posbill.repositories.sqlite_repo import SqliteRepository


def test_migrations_are_recorded_and_rerun_safely(tmp_path: Path):
    repo = SqliteRepository(tmp_path / "m.db")
    repo.init_db()
    repo.init_db()

    conn = repo._conn()
    cur = conn.cursor()
    cur.execute("SELECT version FROM schema_migrations ORDER BY version")
    versions = [int(r[0]) for r in cur.fetchall()]
    cur.execute("PRAGMA table_info(sales)")
    sale_cols = {str(r[1]) for r in cur.fetchall()}
    conn.close()

    assert versions == [1, 2]
    assert "invoice_number" in sale_cols
    assert repo.integrity_check() == "ok"


def test_migration_failure_restores_db(tmp_path: Path):
    class BrokenMigrationRepo(SqliteRepository):
        def _migration_v2_shop_and_invoices(self, cur):
            raise RuntimeError("forced migration failure")

    db = tmp_path / "broken.db"
    repo = SqliteRepository(db)
    repo.init_db()

    conn = repo._conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM schema_migrations WHERE version = 2")
    conn.commit()
    conn.close()

    with pytest.raises(RuntimeError, match="Original database restored"):
        BrokenMigrationRepo(db).run_migrations()

    conn = repo._conn()
    cur = conn.cursor()
    cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
    after = int(cur.fetchone()[0])
    conn.close()

    assert after == 1


def test_load_settings_reads_environment():
    cfg = load_settings(
        {
            "POSBILL_GST_RATE": "18",
            "POSBILL_SUGGEST_URL": " http://suggest.local/upsell ",
            "POSBILL_SUGGEST_TIMEOUT": "1.5",
            "POSBILL_LOW_STOCK": "3",
        }
    )
    assert cfg == BillingSettings(
        gst_rate_override=18.0,
        suggest_url="http://suggest.local/upsell",
        suggest_timeout=1.5,
        low_stock_threshold=3.0,
    )


def test_load_settings_defaults():
    assert load_settings({}) == BillingSettings()


@pytest.mark.parametrize(
    "env",
    [
        {"POSBILL_GST_RATE": "eighteen"},
        {"POSBILL_GST_RATE": "120"},
        {"POSBILL_SUGGEST_TIMEOUT": "0"},
        {"POSBILL_LOW_STOCK": "-1"},
    ],
)
def test_load_settings_rejects_bad_values(env):
    with pytest.raises(ValidationError):
        load_settings(env)


def test_shop_details_round_trip_and_validation(tmp_path: Path):
    pos = build_pos(tmp_path)
    assert pos.settings.get_shop_details().name == "RG Shop"

    details = ShopDetails(
        name="Green Grocers", address="12 MG Road", contact="080-1234", gst_number="29ABCDE1234F1Z5",
        default_gst_rate=5, upi_id="green@upi",
    )
    pos.settings.save_shop_details(details)
    assert pos.settings.get_shop_details() == details

    with pytest.raises(ValidationError):
        pos.settings.save_shop_details(ShopDetails(name="  "))
    with pytest.raises(ValidationError):
        pos.settings.save_shop_details(ShopDetails(name="X", default_gst_rate=101))


def test_override_wins_over_shop_rate(tmp_path: Path):
    pos = build_pos(tmp_path, gst_rate=18)
    pos.settings.save_shop_details(ShopDetails(name="X", default_gst_rate=5))
    assert pos.settings.gst_rate() == 18.0


def test_low_stock_threshold_comes_from_config(tmp_path: Path):
    from posbill.application.container import build_container
    from posbill.domain.models import Operator

    pos = build_container(tmp_path / "ls.db", BillingSettings(low_stock_threshold=3))
    admin = Operator(id="admin-1", username="admin")
    pos.inventory.add_product("Ink", "Camel", 30.0, "", 2, admin, product_id="ink")
    pos.inventory.add_product("Pens", "Reynolds", 10.0, "", 8, admin, product_id="pens")

    assert [p.id for p in pos.inventory.low_stock()] == ["ink"]
    assert [p.id for p in pos.inventory.low_stock(10)] == ["ink", "pens"]


@pytest.fixture
def fresh_logging(monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "level", root.level)
    yield
    for logger in [root] + [logging.getLogger(name) for name in DEDICATED_LOGS]:
        for h in list(logger.handlers):
            if is_posbill_handler(h):
                logger.removeHandler(h)
                h.close()


def test_setup_logging_writes_json_files(tmp_path: Path, fresh_logging):
    logs = tmp_path / "logs"
    setup_logging(logs)

    logging.getLogger("posbill.sales").info("sale_finalized sale_id=%s", "sale_1")
    logging.getLogger("posbill.other").error("boom")
    for h in logging.getLogger().handlers + logging.getLogger("posbill.sales").handlers:
        h.flush()

    for name in ("app.log", "errors.log", "sales.log", "inventory.log", "wallet.log"):
        assert (logs / name).exists()
    record = json.loads((logs / "sales.log").read_text(encoding="utf-8").splitlines()[0])
    assert record["logger"] == "posbill.sales"
    assert record["event"] == "sale_finalized"
    assert record["fields"] == {"sale_id": "sale_1"}
    assert "boom" in (logs / "errors.log").read_text(encoding="utf-8")
    assert "sale_finalized" not in (logs / "errors.log").read_text(encoding="utf-8")


def test_setup_logging_installs_once_next_to_foreign_handlers(tmp_path: Path, fresh_logging):
    root = logging.getLogger()
    foreign = logging.NullHandler()
    root.addHandler(foreign)
    try:
        setup_logging(tmp_path / "logs")
        setup_logging(tmp_path / "other")

        ours = [h for h in root.handlers if is_posbill_handler(h)]
        assert sorted(h.get_name() for h in ours) == ["posbill:app.log", "posbill:errors.log"]
        assert foreign in root.handlers
        assert not (tmp_path / "other" / "app.log").exists()
    finally:
        root.removeHandler(foreign)


def test_free_text_messages_carry_no_fields():
    from posbill.logging_config import JsonFormatter

    rec = logging.LogRecord("posbill.inventory", logging.INFO, __file__, 1, "Excel import skipped row %s: %s", (3, "bad"), None)
    payload = json.loads(JsonFormatter().format(rec))

    assert payload["message"] == "Excel import skipped row 3: bad"
    assert "event" not in payload


def test_bootstrap_builds_container_under_home(tmp_path: Path, monkeypatch, fresh_logging):
    from posbill.main import bootstrap

    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
    monkeypatch.setattr("sys.platform", "linux")
    for key in ("POSBILL_GST_RATE", "POSBILL_SUGGEST_URL", "POSBILL_SUGGEST_TIMEOUT", "POSBILL_LOW_STOCK"):
        monkeypatch.delenv(key, raising=False)

    pos = bootstrap("TestPos")

    base = tmp_path / ".testpos"
    assert (base / "pos.db").exists()
    assert (base / "logs" / "app.log").exists()
    assert pos.settings.gst_rate() == 0.0
