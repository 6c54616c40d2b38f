from __future__ import annotations

import sqlite3
import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4

from posbill.domain.discounts import Discount
from posbill.domain.errors import ValidationError
from posbill.domain.models import (
    SALE_REASON,
    WALLET_TOLERANCE,
    Customer,
    LineItem,
    Product,
    Sale,
    ShopDetails,
    StockLogEntry,
)

_PRODUCT_COLS = "id, name, brand, price, expire_date, stock"
_CUSTOMER_COLS = "id, name, mobile, wallet_balance, is_premium, email"
_LOG_COLS = "id, date, change, previous_stock, new_stock, reason, user_id"
_SALE_COLS = (
    "id, date, total, tax_amount, employee_id, payment_method, wallet_used, wallet_credited, "
    "customer_name, customer_mobile, invoice_number"
)


class SqliteRepository:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
                (2, self._migration_v2_shop_and_invoices),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        # stock is REAL: weight-based items sell in fractions, and it may go negative
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS products (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            brand TEXT NOT NULL DEFAULT 'Generic',
            price REAL NOT NULL CHECK(price >= 0),
            expire_date TEXT NOT NULL DEFAULT '',
            stock REAL NOT NULL DEFAULT 0
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS stock_log (
            id TEXT PRIMARY KEY,
            product_id TEXT NOT NULL,
            date TEXT NOT NULL,
            change REAL NOT NULL,
            previous_stock REAL NOT NULL,
            new_stock REAL NOT NULL,
            reason TEXT NOT NULL,
            user_id TEXT NOT NULL,
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS customers (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            mobile TEXT NOT NULL UNIQUE,
            wallet_balance REAL NOT NULL DEFAULT 0,
            is_premium INTEGER NOT NULL DEFAULT 0 CHECK(is_premium IN (0,1)),
            email TEXT
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sales (
            id TEXT PRIMARY KEY,
            date TEXT NOT NULL,
            total REAL NOT NULL CHECK(total >= 0),
            tax_amount REAL NOT NULL,
            employee_id TEXT NOT NULL,
            payment_method TEXT NOT NULL CHECK(payment_method IN ('CASH','UPI','NET_BANKING')),
            wallet_used REAL NOT NULL DEFAULT 0 CHECK(wallet_used >= 0),
            wallet_credited REAL NOT NULL DEFAULT 0 CHECK(wallet_credited >= 0),
            customer_name TEXT,
            customer_mobile TEXT
        )
        """
        )

        # product_id is a plain copy: a sale outlives the product row
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sale_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sale_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            product_id TEXT NOT NULL,
            name TEXT NOT NULL,
            brand TEXT NOT NULL,
            unit_price REAL NOT NULL CHECK(unit_price >= 0),
            quantity REAL NOT NULL CHECK(quantity >= 0),
            discount_kind TEXT CHECK(discount_kind IN ('percentage','fixed')),
            discount_value REAL,
            FOREIGN KEY(sale_id) REFERENCES sales(id) ON DELETE CASCADE,
            UNIQUE(sale_id, product_id)
        )
        """
        )

        cur.execute("CREATE INDEX IF NOT EXISTS idx_stock_log_product ON stock_log(product_id, date)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_sales_mobile ON sales(customer_mobile)")

    def _migration_v2_shop_and_invoices(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS shop_details (
                id INTEGER PRIMARY KEY CHECK(id = 1),
                name TEXT NOT NULL,
                address TEXT NOT NULL DEFAULT '',
                contact TEXT NOT NULL DEFAULT '',
                gst_number TEXT,
                default_gst_rate REAL NOT NULL DEFAULT 0 CHECK(default_gst_rate >= 0 AND default_gst_rate <= 100),
                upi_id TEXT
            )
            """
        )
        self._add_column_if_missing(cur, "sales", "invoice_number", "TEXT")

    def _add_column_if_missing(self, cur: sqlite3.Cursor, table: str, column: str, definition: str) -> None:
        cur.execute(f"PRAGMA table_info({table})")
        cols = {str(r[1]) for r in cur.fetchall()}
        if column in cols:
            return
        cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

    def integrity_check(self) -> str:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("PRAGMA integrity_check")
        row = cur.fetchone()
        conn.close()
        return str(row[0]) if row else "unknown"

    # ---------- Products ----------
    @staticmethod
    def _product_from_row(r, history: Iterable[StockLogEntry] = ()) -> Product:
        return Product(
            id=str(r[0]),
            name=str(r[1]),
            brand=str(r[2]),
            price=float(r[3]),
            expire_date=str(r[4] or ""),
            stock=float(r[5]),
            stock_history=tuple(history),
        )

    @staticmethod
    def _log_from_row(r) -> StockLogEntry:
        return StockLogEntry(
            id=str(r[0]),
            date=str(r[1]),
            change=float(r[2]),
            previous_stock=float(r[3]),
            new_stock=float(r[4]),
            reason=str(r[5]),
            user_id=str(r[6]),
        )

    def _insert_log_entries(self, cur: sqlite3.Cursor, product_id: str, entries: Iterable[StockLogEntry]) -> None:
        # append-only: an entry already stored is never rewritten
        for e in entries:
            cur.execute(
                f"""
                INSERT OR IGNORE INTO stock_log (product_id, {_LOG_COLS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (product_id, e.id, e.date, float(e.change), float(e.previous_stock), float(e.new_stock), e.reason, e.user_id),
            )

    def insert_product(self, product: Product) -> None:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                f"INSERT INTO products ({_PRODUCT_COLS}) VALUES (?, ?, ?, ?, ?, ?)",
                (product.id, product.name, product.brand, float(product.price), product.expire_date, float(product.stock)),
            )
            self._insert_log_entries(cur, product.id, product.stock_history)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def save_product(self, product: Product) -> None:
        """
        Upsert product details and append any new log entries.

        The stock column of an existing row is left alone: it only moves through
        adjust_stock and finalize_sale, which log the change in the same transaction.
        """
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                f"""
                INSERT INTO products ({_PRODUCT_COLS}) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name, brand=excluded.brand, price=excluded.price,
                    expire_date=excluded.expire_date
                """,
                (product.id, product.name, product.brand, float(product.price), product.expire_date, float(product.stock)),
            )
            self._insert_log_entries(cur, product.id, product.stock_history)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def adjust_stock(self, product_id: str, new_stock: float, reason: str, user_id: str) -> Optional[StockLogEntry]:
        """
        Set an absolute stock figure and log the delta against the stock read in the same transaction.

        Returns None when the product is missing or the figure is unchanged.
        """
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            cur.execute("SELECT stock FROM products WHERE id=?", (str(product_id),))
            row = cur.fetchone()
            if not row or float(row[0]) == float(new_stock):
                conn.rollback()
                return None

            previous = float(row[0])
            entry = StockLogEntry(
                id=f"log_{uuid4().hex}",
                date=datetime.now().replace(microsecond=0).isoformat(sep=" "),
                change=float(new_stock) - previous,
                previous_stock=previous,
                new_stock=float(new_stock),
                reason=reason,
                user_id=user_id,
            )
            cur.execute("UPDATE products SET stock=? WHERE id=?", (entry.new_stock, str(product_id)))
            self._insert_log_entries(cur, str(product_id), [entry])
            conn.commit()
            return entry
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_product(self, product_id: str) -> Optional[Product]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_PRODUCT_COLS} FROM products WHERE id=?", (str(product_id),))
        r = cur.fetchone()
        if not r:
            conn.close()
            return None
        cur.execute(
            f"SELECT {_LOG_COLS} FROM stock_log WHERE product_id=? ORDER BY date ASC, rowid ASC",
            (str(product_id),),
        )
        history = [self._log_from_row(x) for x in cur.fetchall()]
        conn.close()
        return self._product_from_row(r, history)

    def list_products(self) -> list[Product]:
        """Product rows without their stock history; use get_product for the full record."""
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_PRODUCT_COLS} FROM products ORDER BY name")
        rows = cur.fetchall()
        conn.close()
        return [self._product_from_row(r) for r in rows]

    def delete_product(self, product_id: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("DELETE FROM products WHERE id=?", (str(product_id),))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def stock_history(self, product_id: str) -> list[StockLogEntry]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_LOG_COLS} FROM stock_log WHERE product_id=? ORDER BY date DESC, rowid DESC",
            (str(product_id),),
        )
        rows = cur.fetchall()
        conn.close()
        return [self._log_from_row(r) for r in rows]

    # ---------- Customers ----------
    @staticmethod
    def _customer_from_row(r) -> Customer:
        return Customer(
            id=str(r[0]),
            name=str(r[1]),
            mobile=str(r[2]),
            wallet_balance=float(r[3]),
            is_premium=bool(r[4]),
            email=(str(r[5]) if r[5] is not None else None),
        )

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_CUSTOMER_COLS} FROM customers WHERE id=?", (str(customer_id),))
        r = cur.fetchone()
        conn.close()
        return self._customer_from_row(r) if r else None

    def get_customer_by_mobile(self, mobile: str) -> Optional[Customer]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_CUSTOMER_COLS} FROM customers WHERE mobile=?", (str(mobile).strip(),))
        r = cur.fetchone()
        conn.close()
        return self._customer_from_row(r) if r else None

    def save_customer(self, customer: Customer) -> None:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                f"""
                INSERT INTO customers ({_CUSTOMER_COLS}) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name, mobile=excluded.mobile, wallet_balance=excluded.wallet_balance,
                    is_premium=excluded.is_premium, email=excluded.email
                """,
                (
                    customer.id,
                    customer.name,
                    customer.mobile,
                    float(customer.wallet_balance),
                    1 if customer.is_premium else 0,
                    customer.email,
                ),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete_customer(self, customer_id: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("DELETE FROM customers WHERE id=?", (str(customer_id),))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def list_customers(self) -> list[Customer]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_CUSTOMER_COLS} FROM customers ORDER BY name")
        rows = cur.fetchall()
        conn.close()
        return [self._customer_from_row(r) for r in rows]

    # ---------- Sales ----------
    def _insert_sale(self, cur: sqlite3.Cursor, sale: Sale) -> None:
        cur.execute(
            f"""
            INSERT INTO sales ({_SALE_COLS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                sale.id,
                sale.date,
                float(sale.total),
                float(sale.tax_amount),
                sale.employee_id,
                sale.payment_method,
                float(sale.wallet_used),
                float(sale.wallet_credited),
                sale.customer_name,
                sale.customer_mobile,
                sale.invoice_number,
            ),
        )
        for pos, it in enumerate(sale.items):
            cur.execute(
                """
                INSERT INTO sale_items (
                    sale_id, position, product_id, name, brand, unit_price, quantity, discount_kind, discount_value
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sale.id,
                    pos,
                    it.product_id,
                    it.name,
                    it.brand,
                    float(it.unit_price),
                    float(it.quantity),
                    it.discount.kind if it.discount else None,
                    float(it.discount.value) if it.discount else None,
                ),
            )

    def _load_sales(self, cur: sqlite3.Cursor, rows) -> list[Sale]:
        out: list[Sale] = []
        for r in rows:
            cur.execute(
                """
                SELECT product_id, name, brand, unit_price, quantity, discount_kind, discount_value
                FROM sale_items
                WHERE sale_id=?
                ORDER BY position
                """,
                (str(r[0]),),
            )
            items = tuple(
                LineItem(
                    product_id=str(i[0]),
                    name=str(i[1]),
                    brand=str(i[2]),
                    unit_price=float(i[3]),
                    quantity=float(i[4]),
                    discount=(Discount(str(i[5]), float(i[6])) if i[5] is not None else None),
                )
                for i in cur.fetchall()
            )
            out.append(
                Sale(
                    id=str(r[0]),
                    date=str(r[1]),
                    items=items,
                    total=float(r[2]),
                    tax_amount=float(r[3]),
                    employee_id=str(r[4]),
                    payment_method=str(r[5]),
                    wallet_used=float(r[6]),
                    wallet_credited=float(r[7]),
                    customer_name=(r[8] if r[8] is not None else None),
                    customer_mobile=(r[9] if r[9] is not None else None),
                    invoice_number=(r[10] if r[10] is not None else None),
                )
            )
        return out

    def save_sale(self, sale: Sale) -> None:
        conn = self._conn()
        cur = conn.cursor()
        try:
            self._insert_sale(cur, sale)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_sale(self, sale_id: str) -> Optional[Sale]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_SALE_COLS} FROM sales WHERE id=?", (str(sale_id),))
        rows = cur.fetchall()
        sales = self._load_sales(cur, rows)
        conn.close()
        return sales[0] if sales else None

    def list_sales(self) -> list[Sale]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_SALE_COLS} FROM sales ORDER BY date DESC, rowid DESC")
        rows = cur.fetchall()
        sales = self._load_sales(cur, rows)
        conn.close()
        return sales

    def sales_for_mobile(self, mobile: str) -> list[Sale]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_SALE_COLS} FROM sales WHERE customer_mobile=? ORDER BY date DESC, rowid DESC",
            (str(mobile).strip(),),
        )
        rows = cur.fetchall()
        sales = self._load_sales(cur, rows)
        conn.close()
        return sales

    def _decrement_stock(self, cur: sqlite3.Cursor, sale: Sale, item: LineItem) -> bool:
        cur.execute("SELECT stock FROM products WHERE id=?", (item.product_id,))
        row = cur.fetchone()
        if not row:
            return False
        previous = float(row[0])
        new_stock = previous - float(item.quantity)
        cur.execute("UPDATE products SET stock=? WHERE id=?", (new_stock, item.product_id))
        self._insert_log_entries(
            cur,
            item.product_id,
            [
                StockLogEntry(
                    id=f"log_{uuid4().hex}",
                    date=sale.date,
                    change=-float(item.quantity),
                    previous_stock=previous,
                    new_stock=new_stock,
                    reason=SALE_REASON,
                    user_id=sale.employee_id,
                )
            ],
        )
        return True

    def finalize_sale(self, sale: Sale, customer_id: Optional[str]) -> bool:
        """
        Persist the sale, settle the customer's wallet and decrement stock in one transaction.

        Returns False without writing anything when a sale with the same id already exists.
        Lines whose product no longer exists are kept on the sale but skip the stock update.
        """
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            cur.execute("SELECT 1 FROM sales WHERE id=?", (sale.id,))
            if cur.fetchone():
                conn.rollback()
                return False

            if customer_id is not None and sale.wallet_used > 0:
                cur.execute("SELECT wallet_balance FROM customers WHERE id=?", (customer_id,))
                row = cur.fetchone()
                balance = float(row[0]) if row else 0.0
                if float(sale.wallet_used) > balance + WALLET_TOLERANCE:
                    raise ValidationError(
                        f"Wallet balance is {balance:.2f}; cannot redeem {float(sale.wallet_used):.2f}."
                    )

            self._insert_sale(cur, sale)

            if customer_id is not None:
                cur.execute(
                    "UPDATE customers SET wallet_balance = wallet_balance - ? + ? WHERE id=?",
                    (float(sale.wallet_used), float(sale.wallet_credited), customer_id),
                )

            for it in sale.items:
                self._decrement_stock(cur, sale, it)

            conn.commit()
            return True
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ---------- Shop details ----------
    def get_shop_details(self) -> Optional[ShopDetails]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "SELECT name, address, contact, gst_number, default_gst_rate, upi_id FROM shop_details WHERE id=1"
        )
        r = cur.fetchone()
        conn.close()
        if not r:
            return None
        return ShopDetails(
            name=str(r[0]),
            address=str(r[1]),
            contact=str(r[2]),
            gst_number=(r[3] if r[3] is not None else None),
            default_gst_rate=float(r[4]),
            upi_id=(r[5] if r[5] is not None else None),
        )

    def save_shop_details(self, details: ShopDetails) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO shop_details (id, name, address, contact, gst_number, default_gst_rate, upi_id)
            VALUES (1, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name=excluded.name, address=excluded.address, contact=excluded.contact,
                gst_number=excluded.gst_number, default_gst_rate=excluded.default_gst_rate,
                upi_id=excluded.upi_id
            """,
            (
                details.name,
                details.address,
                details.contact,
                details.gst_number,
                float(details.default_gst_rate),
                details.upi_id,
            ),
        )
        conn.commit()
        conn.close()
