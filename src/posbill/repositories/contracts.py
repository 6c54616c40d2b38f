from __future__ import annotations

from typing import Optional, Protocol

from posbill.domain.models import Customer, Product, Sale, ShopDetails, StockLogEntry


class ProductRepository(Protocol):
    def get_product(self, product_id: str) -> Optional[Product]: ...
    def save_product(self, product: Product) -> None: ...
    def adjust_stock(self, product_id: str, new_stock: float, reason: str, user_id: str) -> Optional[StockLogEntry]: ...
    def insert_product(self, product: Product) -> None: ...
    def delete_product(self, product_id: str) -> bool: ...
    def list_products(self) -> list[Product]: ...
    def stock_history(self, product_id: str) -> list[StockLogEntry]: ...


class CustomerRepository(Protocol):
    def get_customer(self, customer_id: str) -> Optional[Customer]: ...
    def get_customer_by_mobile(self, mobile: str) -> Optional[Customer]: ...
    def save_customer(self, customer: Customer) -> None: ...
    def delete_customer(self, customer_id: str) -> bool: ...
    def list_customers(self) -> list[Customer]: ...


class SaleRepository(Protocol):
    def save_sale(self, sale: Sale) -> None: ...
    def get_sale(self, sale_id: str) -> Optional[Sale]: ...
    def list_sales(self) -> list[Sale]: ...
    def sales_for_mobile(self, mobile: str) -> list[Sale]: ...
    def finalize_sale(self, sale: Sale, customer_id: Optional[str]) -> bool: ...


class SettingsRepository(Protocol):
    def get_shop_details(self) -> Optional[ShopDetails]: ...
    def save_shop_details(self, details: ShopDetails) -> None: ...


class Store(ProductRepository, CustomerRepository, SaleRepository, SettingsRepository, Protocol):
    """Everything the billing core needs from persistence."""
