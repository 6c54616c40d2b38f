from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from posbill.config import BillingSettings, load_settings
from posbill.domain.models import Operator
from posbill.repositories.sqlite_repo import SqliteRepository
from posbill.services.customer_service import CustomerService
from posbill.services.excel_service import ExcelService
from posbill.services.inventory_service import InventoryService
from posbill.services.sales_service import SalesService
from posbill.services.session import PosSession
from posbill.services.settings_service import SettingsService
from posbill.services.suggestion_service import SuggestionService
from posbill.services.wallet_service import WalletService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    config: BillingSettings
    settings: SettingsService
    inventory: InventoryService
    customers: CustomerService
    wallet: WalletService
    sales: SalesService
    excel: ExcelService
    suggestions: SuggestionService

    def open_session(self, operator: Operator) -> PosSession:
        return PosSession(
            operator=operator,
            inventory=self.inventory,
            customers=self.customers,
            sales=self.sales,
            settings=self.settings,
            wallet=self.wallet,
            suggestions=self.suggestions,
        )


def build_container(db_path: Path | str, config: BillingSettings | None = None) -> AppContainer:
    config = config or load_settings()

    repo = SqliteRepository(db_path)
    repo.init_db()

    settings = SettingsService(repo, gst_rate_override=config.gst_rate_override)
    inventory = InventoryService(repo, low_stock_threshold=config.low_stock_threshold)
    customers = CustomerService(repo)
    wallet = WalletService()
    sales = SalesService(repo, wallet)
    excel = ExcelService(repo, inventory)
    suggestions = SuggestionService(config.suggest_url, timeout=config.suggest_timeout)

    return AppContainer(
        repo=repo,
        config=config,
        settings=settings,
        inventory=inventory,
        customers=customers,
        wallet=wallet,
        sales=sales,
        excel=excel,
        suggestions=suggestions,
    )
