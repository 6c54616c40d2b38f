from .pricing_service import PricingCalculator
from .wallet_service import WalletService
from .inventory_service import InventoryService
from .customer_service import CustomerService
from .sales_service import SalesService
from .settings_service import SettingsService
from .suggestion_service import SuggestionService
from .excel_service import ExcelService
from .session import PosSession

__all__ = [
    "PricingCalculator",
    "WalletService",
    "InventoryService",
    "CustomerService",
    "SalesService",
    "SettingsService",
    "SuggestionService",
    "ExcelService",
    "PosSession",
]
