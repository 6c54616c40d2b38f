from __future__ import annotations

from typing import Optional

from posbill.domain.errors import ValidationError
from posbill.domain.models import ShopDetails

DEFAULT_SHOP = ShopDetails(name="RG Shop")


class SettingsService:
    def __init__(self, repo, gst_rate_override: Optional[float] = None):
        self.repo = repo
        self.gst_rate_override = gst_rate_override

    def get_shop_details(self) -> ShopDetails:
        return self.repo.get_shop_details() or DEFAULT_SHOP

    def save_shop_details(self, details: ShopDetails) -> None:
        if not (details.name or "").strip():
            raise ValidationError("Shop name is required.")
        if not 0 <= float(details.default_gst_rate) <= 100:
            raise ValidationError("Default GST rate must be between 0 and 100.")
        self.repo.save_shop_details(details)

    def gst_rate(self) -> float:
        if self.gst_rate_override is not None:
            return float(self.gst_rate_override)
        return float(self.get_shop_details().default_gst_rate or 0.0)
