from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Union

from posbill.domain.errors import ValidationError

PERCENTAGE = "percentage"
FIXED = "fixed"

# Legacy adapters send this value to mean "clear the discount".
LEGACY_REMOVE_VALUE = -1


@dataclass(frozen=True)
class Discount:
    kind: str
    value: float

    def __post_init__(self) -> None:
        if self.kind not in (PERCENTAGE, FIXED):
            raise ValidationError(f"Unknown discount type: {self.kind!r}.")
        try:
            value = float(self.value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Discount value must be a number. Received: {self.value!r}") from e
        if not math.isfinite(value):
            raise ValidationError("Discount value must be a finite number.")
        if self.kind == PERCENTAGE and not 0 <= value <= 100:
            raise ValidationError("Percentage discount must be between 0 and 100.")
        if self.kind == FIXED and value < 0:
            raise ValidationError("Fixed discount must be >= 0.")
        object.__setattr__(self, "value", value)

    @classmethod
    def percentage(cls, value: float) -> "Discount":
        return cls(PERCENTAGE, value)

    @classmethod
    def fixed(cls, amount: float) -> "Discount":
        return cls(FIXED, amount)

    def label(self) -> str:
        if self.kind == FIXED:
            return f"-{self.value:g}"
        return f"-{self.value:g}%"


@dataclass(frozen=True)
class RemoveDiscount:
    """Instruction to clear whatever discount is currently attached."""


REMOVE_DISCOUNT = RemoveDiscount()

DiscountChange = Union[Discount, RemoveDiscount]


def parse_discount(kind: str, value: object) -> DiscountChange:
    """Build a discount from adapter input, mapping the legacy -1 value to REMOVE_DISCOUNT."""
    try:
        numeric = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Discount value must be a number. Received: {value!r}") from e
    if numeric == LEGACY_REMOVE_VALUE:
        return REMOVE_DISCOUNT
    kind_clean = (kind or "").strip().lower()
    return Discount(kind_clean, numeric)


def apply_discount(base_amount: float, discount: Optional[Discount]) -> float:
    """
    Amount to subtract from base_amount (not the discounted amount).

    Fixed discounts are returned as-is, even when larger than the base;
    the only clamp happens on the bill total.
    """
    if discount is None:
        return 0.0
    if isinstance(discount, RemoveDiscount):
        raise ValidationError("REMOVE_DISCOUNT cannot be applied to an amount.")
    if discount.kind == PERCENTAGE:
        return float(base_amount) * (discount.value / 100)
    return float(discount.value)
