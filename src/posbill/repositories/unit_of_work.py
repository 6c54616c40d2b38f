from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from posbill.domain.models import Sale


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def finalize_sale(self, sale: Sale, customer_id: Optional[str]) -> bool: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for the checkout write.

    The repository runs the sale insert, wallet settlement and stock decrements
    inside a single SQL transaction keyed by the sale id, so a retried checkout
    for a sale that is already stored writes nothing.
    """

    repo: object

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def finalize_sale(self, sale: Sale, customer_id: Optional[str]) -> bool:
        return bool(self.repo.finalize_sale(sale, customer_id))
