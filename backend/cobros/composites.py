# Overview: Read-only joined shapes built at query time; never persisted.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .models import Merchant, Payment, Stall


@dataclass(frozen=True)
class StallWithMerchant:
    """
    A stall and its owner.

    ``merchant`` is None when the stall row points at a merchant that no
    longer exists. Cascades make that unexpected, but readers must branch
    on it rather than assume the relation.
    """
    stall: Stall
    merchant: Optional[Merchant]

    @property
    def merchant_name(self) -> str | None:
        return self.merchant.nombre_comerciante if self.merchant is not None else None

    def to_dict(self) -> dict:
        return {
            "stall": self.stall.to_dict(),
            "merchant": self.merchant.to_dict() if self.merchant is not None else None,
        }


@dataclass(frozen=True)
class PaymentDetail:
    """A payment joined to its stall and the stall's merchant."""
    payment: Payment
    stall_with_merchant: StallWithMerchant

    @property
    def stall(self) -> Stall:
        return self.stall_with_merchant.stall

    @property
    def merchant(self) -> Optional[Merchant]:
        return self.stall_with_merchant.merchant

    def to_dict(self) -> dict:
        return {
            "payment": self.payment.to_dict(),
            **self.stall_with_merchant.to_dict(),
        }


@dataclass(frozen=True)
class DailyTotal:
    """Summed amount for one date (YYYY-MM-DD) or month (YYYY-MM) label."""
    label: str
    total: Decimal
