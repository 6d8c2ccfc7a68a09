"""
Payment service adapter.

The pipeline treats the payment decision as a pass/fail outcome; a decline
and a service error both end the execution and neither is retried.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from orderflow.storage.schemas import Order


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of a charge attempt."""

    approved: bool
    transaction_id: Optional[str] = None
    amount: Decimal = Decimal("0")
    decline_code: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str:
        return "SUCCESS" if self.approved else "DECLINED"


class PaymentGateway(ABC):
    """Charges an order's total."""

    @abstractmethod
    async def charge(self, order: Order) -> PaymentResult:
        """
        Charge the order total.

        Returns:
            PaymentResult with approved=False on decline

        Raises:
            Exception: Any service failure; treated as a payment failure
        """
        pass


class ApprovingPaymentGateway(PaymentGateway):
    """Approves every charge. Stands in where no payment provider is wired."""

    async def charge(self, order: Order) -> PaymentResult:
        return PaymentResult(
            approved=True,
            transaction_id=f"txn_{uuid.uuid4().hex[:16]}",
            amount=order.total,
        )
