"""Payment gateway seam.

Checkout only talks to ``PaymentGateway``. The shipped implementation is a
simulator; tests and alternative deployments swap in their own object
through the ``get_payment_gateway`` dependency.
"""
import logging
import random
import string
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from storefront.core.config import settings

logger = logging.getLogger(__name__)

FAILURE_REASONS = (
    "Insufficient funds",
    "Card declined",
    "Invalid card details",
    "Payment gateway error",
    "Transaction timeout",
)

MAX_AMOUNT_CENTS = 99_999_999


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_id: Optional[str] = None
    reason: Optional[str] = None


class PaymentGateway(Protocol):
    def process_payment(self, amount_cents: int, method: str) -> PaymentResult: ...


class SimulatedPaymentGateway:
    """Succeeds ``success_rate`` percent of the time after a short delay."""

    def __init__(self, success_rate: int = 80, delay_ms: tuple = (500, 1500), rng: Optional[random.Random] = None):
        self.success_rate = success_rate
        self.delay_ms = delay_ms
        self.rng = rng or random.Random()

    def process_payment(self, amount_cents: int, method: str = "credit_card") -> PaymentResult:
        lo, hi = self.delay_ms
        if hi > 0:
            time.sleep(self.rng.uniform(lo, hi) / 1000.0)

        if self.rng.random() * 100 < self.success_rate:
            suffix = "".join(self.rng.choices(string.ascii_lowercase + string.digits, k=9))
            txn = f"txn_{int(time.time() * 1000)}_{suffix}"
            logger.info("payment of %s cents via %s approved (%s)", amount_cents, method, txn)
            return PaymentResult(success=True, transaction_id=txn)

        reason = self.rng.choice(FAILURE_REASONS)
        logger.info("payment of %s cents via %s declined: %s", amount_cents, method, reason)
        return PaymentResult(success=False, reason=reason)


def validate_amount(amount_cents: int) -> bool:
    return 0 < amount_cents <= MAX_AMOUNT_CENTS


def default_gateway() -> SimulatedPaymentGateway:
    return SimulatedPaymentGateway(
        success_rate=settings.PAYMENT_SUCCESS_RATE,
        delay_ms=(settings.PAYMENT_DELAY_MIN_MS, settings.PAYMENT_DELAY_MAX_MS),
    )
