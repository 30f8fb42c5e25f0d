"""Payment processor handoff.

Only the intent is created here; the client confirms it with the returned
secret. Modes (settings.payment_mode):
- mock: deterministic fake ids, no network
- stripe: stripe.PaymentIntent.create
"""

import hashlib
import logging
from typing import Optional

import stripe

from ..errors import UpstreamFailure
from ..settings import settings

logger = logging.getLogger("chefhub.payments")


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


class PaymentGateway:
    def __init__(self, mode: Optional[str] = None, secret_key: Optional[str] = None):
        self.mode = mode or settings.payment_mode
        self.secret_key = secret_key or settings.stripe_secret_key
        if self.mode == "stripe" and not self.secret_key:
            raise RuntimeError("STRIPE_SECRET_KEY is required when PAYMENT_MODE=stripe")

    def create_intent(self, amount: float, currency: str, *, user_id: int) -> dict:
        minor = to_minor_units(amount)
        currency = currency.lower()
        if self.mode == "mock":
            return self._mock_intent(minor, currency, user_id)

        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=minor,
                currency=currency,
                payment_method_types=["card"],
                metadata={"user_id": str(user_id)},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe payment intent failed for user {user_id}: {e}")
            raise UpstreamFailure(f"Stripe payment error: {e.user_message or str(e)}")

        logger.info(f"Created payment intent {intent.id} for user {user_id} ({minor} {currency})")
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "amount": minor,
            "currency": currency,
        }

    def _mock_intent(self, minor: int, currency: str, user_id: int) -> dict:
        digest = hashlib.sha256(f"{user_id}:{minor}:{currency}".encode("utf-8")).hexdigest()[:24]
        intent_id = f"pi_mock_{digest}"
        logger.info(f"[mock payment] intent {intent_id} for user {user_id} ({minor} {currency})")
        return {
            "client_secret": f"{intent_id}_secret_mock",
            "payment_intent_id": intent_id,
            "amount": minor,
            "currency": currency,
        }


def get_payment_gateway() -> PaymentGateway:
    return PaymentGateway()
