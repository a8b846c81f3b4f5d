"""Payment gate: a build may only start for a paid checkout session."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from config import settings

from .errors import PaymentVerificationError

logger = logging.getLogger(__name__)


class PaymentGate(ABC):
    """Answers whether a checkout session has been paid."""

    @abstractmethod
    async def is_paid(self, session_id: Optional[str]) -> bool:
        """True when the session is paid.

        Raises:
            PaymentVerificationError: if the session is missing or cannot be verified
        """
        pass


class StripePaymentGate(PaymentGate):
    """Verifies a Stripe Checkout session over the REST API."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key or settings.stripe_api_key
        self.base_url = (base_url or settings.stripe_api_url).rstrip("/")
        self.timeout = timeout or settings.api_timeout_seconds

    def is_available(self) -> bool:
        return bool(self.api_key)

    def retrieve_session(self, session_id: str) -> dict:
        """Fetch a checkout session; blocking."""
        r = requests.get(
            f"{self.base_url}/checkout/sessions/{session_id}",
            auth=(self.api_key, ""),
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()

    async def is_paid(self, session_id: Optional[str]) -> bool:
        if not session_id:
            raise PaymentVerificationError("Payment session required")
        if not self.api_key:
            raise PaymentVerificationError("Stripe API key is not configured")

        try:
            session = await asyncio.to_thread(self.retrieve_session, session_id)
        except (requests.RequestException, ValueError) as e:
            logger.error("Payment verification error: %s", e)
            raise PaymentVerificationError(f"Invalid payment session: {e}") from e

        status = session.get("payment_status")
        logger.info("Checkout session %s payment_status=%s", session_id, status)
        return status == "paid"


class StaticPaymentGate(PaymentGate):
    """Gate with a fixed answer, for local runs that skip checkout."""

    def __init__(self, paid: bool = True):
        self.paid = paid

    async def is_paid(self, session_id: Optional[str]) -> bool:
        if not session_id:
            raise PaymentVerificationError("Payment session required")
        return self.paid
