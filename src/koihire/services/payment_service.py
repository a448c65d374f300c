"""Payment Service — talks to the payment processor (Stripe).

Covers the calls the escrow lifecycle and connect onboarding need:
payment intents, refunds, transfers to connect accounts, connect account
creation and onboarding links.

In simulation mode (no ``STRIPE_SECRET_KEY``), every call returns fake ids
and intents are reported as captured, so the full escrow flow runs locally.
Simulated intents keep the amount and metadata they were created with; an
id this process never issued comes back captured for zero with no metadata.
The stripe SDK is synchronous; calls are pushed onto a worker thread.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

import stripe

from koihire.config import get_settings
from koihire.domain.exceptions import UpstreamFailureError
from koihire.domain.pricing import to_minor_units
from koihire.logging_config import get_logger

if TYPE_CHECKING:
    from decimal import Decimal

logger = get_logger(__name__)

CAPTURED_STATUS = "succeeded"

# intents issued in simulation mode, by id
_simulated_intents: dict[str, PaymentIntentResult] = {}


@dataclass(frozen=True)
class PaymentIntentResult:
    id: str
    client_secret: str | None
    status: str
    amount_cents: int
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def captured(self) -> bool:
        return self.status == CAPTURED_STATUS


@dataclass(frozen=True)
class ConnectAccountStatus:
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool
    country: str | None = None
    default_currency: str | None = None

    @property
    def requires_action(self) -> bool:
        return not self.details_submitted or not self.payouts_enabled


def _fake_id(prefix: str) -> str:
    return f"{prefix}_sim_{uuid.uuid4().hex[:24]}"


class PaymentService:
    """Wraps processor calls; raises UpstreamFailureError on processor errors."""

    def __init__(self, simulate: bool | None = None) -> None:
        """Initialize payment service.

        Args:
            simulate: Force simulation on or off. Defaults to simulating
                     whenever no processor secret key is configured.
        """
        settings = get_settings()
        self._simulate = settings.payments_simulated if simulate is None else simulate
        self._api_key = settings.stripe_secret_key
        self._currency = settings.stripe_currency

    @property
    def simulated(self) -> bool:
        return self._simulate

    async def _call(self, operation: str, fn, /, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, api_key=self._api_key, **kwargs)
        except stripe.StripeError as exc:
            logger.error("payment.processor_error", operation=operation, error=str(exc))
            raise UpstreamFailureError(
                f"Payment processor error during {operation}", upstream="stripe"
            ) from exc

    # ------------------------------------------------------------------
    # Payment intents
    # ------------------------------------------------------------------

    async def create_payment_intent(
        self,
        amount: Decimal,
        metadata: dict[str, str],
        description: str | None = None,
    ) -> PaymentIntentResult:
        """Create an automatically captured intent for ``amount``."""
        amount_cents = to_minor_units(amount)
        if self._simulate:
            intent_id = _fake_id("pi")
            logger.info(
                "payment.intent_simulated", intent_id=intent_id, amount_cents=amount_cents
            )
            intent = PaymentIntentResult(
                id=intent_id,
                client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:12]}",
                status="requires_payment_method",
                amount_cents=amount_cents,
                metadata=dict(metadata),
            )
            _simulated_intents[intent_id] = intent
            return intent

        intent = await self._call(
            "create_payment_intent",
            stripe.PaymentIntent.create,
            amount=amount_cents,
            currency=self._currency,
            automatic_payment_methods={"enabled": True},
            description=description,
            metadata=metadata,
        )
        logger.info("payment.intent_created", intent_id=intent.id, amount_cents=amount_cents)
        return PaymentIntentResult(
            id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
            amount_cents=intent.amount,
            metadata=dict(intent.metadata or {}),
        )

    async def retrieve_payment_intent(self, intent_id: str) -> PaymentIntentResult:
        if self._simulate:
            issued = _simulated_intents.get(intent_id)
            if issued is None:
                return PaymentIntentResult(
                    id=intent_id, client_secret=None, status=CAPTURED_STATUS, amount_cents=0
                )
            return replace(issued, client_secret=None, status=CAPTURED_STATUS)

        intent = await self._call(
            "retrieve_payment_intent", stripe.PaymentIntent.retrieve, id=intent_id
        )
        return PaymentIntentResult(
            id=intent.id,
            client_secret=None,
            status=intent.status,
            amount_cents=intent.amount,
            metadata=dict(intent.metadata or {}),
        )

    # ------------------------------------------------------------------
    # Money movement
    # ------------------------------------------------------------------

    async def transfer_to_freelancer(
        self,
        destination_account_id: str,
        amount: Decimal,
        description: str,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Transfer ``amount`` to a connect account. Returns the transfer id."""
        if self._simulate:
            transfer_id = _fake_id("tr")
            logger.info(
                "payment.transfer_simulated",
                transfer_id=transfer_id,
                destination=destination_account_id,
                amount=str(amount),
            )
            return transfer_id

        transfer = await self._call(
            "transfer",
            stripe.Transfer.create,
            amount=to_minor_units(amount),
            currency=self._currency,
            destination=destination_account_id,
            description=description,
            metadata=metadata or {},
        )
        logger.info(
            "payment.transfer_created",
            transfer_id=transfer.id,
            destination=destination_account_id,
            amount=str(amount),
        )
        return transfer.id

    async def refund_payment(self, payment_intent_id: str, reason: str | None = None) -> str:
        """Refund a captured intent in full. Returns the refund id."""
        if self._simulate:
            refund_id = _fake_id("re")
            logger.info("payment.refund_simulated", refund_id=refund_id, intent_id=payment_intent_id)
            return refund_id

        refund = await self._call(
            "refund",
            stripe.Refund.create,
            payment_intent=payment_intent_id,
            reason="requested_by_customer",
            metadata={"reason": reason or ""},
        )
        logger.info("payment.refund_created", refund_id=refund.id, intent_id=payment_intent_id)
        return refund.id

    # ------------------------------------------------------------------
    # Connect accounts
    # ------------------------------------------------------------------

    async def create_connect_account(self, email: str, user_id: str, country: str = "US") -> str:
        """Create a Standard connect account. Returns the account id."""
        if self._simulate:
            account_id = _fake_id("acct")
            logger.info("payment.connect_account_simulated", account_id=account_id)
            return account_id

        account = await self._call(
            "create_connect_account",
            stripe.Account.create,
            type="standard",
            country=country,
            email=email,
            metadata={"userId": user_id},
        )
        logger.info("payment.connect_account_created", account_id=account.id)
        return account.id

    async def create_onboarding_link(self, account_id: str) -> str:
        settings = get_settings()
        if self._simulate:
            return f"{settings.connect_return_url}?account={account_id}&simulated=1"

        link = await self._call(
            "create_account_link",
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=settings.connect_refresh_url,
            return_url=settings.connect_return_url,
            type="account_onboarding",
        )
        return link.url

    async def get_account_status(self, account_id: str) -> ConnectAccountStatus:
        if self._simulate:
            return ConnectAccountStatus(
                charges_enabled=True,
                payouts_enabled=True,
                details_submitted=True,
                country="US",
                default_currency=self._currency,
            )

        account = await self._call("retrieve_account", stripe.Account.retrieve, id=account_id)
        return ConnectAccountStatus(
            charges_enabled=bool(account.charges_enabled),
            payouts_enabled=bool(account.payouts_enabled),
            details_submitted=bool(account.details_submitted),
            country=account.country,
            default_currency=account.default_currency,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def construct_webhook_event(self, payload: bytes, signature: str) -> Any:
        """Verify a webhook signature and parse the event.

        Raises:
            ValueError: malformed payload.
            stripe.SignatureVerificationError: signature mismatch.
            RuntimeError: no webhook secret configured.
        """
        secret = get_settings().stripe_webhook_secret
        if not secret:
            raise RuntimeError("STRIPE_WEBHOOK_SECRET is not configured")
        return stripe.Webhook.construct_event(payload, signature, secret)
