"""
Checkout orchestration - Stripe sessions and the completion webhook
"""
import logging
from typing import List, NamedTuple, Optional

import stripe
from sqlalchemy.orm import Session

from . import crud
from .errors import NotFound, SignatureInvalid, UpstreamFailure
from .schemas import CheckoutRequest

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class CheckoutSession(NamedTuple):
    id: str
    url: str


class StripeGateway:
    """Thin client for the two Stripe contracts we use."""

    def __init__(self, api_key: str, webhook_secret: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_session(
        self,
        line_items: List[dict],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        params = {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            logger.exception("stripe checkout session creation failed")
            raise UpstreamFailure("stripe error") from e
        return CheckoutSession(id=session.id, url=session.url)

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """Verify the Stripe-Signature header and parse the event."""
        if not self.webhook_secret:
            logger.error("webhook received but STRIPE_WEBHOOK_SECRET is not configured")
            raise SignatureInvalid("Webhook Error: webhook secret not configured")
        if not signature:
            raise SignatureInvalid("Webhook Error: missing Stripe-Signature header")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook signature %s", e)
            raise SignatureInvalid(f"Webhook Error: {e}") from e
        except ValueError as e:
            logger.warning("webhook payload %s", e)
            raise SignatureInvalid("Webhook Error: invalid payload") from e


class CheckoutService:
    """Creates checkout sessions and applies their completion events to the order ledger"""

    def __init__(self, db: Session, gateway: StripeGateway, currency: str = "usd"):
        self.db = db
        self.gateway = gateway
        self.currency = currency

    def create_checkout_session(self, request: CheckoutRequest) -> str:
        """
        Start a Stripe checkout for catalog products

        Steps:
        1. Resolve every item against the catalog (prices never come from the client)
        2. Create the Stripe session
        3. Record a pending order keyed by the session id

        Returns:
            Stripe-hosted checkout URL

        Raises:
            NotFound: If an item references an unknown product
            UpstreamFailure: If Stripe rejects the session
        """
        line_items = []
        purchased = []
        for item in request.items:
            product = crud.get_product(self.db, item.product_id)
            if not product:
                raise NotFound(f"product {item.product_id} not found")
            line_items.append({
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": product.title},
                    "unit_amount": product.price_cents,
                },
                "quantity": item.quantity,
            })
            purchased.append({
                "product_id": product.id,
                "title": product.title,
                "unit_amount": product.price_cents,
                "quantity": item.quantity,
            })

        session = self.gateway.create_session(
            line_items,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
            customer_email=request.customer_email,
        )
        crud.create_order(self.db, session.id, request.customer_email, purchased)
        logger.info("order pending for checkout session %s", session.id)
        return session.url

    def handle_completion_event(self, payload: bytes, signature: Optional[str]) -> None:
        """
        Apply a Stripe webhook delivery

        Only a verified checkout.session.completed event changes state
        (pending -> paid). Replayed event ids and unknown sessions are no-ops.

        Raises:
            SignatureInvalid: If verification fails or the payload is malformed
        """
        event = self.gateway.construct_event(payload, signature)
        try:
            event_id = event["id"]
            event_type = event["type"]
        except (KeyError, TypeError) as e:
            raise SignatureInvalid("Webhook Error: invalid payload") from e

        if crud.is_event_processed(self.db, event_id):
            logger.info("webhook event %s already processed", event_id)
            return

        if event_type == CHECKOUT_COMPLETED:
            try:
                session_id = event["data"]["object"]["id"]
            except (KeyError, TypeError) as e:
                raise SignatureInvalid("Webhook Error: invalid payload") from e
            if crud.mark_order_paid(self.db, session_id):
                logger.info("checkout completed, order for session %s marked paid", session_id)
            else:
                logger.info("checkout completed for session %s, no pending order", session_id)
        else:
            logger.debug("ignoring webhook event type %s", event_type)

        crud.record_event(self.db, event_id, event_type)
