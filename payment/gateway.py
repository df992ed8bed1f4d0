"""
Stripe Gateway

Thin adapter over the Stripe SDK. Every call goes through ``_call`` which
enforces the HTTP timeout, translates SDK errors into the service error
taxonomy, and retries transient failures for idempotent operations only.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import stripe

from config import settings
from exceptions import PaymentGatewayError, RemoteTransientError, WebhookSignatureError

logger = logging.getLogger(__name__)

DURATION_INTERVALS = {
    "WEEKLY": "week",
    "MONTHLY": "month",
    "YEARLY": "year",
}

_TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)


class StripeGateway:
    """
    Stateless wrapper around a ``stripe.StripeClient``.

    Usage:
        gateway = StripeGateway()
        price_id = gateway.create_price(product_id, "eur", 999, "month", metadata={})
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        timeout: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        self.retry_attempts = retry_attempts or settings.STRIPE_RETRY_ATTEMPTS
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.STRIPE_RETRY_BACKOFF_SECONDS
        self.client = stripe.StripeClient(
            api_key or settings.STRIPE_SECRET_KEY,
            http_client=stripe.RequestsClient(timeout=timeout or settings.STRIPE_TIMEOUT_SECONDS),
            max_network_retries=0,
        )

    def _call(self, operation: str, func: Callable, *args, retry: bool = True, **kwargs) -> Any:
        attempts = self.retry_attempts if retry else 1
        for attempt in range(attempts):
            try:
                return func(*args, **kwargs)
            except _TRANSIENT_ERRORS as e:
                logger.error(f"Stripe {operation} failed, attempt {attempt + 1}/{attempts}: {str(e)}")
                if attempt < attempts - 1:
                    sleep_time = self.backoff_seconds * (2 ** attempt)
                    logger.info(f"Retrying {operation} after {sleep_time} sec backoff")
                    time.sleep(sleep_time)
                    continue
                raise RemoteTransientError(
                    f"Payment processor unavailable during {operation}, please retry",
                    details={"operation": operation},
                ) from e
            except stripe.StripeError as e:
                logger.error(f"Stripe {operation} rejected: {str(e)}")
                raise PaymentGatewayError(
                    f"Payment processor rejected {operation}",
                    details={"operation": operation, "stripe_error": e.user_message or str(e)},
                ) from e

    # -------------------------------------------------------------------------
    # Connect accounts
    # -------------------------------------------------------------------------

    def create_connect_account(self, email: str, metadata: Dict[str, str]) -> str:
        account = self._call("account creation", self.client.accounts.create, params={
            "type": "express",
            "country": settings.STRIPE_CONNECT_COUNTRY,
            "email": email,
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "business_type": "individual",
            "metadata": metadata,
        }, retry=False)
        return account.id

    def create_onboarding_link(self, account_id: str, return_url: str, refresh_url: str) -> str:
        link = self._call("onboarding link", self.client.account_links.create, params={
            "account": account_id,
            "refresh_url": refresh_url,
            "return_url": return_url,
            "type": "account_onboarding",
        })
        return link.url

    def create_login_link(self, account_id: str) -> str:
        link = self._call("dashboard link", self.client.accounts.login_links.create, account_id)
        return link.url

    def retrieve_account(self, account_id: str):
        return self._call("account retrieval", self.client.accounts.retrieve, account_id)

    # -------------------------------------------------------------------------
    # Products and prices
    # -------------------------------------------------------------------------

    def create_product(self, name: str, description: Optional[str], metadata: Dict[str, str]) -> str:
        params: Dict[str, Any] = {"name": name, "metadata": metadata}
        if description:
            params["description"] = description
        product = self._call("product creation", self.client.products.create, params=params, retry=False)
        return product.id

    def create_price(
        self,
        product_id: str,
        currency: str,
        unit_amount: int,
        interval: Optional[str],
        metadata: Dict[str, str],
    ) -> str:
        params: Dict[str, Any] = {
            "product": product_id,
            "currency": currency,
            "unit_amount": unit_amount,
            "metadata": metadata,
        }
        if interval:
            params["recurring"] = {"interval": interval}
        price = self._call("price creation", self.client.prices.create, params=params, retry=False)
        return price.id

    def price_exists(self, price_id: str) -> bool:
        """Whether ``price_id`` still resolves on the platform account."""
        try:
            price = self._call("price verification", self.client.prices.retrieve, price_id)
        except PaymentGatewayError:
            return False
        return bool(price.get("active", True))

    # -------------------------------------------------------------------------
    # Customers and checkout
    # -------------------------------------------------------------------------

    def create_customer(self, email: str, metadata: Dict[str, str]) -> str:
        customer = self._call("customer creation", self.client.customers.create, params={
            "email": email,
            "metadata": metadata,
        }, retry=False)
        return customer.id

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        one_time: bool,
        success_url: str,
        cancel_url: str,
        destination_account_id: str,
        fee_percent: int,
        fee_amount: int,
        trial_days: Optional[int],
        metadata: Dict[str, str],
    ) -> str:
        """Create a hosted checkout session and return its URL. Never retried."""
        line_items: List[Dict[str, Any]] = [{"price": price_id, "quantity": 1}]
        params: Dict[str, Any] = {
            "customer": customer_id,
            "mode": "payment" if one_time else "subscription",
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if one_time:
            params["payment_intent_data"] = {
                "application_fee_amount": fee_amount,
                "transfer_data": {"destination": destination_account_id},
                "metadata": metadata,
            }
        else:
            subscription_data: Dict[str, Any] = {
                "application_fee_percent": fee_percent,
                "transfer_data": {"destination": destination_account_id},
                "metadata": metadata,
            }
            if trial_days:
                subscription_data["trial_period_days"] = trial_days
            params["subscription_data"] = subscription_data

        session = self._call("checkout session creation", self.client.checkout.sessions.create, params=params, retry=False)
        if not session.url:
            raise PaymentGatewayError("Failed to create checkout session", details={"session_id": session.id})
        return session.url

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def retrieve_subscription(self, remote_id: str):
        return self._call("subscription retrieval", self.client.subscriptions.retrieve, remote_id)

    def cancel_subscription(self, remote_id: str, immediately: bool) -> None:
        if immediately:
            self._call("subscription cancellation", self.client.subscriptions.cancel, remote_id)
        else:
            self._call("subscription cancellation", self.client.subscriptions.update, remote_id, params={
                "cancel_at_period_end": True,
            })

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    def construct_event(self, payload: bytes, sig_header: Optional[str]):
        """Verify the signature over the raw body and return the parsed event."""
        if not sig_header:
            raise WebhookSignatureError("Missing stripe-signature header")
        if not self.webhook_secret:
            logger.error("[WEBHOOK] STRIPE_WEBHOOK_SECRET not configured")
            raise WebhookSignatureError("Webhook secret not configured")
        try:
            return self.client.construct_event(
                payload,
                sig_header,
                self.webhook_secret,
                tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"[WEBHOOK] Invalid signature: {e}")
            raise WebhookSignatureError("Invalid webhook signature") from e
        except ValueError as e:
            logger.warning(f"[WEBHOOK] Invalid payload: {e}")
            raise WebhookSignatureError("Invalid payload") from e


def get_gateway() -> StripeGateway:
    """FastAPI dependency providing the payment gateway."""
    return StripeGateway()
