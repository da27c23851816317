# core/stripe_helpers.py

from typing import List, Optional

import stripe
from pydantic import BaseModel

from core.config import Settings, settings
from core.errors import ProviderError, ValidationError
from core.logging_config import logger


class ExternalBankAccount(BaseModel):
    """The parts of a Stripe bank_account source we keep."""
    id: str
    status: Optional[str] = None        # new | validated | verified | verification_failed | errored
    bank_name: Optional[str] = None


# ============================================================
# Payment provider strategy
# ============================================================
# Chosen once at startup by select_payment_provider(); routers get it
# through dependencies.payments.get_payment_provider so both paths can
# be exercised in isolation.
# ============================================================

class PaymentProvider:
    name = "base"
    configured = False

    def find_or_create_customer(self, email: str, user_id: str, role: str = "teen") -> str:
        raise NotImplementedError

    def create_bank_account(
        self,
        customer_id: str,
        *,
        routing_number: str,
        account_number: str,
        account_holder_name: str,
        account_type: str,
        user_id: str,
    ) -> ExternalBankAccount:
        raise NotImplementedError

    def delete_bank_account(self, customer_id: str, external_account_id: str) -> None:
        raise NotImplementedError

    def verify_bank_account(self, customer_id: str, external_account_id: str, amounts: List[int]) -> ExternalBankAccount:
        """Confirm the two micro-deposit amounts (in cents)."""
        raise NotImplementedError


class UnconfiguredPaymentProvider(PaymentProvider):
    """Used when STRIPE_SECRET_KEY is missing: every call fails the same way."""

    name = "unconfigured"

    def _fail(self, *args, **kwargs):
        logger.error("Stripe not configured - payment operations disabled")
        raise ProviderError("Stripe not configured")

    find_or_create_customer = _fail
    create_bank_account = _fail
    delete_bank_account = _fail
    verify_bank_account = _fail


class StripePaymentProvider(PaymentProvider):
    name = "stripe"
    configured = True

    def __init__(self, api_key: str):
        self.api_key = api_key

    def find_or_create_customer(self, email: str, user_id: str, role: str = "teen") -> str:
        """
        Reuse the Stripe customer for this email if one exists,
        otherwise create it (idempotent on user_id).
        """
        try:
            found = stripe.Customer.search(
                query=f"email:'{email}'",
                limit=1,
                api_key=self.api_key,
            )
            if found.data:
                logger.info(f"Found existing Stripe customer: {found.data[0].id}")
                return found.data[0].id

            customer = stripe.Customer.create(
                email=email,
                metadata={"user_id": user_id, "role": role},
                idempotency_key=f"customer-{user_id}",
                api_key=self.api_key,
            )
            logger.info(f"Created new Stripe customer: {customer.id}")
            return customer.id

        except stripe.StripeError as e:
            logger.error(f"Stripe API error getting customer for user {user_id}: {e}")
            raise ProviderError("Failed to get or create Stripe customer")

    def create_bank_account(
        self,
        customer_id: str,
        *,
        routing_number: str,
        account_number: str,
        account_holder_name: str,
        account_type: str,
        user_id: str,
    ) -> ExternalBankAccount:
        try:
            source = stripe.Customer.create_source(
                customer_id,
                source={
                    "object": "bank_account",
                    "account_number": account_number,
                    "routing_number": routing_number,
                    "account_holder_name": account_holder_name,
                    "account_holder_type": "individual",
                    "country": "US",
                    "currency": "usd",
                },
                metadata={"user_id": user_id, "account_type": account_type},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe API error creating bank account for user {user_id}: {e}")
            raise ProviderError("Failed to create bank account")

        return ExternalBankAccount(
            id=source.id,
            status=source.get("status"),
            bank_name=source.get("bank_name"),
        )

    def delete_bank_account(self, customer_id: str, external_account_id: str) -> None:
        try:
            stripe.Customer.delete_source(customer_id, external_account_id, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            if e.code != "resource_missing":
                logger.error(f"Failed to delete Stripe bank account {external_account_id}: {e}")
                raise ProviderError("Failed to delete bank account")
            logger.info(f"Stripe bank account {external_account_id} already gone")
        except stripe.StripeError as e:
            logger.error(f"Failed to clean up Stripe bank account {external_account_id}: {e}")
            raise ProviderError("Failed to delete bank account")

    def verify_bank_account(self, customer_id: str, external_account_id: str, amounts: List[int]) -> ExternalBankAccount:
        try:
            source = stripe.StripeClient(self.api_key).customers.payment_sources.verify(
                customer_id,
                external_account_id,
                params={"amounts": amounts},
            )
        except (stripe.InvalidRequestError, stripe.CardError) as e:
            # Wrong amounts come back as a 400 from Stripe
            logger.warning(f"Micro-deposit verification rejected for {external_account_id}: {e}")
            raise ValidationError({
                "message": "Verification failed. The amounts you entered do not match. Please try again.",
                "details": getattr(e, "user_message", None) or "Invalid verification amounts",
            })
        except stripe.StripeError as e:
            logger.error(f"Stripe API error verifying bank account {external_account_id}: {e}")
            raise ProviderError("Failed to verify bank account")

        return ExternalBankAccount(
            id=source.id,
            status=source.get("status"),
            bank_name=source.get("bank_name"),
        )


def select_payment_provider(config: Settings = settings) -> PaymentProvider:
    """Pick the provider once, based on configuration."""
    if config.STRIPE_SECRET_KEY:
        return StripePaymentProvider(config.STRIPE_SECRET_KEY)
    logger.warning("STRIPE_SECRET_KEY not set — bank account creation disabled")
    return UnconfiguredPaymentProvider()


def map_bank_verification_status(stripe_status: Optional[str]) -> str:
    """
    Stripe bank_account.status → our verification_status.
    'new' and 'validated' still need micro-deposits.
    """
    if stripe_status == "verified":
        return "verified"
    if stripe_status in ("verification_failed", "errored"):
        return "failed"
    return "pending"
