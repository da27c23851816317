from fastapi import Request

from core.stripe_helpers import PaymentProvider, select_payment_provider


def get_payment_provider(request: Request) -> PaymentProvider:
    """Provider picked in create_app(); falls back to picking now."""
    provider = getattr(request.app.state, "payment_provider", None)
    if provider is None:
        provider = select_payment_provider()
        request.app.state.payment_provider = provider
    return provider
