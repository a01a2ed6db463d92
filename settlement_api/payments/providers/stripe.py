import logging

import stripe
from django.conf import settings

from .base import BasePaymentProvider

logger = logging.getLogger(__name__)


def _to_cents(amount):
    # Stripe uses the smallest currency unit
    return int(amount * 100)


class StripeProvider(BasePaymentProvider):
    """
    Stripe implementation of the escrow gateway.
    Funding is a confirmed Payment Intent, payouts are Connect transfers.
    """

    name = 'stripe'

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        stripe.api_key = settings.STRIPE_SECRET_KEY
        self.currency = getattr(settings, 'STRIPE_CURRENCY', 'usd')

    def create_payment_intent(self, amount, metadata, idempotency_key=None):
        """
        Create and confirm a Payment Intent for escrow funding.

        ``metadata['payment_method']`` must reference a saved payment method;
        the charge succeeds or fails synchronously (no redirects).
        """
        metadata = dict(metadata or {})
        payment_method = metadata.pop('payment_method', None)
        try:
            intent = stripe.PaymentIntent.create(
                amount=_to_cents(amount),
                currency=self.currency,
                payment_method=payment_method,
                confirm=payment_method is not None,
                metadata={key: str(value) for key, value in metadata.items()},
                automatic_payment_methods={'enabled': True, 'allow_redirects': 'never'},
                idempotency_key=idempotency_key,
            )
            logger.info("Stripe Payment Intent created: %s, amount: %s, status: %s", intent.id, amount, intent.status)
            return {
                'id': intent.id,
                'status': 'success' if intent.status == 'succeeded' else 'error',
                'provider_status': intent.status,
                'client_secret': intent.client_secret,
            }
        except stripe.StripeError as e:
            logger.error("Stripe API error in create_payment_intent: %s", e)
            return {'id': None, 'status': 'error', 'message': 'Payment initiation failed', 'error': str(e)}

    def transfer(self, amount, destination_account_id, idempotency_key=None):
        try:
            transfer = stripe.Transfer.create(
                amount=_to_cents(amount),
                currency=self.currency,
                destination=destination_account_id,
                metadata={'escrow_release': 'true'},
                idempotency_key=idempotency_key,
            )
            logger.info("Stripe transfer created: %s to %s, amount: %s", transfer.id, destination_account_id, amount)
            return {'id': transfer.id, 'status': 'success', 'destination': destination_account_id}
        except stripe.StripeError as e:
            logger.error("Stripe transfer error: %s", e)
            return {'id': None, 'status': 'error', 'message': 'Transfer failed', 'error': str(e)}

    def refund(self, reference, amount):
        try:
            refund = stripe.Refund.create(
                payment_intent=reference,
                amount=_to_cents(amount),
                metadata={'escrow_refund': 'true'},
            )
            logger.info("Stripe refund created: %s for intent %s", refund.id, reference)
            return {
                'id': refund.id,
                'status': 'success' if refund.status in ('succeeded', 'pending') else 'error',
                'provider_status': refund.status,
            }
        except stripe.StripeError as e:
            logger.error("Stripe refund error: %s", e)
            return {'id': None, 'status': 'error', 'message': 'Refund failed', 'error': str(e)}
