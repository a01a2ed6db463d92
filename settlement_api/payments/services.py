import logging

from django.conf import settings

from .providers import get_payment_provider

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Provider adapter. This class should NOT create or update escrow records.
    It only calls the configured payment gateway and normalises its answer.
    """
    def __init__(self, provider=None, provider_name=None):
        if provider is None:
            name = provider_name or getattr(settings, 'PAYMENT_GATEWAY', 'mock')
            options = getattr(settings, 'PAYMENT_GATEWAY_OPTIONS', {}) or {}
            provider = get_payment_provider(name, **options)
        self.provider = provider

    @property
    def provider_name(self):
        return self.provider.name

    @staticmethod
    def is_success(result):
        return bool(result) and result.get('status') == 'success'

    def _call(self, operation, *args, **kwargs):
        try:
            result = getattr(self.provider, operation)(*args, **kwargs)
        except Exception as e:
            # any provider crash is a failed settlement, never a partial one
            logger.error("Payment gateway %s raised: %s", operation, e)
            return {'id': None, 'status': 'error', 'message': str(e)}
        return result or {'id': None, 'status': 'error', 'message': 'Empty gateway response'}

    def charge(self, amount, metadata=None, idempotency_key=None):
        return self._call('create_payment_intent', amount, metadata or {}, idempotency_key=idempotency_key)

    def transfer(self, amount, destination_account_id, idempotency_key=None):
        return self._call('transfer', amount, destination_account_id, idempotency_key=idempotency_key)

    def refund(self, reference, amount):
        return self._call('refund', reference, amount)
