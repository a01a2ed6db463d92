import logging
import uuid

from .base import BasePaymentProvider

logger = logging.getLogger(__name__)


class MockProvider(BasePaymentProvider):
    """
    In-process gateway that settles synchronously.

    ``fail`` lists operations ('create_payment_intent', 'transfer',
    'refund') that should report an error, for exercising failure paths.
    A repeated idempotency key gets the first answer back, the way a real
    gateway replays it.
    """

    name = 'mock'

    def __init__(self, fail=(), **kwargs):
        super().__init__(**kwargs)
        self.fail = frozenset(fail)
        self.calls = []
        self.replies = {}

    def _result(self, operation, prefix, amount, idempotency_key=None, **extra):
        if idempotency_key is not None:
            extra['idempotency_key'] = idempotency_key
        self.calls.append((operation, amount, extra))
        if idempotency_key in self.replies:
            return self.replies[idempotency_key]

        reference = f"{prefix}_{uuid.uuid4().hex[:12]}"
        if operation in self.fail:
            logger.warning("Mock gateway failing %s of %s", operation, amount)
            result = {'id': reference, 'status': 'error', 'message': f'Mock {operation} declined'}
        else:
            result = {'id': reference, 'status': 'success', 'amount': str(amount), **extra}
        if idempotency_key is not None:
            self.replies[idempotency_key] = result
        return result

    def create_payment_intent(self, amount, metadata, idempotency_key=None):
        return self._result(
            'create_payment_intent', 'pi', amount, idempotency_key, metadata=dict(metadata or {}),
        )

    def transfer(self, amount, destination_account_id, idempotency_key=None):
        return self._result('transfer', 'tr', amount, idempotency_key, destination=destination_account_id)

    def refund(self, reference, amount):
        return self._result('refund', 're', amount, original=reference)
