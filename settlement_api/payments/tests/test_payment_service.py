from decimal import Decimal

import pytest

from payments.providers import get_payment_provider
from payments.providers.mock import MockProvider
from payments.services import PaymentService


class ExplodingProvider(MockProvider):
    def transfer(self, amount, destination_account_id, idempotency_key=None):
        raise ConnectionError("gateway unreachable")


def test_factory_builds_mock():
    assert isinstance(get_payment_provider('mock'), MockProvider)


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_payment_provider('paypal')


def test_service_uses_configured_gateway(settings):
    settings.PAYMENT_GATEWAY = 'mock'
    assert PaymentService().provider_name == 'mock'


def test_charge_success():
    provider = MockProvider()
    result = PaymentService(provider=provider).charge(Decimal('10.00'), {'project_id': 1})
    assert PaymentService.is_success(result)
    assert result['id'].startswith('pi_')
    assert provider.calls == [('create_payment_intent', Decimal('10.00'), {'metadata': {'project_id': 1}})]


def test_declined_operation_is_not_success():
    service = PaymentService(provider=MockProvider(fail=['refund']))
    result = service.refund('pi_123', Decimal('5.00'))
    assert not service.is_success(result)
    assert result['message'] == 'Mock refund declined'


def test_provider_crash_becomes_error_result():
    service = PaymentService(provider=ExplodingProvider())
    result = service.transfer(Decimal('5.00'), 'acct_1')
    assert result == {'id': None, 'status': 'error', 'message': 'gateway unreachable'}


@pytest.mark.parametrize('result', [None, {}, {'status': 'pending'}])
def test_only_success_status_counts(result):
    assert not PaymentService.is_success(result)


def test_transfer_passes_idempotency_key():
    provider = MockProvider()
    PaymentService(provider=provider).transfer(Decimal('5.00'), 'acct_1', idempotency_key='release-7')
    assert provider.calls == [
        ('transfer', Decimal('5.00'), {'destination': 'acct_1', 'idempotency_key': 'release-7'}),
    ]


def test_repeated_idempotency_key_replays_first_answer():
    service = PaymentService(provider=MockProvider())
    first = service.transfer(Decimal('5.00'), 'acct_1', idempotency_key='release-7')
    again = service.transfer(Decimal('5.00'), 'acct_1', idempotency_key='release-7')
    other = service.transfer(Decimal('5.00'), 'acct_1', idempotency_key='release-8')
    assert again == first
    assert other['id'] != first['id']
