from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from notifications import events
from notifications.models import Notification
from notifications.services import NotificationService


@pytest.fixture
def service():
    return NotificationService()


@pytest.mark.django_db
def test_notify_stores_delivered_row(service, client_user):
    notification = service.notify(client_user.pk, events.ESCROW_FUNDED, {
        'project_id': 3,
        'amount': Decimal('250.00'),
        'at': datetime(2024, 5, 1, 12, 0, tzinfo=dt_timezone.utc),
    })

    notification.refresh_from_db()
    assert notification.delivery_status == 'delivered'
    assert notification.message == 'Escrow funded'
    assert notification.payload['amount'] == '250.00'
    assert notification.payload['at'].startswith('2024-05-01T12:00:00')


@pytest.mark.django_db
def test_custom_message(service, client_user):
    notification = service.notify(client_user.pk, events.BID_SUBMITTED, {'message': "New bid on your project"})
    assert notification.message == "New bid on your project"
    assert 'message' not in notification.payload


@pytest.mark.django_db
def test_unknown_event(service, client_user):
    with pytest.raises(ValueError):
        service.notify(client_user.pk, 'party_started')
    assert not Notification.objects.exists()


@pytest.mark.django_db
def test_mark_read(service, client_user, expert):
    first = service.notify(client_user.pk, events.BID_SUBMITTED)
    service.notify(client_user.pk, events.BID_WITHDRAWN)
    service.notify(expert.pk, events.BID_REJECTED)

    assert service.mark_read(client_user, [first.pk]) == 1
    assert service.unread(client_user).count() == 1
    assert service.mark_read(client_user) == 1
    assert service.unread(client_user).count() == 0
    assert service.unread(expert).count() == 1
