import json
import logging

from django.core.serializers.json import DjangoJSONEncoder

from . import events
from .models import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Default notification port: one ``Notification`` row per event.

    Delivery to other channels (email, push) is out of scope; the row is
    marked delivered once stored.
    """

    def notify(self, user_id, event_type, payload=None):
        if event_type not in events.EVENT_TYPES:
            raise ValueError(f"Unknown notification event: {event_type}")
        payload = json.loads(json.dumps(payload or {}, cls=DjangoJSONEncoder))
        notification = Notification.objects.create(
            user_id=user_id,
            event_type=event_type,
            message=payload.pop('message', '') or dict(events.EVENT_CHOICES)[event_type],
            payload=payload,
            delivery_status='delivered',
        )
        logger.info("Notification %s (%s) stored for user %s", notification.pk, event_type, user_id)
        return notification

    def unread(self, user):
        return Notification.objects.filter(user=user, is_read=False)

    def mark_read(self, user, notification_ids=None):
        queryset = self.unread(user)
        if notification_ids is not None:
            queryset = queryset.filter(pk__in=notification_ids)
        return queryset.update(is_read=True)
