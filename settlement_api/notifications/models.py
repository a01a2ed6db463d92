from django.db import models
from django.contrib.auth import get_user_model

from . import events

User = get_user_model()


class Notification(models.Model):
    DELIVERY_CHOICES = (
        ('pending', 'Pending'),
        ('delivered', 'Delivered'),
        ('failed', 'Failed'),
    )

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    event_type = models.CharField(max_length=40, choices=events.EVENT_CHOICES)
    message = models.CharField(max_length=255)
    payload = models.JSONField(default=dict, blank=True)
    delivery_status = models.CharField(max_length=20, choices=DELIVERY_CHOICES, default='pending')
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.event_type} for {self.user_id}"
