from django.db import models
from django.contrib.auth import get_user_model

from projects.models import Project

User = get_user_model()


class Bid(models.Model):
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
        ('withdrawn', 'Withdrawn'),
    )
    ACTIVE_STATUSES = ('pending', 'accepted')

    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name='bids')
    expert = models.ForeignKey(User, on_delete=models.CASCADE, related_name='bids')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    proposed_timeline = models.CharField(max_length=255, blank=True)
    proposed_duration = models.PositiveIntegerField(null=True, blank=True, help_text="Estimated delivery in days")
    cover_letter = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    accepted_at = models.DateTimeField(null=True, blank=True)
    interview_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['project', 'expert'],
                condition=models.Q(status__in=['pending', 'accepted']),
                name='one_active_bid_per_expert',
            ),
            models.UniqueConstraint(
                fields=['project'],
                condition=models.Q(status='accepted'),
                name='one_accepted_bid_per_project',
            ),
        ]

    def __str__(self):
        return f"Bid {self.amount} by {self.expert} on {self.project_id} ({self.status})"
