from django.db import models
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from auditlog.registry import auditlog

from . import states

User = get_user_model()


class Project(models.Model):
    EXPERT_STATUS_CHOICES = (
        ('none', 'None'),
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
    )

    client = models.ForeignKey(User, related_name='client_projects', on_delete=models.PROTECT)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    min_budget = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_budget = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    state = models.CharField(max_length=20, choices=states.STATE_CHOICES, default=states.DRAFT)
    rejection_reason = models.TextField(null=True, blank=True)

    expert_status = models.CharField(max_length=20, choices=EXPERT_STATUS_CHOICES, default='none')
    invited_expert = models.ForeignKey(User, related_name='project_invites', on_delete=models.SET_NULL, null=True, blank=True)
    invite_expires_at = models.DateTimeField(null=True, blank=True)
    selected_expert = models.ForeignKey(User, related_name='expert_projects', on_delete=models.PROTECT, null=True, blank=True)

    open_for_bidding = models.BooleanField(default=False)
    bidding_deadline = models.DateTimeField(null=True, blank=True)

    is_archived = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(state__in=[value for value, _ in states.STATE_CHOICES]),
                name='project_state_is_known',
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.state})"

    @property
    def budget(self):
        return self.max_budget if self.max_budget is not None else self.min_budget

    def is_participant(self, user):
        return user.pk in (self.client_id, self.selected_expert_id)


class ProjectStateTransition(models.Model):
    """Append-only audit record of a project state change."""
    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name='state_transitions')
    from_state = models.CharField(max_length=20, choices=states.STATE_CHOICES)
    to_state = models.CharField(max_length=20, choices=states.STATE_CHOICES)
    triggered_by = models.ForeignKey(User, on_delete=models.PROTECT, null=True, blank=True, related_name='+')
    reason = models.TextField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.project_id}: {self.from_state} -> {self.to_state}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("State transitions are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("State transitions are append-only.")


class Milestone(models.Model):
    STATUS_CHOICES = (
        ("pending", "Pending"),
        ("submitted", "Submitted"),
        ("approved", "Approved"),
        ("rejected", "Rejected"),
    )

    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name="milestones")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    is_paid = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.title} ({self.amount})"


auditlog.register(Project)
