from django.db import models
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog

from projects.models import Project

User = get_user_model()


class Contract(models.Model):
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('signed', 'Signed'),
        ('active', 'Active'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    )
    STATUSES = tuple(value for value, _ in STATUS_CHOICES)
    FUNDABLE_STATUSES = ('signed', 'active')

    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name='contracts')
    client = models.ForeignKey(User, on_delete=models.PROTECT, related_name='client_contracts')
    expert = models.ForeignKey(User, on_delete=models.PROTECT, related_name='expert_contracts')
    terms = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    signature_metadata = models.JSONField(null=True, blank=True)
    signed_by = models.ForeignKey(User, on_delete=models.PROTECT, null=True, blank=True, related_name='+')
    signed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Contract {self.pk} for {self.project_id} ({self.status})"

    def is_party(self, user):
        return user.pk in (self.client_id, self.expert_id)


auditlog.register(Contract, exclude_fields=['signature_metadata'])
