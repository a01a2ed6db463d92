from decimal import Decimal

from django.db import models
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from auditlog.registry import auditlog

from contracts.models import Contract
from projects.models import Milestone, Project

User = get_user_model()


class EscrowAccount(models.Model):
    """
    Per-project escrow holding.

    ``total_amount``, ``released_amount`` and ``refunded_amount`` are caches of
    the completed ``Transaction`` rows; they are only ever rewritten from the
    ledger, never incremented in place.
    """
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('active', 'Active'),
        ('released', 'Released'),
        ('refunded', 'Refunded'),
        ('disputed', 'Disputed'),
    )

    project = models.OneToOneField(Project, on_delete=models.PROTECT, related_name='escrow_account')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    released_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    refunded_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    platform_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(platform_fee_percent__gte=0) & models.Q(platform_fee_percent__lte=100),
                name='escrow_fee_percent_range',
            ),
        ]

    def __str__(self):
        return f"Escrow for {self.project.title} ({self.total_amount})"

    @property
    def cached_balance(self):
        return self.total_amount - self.released_amount - self.refunded_amount


class PaymentRelease(models.Model):
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('released', 'Released'),
        ('rejected', 'Rejected'),
    )

    escrow_account = models.ForeignKey(EscrowAccount, on_delete=models.PROTECT, related_name='releases')
    milestone = models.ForeignKey(Milestone, on_delete=models.SET_NULL, null=True, blank=True, related_name='releases')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2)
    expert_receives = models.DecimalField(max_digits=12, decimal_places=2)
    requested_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name='requested_releases')
    approved_by = models.ForeignKey(User, on_delete=models.PROTECT, null=True, blank=True, related_name='approved_releases')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    gateway_reference = models.CharField(max_length=255, blank=True)
    failure_reason = models.TextField(blank=True)
    requested_at = models.DateTimeField(auto_now_add=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-requested_at']

    def __str__(self):
        return f"Release {self.amount} from escrow {self.escrow_account_id} ({self.status})"


class Transaction(models.Model):
    """Append-only money movement; the source of truth for escrow balances."""
    TYPE_CHOICES = (
        ('escrow_funding', 'Escrow Funding'),
        ('payment_release', 'Payment Release'),
        ('refund', 'Refund'),
    )

    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    )

    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name='transactions')
    contract = models.ForeignKey(Contract, on_delete=models.PROTECT, null=True, blank=True, related_name='transactions')
    escrow_account = models.ForeignKey(EscrowAccount, on_delete=models.PROTECT, related_name='transactions')
    payment_release = models.ForeignKey(PaymentRelease, on_delete=models.PROTECT, null=True, blank=True, related_name='transactions')
    sender = models.ForeignKey(User, on_delete=models.PROTECT, null=True, blank=True, related_name='sent_transactions')
    recipient = models.ForeignKey(User, on_delete=models.PROTECT, null=True, blank=True, related_name='received_transactions')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    transaction_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    gateway_reference = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name='transaction_amount_positive'),
        ]

    def __str__(self):
        return f"{self.transaction_type} of {self.amount} for {self.project_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Ledger transactions are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Ledger transactions are append-only.")


class Invoice(models.Model):
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('paid', 'Paid'),
    )

    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name='invoices')
    payment_release = models.OneToOneField(PaymentRelease, on_delete=models.PROTECT, related_name='invoice')
    invoice_number = models.CharField(max_length=32, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, help_text="Paid out to the expert")
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    issued_to = models.ForeignKey(User, on_delete=models.PROTECT, related_name='invoices')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    issued_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-issued_at']

    def __str__(self):
        return self.invoice_number


auditlog.register(EscrowAccount)
