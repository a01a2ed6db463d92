from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from country_list import countries_for_language
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField


class CustomUserManager(BaseUserManager):
    """
    Manager for CustomUser. Handles user and superuser creation using email as the unique identifier.
    """
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email is required.")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        return self.create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    """
    Marketplace account.
    Uses email as the unique identifier and supports 'expert' and 'client' user types.
    Staff users act as platform admins.
    """
    USER_TYPE_CHOICES = (
        ('expert', 'Expert'),
        ('client', 'Client'),
    )

    user_type = models.CharField(max_length=20, choices=USER_TYPE_CHOICES)
    phone_number = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=50, choices=countries_for_language('en'), blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    email = models.EmailField(unique=True, blank=False)
    username = None

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name',]

    objects = CustomUserManager()

    history = AuditlogHistoryField()

    def __str__(self):
        return self.email

    @property
    def is_expert(self):
        return self.user_type == 'expert'

    @property
    def is_client(self):
        return self.user_type == 'client'


class ExpertProfile(models.Model):
    """Vetting record and payout destination for an expert account."""
    VETTING_CHOICES = (
        ('pending', 'Pending'),
        ('verified', 'Verified'),
        ('rejected', 'Rejected'),
    )

    user = models.OneToOneField(CustomUser, on_delete=models.CASCADE, related_name='expert_profile')
    title = models.CharField(max_length=255, blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    vetting_status = models.CharField(max_length=20, choices=VETTING_CHOICES, default='pending')
    payout_account_id = models.CharField(max_length=255, blank=True, help_text="Gateway destination for payouts")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.email} ({self.vetting_status})"

    @property
    def is_verified(self):
        return self.vetting_status == 'verified'


auditlog.register(CustomUser, exclude_fields=['password', 'last_login'])
