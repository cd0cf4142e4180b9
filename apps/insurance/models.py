# insurance/models.py
from django.core.validators import MinValueValidator
from django.db import models

from apps.billing.models import CENT
from common.mixins import TimestampMixin
from common.numbering import next_daily_number


class InsuranceProvider(TimestampMixin):
    """Insurance company or TPA that claims are raised against."""

    STATUS_CHOICES = [
        ('Active', 'Active'),
        ('Inactive', 'Inactive'),
    ]

    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True)
    contact_number = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    coverage_details = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='Active')

    class Meta:
        db_table = 'insurance_providers'
        ordering = ['name']
        verbose_name = 'Insurance Provider'
        verbose_name_plural = 'Insurance Providers'

    def __str__(self):
        return f"{self.name} ({self.code})"


class InsuranceClaim(TimestampMixin):
    """
    Claim against a provider for (part of) a bill.

    A claim is resolved once: Pending moves to Approved or Rejected and
    never back. Approval records an Insurance payment on the bill.
    """

    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (APPROVED, 'Approved'),
        (REJECTED, 'Rejected'),
    ]

    claim_number = models.CharField(
        max_length=50,
        unique=True,
        editable=False,
        help_text="Unique claim identifier (e.g., CLM-20231223-001)"
    )
    bill = models.ForeignKey(
        'billing.Bill',
        on_delete=models.PROTECT,
        related_name='insurance_claims'
    )
    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='insurance_claims'
    )
    insurance_provider = models.ForeignKey(
        InsuranceProvider,
        on_delete=models.PROTECT,
        related_name='claims'
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(CENT)])
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)

    documents = models.JSONField(default=list, blank=True, help_text="Uploaded document file names")
    notes = models.TextField(blank=True, null=True)
    admin_notes = models.TextField(blank=True, null=True)

    created_by_id = models.UUIDField(null=True, blank=True, db_index=True)
    resolved_by_id = models.UUIDField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'insurance_claims'
        ordering = ['-created_at', '-id']
        verbose_name = 'Insurance Claim'
        verbose_name_plural = 'Insurance Claims'
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['insurance_provider', 'status']),
            models.Index(fields=['patient', '-created_at']),
        ]

    def __str__(self):
        return f"{self.claim_number} - {self.amount} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.claim_number:
            self.claim_number = next_daily_number(InsuranceClaim, 'claim_number', 'CLM', sep='-')
        super().save(*args, **kwargs)

    @property
    def is_resolved(self):
        return self.status != self.PENDING
