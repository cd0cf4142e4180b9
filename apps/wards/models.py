# wards/models.py
from django.db import models
from django.db.models import Q, F
from django.core.validators import MinValueValidator
from decimal import Decimal

from common.mixins import TimestampMixin


class Ward(TimestampMixin):
    """
    Ward Model - Physical ward/unit in the hospital.

    `total_beds` and `available_beds` are maintained by apps.wards.services
    only; every bed insert, delete and status change adjusts them in the
    same transaction.
    """

    GENERAL = 'General'
    ICU = 'ICU'

    WARD_TYPE_CHOICES = [
        ('General', 'General'),
        ('ICU', 'ICU'),
        ('Pediatric', 'Pediatric'),
        ('Maternity', 'Maternity'),
        ('Surgical', 'Surgical'),
        ('Emergency', 'Emergency'),
        ('Psychiatric', 'Psychiatric'),
    ]

    name = models.CharField(
        max_length=100,
        unique=True,
        help_text="Ward name (e.g., 'General Ward A', 'ICU Floor 3')"
    )
    type = models.CharField(
        max_length=20,
        choices=WARD_TYPE_CHOICES,
        default=GENERAL
    )
    floor = models.CharField(max_length=50, blank=True, null=True)
    nurse_station = models.CharField(max_length=50, blank=True, null=True)

    # Counters
    total_beds = models.PositiveIntegerField(default=0, editable=False)
    available_beds = models.PositiveIntegerField(default=0, editable=False)

    class Meta:
        db_table = 'wards'
        ordering = ['name']
        verbose_name = 'Ward'
        verbose_name_plural = 'Wards'
        indexes = [
            models.Index(fields=['type']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(available_beds__gte=0),
                name='ward_available_beds_non_negative'
            ),
            models.CheckConstraint(
                condition=Q(available_beds__lte=F('total_beds')),
                name='ward_available_beds_within_total'
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.type})"

    @property
    def is_icu(self):
        return self.type == self.ICU

    @property
    def occupied_beds(self):
        return self.total_beds - self.available_beds


class Bed(TimestampMixin):
    """
    Bed Model - Individual bed in a ward.
    """

    AVAILABLE = 'Available'
    OCCUPIED = 'Occupied'
    MAINTENANCE = 'Maintenance'
    RESERVED = 'Reserved'

    STATUS_CHOICES = [
        (AVAILABLE, 'Available'),
        (OCCUPIED, 'Occupied'),
        (MAINTENANCE, 'Under Maintenance'),
        (RESERVED, 'Reserved'),
    ]

    ward = models.ForeignKey(
        Ward,
        on_delete=models.CASCADE,
        related_name='beds'
    )
    bed_number = models.CharField(
        max_length=20,
        help_text="Bed number/identifier (e.g., 'A-101', 'ICU-05')"
    )
    bed_type = models.CharField(max_length=50, default='Standard')
    daily_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Daily charge for this bed"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=AVAILABLE
    )

    class Meta:
        db_table = 'beds'
        ordering = ['ward__name', 'bed_number']
        verbose_name = 'Bed'
        verbose_name_plural = 'Beds'
        constraints = [
            models.UniqueConstraint(fields=['ward', 'bed_number'], name='unique_bed_number_per_ward'),
        ]
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['ward', 'status']),
        ]

    def __str__(self):
        return f"{self.ward.name} - {self.bed_number}"

    @property
    def is_available(self):
        return self.status == self.AVAILABLE

    def has_active_admission(self):
        """True if an Active IPD or ICU admission is bound to this bed."""
        return (
            self.ipd_admissions.filter(status='Active').exists()
            or self.icu_admissions.filter(status='Active').exists()
        )
