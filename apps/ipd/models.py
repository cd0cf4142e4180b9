# ipd/models.py
from django.db import models
from django.utils import timezone

from common.mixins import TimestampMixin
from common.numbering import next_daily_number


class AdmissionStatus:
    """Lifecycle shared by IPD and ICU admissions: Active, then one terminal value."""
    ACTIVE = 'Active'
    DISCHARGED = 'Discharged'
    TRANSFERRED = 'Transferred'
    DECEASED = 'Deceased'

    CHOICES = [
        (ACTIVE, 'Active'),
        (DISCHARGED, 'Discharged'),
        (TRANSFERRED, 'Transferred'),
        (DECEASED, 'Deceased'),
    ]

    TERMINAL = {DISCHARGED, TRANSFERRED, DECEASED}

    @classmethod
    def from_discharge_type(cls, discharge_type):
        """Terminal status for a discharge type; unknown types are a plain discharge."""
        if discharge_type == 'Deceased':
            return cls.DECEASED
        if discharge_type == 'Transferred':
            return cls.TRANSFERRED
        return cls.DISCHARGED


class IPDAdmission(TimestampMixin):
    """
    IPD Admission Model - inpatient admission records.

    Created Active, optionally bound to a bed, bed-transferred while Active,
    and closed exactly once by discharge.
    """

    ADMISSION_TYPE_CHOICES = [
        ('Regular', 'Regular'),
        ('Emergency', 'Emergency'),
        ('Transfer', 'Transfer'),
        ('Daycare', 'Daycare'),
    ]

    admission_id = models.CharField(
        max_length=50,
        unique=True,
        editable=False,
        help_text="Unique admission identifier (e.g., IPD/20231223/001)"
    )

    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='ipd_admissions'
    )
    bed = models.ForeignKey(
        'wards.Bed',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ipd_admissions',
        help_text="Current bed assignment"
    )

    # Doctor references (identity-service user ids)
    admitting_doctor_id = models.UUIDField(null=True, blank=True, db_index=True)
    attending_doctor_id = models.UUIDField(null=True, blank=True, db_index=True)

    # Admission Information
    admission_date = models.DateTimeField(default=timezone.now)
    admission_type = models.CharField(
        max_length=20,
        choices=ADMISSION_TYPE_CHOICES,
        default='Regular'
    )
    admitting_diagnosis = models.TextField(default='Pending evaluation')
    chief_complaints = models.TextField(blank=True, null=True)
    history = models.TextField(blank=True, null=True)
    treatment_plan = models.TextField(blank=True, null=True)
    diet_type = models.CharField(max_length=50, blank=True, null=True)
    special_instructions = models.TextField(blank=True, null=True)
    expected_discharge_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=AdmissionStatus.CHOICES,
        default=AdmissionStatus.ACTIVE
    )

    # Discharge Information
    actual_discharge_date = models.DateTimeField(null=True, blank=True)
    discharge_type = models.CharField(max_length=50, blank=True, null=True)
    discharge_summary = models.TextField(blank=True, null=True)

    # Audit Fields
    created_by_id = models.UUIDField(null=True, blank=True, db_index=True)
    discharged_by_id = models.UUIDField(null=True, blank=True, db_index=True)

    class Meta:
        db_table = 'ipd_admissions'
        ordering = ['-admission_date']
        verbose_name = 'IPD Admission'
        verbose_name_plural = 'IPD Admissions'
        indexes = [
            models.Index(fields=['status'], name='ipd_status_idx'),
            models.Index(fields=['patient', 'admission_date'], name='ipd_patient_date_idx'),
            models.Index(fields=['attending_doctor_id', 'admission_date'], name='ipd_doctor_date_idx'),
        ]

    def __str__(self):
        return f"{self.admission_id} - {self.patient}"

    def save(self, *args, **kwargs):
        if not self.admission_id:
            self.admission_id = next_daily_number(IPDAdmission, 'admission_id', 'IPD')
        super().save(*args, **kwargs)

    @property
    def is_active(self):
        return self.status == AdmissionStatus.ACTIVE

    def calculate_length_of_stay(self):
        """Length of stay in days."""
        end = self.actual_discharge_date or timezone.now()
        return (end - self.admission_date).days


class BedTransfer(models.Model):
    """
    Bed Transfer Model - history of bed moves for an IPD admission.

    Written by apps.ipd.services.bed_transfer; bed status and ward counters
    are handled there, not here.
    """

    admission = models.ForeignKey(
        IPDAdmission,
        on_delete=models.CASCADE,
        related_name='bed_transfers'
    )
    from_bed = models.ForeignKey(
        'wards.Bed',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transfers_from',
        help_text="Original bed"
    )
    to_bed = models.ForeignKey(
        'wards.Bed',
        on_delete=models.SET_NULL,
        null=True,
        related_name='transfers_to',
        help_text="New bed"
    )

    transfer_date = models.DateTimeField(default=timezone.now)
    reason = models.TextField(blank=True, null=True)
    performed_by_id = models.UUIDField(null=True, blank=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ipd_bed_transfers'
        ordering = ['-transfer_date']
        verbose_name = 'IPD Bed Transfer'
        verbose_name_plural = 'IPD Bed Transfers'
        indexes = [
            models.Index(fields=['admission', '-transfer_date']),
        ]

    def __str__(self):
        return f"{self.admission.admission_id}: {self.from_bed} -> {self.to_bed}"
