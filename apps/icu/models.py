# icu/models.py
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from apps.ipd.models import AdmissionStatus
from common.exceptions import InvalidState
from common.mixins import TimestampMixin
from common.numbering import next_daily_number


class ICUAdmission(TimestampMixin):
    """
    ICU Admission Model - a patient under intensive care.

    The bed must belong to an ICU ward. There is no bed transfer for ICU;
    the admission holds its bed until discharge.
    """

    CONDITION_CHOICES = [
        ('Critical', 'Critical'),
        ('Serious', 'Serious'),
        ('Stable', 'Stable'),
        ('Improving', 'Improving'),
    ]

    admission_id = models.CharField(
        max_length=50,
        unique=True,
        editable=False,
        help_text="Unique ICU admission identifier (e.g., ICU/20231223/001)"
    )

    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='icu_admissions'
    )
    bed = models.ForeignKey(
        'wards.Bed',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='icu_admissions'
    )
    attending_doctor_id = models.UUIDField(null=True, blank=True, db_index=True)

    admission_date = models.DateTimeField(default=timezone.now)
    admitting_diagnosis = models.TextField(default='Pending evaluation')
    condition_status = models.CharField(
        max_length=20,
        choices=CONDITION_CHOICES,
        default='Critical'
    )

    # Support and monitoring
    ventilator_support = models.BooleanField(default=False)
    ventilator_settings = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    current_vitals = models.JSONField(
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Latest vitals reading, overwritten on every vitals update"
    )
    medications = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    isolation_required = models.BooleanField(default=False)
    isolation_type = models.CharField(max_length=50, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)

    status = models.CharField(
        max_length=20,
        choices=AdmissionStatus.CHOICES,
        default=AdmissionStatus.ACTIVE
    )

    # Discharge Information
    discharge_date = models.DateTimeField(null=True, blank=True)
    discharge_type = models.CharField(max_length=50, blank=True, null=True)
    discharge_disposition = models.CharField(max_length=100, blank=True, null=True)

    # Audit Fields
    created_by_id = models.UUIDField(null=True, blank=True, db_index=True)
    discharged_by_id = models.UUIDField(null=True, blank=True, db_index=True)

    class Meta:
        db_table = 'icu_admissions'
        ordering = ['-admission_date']
        verbose_name = 'ICU Admission'
        verbose_name_plural = 'ICU Admissions'
        indexes = [
            models.Index(fields=['status'], name='icu_status_idx'),
            models.Index(fields=['condition_status'], name='icu_condition_idx'),
        ]

    def __str__(self):
        return f"{self.admission_id} - {self.patient}"

    def save(self, *args, **kwargs):
        if not self.admission_id:
            self.admission_id = next_daily_number(ICUAdmission, 'admission_id', 'ICU')
        super().save(*args, **kwargs)

    @property
    def is_active(self):
        return self.status == AdmissionStatus.ACTIVE


class ICUVitalsLog(models.Model):
    """
    One vitals reading for an ICU admission. Append-only.
    """

    icu_admission = models.ForeignKey(
        ICUAdmission,
        on_delete=models.CASCADE,
        related_name='vitals_log'
    )
    recorded_at = models.DateTimeField(default=timezone.now, db_index=True)
    recorded_by_id = models.UUIDField(null=True, blank=True)

    bp_systolic = models.PositiveIntegerField(null=True, blank=True)
    bp_diastolic = models.PositiveIntegerField(null=True, blank=True)
    heart_rate = models.PositiveIntegerField(null=True, blank=True)
    temperature = models.DecimalField(max_digits=4, decimal_places=1, null=True, blank=True)
    respiratory_rate = models.PositiveIntegerField(null=True, blank=True)
    spo2 = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    cvp = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    urine_output = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True, null=True)

    class Meta:
        db_table = 'icu_vitals_log'
        ordering = ['-recorded_at', '-id']
        verbose_name = 'ICU Vitals Entry'
        verbose_name_plural = 'ICU Vitals Log'
        indexes = [
            models.Index(fields=['icu_admission', '-recorded_at']),
        ]

    READING_FIELDS = (
        'bp_systolic', 'bp_diastolic', 'heart_rate', 'temperature',
        'respiratory_rate', 'spo2', 'cvp', 'urine_output', 'notes',
    )

    def __str__(self):
        return f"{self.icu_admission.admission_id} @ {self.recorded_at:%Y-%m-%d %H:%M}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise InvalidState("ICU vitals entries cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidState("ICU vitals entries cannot be deleted")

    @property
    def blood_pressure(self):
        if self.bp_systolic and self.bp_diastolic:
            return f"{self.bp_systolic}/{self.bp_diastolic}"
        return None
