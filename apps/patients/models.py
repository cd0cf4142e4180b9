from django.db import models
from django.core.validators import RegexValidator
import datetime


class PatientProfile(models.Model):
    """
    Patient registry entry referenced by admissions, bills and claims.
    Portal accounts live in the identity service, not here.
    """
    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]

    BLOOD_GROUP_CHOICES = [
        ('A+', 'A+'), ('A-', 'A-'),
        ('B+', 'B+'), ('B-', 'B-'),
        ('AB+', 'AB+'), ('AB-', 'AB-'),
        ('O+', 'O+'), ('O-', 'O-'),
    ]

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('deceased', 'Deceased'),
    ]

    phone_regex = RegexValidator(
        regex=r'^\+?1?\d{9,15}$',
        message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed."
    )

    # Unique Identifier
    patient_id = models.CharField(
        max_length=20,
        unique=True,
        editable=False
    )

    # Personal Info
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, null=True, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)

    # Contact
    mobile_primary = models.CharField(
        max_length=15,
        validators=[phone_regex]
    )
    email = models.EmailField(blank=True, null=True)

    blood_group = models.CharField(
        max_length=5,
        choices=BLOOD_GROUP_CHOICES,
        blank=True,
        null=True
    )

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='active'
    )

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by_id = models.UUIDField(
        db_index=True,
        null=True,
        blank=True,
        help_text="Identity-service user ID who registered this patient"
    )

    class Meta:
        db_table = 'patient_profiles'
        verbose_name = 'Patient Profile'
        verbose_name_plural = 'Patient Profiles'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['mobile_primary']),
            models.Index(fields=['last_name', 'first_name']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"{self.full_name} ({self.patient_id})"

    def save(self, *args, **kwargs):
        if not self.patient_id:
            self.patient_id = self.generate_patient_id()
        super().save(*args, **kwargs)

    @property
    def full_name(self):
        """Returns full name"""
        return ' '.join(filter(None, [self.first_name, self.last_name]))

    @property
    def age(self):
        if not self.date_of_birth:
            return None
        today = datetime.date.today()
        return today.year - self.date_of_birth.year - (
            (today.month, today.day) <
            (self.date_of_birth.month, self.date_of_birth.day)
        )

    @classmethod
    def generate_patient_id(cls):
        """Generate unique patient ID: PAT2025XXXX"""
        year = datetime.datetime.now().year
        last = cls.objects.filter(
            patient_id__startswith=f'PAT{year}'
        ).order_by('-patient_id').first()

        if last:
            try:
                num = int(last.patient_id[-4:]) + 1
            except ValueError:
                num = 1
        else:
            num = 1

        return f'PAT{year}{num:04d}'
