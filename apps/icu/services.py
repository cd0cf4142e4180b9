"""
ICU admission lifecycle, vitals logging and ICU bed statistics.
"""

import logging

from django.db.models import Count, Q
from django.utils import timezone

from apps.ipd.models import AdmissionStatus
from apps.patients.models import PatientProfile
from apps.wards import services as registry
from apps.wards.models import Bed, Ward
from common.exceptions import InvalidArgument, InvalidState, NotFound
from common.transactions import atomic_service, lock_or_404
from .models import ICUAdmission, ICUVitalsLog

logger = logging.getLogger(__name__)

VITALS_HISTORY_LIMIT = 24

ADMIT_FIELDS = (
    'attending_doctor_id', 'admission_date', 'admitting_diagnosis', 'condition_status',
    'ventilator_support', 'ventilator_settings', 'medications', 'isolation_required',
    'isolation_type', 'notes',
)
UPDATE_FIELDS = (
    'attending_doctor_id', 'condition_status', 'ventilator_support', 'ventilator_settings',
    'medications', 'isolation_required', 'isolation_type', 'notes',
)


def hydrated_admissions():
    return ICUAdmission.objects.select_related('patient', 'bed', 'bed__ward')


def get_icu_admission(icu_admission_id):
    try:
        return hydrated_admissions().get(pk=icu_admission_id)
    except (ICUAdmission.DoesNotExist, ValueError, TypeError):
        raise NotFound("ICU admission not found")


@atomic_service
def admit(patient_id, bed_id, actor_id=None, **attrs):
    """
    Admit a patient to an ICU bed.

    The bed must be Available and belong to an ICU ward.
    """
    try:
        patient = PatientProfile.objects.get(pk=patient_id)
    except (PatientProfile.DoesNotExist, ValueError, TypeError):
        raise NotFound("Patient not found")

    if bed_id is None:
        raise InvalidArgument("bed_id is required for ICU admission")

    bed = lock_or_404(Bed.objects.select_related('ward'), bed_id, 'Bed')
    if not bed.ward.is_icu:
        raise InvalidArgument(f"Bed {bed.bed_number} is not in an ICU ward")
    if bed.status != Bed.AVAILABLE:
        raise InvalidState(f"Bed {bed.bed_number} is {bed.status}, not Available")
    bed = registry.occupy_bed(bed.pk)

    data = {k: v for k, v in attrs.items() if k in ADMIT_FIELDS and v is not None}
    admission = ICUAdmission.objects.create(
        patient=patient,
        bed=bed,
        created_by_id=actor_id,
        **data
    )

    logger.info(f"ICU admission {admission.admission_id} created for patient {patient.patient_id} in bed {bed.bed_number}")
    return get_icu_admission(admission.pk)


@atomic_service
def update_icu_admission(icu_admission_id, attrs):
    """Update condition, ventilator, medications, isolation and notes."""
    admission = lock_or_404(ICUAdmission.objects, icu_admission_id, 'ICU admission')
    changed = [field for field in UPDATE_FIELDS if field in attrs]
    for field in changed:
        setattr(admission, field, attrs[field])
    if changed:
        admission.save(update_fields=changed + ['updated_at'])
    return get_icu_admission(admission.pk)


@atomic_service
def update_vitals(icu_admission_id, reading, recorded_by=None):
    """
    Append a vitals reading and make it the admission's current vitals.
    """
    admission = lock_or_404(ICUAdmission.objects, icu_admission_id, 'ICU admission')
    if admission.status != AdmissionStatus.ACTIVE:
        raise InvalidState(f"ICU admission {admission.admission_id} is {admission.status}")

    values = {k: reading.get(k) for k in ICUVitalsLog.READING_FIELDS}
    entry = ICUVitalsLog.objects.create(
        icu_admission=admission,
        recorded_by_id=recorded_by,
        **values
    )

    admission.current_vitals = {
        **{k: v for k, v in values.items() if v is not None},
        'recorded_at': entry.recorded_at,
    }
    admission.save(update_fields=['current_vitals', 'updated_at'])

    logger.debug(f"Vitals recorded for ICU admission {admission.admission_id}")
    return get_icu_admission(admission.pk)


def vitals_history(icu_admission_id, limit=VITALS_HISTORY_LIMIT):
    """Most recent vitals entries, newest first."""
    if not ICUAdmission.objects.filter(pk=icu_admission_id).exists():
        raise NotFound("ICU admission not found")
    return ICUVitalsLog.objects.filter(icu_admission_id=icu_admission_id)[:limit]


@atomic_service
def discharge(icu_admission_id, disposition=None, discharge_type='Normal', actor_id=None):
    """Close an Active ICU admission and release its bed."""
    admission = lock_or_404(ICUAdmission.objects, icu_admission_id, 'ICU admission')
    if admission.status != AdmissionStatus.ACTIVE:
        raise InvalidState(f"ICU admission {admission.admission_id} is already {admission.status}")

    discharge_type = discharge_type or 'Normal'
    admission.status = AdmissionStatus.from_discharge_type(discharge_type)
    admission.discharge_date = timezone.now()
    admission.discharge_type = discharge_type
    admission.discharge_disposition = disposition
    admission.discharged_by_id = actor_id
    admission.save(update_fields=[
        'status', 'discharge_date', 'discharge_type',
        'discharge_disposition', 'discharged_by_id', 'updated_at'
    ])

    if admission.bed_id is not None:
        registry.release_bed(admission.bed_id)

    logger.info(f"ICU admission {admission.admission_id} closed as {admission.status}")
    return get_icu_admission(admission.pk)


def icu_beds():
    """Beds in ICU wards ordered by ward name, then bed number."""
    return (
        Bed.objects.select_related('ward')
        .filter(ward__type=Ward.ICU)
        .order_by('ward__name', 'bed_number')
    )


def icu_stats():
    beds = Bed.objects.filter(ward__type=Ward.ICU).aggregate(
        total_beds=Count('id'),
        available_beds=Count('id', filter=Q(status=Bed.AVAILABLE)),
    )
    patients = ICUAdmission.objects.filter(status=AdmissionStatus.ACTIVE).aggregate(
        active_patients=Count('id'),
        on_ventilator=Count('id', filter=Q(ventilator_support=True)),
    )
    return {**beds, **patients}
