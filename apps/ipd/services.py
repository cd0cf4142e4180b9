"""
IPD admission lifecycle: admit, update, bed transfer and discharge.

Bed status changes go through apps.wards.services so the ward counters
move in the same transaction as the admission row.
"""

import logging

from django.utils import timezone

from apps.patients.models import PatientProfile
from apps.wards import services as registry
from apps.wards.models import Bed
from common.exceptions import InvalidArgument, InvalidState, NotFound
from common.transactions import atomic_service, lock_or_404
from .models import IPDAdmission, BedTransfer, AdmissionStatus

logger = logging.getLogger(__name__)

ADMIT_FIELDS = (
    'admitting_doctor_id', 'attending_doctor_id', 'admission_date', 'admission_type',
    'admitting_diagnosis', 'chief_complaints', 'history', 'treatment_plan',
    'diet_type', 'special_instructions', 'expected_discharge_date',
)
UPDATE_FIELDS = (
    'attending_doctor_id', 'admitting_diagnosis', 'chief_complaints', 'history',
    'treatment_plan', 'diet_type', 'special_instructions', 'expected_discharge_date',
)


def hydrated_admissions():
    return IPDAdmission.objects.select_related('patient', 'bed', 'bed__ward')


def get_admission(admission_id):
    try:
        return hydrated_admissions().get(pk=admission_id)
    except (IPDAdmission.DoesNotExist, ValueError, TypeError):
        raise NotFound("Admission not found")


def _get_patient(patient_id):
    try:
        return PatientProfile.objects.get(pk=patient_id)
    except (PatientProfile.DoesNotExist, ValueError, TypeError):
        raise NotFound("Patient not found")


def _claim_bed(bed_id):
    """Lock a bed, require it Available and mark it Occupied."""
    bed = lock_or_404(Bed.objects, bed_id, 'Bed')
    if bed.status != Bed.AVAILABLE:
        raise InvalidState(f"Bed {bed.bed_number} is {bed.status}, not Available")
    return registry.occupy_bed(bed.pk)


@atomic_service
def admit(patient_id, bed_id=None, actor_id=None, **attrs):
    """
    Admit a patient to IPD.

    When a bed is given it must be Available; it becomes Occupied in the
    same transaction that creates the admission.
    """
    patient = _get_patient(patient_id)
    bed = _claim_bed(bed_id) if bed_id is not None else None

    data = {k: v for k, v in attrs.items() if k in ADMIT_FIELDS and v is not None}
    admission = IPDAdmission.objects.create(
        patient=patient,
        bed=bed,
        created_by_id=actor_id,
        **data
    )

    logger.info(
        f"IPD admission {admission.admission_id} created for patient {patient.patient_id}"
        + (f" in bed {bed.bed_number}" if bed else "")
    )
    return get_admission(admission.pk)


@atomic_service
def update_admission(admission_id, attrs):
    """Update clinical fields. Bed and status are never changed here."""
    admission = lock_or_404(IPDAdmission.objects, admission_id, 'Admission')
    changed = [field for field in UPDATE_FIELDS if field in attrs]
    for field in changed:
        setattr(admission, field, attrs[field])
    if changed:
        admission.save(update_fields=changed + ['updated_at'])
    return get_admission(admission.pk)


@atomic_service
def bed_transfer(admission_id, new_bed_id, reason=None, actor_id=None):
    """
    Move an Active admission to another Available bed.

    Releases the old bed, occupies the new one and writes a BedTransfer
    history row.
    """
    try:
        admission = IPDAdmission.objects.select_for_update().get(
            pk=admission_id, status=AdmissionStatus.ACTIVE
        )
    except (IPDAdmission.DoesNotExist, ValueError, TypeError):
        raise NotFound("Active admission not found")

    if new_bed_id is None:
        raise InvalidArgument("new_bed_id is required")
    if admission.bed_id is not None and str(admission.bed_id) == str(new_bed_id):
        raise InvalidArgument("Patient is already in this bed")

    old_bed_id = admission.bed_id
    new_bed = _claim_bed(new_bed_id)
    if old_bed_id is not None:
        registry.release_bed(old_bed_id)

    admission.bed = new_bed
    admission.save(update_fields=['bed', 'updated_at'])

    BedTransfer.objects.create(
        admission=admission,
        from_bed_id=old_bed_id,
        to_bed=new_bed,
        reason=reason,
        performed_by_id=actor_id,
    )

    logger.info(f"IPD admission {admission.admission_id} transferred from bed {old_bed_id} to {new_bed.pk}")
    return get_admission(admission.pk)


@atomic_service
def discharge(admission_id, discharge_type, discharge_summary=None, actor_id=None):
    """
    Close an Active admission and release its bed.

    The terminal status follows the discharge type; a second discharge is
    rejected.
    """
    if not discharge_type:
        raise InvalidArgument("discharge_type is required")

    admission = lock_or_404(IPDAdmission.objects, admission_id, 'Admission')
    if admission.status != AdmissionStatus.ACTIVE:
        raise InvalidState(f"Admission {admission.admission_id} is already {admission.status}")

    admission.status = AdmissionStatus.from_discharge_type(discharge_type)
    admission.actual_discharge_date = timezone.now()
    admission.discharge_type = discharge_type
    admission.discharge_summary = discharge_summary
    admission.discharged_by_id = actor_id
    admission.save(update_fields=[
        'status', 'actual_discharge_date', 'discharge_type',
        'discharge_summary', 'discharged_by_id', 'updated_at'
    ])

    if admission.bed_id is not None:
        registry.release_bed(admission.bed_id)

    logger.info(f"IPD admission {admission.admission_id} closed as {admission.status} ({discharge_type})")
    return get_admission(admission.pk)


def get_active():
    """Active admissions, newest first."""
    return hydrated_admissions().filter(status=AdmissionStatus.ACTIVE).order_by('-admission_date')


def get_available_beds():
    return registry.get_available_beds()
