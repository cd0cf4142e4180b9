"""
Bed/Ward registry operations.

This module is the only writer of Ward.total_beds and Ward.available_beds.
Each operation locks the Ward row (and the Bed row where one is touched)
inside one transaction, so the counters always agree with the beds:

    available_beds == COUNT(beds WHERE status = 'Available')
    0 <= available_beds <= total_beds
"""

import logging

from django.db.models import Count, Q

from common.exceptions import InvalidArgument, InvalidState, ReferentialConflict, NotFound
from common.transactions import atomic_operation, atomic_service, lock_or_404
from .models import Ward, Bed

logger = logging.getLogger(__name__)

WARD_FIELDS = ('name', 'type', 'floor', 'nurse_station')
BED_FIELDS = ('bed_number', 'bed_type', 'daily_rate')
BED_STATUSES = {choice for choice, _ in Bed.STATUS_CHOICES}


def _validate_status(status):
    if status not in BED_STATUSES:
        raise InvalidArgument(
            f"Invalid bed status '{status}'. Must be one of: {', '.join(sorted(BED_STATUSES))}"
        )


def _ward_id(ward):
    return ward.pk if isinstance(ward, Ward) else ward


def _adjust_counters(ward, total=0, available=0):
    """Apply counter deltas to a ward row the caller has already locked."""
    ward.total_beds += total
    ward.available_beds += available
    ward.save(update_fields=['total_beds', 'available_beds', 'updated_at'])


def _has_active_admissions(beds):
    return any(bed.has_active_admission() for bed in beds)


# --------------------------------------------------------------------------
# Wards
# --------------------------------------------------------------------------

def create_ward(attrs):
    """Create a ward. Counters start at zero and grow as beds are added."""
    data = {k: v for k, v in attrs.items() if k in WARD_FIELDS}
    if not data.get('name'):
        raise InvalidArgument("Ward name is required")
    with atomic_operation('create_ward'):
        ward = Ward.objects.create(**data)
    logger.info(f"Ward created: {ward.name} ({ward.type})")
    return ward


@atomic_service
def update_ward(ward_id, attrs):
    ward = lock_or_404(Ward.objects, ward_id, 'Ward')
    changed = []
    for field in WARD_FIELDS:
        if field in attrs:
            setattr(ward, field, attrs[field])
            changed.append(field)
    if changed:
        ward.save(update_fields=changed + ['updated_at'])
    return ward


@atomic_service
def delete_ward(ward_id):
    ward = lock_or_404(Ward.objects, ward_id, 'Ward')
    if _has_active_admissions(ward.beds.all()):
        raise ReferentialConflict(f"Ward '{ward.name}' has beds with active admissions")
    name = ward.name
    ward.delete()
    logger.info(f"Ward deleted: {name}")


def get_ward(ward_id):
    try:
        return Ward.objects.get(pk=ward_id)
    except (Ward.DoesNotExist, ValueError, TypeError):
        raise NotFound("Ward not found")


# --------------------------------------------------------------------------
# Beds
# --------------------------------------------------------------------------

@atomic_service
def create_bed(ward_id, attrs):
    """
    Insert a bed under a ward.

    total_beds grows by one; available_beds grows too when the bed starts
    out Available (the default).
    """
    status = attrs.get('status') or Bed.AVAILABLE
    _validate_status(status)
    if not attrs.get('bed_number'):
        raise InvalidArgument("Bed number is required")

    ward = lock_or_404(Ward.objects, _ward_id(ward_id), 'Ward')
    data = {k: v for k, v in attrs.items() if k in BED_FIELDS}
    bed = Bed.objects.create(ward=ward, status=status, **data)

    _adjust_counters(ward, total=1, available=1 if status == Bed.AVAILABLE else 0)
    logger.info(f"Bed {bed.bed_number} added to ward {ward.name} as {status}")
    return bed


def _apply_status(bed, new_status):
    """
    Write a new status on a bed row the caller has already locked.

    Only a transition into or out of Available moves the ward counter.
    """
    old_status = bed.status
    if old_status == new_status:
        return bed

    ward = Ward.objects.select_for_update().get(pk=bed.ward_id)
    bed.status = new_status
    bed.save(update_fields=['status', 'updated_at'])

    if old_status == Bed.AVAILABLE:
        _adjust_counters(ward, available=-1)
    elif new_status == Bed.AVAILABLE:
        _adjust_counters(ward, available=1)

    bed.ward = ward
    logger.debug(f"Bed {bed.pk} status {old_status} -> {new_status}")
    return bed


def _ensure_unbound(bed):
    if bed.has_active_admission():
        raise InvalidState(f"Bed {bed.bed_number} is bound to an active admission")


@atomic_service
def update_bed_status(bed_id, new_status):
    """
    Change a bed's status and keep the ward's available_beds in step.

    The current status is read under a row lock immediately before the
    write. A bed held by an Active admission changes status only through
    admit, transfer and discharge.
    """
    _validate_status(new_status)
    bed = lock_or_404(Bed.objects, bed_id, 'Bed')
    if bed.status != new_status:
        _ensure_unbound(bed)
    return _apply_status(bed, new_status)


@atomic_service
def occupy_bed(bed_id):
    return _apply_status(lock_or_404(Bed.objects, bed_id, 'Bed'), Bed.OCCUPIED)


@atomic_service
def release_bed(bed_id):
    return _apply_status(lock_or_404(Bed.objects, bed_id, 'Bed'), Bed.AVAILABLE)


@atomic_service
def update_bed(bed_id, attrs):
    """
    Update bed attributes.

    Moving a bed to another ward moves its counter contributions with it;
    both wards are locked in primary-key order. A bed held by an Active
    admission cannot change ward or status here.
    """
    attrs = dict(attrs)
    new_ward = attrs.pop('ward', None)
    new_status = attrs.pop('status', None)
    if new_status is not None:
        _validate_status(new_status)

    bed = lock_or_404(Bed.objects, bed_id, 'Bed')

    new_ward_id = _ward_id(new_ward) if new_ward is not None else None
    moving = new_ward_id is not None and new_ward_id != bed.ward_id
    if moving or (new_status is not None and new_status != bed.status):
        _ensure_unbound(bed)

    changed = []
    for field in BED_FIELDS:
        if field in attrs:
            setattr(bed, field, attrs[field])
            changed.append(field)

    if moving:
        locked = {
            w.pk: w for w in Ward.objects.select_for_update()
            .filter(pk__in=[bed.ward_id, new_ward_id]).order_by('pk')
        }
        if new_ward_id not in locked:
            raise NotFound("Ward not found")
        old_ward, target = locked[bed.ward_id], locked[new_ward_id]
        contributes = 1 if bed.status == Bed.AVAILABLE else 0
        _adjust_counters(old_ward, total=-1, available=-contributes)
        _adjust_counters(target, total=1, available=contributes)
        bed.ward = target
        changed.append('ward')
        logger.info(f"Bed {bed.bed_number} moved from {old_ward.name} to {target.name}")

    if changed:
        bed.save(update_fields=changed + ['updated_at'])

    if new_status is not None:
        bed = _apply_status(bed, new_status)
    return bed


@atomic_service
def delete_bed(bed_id):
    bed = lock_or_404(Bed.objects, bed_id, 'Bed')
    if bed.has_active_admission():
        raise ReferentialConflict(f"Bed {bed.bed_number} is bound to an active admission")

    ward = Ward.objects.select_for_update().get(pk=bed.ward_id)
    was_available = bed.status == Bed.AVAILABLE
    bed.delete()
    _adjust_counters(ward, total=-1, available=-1 if was_available else 0)
    logger.info(f"Bed deleted from ward {ward.name}")


# --------------------------------------------------------------------------
# Queries and repair
# --------------------------------------------------------------------------

def get_available_beds(ward_id=None):
    """Available beds ordered by ward name, then bed number."""
    queryset = Bed.objects.select_related('ward').filter(status=Bed.AVAILABLE)
    if ward_id is not None:
        queryset = queryset.filter(ward_id=ward_id)
    return queryset.order_by('ward__name', 'bed_number')


@atomic_service
def recount_ward(ward_id):
    """
    Recompute a ward's counters from its beds.

    Returns (ward, drift_corrected).
    """
    ward = lock_or_404(Ward.objects, ward_id, 'Ward')
    counts = ward.beds.aggregate(
        total=Count('id'),
        available=Count('id', filter=Q(status=Bed.AVAILABLE)),
    )

    drift = (counts['total'], counts['available']) != (ward.total_beds, ward.available_beds)
    if drift:
        logger.warning(
            f"Counter drift on ward {ward.name}: stored total={ward.total_beds} "
            f"available={ward.available_beds}, actual total={counts['total']} "
            f"available={counts['available']}"
        )
        ward.total_beds = counts['total']
        ward.available_beds = counts['available']
        ward.save(update_fields=['total_beds', 'available_beds', 'updated_at'])
    return ward, drift


def occupancy_stats():
    """Per-ward and hospital-wide bed occupancy."""
    wards = Ward.objects.annotate(
        occupied=Count('beds', filter=Q(beds__status=Bed.OCCUPIED))
    ).order_by('name')

    rows = []
    totals = {'total_beds': 0, 'available_beds': 0, 'occupied_beds': 0}
    for ward in wards:
        rows.append({
            'ward_id': ward.pk,
            'name': ward.name,
            'type': ward.type,
            'total_beds': ward.total_beds,
            'available_beds': ward.available_beds,
            'occupied_beds': ward.occupied,
        })
        totals['total_beds'] += ward.total_beds
        totals['available_beds'] += ward.available_beds
        totals['occupied_beds'] += ward.occupied

    totals['occupancy_rate'] = (
        round(totals['occupied_beds'] * 100 / totals['total_beds'], 2)
        if totals['total_beds'] else 0
    )
    return {'wards': rows, 'totals': totals}
