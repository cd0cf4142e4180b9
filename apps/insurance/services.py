"""
Insurance providers and claim reconciliation.

Approving a claim posts an Insurance payment to its bill through
apps.billing.services.record_payment, inside the transaction that
resolves the claim.
"""

import logging
from decimal import Decimal

from django.utils import timezone

from apps.billing import services as billing
from apps.billing.models import Bill, Payment, money
from apps.patients.models import PatientProfile
from common.exceptions import InvalidArgument, InvalidState, NotFound, ReferentialConflict
from common.transactions import atomic_service, lock_or_404
from .models import InsuranceProvider, InsuranceClaim

logger = logging.getLogger(__name__)

PROVIDER_FIELDS = ('name', 'code', 'contact_number', 'email', 'address', 'coverage_details', 'status')
CLAIM_UPDATE_FIELDS = ('amount', 'notes', 'documents')
CLAIM_STATUSES = {choice for choice, _ in InsuranceClaim.STATUS_CHOICES}
APPROVAL_NOTE = "Auto-payment via insurance claim approval"


# ============================================================================
# PROVIDERS
# ============================================================================

def get_provider(provider_id):
    try:
        return InsuranceProvider.objects.get(pk=provider_id)
    except (InsuranceProvider.DoesNotExist, ValueError, TypeError):
        raise NotFound("Insurance provider not found")


@atomic_service
def create_provider(attrs):
    data = {k: v for k, v in attrs.items() if k in PROVIDER_FIELDS}
    if InsuranceProvider.objects.filter(code=data.get('code')).exists():
        raise InvalidArgument(f"Provider code '{data.get('code')}' already exists")
    provider = InsuranceProvider.objects.create(**data)
    logger.info(f"Insurance provider {provider.code} created")
    return provider


@atomic_service
def update_provider(provider_id, attrs):
    provider = lock_or_404(InsuranceProvider.objects, provider_id, 'Insurance provider')
    code = attrs.get('code')
    if code and InsuranceProvider.objects.filter(code=code).exclude(pk=provider.pk).exists():
        raise InvalidArgument(f"Provider code '{code}' already exists")

    changed = [field for field in PROVIDER_FIELDS if field in attrs]
    for field in changed:
        setattr(provider, field, attrs[field])
    if changed:
        provider.save(update_fields=changed + ['updated_at'])
    return provider


@atomic_service
def delete_provider(provider_id):
    provider = lock_or_404(InsuranceProvider.objects, provider_id, 'Insurance provider')
    if provider.claims.exists():
        raise ReferentialConflict(
            f"Provider {provider.code} has {provider.claims.count()} claims; deactivate it instead"
        )
    code = provider.code
    provider.delete()
    logger.info(f"Insurance provider {code} deleted")


# ============================================================================
# CLAIMS
# ============================================================================

def claims_with_relations():
    return InsuranceClaim.objects.select_related('bill', 'patient', 'insurance_provider')


def get_claim(claim_id):
    try:
        return claims_with_relations().get(pk=claim_id)
    except (InsuranceClaim.DoesNotExist, ValueError, TypeError):
        raise NotFound("Insurance claim not found")


def _pk(value):
    return getattr(value, 'pk', value)


@atomic_service
def create_claim(bill_id, patient_id, provider_id, amount, documents=None, notes=None, actor_id=None):
    """
    Raise a Pending claim and cross-reference it on the bill.

    The bill's money fields are not touched until the claim is approved.
    """
    if not bill_id or not patient_id or not provider_id or amount is None:
        raise InvalidArgument("bill_id, patient_id, insurance_provider_id and amount are required")
    amount = money(amount)
    if amount <= Decimal('0'):
        raise InvalidArgument("Claim amount must be greater than zero")

    bill = lock_or_404(Bill.objects, _pk(bill_id), 'Bill')
    provider = get_provider(_pk(provider_id))
    if not PatientProfile.objects.filter(pk=_pk(patient_id)).exists():
        raise NotFound("Patient not found")
    if str(bill.patient_id) != str(_pk(patient_id)):
        raise InvalidArgument(f"Patient does not match the patient on bill {bill.bill_number}")

    claim = InsuranceClaim.objects.create(
        bill=bill,
        patient_id=bill.patient_id,
        insurance_provider=provider,
        amount=amount,
        documents=list(documents or []),
        notes=notes,
        created_by_id=actor_id,
    )

    bill.insurance_claim = claim
    bill.insurance_amount = amount
    bill.save(update_fields=['insurance_claim', 'insurance_amount', 'updated_at'])

    logger.info(f"Claim {claim.claim_number} of {amount} raised with {provider.code} for bill {bill.bill_number}")
    return get_claim(claim.pk)


@atomic_service
def update_claim(claim_id, attrs):
    """Edit amount, notes or documents of a Pending claim."""
    claim = lock_or_404(InsuranceClaim.objects, claim_id, 'Insurance claim')
    if claim.is_resolved:
        raise InvalidState(f"Claim {claim.claim_number} is {claim.status} and can no longer be edited")

    changed = [field for field in CLAIM_UPDATE_FIELDS if field in attrs]
    if 'amount' in changed:
        amount = money(attrs['amount'])
        if amount <= Decimal('0'):
            raise InvalidArgument("Claim amount must be greater than zero")
        claim.amount = amount
        Bill.objects.filter(pk=claim.bill_id, insurance_claim_id=claim.pk).update(
            insurance_amount=amount, updated_at=timezone.now()
        )
    if 'notes' in changed:
        claim.notes = attrs['notes']
    if 'documents' in changed:
        claim.documents = list(attrs['documents'] or [])

    if changed:
        claim.save(update_fields=changed + ['updated_at'])
    return get_claim(claim.pk)


@atomic_service
def update_claim_status(claim_id, status, admin_notes=None, actor_id=None):
    """
    Resolve a Pending claim.

    Approved records a payment of the claim amount on the bill in this
    transaction; Rejected only closes the claim. A resolved claim cannot be
    resolved again.
    """
    if status not in CLAIM_STATUSES:
        raise InvalidArgument(f"Invalid claim status '{status}'. Must be one of: Pending, Approved, Rejected")

    claim = lock_or_404(InsuranceClaim.objects, claim_id, 'Insurance claim')
    if claim.is_resolved:
        raise InvalidState(f"Claim {claim.claim_number} is already {claim.status}")

    if status == InsuranceClaim.PENDING:
        claim.admin_notes = admin_notes
        claim.save(update_fields=['admin_notes', 'updated_at'])
        return get_claim(claim.pk)

    if status == InsuranceClaim.APPROVED:
        payment = billing.record_payment(
            claim.bill_id,
            amount=claim.amount,
            payment_method=Payment.INSURANCE,
            patient_id=claim.patient_id,
            actor_id=actor_id,
            transaction_reference=claim.claim_number,
            notes=APPROVAL_NOTE,
        )
        logger.info(f"Claim {claim.claim_number} approved; payment {payment.payment_id} posted")
    else:
        logger.info(f"Claim {claim.claim_number} rejected")

    claim.status = status
    claim.admin_notes = admin_notes
    claim.resolved_by_id = actor_id
    claim.resolved_at = timezone.now()
    claim.save(update_fields=['status', 'admin_notes', 'resolved_by_id', 'resolved_at', 'updated_at'])
    return get_claim(claim.pk)


def list_claims(status=None, provider_id=None, patient_id=None, queryset=None):
    """Claims, newest first."""
    if queryset is None:
        queryset = claims_with_relations()
    if status:
        queryset = queryset.filter(status=status)
    if provider_id:
        queryset = queryset.filter(insurance_provider_id=provider_id)
    if patient_id:
        queryset = queryset.filter(patient_id=patient_id)
    return queryset.order_by('-created_at', '-id')
