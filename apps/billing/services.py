"""
Billing ledger: bills, line items, payments and the derived payment state.

Every write that touches a bill's money fields locks the bill row and
re-derives total_amount, balance_due and payment_status before saving.
"""

import logging

from django.db.models import Sum

from apps.patients.models import PatientProfile
from common.exceptions import InvalidArgument, InvalidState, NotFound, ReferentialConflict
from common.transactions import atomic_service, lock_or_404
from .models import Bill, BillItem, BillingItem, Payment, money, ZERO

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {choice for choice, _ in Payment.PAYMENT_METHOD_CHOICES}
BILL_CREATE_FIELDS = ('admission_id', 'opd_visit_id', 'bill_date', 'due_date', 'notes', 'discount_reason')
BILL_UPDATE_FIELDS = ('due_date', 'discount_reason', 'notes')
MONEY_FIELDS = ('subtotal', 'tax_amount', 'discount_amount', 'total_amount', 'paid_amount', 'balance_due')


def bills_with_relations():
    return Bill.objects.select_related('patient', 'insurance_claim')


def get_bill(bill_id):
    """Bill with its items and payments."""
    try:
        return bills_with_relations().prefetch_related('items', 'payments').get(pk=bill_id)
    except (Bill.DoesNotExist, ValueError, TypeError):
        raise NotFound("Bill not found")


def _patient_pk(patient_id):
    return patient_id.pk if isinstance(patient_id, PatientProfile) else patient_id


def _lock_bill(bill_id):
    return lock_or_404(Bill.objects, bill_id, 'Bill')


@atomic_service
def create_bill(patient_id, actor_id=None, **attrs):
    """Open a Draft bill with zeroed money fields."""
    try:
        patient = PatientProfile.objects.get(pk=_patient_pk(patient_id))
    except (PatientProfile.DoesNotExist, ValueError, TypeError):
        raise NotFound("Patient not found")

    data = {k: v for k, v in attrs.items() if k in BILL_CREATE_FIELDS and v is not None}
    bill = Bill(patient=patient, created_by_id=actor_id, **data)
    bill.refresh_payment_state()
    bill.save()

    logger.info(f"Bill {bill.bill_number} opened for patient {patient.patient_id}")
    return get_bill(bill.pk)


@atomic_service
def update_bill(bill_id, attrs):
    """
    Update descriptive fields and the workflow status.

    Money and payment fields are not writable here.
    """
    bill = _lock_bill(bill_id)

    changed = [field for field in BILL_UPDATE_FIELDS if field in attrs]
    for field in changed:
        setattr(bill, field, attrs[field])

    new_status = attrs.get('status')
    if new_status is not None and new_status != bill.status:
        if new_status not in dict(Bill.STATUS_CHOICES):
            raise InvalidArgument(f"Invalid bill status '{new_status}'")
        if not bill.can_transition_to(new_status):
            raise InvalidState(f"Bill {bill.bill_number} cannot move from {bill.status} to {new_status}")
        logger.info(f"Bill {bill.bill_number} status {bill.status} -> {new_status}")
        bill.status = new_status
        changed.append('status')

    if changed:
        bill.save(update_fields=changed + ['updated_at'])
    return get_bill(bill.pk)


def recalculate_bill(bill):
    """
    Re-aggregate a bill from its items.

    The caller must hold the bill row lock. Idempotent.
    """
    sums = BillItem.objects.filter(bill_id=bill.pk).aggregate(
        subtotal=Sum('total'),
        tax=Sum('tax'),
        discount=Sum('discount'),
    )
    bill.subtotal = money(sums['subtotal'] or ZERO)
    bill.tax_amount = money(sums['tax'] or ZERO)
    bill.discount_amount = money(sums['discount'] or ZERO)
    bill.refresh_payment_state()
    bill.save(update_fields=list(MONEY_FIELDS) + ['payment_status', 'updated_at'])
    return bill


@atomic_service
def add_bill_item(bill_id, attrs):
    """
    Append a line to a Draft bill and re-aggregate it.

    A catalog entry fills in description and unit price when they are
    not given.
    """
    bill = _lock_bill(bill_id)
    if not bill.accepts_items:
        raise InvalidState(f"Items can only be added to Draft bills; {bill.bill_number} is {bill.status}")

    catalog = attrs.get('billing_item')
    if catalog is not None and not isinstance(catalog, BillingItem):
        try:
            catalog = BillingItem.objects.get(pk=catalog)
        except (BillingItem.DoesNotExist, ValueError, TypeError):
            raise NotFound("Billing item not found")

    description = attrs.get('description') or (catalog.name if catalog else None)
    unit_price = attrs.get('unit_price')
    if unit_price is None and catalog is not None:
        unit_price = catalog.unit_price

    if not description:
        raise InvalidArgument("description is required")
    if unit_price is None:
        raise InvalidArgument("unit_price is required")
    if attrs.get('total') is None:
        raise InvalidArgument("total is required")

    item = BillItem.objects.create(
        bill=bill,
        billing_item=catalog,
        description=description,
        quantity=attrs.get('quantity') or 1,
        unit_price=money(unit_price),
        discount=money(attrs.get('discount')),
        tax=money(attrs.get('tax')),
        total=money(attrs['total']),
        service_date=attrs.get('service_date'),
        notes=attrs.get('notes'),
    )
    recalculate_bill(bill)

    logger.debug(f"Item '{item.description}' added to bill {bill.bill_number}; total now {bill.total_amount}")
    return get_bill(bill.pk)


@atomic_service
def record_payment(bill_id, amount, payment_method, patient_id=None, actor_id=None,
                   transaction_reference=None, receipt_number=None, notes=None, payment_date=None):
    """
    Record a payment and apply it to the bill.

    Partial payments accumulate; paid_amount never decreases.
    """
    amount = money(amount) if amount is not None else None
    if amount is None or amount <= ZERO:
        raise InvalidArgument("Payment amount must be greater than zero")
    if payment_method not in PAYMENT_METHODS:
        raise InvalidArgument(
            f"Invalid payment method '{payment_method}'. Must be one of: {', '.join(sorted(PAYMENT_METHODS))}"
        )

    bill = _lock_bill(bill_id)
    if not bill.accepts_payments:
        raise InvalidState(f"Bill {bill.bill_number} is {bill.status} and cannot accept payments")

    payer_id = _patient_pk(patient_id) if patient_id is not None else bill.patient_id
    if not PatientProfile.objects.filter(pk=payer_id).exists():
        raise NotFound("Patient not found")

    payment_kwargs = {}
    if payment_date is not None:
        payment_kwargs['payment_date'] = payment_date

    payment = Payment.objects.create(
        bill=bill,
        patient_id=payer_id,
        amount=amount,
        payment_method=payment_method,
        transaction_reference=transaction_reference,
        receipt_number=receipt_number,
        notes=notes,
        created_by_id=actor_id,
        **payment_kwargs
    )

    bill.paid_amount = money(bill.paid_amount) + amount
    bill.refresh_payment_state()
    bill.save(update_fields=['paid_amount', 'balance_due', 'total_amount', 'payment_status', 'updated_at'])

    logger.info(
        f"Payment {payment.payment_id} of {amount} ({payment_method}) on bill {bill.bill_number}; "
        f"paid {bill.paid_amount}/{bill.total_amount} -> {bill.payment_status}"
    )
    return payment


def list_payments(bill_id=None, patient_id=None, payment_method=None):
    """Payments, newest first."""
    queryset = Payment.objects.select_related('bill', 'patient')
    if bill_id:
        queryset = queryset.filter(bill_id=bill_id)
    if patient_id:
        queryset = queryset.filter(patient_id=patient_id)
    if payment_method:
        queryset = queryset.filter(payment_method=payment_method)
    return queryset.order_by('-payment_date', '-id')


@atomic_service
def delete_bill(bill_id):
    bill = _lock_bill(bill_id)
    if bill.items.exists() or bill.payments.exists() or bill.insurance_claims.exists():
        raise ReferentialConflict(f"Bill {bill.bill_number} has items, payments or claims")
    number = bill.bill_number
    bill.delete()
    logger.info(f"Bill {number} deleted")


def list_billing_items():
    """Active catalog entries ordered by category, then name."""
    return BillingItem.objects.filter(is_active=True).order_by('category', 'name')
