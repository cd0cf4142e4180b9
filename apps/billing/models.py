# billing/models.py
from decimal import Decimal, ROUND_HALF_UP

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from common.exceptions import InvalidState
from common.mixins import TimestampMixin
from common.numbering import next_daily_number

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


def money(value):
    """Quantize to two decimals, half up."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def derive_payment_status(paid, total):
    """
    Pending when nothing is paid, Paid once paid covers total, else Partial.
    """
    paid, total = money(paid), money(total)
    if paid == ZERO:
        return Bill.PENDING
    if paid >= total:
        return Bill.PAID
    return Bill.PARTIAL


class BillingItem(TimestampMixin):
    """
    Billing catalog entry (room charges, procedures, consumables...).
    """
    code = models.CharField(max_length=30, unique=True)
    name = models.CharField(max_length=200)
    category = models.CharField(max_length=100)
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(ZERO)]
    )
    tax_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(ZERO)]
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'billing_items'
        ordering = ['category', 'name']
        verbose_name = 'Billing Item'
        verbose_name_plural = 'Billing Items'

    def __str__(self):
        return f"{self.code} - {self.name}"


class Bill(TimestampMixin):
    """
    Bill Model - the ledger aggregate.

    subtotal, tax_amount and discount_amount are sums over the items;
    paid_amount only grows through payments. total_amount, balance_due and
    payment_status are derived and never accepted as input.
    """

    PENDING = 'Pending'
    PARTIAL = 'Partial'
    PAID = 'Paid'
    OVERDUE = 'Overdue'
    REFUNDED = 'Refunded'

    PAYMENT_STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (PARTIAL, 'Partial'),
        (PAID, 'Paid'),
        (OVERDUE, 'Overdue'),
        (REFUNDED, 'Refunded'),
    ]

    DRAFT = 'Draft'
    FINAL = 'Final'
    CANCELLED = 'Cancelled'
    VOID = 'Void'

    STATUS_CHOICES = [
        (DRAFT, 'Draft'),
        (FINAL, 'Final'),
        (CANCELLED, 'Cancelled'),
        (VOID, 'Void'),
    ]

    # Allowed workflow moves
    STATUS_TRANSITIONS = {
        DRAFT: {FINAL, CANCELLED, VOID},
        FINAL: {VOID},
        CANCELLED: set(),
        VOID: set(),
    }

    bill_number = models.CharField(
        max_length=50,
        unique=True,
        editable=False,
        help_text="Unique bill identifier (e.g., BILL/20231223/001)"
    )
    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='bills'
    )

    # Traceability references
    admission_id = models.CharField(max_length=50, blank=True, null=True)
    opd_visit_id = models.CharField(max_length=50, blank=True, null=True)

    bill_date = models.DateTimeField(default=timezone.now)
    due_date = models.DateField(null=True, blank=True)

    # Financial Details
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount_reason = models.CharField(max_length=255, blank=True, null=True)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    balance_due = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    # Insurance cross-reference
    insurance_claim = models.ForeignKey(
        'insurance.InsuranceClaim',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    insurance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    payment_status = models.CharField(
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default=PENDING
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=DRAFT
    )
    notes = models.TextField(blank=True, null=True)

    created_by_id = models.UUIDField(null=True, blank=True, db_index=True)

    class Meta:
        db_table = 'bills'
        ordering = ['-bill_date']
        verbose_name = 'Bill'
        verbose_name_plural = 'Bills'
        indexes = [
            models.Index(fields=['patient', '-bill_date']),
            models.Index(fields=['payment_status']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"{self.bill_number} - {self.patient}"

    def save(self, *args, **kwargs):
        if not self.bill_number:
            self.bill_number = next_daily_number(Bill, 'bill_number', 'BILL')
        super().save(*args, **kwargs)

    def refresh_payment_state(self):
        """Recompute total_amount, balance_due and payment_status in memory."""
        self.subtotal = money(self.subtotal)
        self.tax_amount = money(self.tax_amount)
        self.discount_amount = money(self.discount_amount)
        self.paid_amount = money(self.paid_amount)
        self.total_amount = money(self.subtotal + self.tax_amount - self.discount_amount)
        self.balance_due = money(self.total_amount - self.paid_amount)
        self.payment_status = derive_payment_status(self.paid_amount, self.total_amount)

    @property
    def accepts_items(self):
        return self.status == self.DRAFT

    @property
    def accepts_payments(self):
        return self.status not in (self.CANCELLED, self.VOID)

    def can_transition_to(self, status):
        return status in self.STATUS_TRANSITIONS.get(self.status, set())


class BillItem(models.Model):
    """
    Bill line. Append-only; `total` is the caller's line total and is summed
    into the bill as-is.
    """
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name='items')
    billing_item = models.ForeignKey(
        BillingItem,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bill_items'
    )
    description = models.CharField(max_length=255)
    quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('1.00'),
        validators=[MinValueValidator(CENT)]
    )
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(ZERO)])
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO, validators=[MinValueValidator(ZERO)])
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO, validators=[MinValueValidator(ZERO)])
    total = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(ZERO)])
    service_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'bill_items'
        ordering = ['id']
        verbose_name = 'Bill Item'
        verbose_name_plural = 'Bill Items'

    def __str__(self):
        return f"{self.bill.bill_number}: {self.description}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise InvalidState("Bill items cannot be modified once added")
        super().save(*args, **kwargs)


class Payment(models.Model):
    """
    Payment against a bill. Append-only.
    """

    PAYMENT_METHOD_CHOICES = [
        ('Cash', 'Cash'),
        ('Card', 'Card'),
        ('UPI', 'UPI'),
        ('Net Banking', 'Net Banking'),
        ('Cheque', 'Cheque'),
        ('Insurance', 'Insurance'),
        ('Other', 'Other'),
    ]
    INSURANCE = 'Insurance'

    payment_id = models.CharField(
        max_length=50,
        unique=True,
        editable=False,
        help_text="Unique payment identifier (e.g., PAY/20231223/001)"
    )
    bill = models.ForeignKey(Bill, on_delete=models.PROTECT, related_name='payments')
    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='payments'
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(CENT)])
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_date = models.DateTimeField(default=timezone.now)
    transaction_reference = models.CharField(max_length=100, blank=True, null=True)
    receipt_number = models.CharField(max_length=50, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)

    created_by_id = models.UUIDField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-payment_date', '-id']
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        indexes = [
            models.Index(fields=['bill', '-payment_date']),
            models.Index(fields=['patient', '-payment_date']),
            models.Index(fields=['payment_method']),
        ]

    def __str__(self):
        return f"{self.payment_id} - {self.amount}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise InvalidState("Payments cannot be modified once recorded")
        if not self.payment_id:
            self.payment_id = next_daily_number(Payment, 'payment_id', 'PAY')
        super().save(*args, **kwargs)
