from decimal import Decimal

from rest_framework import serializers
from .models import Bill, BillItem, BillingItem, Payment

DERIVED_BILL_FIELDS = [
    'id', 'bill_number', 'subtotal', 'discount_amount', 'tax_amount', 'total_amount',
    'paid_amount', 'balance_due', 'insurance_claim', 'insurance_amount', 'payment_status',
    'created_by_id', 'created_at', 'updated_at',
]


class BillingItemSerializer(serializers.ModelSerializer):

    class Meta:
        model = BillingItem
        fields = '__all__'
        read_only_fields = ['id', 'created_at', 'updated_at']


class BillItemSerializer(serializers.ModelSerializer):
    billing_item_code = serializers.CharField(source='billing_item.code', read_only=True, default=None)

    class Meta:
        model = BillItem
        fields = '__all__'
        read_only_fields = ['id', 'bill', 'created_at']


class BillItemCreateSerializer(serializers.Serializer):
    """New bill line; description and unit_price may come from the catalog entry."""
    billing_item = serializers.PrimaryKeyRelatedField(
        queryset=BillingItem.objects.filter(is_active=True), required=False, allow_null=True
    )
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'), required=False)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    service_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        if not attrs.get('billing_item'):
            if not attrs.get('description'):
                raise serializers.ValidationError({'description': 'Required without a billing item'})
            if attrs.get('unit_price') is None:
                raise serializers.ValidationError({'unit_price': 'Required without a billing item'})
        return attrs


class PaymentSerializer(serializers.ModelSerializer):
    bill_number = serializers.CharField(source='bill.bill_number', read_only=True)
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)

    class Meta:
        model = Payment
        fields = '__all__'


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.ChoiceField(choices=Payment.PAYMENT_METHOD_CHOICES)
    patient_id = serializers.IntegerField(required=False)
    payment_date = serializers.DateTimeField(required=False)
    transaction_reference = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    receipt_number = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero")
        return value


class BillListSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    patient_code = serializers.CharField(source='patient.patient_id', read_only=True)

    class Meta:
        model = Bill
        fields = [
            'id', 'bill_number', 'patient', 'patient_name', 'patient_code', 'bill_date',
            'total_amount', 'paid_amount', 'balance_due', 'payment_status', 'status'
        ]


class BillDetailSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    patient_code = serializers.CharField(source='patient.patient_id', read_only=True)
    patient_phone = serializers.CharField(source='patient.mobile_primary', read_only=True)
    claim_number = serializers.CharField(source='insurance_claim.claim_number', read_only=True, default=None)
    items = BillItemSerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Bill
        fields = '__all__'
        read_only_fields = DERIVED_BILL_FIELDS


class BillCreateSerializer(serializers.ModelSerializer):
    """Money fields and payment status are never accepted."""

    class Meta:
        model = Bill
        fields = ['patient', 'admission_id', 'opd_visit_id', 'bill_date', 'due_date', 'discount_reason', 'notes']


class BillUpdateSerializer(serializers.ModelSerializer):
    status = serializers.ChoiceField(choices=Bill.STATUS_CHOICES, required=False)

    class Meta:
        model = Bill
        fields = ['due_date', 'discount_reason', 'notes', 'status']
