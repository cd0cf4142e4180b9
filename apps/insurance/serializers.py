from decimal import Decimal

from rest_framework import serializers
from .models import InsuranceProvider, InsuranceClaim


class InsuranceProviderSerializer(serializers.ModelSerializer):
    claims_count = serializers.IntegerField(source='claims.count', read_only=True)

    class Meta:
        model = InsuranceProvider
        fields = '__all__'
        read_only_fields = ['id', 'created_at', 'updated_at']


class InsuranceClaimListSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    provider_name = serializers.CharField(source='insurance_provider.name', read_only=True)
    bill_number = serializers.CharField(source='bill.bill_number', read_only=True)

    class Meta:
        model = InsuranceClaim
        fields = [
            'id', 'claim_number', 'bill', 'bill_number', 'patient', 'patient_name',
            'insurance_provider', 'provider_name', 'amount', 'status', 'created_at', 'resolved_at'
        ]


class InsuranceClaimDetailSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    provider_name = serializers.CharField(source='insurance_provider.name', read_only=True)
    bill_number = serializers.CharField(source='bill.bill_number', read_only=True)
    bill_payment_status = serializers.CharField(source='bill.payment_status', read_only=True)

    class Meta:
        model = InsuranceClaim
        fields = '__all__'


class InsuranceClaimCreateSerializer(serializers.Serializer):
    bill_id = serializers.IntegerField()
    patient_id = serializers.IntegerField()
    insurance_provider_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    documents = serializers.ListField(
        child=serializers.CharField(max_length=255), required=False, allow_empty=True
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class InsuranceClaimUpdateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'), required=False)
    documents = serializers.ListField(child=serializers.CharField(max_length=255), required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ClaimStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=InsuranceClaim.STATUS_CHOICES)
    admin_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
