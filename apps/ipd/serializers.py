from rest_framework import serializers
from .models import IPDAdmission, BedTransfer


class IPDAdmissionListSerializer(serializers.ModelSerializer):
    """List view serializer for admissions - hydrated display fields"""
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    patient_code = serializers.CharField(source='patient.patient_id', read_only=True)
    bed_number = serializers.CharField(source='bed.bed_number', read_only=True, default=None)
    ward_name = serializers.CharField(source='bed.ward.name', read_only=True, default=None)

    class Meta:
        model = IPDAdmission
        fields = [
            'id', 'admission_id', 'patient', 'patient_name', 'patient_code',
            'bed', 'bed_number', 'ward_name', 'attending_doctor_id',
            'admission_date', 'admission_type', 'admitting_diagnosis', 'status'
        ]


class BedTransferSerializer(serializers.ModelSerializer):
    from_bed_number = serializers.CharField(source='from_bed.bed_number', read_only=True, default=None)
    to_bed_number = serializers.CharField(source='to_bed.bed_number', read_only=True, default=None)

    class Meta:
        model = BedTransfer
        fields = [
            'id', 'admission', 'from_bed', 'from_bed_number', 'to_bed',
            'to_bed_number', 'transfer_date', 'reason', 'performed_by_id'
        ]


class IPDAdmissionDetailSerializer(serializers.ModelSerializer):
    """Detail view serializer for admissions"""
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    patient_code = serializers.CharField(source='patient.patient_id', read_only=True)
    blood_group = serializers.CharField(source='patient.blood_group', read_only=True)
    patient_phone = serializers.CharField(source='patient.mobile_primary', read_only=True)
    bed_number = serializers.CharField(source='bed.bed_number', read_only=True, default=None)
    ward_name = serializers.CharField(source='bed.ward.name', read_only=True, default=None)
    length_of_stay = serializers.IntegerField(source='calculate_length_of_stay', read_only=True)
    bed_transfers = BedTransferSerializer(many=True, read_only=True)

    class Meta:
        model = IPDAdmission
        fields = '__all__'


class IPDAdmissionCreateSerializer(serializers.Serializer):
    """Admission request. Status and discharge fields are not accepted."""
    patient_id = serializers.IntegerField()
    bed_id = serializers.IntegerField(required=False, allow_null=True)
    admitting_doctor_id = serializers.UUIDField(required=False, allow_null=True)
    attending_doctor_id = serializers.UUIDField(required=False, allow_null=True)
    admission_date = serializers.DateTimeField(required=False)
    admission_type = serializers.ChoiceField(
        choices=IPDAdmission.ADMISSION_TYPE_CHOICES, required=False
    )
    admitting_diagnosis = serializers.CharField(required=False, allow_blank=True)
    chief_complaints = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    history = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    treatment_plan = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    diet_type = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    special_instructions = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    expected_discharge_date = serializers.DateField(required=False, allow_null=True)

    def validate_admitting_diagnosis(self, value):
        return value or 'Pending evaluation'


class IPDAdmissionUpdateSerializer(serializers.ModelSerializer):
    """Clinical fields only"""

    class Meta:
        model = IPDAdmission
        fields = [
            'attending_doctor_id', 'admitting_diagnosis', 'chief_complaints', 'history',
            'treatment_plan', 'diet_type', 'special_instructions', 'expected_discharge_date'
        ]


class BedTransferRequestSerializer(serializers.Serializer):
    new_bed_id = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class DischargeSerializer(serializers.Serializer):
    discharge_type = serializers.CharField(max_length=50)
    discharge_summary = serializers.CharField(required=False, allow_blank=True, allow_null=True)
