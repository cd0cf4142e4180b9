from rest_framework import serializers
from .models import ICUAdmission, ICUVitalsLog


class ICUVitalsLogSerializer(serializers.ModelSerializer):
    blood_pressure = serializers.ReadOnlyField()

    class Meta:
        model = ICUVitalsLog
        fields = '__all__'
        read_only_fields = ['id', 'icu_admission', 'recorded_at', 'recorded_by_id']


class VitalsReadingSerializer(serializers.ModelSerializer):
    """Incoming vitals reading"""

    class Meta:
        model = ICUVitalsLog
        fields = list(ICUVitalsLog.READING_FIELDS)

    def validate(self, attrs):
        systolic = attrs.get('bp_systolic')
        diastolic = attrs.get('bp_diastolic')
        if systolic and diastolic and systolic <= diastolic:
            raise serializers.ValidationError({
                'bp_systolic': 'Systolic must be greater than diastolic'
            })

        spo2 = attrs.get('spo2')
        if spo2 is not None and not (0 <= spo2 <= 100):
            raise serializers.ValidationError({'spo2': 'SpO2 must be between 0 and 100'})

        if not any(attrs.get(f) is not None for f in ICUVitalsLog.READING_FIELDS if f != 'notes'):
            raise serializers.ValidationError('At least one vital sign is required')
        return attrs


class ICUAdmissionListSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    patient_code = serializers.CharField(source='patient.patient_id', read_only=True)
    bed_number = serializers.CharField(source='bed.bed_number', read_only=True, default=None)

    class Meta:
        model = ICUAdmission
        fields = [
            'id', 'admission_id', 'patient', 'patient_name', 'patient_code',
            'bed', 'bed_number', 'condition_status', 'ventilator_support',
            'admission_date', 'status'
        ]


class ICUAdmissionDetailSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    patient_code = serializers.CharField(source='patient.patient_id', read_only=True)
    blood_group = serializers.CharField(source='patient.blood_group', read_only=True)
    bed_number = serializers.CharField(source='bed.bed_number', read_only=True, default=None)
    ward_name = serializers.CharField(source='bed.ward.name', read_only=True, default=None)

    class Meta:
        model = ICUAdmission
        fields = '__all__'


class ICUAdmissionCreateSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField()
    bed_id = serializers.IntegerField()
    attending_doctor_id = serializers.UUIDField(required=False, allow_null=True)
    admission_date = serializers.DateTimeField(required=False)
    admitting_diagnosis = serializers.CharField(required=False, allow_blank=True)
    condition_status = serializers.ChoiceField(choices=ICUAdmission.CONDITION_CHOICES, required=False)
    ventilator_support = serializers.BooleanField(required=False)
    ventilator_settings = serializers.JSONField(required=False, allow_null=True)
    medications = serializers.JSONField(required=False, allow_null=True)
    isolation_required = serializers.BooleanField(required=False)
    isolation_type = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_admitting_diagnosis(self, value):
        return value or 'Pending evaluation'


class ICUAdmissionUpdateSerializer(serializers.ModelSerializer):

    class Meta:
        model = ICUAdmission
        fields = [
            'attending_doctor_id', 'condition_status', 'ventilator_support',
            'ventilator_settings', 'medications', 'isolation_required',
            'isolation_type', 'notes'
        ]


class ICUDischargeSerializer(serializers.Serializer):
    disposition = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    discharge_type = serializers.CharField(max_length=50, required=False, default='Normal')
