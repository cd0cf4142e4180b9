import datetime

from rest_framework import serializers
from .models import PatientProfile


class PatientProfileListSerializer(serializers.ModelSerializer):
    """List view serializer for patients - minimal fields"""
    full_name = serializers.ReadOnlyField()
    age = serializers.ReadOnlyField()

    class Meta:
        model = PatientProfile
        fields = [
            'id', 'patient_id', 'full_name', 'age', 'gender',
            'mobile_primary', 'email', 'blood_group', 'status',
            'created_at'
        ]


class PatientProfileDetailSerializer(serializers.ModelSerializer):
    """Detail view serializer for patients"""
    full_name = serializers.ReadOnlyField()
    age = serializers.ReadOnlyField()

    class Meta:
        model = PatientProfile
        fields = '__all__'
        read_only_fields = ['id', 'patient_id', 'created_by_id', 'created_at', 'updated_at']


class PatientProfileCreateUpdateSerializer(serializers.ModelSerializer):
    """Create/Update serializer for patients"""

    class Meta:
        model = PatientProfile
        fields = [
            'first_name', 'last_name', 'date_of_birth', 'gender',
            'mobile_primary', 'email', 'blood_group', 'status'
        ]

    def validate_date_of_birth(self, value):
        if value and value > datetime.date.today():
            raise serializers.ValidationError("Date of birth cannot be in the future")
        return value
