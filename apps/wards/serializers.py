from rest_framework import serializers
from .models import Ward, Bed


class WardSerializer(serializers.ModelSerializer):
    """Ward serializer; bed counters are read-only."""
    occupied_beds = serializers.ReadOnlyField()

    class Meta:
        model = Ward
        fields = [
            'id', 'name', 'type', 'floor', 'nurse_station',
            'total_beds', 'available_beds', 'occupied_beds',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'total_beds', 'available_beds', 'created_at', 'updated_at']


class BedListSerializer(serializers.ModelSerializer):
    """List view serializer for beds"""
    ward_name = serializers.CharField(source='ward.name', read_only=True)
    ward_type = serializers.CharField(source='ward.type', read_only=True)

    class Meta:
        model = Bed
        fields = [
            'id', 'bed_number', 'ward', 'ward_name', 'ward_type',
            'bed_type', 'daily_rate', 'status'
        ]


class BedDetailSerializer(serializers.ModelSerializer):
    """Detail view serializer for beds"""
    ward_name = serializers.CharField(source='ward.name', read_only=True)
    ward_type = serializers.CharField(source='ward.type', read_only=True)
    floor = serializers.CharField(source='ward.floor', read_only=True)

    class Meta:
        model = Bed
        fields = '__all__'


class BedCreateUpdateSerializer(serializers.ModelSerializer):
    """Create/Update serializer for beds. Counters are applied by the service layer."""
    status = serializers.ChoiceField(choices=Bed.STATUS_CHOICES, required=False)

    class Meta:
        model = Bed
        fields = ['ward', 'bed_number', 'bed_type', 'daily_rate', 'status']


class BedStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Bed.STATUS_CHOICES)


class OccupancySerializer(serializers.Serializer):
    ward_id = serializers.IntegerField()
    name = serializers.CharField()
    type = serializers.CharField()
    total_beds = serializers.IntegerField()
    available_beds = serializers.IntegerField()
    occupied_beds = serializers.IntegerField()
