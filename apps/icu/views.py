# icu/views.py
from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiParameter,
    OpenApiExample,
)

from apps.wards.serializers import BedListSerializer
from common.mixins import ActorViewSetMixin
from common.permissions import HMSActionPermission, HMSPermissions
from . import services
from .serializers import (
    ICUAdmissionListSerializer, ICUAdmissionDetailSerializer,
    ICUAdmissionCreateSerializer, ICUAdmissionUpdateSerializer,
    ICUVitalsLogSerializer, VitalsReadingSerializer, ICUDischargeSerializer,
)


@extend_schema_view(
    list=extend_schema(
        summary="List ICU Patients",
        parameters=[
            OpenApiParameter(name='status', type=str, description='Filter by status'),
            OpenApiParameter(name='condition_status', type=str, description='Filter by condition'),
        ],
        tags=['ICU']
    ),
    retrieve=extend_schema(summary="Get ICU Patient Details", tags=['ICU']),
    create=extend_schema(
        summary="Admit to ICU",
        description="The bed must be Available and belong to an ICU ward",
        request=ICUAdmissionCreateSerializer,
        tags=['ICU']
    ),
    update=extend_schema(summary="Update ICU Patient", tags=['ICU']),
    partial_update=extend_schema(summary="Partial Update ICU Patient", tags=['ICU']),
)
class ICUAdmissionViewSet(ActorViewSetMixin, viewsets.ModelViewSet):
    """
    ICU Patient Management

    Admission, condition updates, vitals logging and discharge.
    """
    queryset = services.hydrated_admissions()
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.ICU_VIEW,
        'retrieve': HMSPermissions.ICU_VIEW,
        'vitals_history': HMSPermissions.ICU_VIEW,
        'beds': HMSPermissions.ICU_VIEW,
        'stats': HMSPermissions.ICU_VIEW,
        'create': HMSPermissions.ICU_CREATE,
        'update': HMSPermissions.ICU_EDIT,
        'partial_update': HMSPermissions.ICU_EDIT,
        'vitals': HMSPermissions.ICU_EDIT,
        'discharge': HMSPermissions.ICU_DISCHARGE,
    }
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'condition_status', 'ventilator_support']
    search_fields = ['admission_id', 'patient__first_name', 'patient__last_name', 'patient__patient_id']
    ordering_fields = ['admission_date']
    ordering = ['-admission_date']

    def get_serializer_class(self):
        if self.action == 'list':
            return ICUAdmissionListSerializer
        elif self.action == 'create':
            return ICUAdmissionCreateSerializer
        elif self.action in ['update', 'partial_update']:
            return ICUAdmissionUpdateSerializer
        elif self.action == 'vitals':
            return VitalsReadingSerializer
        elif self.action == 'discharge':
            return ICUDischargeSerializer
        return ICUAdmissionDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        return Response({'success': True, 'data': ICUAdmissionDetailSerializer(self.get_object()).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        admission = services.admit(actor_id=self.get_actor_id(), **serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Patient admitted to ICU',
            'data': ICUAdmissionDetailSerializer(admission).data
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        admission = services.update_icu_admission(kwargs['pk'], serializer.validated_data)
        return Response({
            'success': True,
            'message': 'ICU patient updated successfully',
            'data': ICUAdmissionDetailSerializer(admission).data
        })

    @extend_schema(
        summary="Record Vitals",
        description="Append a vitals reading and update the patient's current vitals",
        request=VitalsReadingSerializer,
        responses={200: ICUAdmissionDetailSerializer},
        examples=[OpenApiExample('Vitals Example', value={
            'bp_systolic': 118,
            'bp_diastolic': 76,
            'heart_rate': 92,
            'temperature': 37.8,
            'respiratory_rate': 20,
            'spo2': 95.5,
            'notes': 'On 2L O2'
        }, request_only=True)],
        tags=['ICU']
    )
    @action(detail=True, methods=['post'])
    def vitals(self, request, pk=None):
        serializer = VitalsReadingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        admission = services.update_vitals(pk, serializer.validated_data, recorded_by=self.get_actor_id())
        return Response({
            'success': True,
            'message': 'Vitals recorded successfully',
            'data': ICUAdmissionDetailSerializer(admission).data
        })

    @extend_schema(
        summary="Vitals History",
        parameters=[OpenApiParameter(name='limit', type=int, description='Number of entries (default 24)')],
        responses={200: ICUVitalsLogSerializer(many=True)},
        tags=['ICU']
    )
    @action(detail=True, methods=['get'], url_path='vitals-history')
    def vitals_history(self, request, pk=None):
        try:
            limit = int(request.query_params.get('limit', services.VITALS_HISTORY_LIMIT))
        except ValueError:
            limit = services.VITALS_HISTORY_LIMIT
        entries = services.vitals_history(pk, limit=max(limit, 1))
        return Response({'success': True, 'data': ICUVitalsLogSerializer(entries, many=True).data})

    @extend_schema(
        summary="Discharge from ICU",
        request=ICUDischargeSerializer,
        responses={200: ICUAdmissionDetailSerializer},
        tags=['ICU']
    )
    @action(detail=True, methods=['post'])
    def discharge(self, request, pk=None):
        serializer = ICUDischargeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        admission = services.discharge(
            pk,
            disposition=serializer.validated_data.get('disposition'),
            discharge_type=serializer.validated_data.get('discharge_type'),
            actor_id=self.get_actor_id(),
        )
        return Response({
            'success': True,
            'message': 'Patient discharged from ICU',
            'data': ICUAdmissionDetailSerializer(admission).data
        })

    @extend_schema(
        summary="ICU Beds",
        responses={200: BedListSerializer(many=True)},
        tags=['ICU']
    )
    @action(detail=False, methods=['get'])
    def beds(self, request):
        beds = services.icu_beds()
        return Response({'success': True, 'data': BedListSerializer(beds, many=True).data})

    @extend_schema(summary="ICU Statistics", tags=['ICU'])
    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': services.icu_stats()})
