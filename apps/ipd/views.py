# ipd/views.py
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
    IPDAdmissionListSerializer, IPDAdmissionDetailSerializer,
    IPDAdmissionCreateSerializer, IPDAdmissionUpdateSerializer,
    BedTransferSerializer, BedTransferRequestSerializer, DischargeSerializer,
)


@extend_schema_view(
    list=extend_schema(
        summary="List IPD Admissions",
        description="Get paginated list of admissions with filtering and search",
        parameters=[
            OpenApiParameter(name='status', type=str, description='Filter by status'),
            OpenApiParameter(name='admission_type', type=str, description='Filter by admission type'),
            OpenApiParameter(name='attending_doctor_id', type=str, description='Filter by attending doctor'),
            OpenApiParameter(name='search', type=str, description='Search by admission ID or patient name'),
        ],
        tags=['IPD - Admissions']
    ),
    retrieve=extend_schema(summary="Get Admission Details", tags=['IPD - Admissions']),
    create=extend_schema(
        summary="Admit Patient",
        description="Create an Active admission; the bed, if given, must be Available",
        request=IPDAdmissionCreateSerializer,
        examples=[
            OpenApiExample(
                'Admission Example',
                value={
                    'patient_id': 1,
                    'bed_id': 3,
                    'admission_type': 'Emergency',
                    'admitting_diagnosis': 'Acute appendicitis',
                    'chief_complaints': 'Abdominal pain since 2 days',
                },
                request_only=True,
            ),
        ],
        tags=['IPD - Admissions']
    ),
    update=extend_schema(summary="Update Admission", tags=['IPD - Admissions']),
    partial_update=extend_schema(summary="Partial Update Admission", tags=['IPD - Admissions']),
)
class IPDAdmissionViewSet(ActorViewSetMixin, viewsets.ModelViewSet):
    """
    IPD Admission Management

    Admission, bed transfer and discharge. Admissions are never deleted.
    """
    queryset = services.hydrated_admissions()
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.IPD_VIEW,
        'retrieve': HMSPermissions.IPD_VIEW,
        'active': HMSPermissions.IPD_VIEW,
        'available_beds': HMSPermissions.IPD_VIEW,
        'transfers': HMSPermissions.IPD_VIEW,
        'create': HMSPermissions.IPD_CREATE,
        'update': HMSPermissions.IPD_EDIT,
        'partial_update': HMSPermissions.IPD_EDIT,
        'bed_transfer': HMSPermissions.IPD_EDIT,
        'discharge': HMSPermissions.IPD_DISCHARGE,
    }
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'admission_type', 'attending_doctor_id', 'patient']
    search_fields = ['admission_id', 'patient__first_name', 'patient__last_name', 'patient__patient_id']
    ordering_fields = ['admission_date', 'expected_discharge_date']
    ordering = ['-admission_date']

    def get_serializer_class(self):
        if self.action in ['list', 'active']:
            return IPDAdmissionListSerializer
        elif self.action == 'create':
            return IPDAdmissionCreateSerializer
        elif self.action in ['update', 'partial_update']:
            return IPDAdmissionUpdateSerializer
        elif self.action == 'bed_transfer':
            return BedTransferRequestSerializer
        elif self.action == 'discharge':
            return DischargeSerializer
        return IPDAdmissionDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        return Response({'success': True, 'data': IPDAdmissionDetailSerializer(self.get_object()).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        admission = services.admit(actor_id=self.get_actor_id(), **serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Patient admitted successfully',
            'data': IPDAdmissionDetailSerializer(admission).data
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        admission = services.update_admission(kwargs['pk'], serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Admission updated successfully',
            'data': IPDAdmissionDetailSerializer(admission).data
        })

    @extend_schema(
        summary="Get Active Admissions",
        description="All Active admissions, newest first",
        responses={200: IPDAdmissionListSerializer(many=True)},
        tags=['IPD - Admissions']
    )
    @action(detail=False, methods=['get'])
    def active(self, request):
        admissions = services.get_active()
        return Response({
            'success': True,
            'count': admissions.count(),
            'data': IPDAdmissionListSerializer(admissions, many=True).data
        })

    @extend_schema(
        summary="Get Available Beds",
        description="Available beds ordered by ward name and bed number",
        responses={200: BedListSerializer(many=True)},
        tags=['IPD - Admissions']
    )
    @action(detail=False, methods=['get'], url_path='available-beds')
    def available_beds(self, request):
        beds = services.get_available_beds()
        return Response({
            'success': True,
            'count': beds.count(),
            'data': BedListSerializer(beds, many=True).data
        })

    @extend_schema(
        summary="Transfer Bed",
        description="Move an Active admission to another Available bed",
        request=BedTransferRequestSerializer,
        responses={200: IPDAdmissionDetailSerializer},
        tags=['IPD - Admissions']
    )
    @action(detail=True, methods=['post'], url_path='bed-transfer')
    def bed_transfer(self, request, pk=None):
        serializer = BedTransferRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        admission = services.bed_transfer(
            pk,
            serializer.validated_data['new_bed_id'],
            reason=serializer.validated_data.get('reason'),
            actor_id=self.get_actor_id(),
        )
        return Response({
            'success': True,
            'message': 'Bed transferred successfully',
            'data': IPDAdmissionDetailSerializer(admission).data
        })

    @extend_schema(
        summary="Discharge Patient",
        description="Close the admission and release its bed. A second discharge is rejected.",
        request=DischargeSerializer,
        responses={200: IPDAdmissionDetailSerializer},
        tags=['IPD - Admissions']
    )
    @action(detail=True, methods=['post'])
    def discharge(self, request, pk=None):
        serializer = DischargeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        admission = services.discharge(
            pk,
            serializer.validated_data['discharge_type'],
            discharge_summary=serializer.validated_data.get('discharge_summary'),
            actor_id=self.get_actor_id(),
        )
        return Response({
            'success': True,
            'message': 'Patient discharged successfully',
            'data': IPDAdmissionDetailSerializer(admission).data
        })

    @extend_schema(
        summary="Bed Transfer History",
        responses={200: BedTransferSerializer(many=True)},
        tags=['IPD - Admissions']
    )
    @action(detail=True, methods=['get'])
    def transfers(self, request, pk=None):
        admission = self.get_object()
        history = admission.bed_transfers.select_related('from_bed', 'to_bed')
        return Response({'success': True, 'data': BedTransferSerializer(history, many=True).data})
