# wards/views.py
from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiParameter,
)

from common.permissions import HMSActionPermission, HMSPermissions
from . import services
from .models import Ward, Bed
from .serializers import (
    WardSerializer,
    BedListSerializer, BedDetailSerializer, BedCreateUpdateSerializer,
    BedStatusSerializer,
)


# ============================================================================
# WARD VIEWSET
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Wards",
        description="Get list of wards with bed counters",
        parameters=[
            OpenApiParameter(name='type', type=str, description='Filter by ward type'),
            OpenApiParameter(name='search', type=str, description='Search by ward name or floor'),
        ],
        tags=['Wards']
    ),
    retrieve=extend_schema(summary="Get Ward Details", tags=['Wards']),
    create=extend_schema(summary="Create Ward", description="Counters start at zero", tags=['Wards']),
    update=extend_schema(summary="Update Ward", tags=['Wards']),
    partial_update=extend_schema(summary="Partial Update Ward", tags=['Wards']),
    destroy=extend_schema(
        summary="Delete Ward",
        description="Rejected while any bed of the ward has an active admission",
        tags=['Wards']
    ),
)
class WardViewSet(viewsets.ModelViewSet):
    """
    Ward Management

    Counters (total_beds, available_beds) are maintained by the bed
    operations and can only be repaired through `recount`.
    """
    queryset = Ward.objects.all()
    serializer_class = WardSerializer
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.WARDS_VIEW,
        'retrieve': HMSPermissions.WARDS_VIEW,
        'beds': HMSPermissions.WARDS_VIEW,
        'stats': HMSPermissions.WARDS_VIEW,
        'create': HMSPermissions.WARDS_CREATE,
        'update': HMSPermissions.WARDS_EDIT,
        'partial_update': HMSPermissions.WARDS_EDIT,
        'recount': HMSPermissions.WARDS_EDIT,
        'destroy': HMSPermissions.WARDS_DELETE,
    }

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['type', 'floor']
    search_fields = ['name', 'floor', 'nurse_station']
    ordering_fields = ['name', 'available_beds', 'total_beds']
    ordering = ['name']

    def retrieve(self, request, *args, **kwargs):
        return Response({'success': True, 'data': self.get_serializer(self.get_object()).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ward = services.create_ward(serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Ward created successfully',
            'data': WardSerializer(ward).data
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        ward = services.update_ward(kwargs['pk'], serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Ward updated successfully',
            'data': WardSerializer(ward).data
        })

    def destroy(self, request, *args, **kwargs):
        services.delete_ward(kwargs['pk'])
        return Response({'success': True, 'message': 'Ward deleted successfully'})

    @extend_schema(
        summary="List Beds in Ward",
        responses={200: BedListSerializer(many=True)},
        tags=['Wards']
    )
    @action(detail=True, methods=['get'])
    def beds(self, request, pk=None):
        """Get all beds of a ward"""
        ward = self.get_object()
        beds = ward.beds.select_related('ward').order_by('bed_number')
        return Response({
            'success': True,
            'count': beds.count(),
            'data': BedListSerializer(beds, many=True).data
        })

    @extend_schema(
        summary="Recount Ward Counters",
        description="Recompute total/available beds from the bed rows and report whether drift was corrected",
        request=None,
        tags=['Wards']
    )
    @action(detail=True, methods=['post'])
    def recount(self, request, pk=None):
        ward, drift = services.recount_ward(pk)
        return Response({
            'success': True,
            'message': 'Counter drift corrected' if drift else 'Counters already consistent',
            'data': {**WardSerializer(ward).data, 'drift_corrected': drift}
        })

    @extend_schema(
        summary="Bed Occupancy Statistics",
        description="Per-ward and overall bed occupancy",
        tags=['Wards']
    )
    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': services.occupancy_stats()})


# ============================================================================
# BED VIEWSET
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Beds",
        parameters=[
            OpenApiParameter(name='ward', type=int, description='Filter by ward ID'),
            OpenApiParameter(name='status', type=str, description='Filter by status'),
            OpenApiParameter(name='bed_type', type=str, description='Filter by bed type'),
        ],
        tags=['Beds']
    ),
    retrieve=extend_schema(summary="Get Bed Details", tags=['Beds']),
    create=extend_schema(
        summary="Create Bed",
        description="Adds a bed to a ward and grows the ward's counters",
        tags=['Beds']
    ),
    update=extend_schema(summary="Update Bed", tags=['Beds']),
    partial_update=extend_schema(summary="Partial Update Bed", tags=['Beds']),
    destroy=extend_schema(
        summary="Delete Bed",
        description="Rejected while the bed is bound to an active admission",
        tags=['Beds']
    ),
)
class BedViewSet(viewsets.ModelViewSet):
    """
    Bed Management

    Every write goes through apps.wards.services so ward counters stay
    consistent with bed statuses.
    """
    queryset = Bed.objects.select_related('ward')
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.WARDS_VIEW,
        'retrieve': HMSPermissions.WARDS_VIEW,
        'available': HMSPermissions.WARDS_VIEW,
        'create': HMSPermissions.WARDS_CREATE,
        'update': HMSPermissions.WARDS_EDIT,
        'partial_update': HMSPermissions.WARDS_EDIT,
        'update_status': HMSPermissions.WARDS_EDIT,
        'destroy': HMSPermissions.WARDS_DELETE,
    }

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['ward', 'status', 'bed_type']
    search_fields = ['bed_number', 'ward__name']
    ordering_fields = ['bed_number', 'ward__name', 'daily_rate']
    ordering = ['ward__name', 'bed_number']

    def get_serializer_class(self):
        if self.action == 'list':
            return BedListSerializer
        elif self.action in ['create', 'update', 'partial_update']:
            return BedCreateUpdateSerializer
        elif self.action == 'update_status':
            return BedStatusSerializer
        return BedDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        return Response({'success': True, 'data': self.get_serializer(self.get_object()).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        ward = data.pop('ward')
        bed = services.create_bed(ward.pk, data)
        return Response({
            'success': True,
            'message': 'Bed created successfully',
            'data': BedDetailSerializer(bed).data
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        bed = services.update_bed(kwargs['pk'], serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Bed updated successfully',
            'data': BedDetailSerializer(bed).data
        })

    def destroy(self, request, *args, **kwargs):
        services.delete_bed(kwargs['pk'])
        return Response({'success': True, 'message': 'Bed deleted successfully'})

    @extend_schema(
        summary="Update Bed Status",
        request=BedStatusSerializer,
        responses={200: BedDetailSerializer},
        tags=['Beds']
    )
    @action(detail=True, methods=['post'], url_path='status')
    def update_status(self, request, pk=None):
        serializer = BedStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        bed = services.update_bed_status(pk, serializer.validated_data['status'])
        return Response({
            'success': True,
            'message': f"Bed marked {bed.status}",
            'data': BedDetailSerializer(bed).data
        })

    @extend_schema(
        summary="List Available Beds",
        parameters=[OpenApiParameter(name='ward', type=int, description='Restrict to one ward')],
        responses={200: BedListSerializer(many=True)},
        tags=['Beds']
    )
    @action(detail=False, methods=['get'])
    def available(self, request):
        beds = services.get_available_beds(request.query_params.get('ward') or None)
        return Response({
            'success': True,
            'count': beds.count(),
            'data': BedListSerializer(beds, many=True).data
        })
