# insurance/views.py
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

from common.mixins import ActorViewSetMixin
from common.permissions import HMSActionPermission, HMSPermissions
from . import services
from .models import InsuranceProvider
from .serializers import (
    InsuranceProviderSerializer,
    InsuranceClaimListSerializer, InsuranceClaimDetailSerializer,
    InsuranceClaimCreateSerializer, InsuranceClaimUpdateSerializer,
    ClaimStatusSerializer,
)


# ============================================================================
# PROVIDER VIEWSET
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Insurance Providers",
        parameters=[
            OpenApiParameter(name='status', type=str, description='Active or Inactive'),
            OpenApiParameter(name='search', type=str, description='Search by name, code or email'),
        ],
        tags=['Insurance Providers']
    ),
    retrieve=extend_schema(summary="Get Insurance Provider", tags=['Insurance Providers']),
    create=extend_schema(summary="Create Insurance Provider", tags=['Insurance Providers']),
    update=extend_schema(summary="Update Insurance Provider", tags=['Insurance Providers']),
    partial_update=extend_schema(summary="Partial Update Insurance Provider", tags=['Insurance Providers']),
    destroy=extend_schema(
        summary="Delete Insurance Provider",
        description="Rejected while claims reference the provider",
        tags=['Insurance Providers']
    ),
)
class InsuranceProviderViewSet(viewsets.ModelViewSet):
    """Insurance Provider Management"""
    queryset = InsuranceProvider.objects.all()
    serializer_class = InsuranceProviderSerializer
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.INSURANCE_VIEW,
        'retrieve': HMSPermissions.INSURANCE_VIEW,
        'create': HMSPermissions.INSURANCE_CREATE,
        'update': HMSPermissions.INSURANCE_EDIT,
        'partial_update': HMSPermissions.INSURANCE_EDIT,
        'destroy': HMSPermissions.INSURANCE_EDIT,
    }

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status']
    search_fields = ['name', 'code', 'email']
    ordering_fields = ['name', 'created_at']
    ordering = ['name']

    def retrieve(self, request, *args, **kwargs):
        return Response({'success': True, 'data': self.get_serializer(self.get_object()).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        provider = services.create_provider(serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Insurance provider created successfully',
            'data': InsuranceProviderSerializer(provider).data
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        provider = services.update_provider(kwargs['pk'], serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Insurance provider updated successfully',
            'data': InsuranceProviderSerializer(provider).data
        })

    def destroy(self, request, *args, **kwargs):
        services.delete_provider(self.get_object().pk)
        return Response({'success': True, 'message': 'Provider deleted successfully'})


# ============================================================================
# CLAIM VIEWSET
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Insurance Claims",
        description="Newest first",
        parameters=[
            OpenApiParameter(name='status', type=str, description='Pending, Approved or Rejected'),
            OpenApiParameter(name='provider', type=int, description='Filter by insurance provider ID'),
            OpenApiParameter(name='patient', type=int, description='Filter by patient ID'),
        ],
        tags=['Insurance Claims']
    ),
    retrieve=extend_schema(summary="Get Insurance Claim", tags=['Insurance Claims']),
    create=extend_schema(
        summary="Create Insurance Claim",
        description="Raises a Pending claim and links it to the bill",
        request=InsuranceClaimCreateSerializer,
        examples=[OpenApiExample('Claim Example', value={
            'bill_id': 12,
            'patient_id': 4,
            'insurance_provider_id': 2,
            'amount': 1200,
            'documents': ['discharge_summary.pdf', 'final_bill.pdf'],
            'notes': 'Cashless claim'
        }, request_only=True)],
        tags=['Insurance Claims']
    ),
    update=extend_schema(summary="Update Pending Claim", request=InsuranceClaimUpdateSerializer,
                         tags=['Insurance Claims']),
    partial_update=extend_schema(summary="Partial Update Pending Claim", request=InsuranceClaimUpdateSerializer,
                                 tags=['Insurance Claims']),
)
class InsuranceClaimViewSet(ActorViewSetMixin, viewsets.ModelViewSet):
    """
    Insurance Claim Workflow

    Accountants raise claims against a bill; an approver resolves them.
    Approval records an Insurance payment on the bill.
    """
    queryset = services.claims_with_relations()
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.INSURANCE_VIEW,
        'retrieve': HMSPermissions.INSURANCE_VIEW,
        'create': HMSPermissions.INSURANCE_CREATE,
        'update': HMSPermissions.INSURANCE_EDIT,
        'partial_update': HMSPermissions.INSURANCE_EDIT,
        'update_status': HMSPermissions.INSURANCE_APPROVE,
    }
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    filter_backends = [filters.SearchFilter]
    search_fields = ['claim_number', 'bill__bill_number', 'patient__first_name', 'patient__last_name']

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == 'list':
            params = self.request.query_params
            queryset = services.list_claims(
                status=params.get('status'),
                provider_id=params.get('provider'),
                patient_id=params.get('patient'),
                queryset=queryset,
            )
        return queryset

    def get_serializer_class(self):
        if self.action == 'list':
            return InsuranceClaimListSerializer
        elif self.action == 'create':
            return InsuranceClaimCreateSerializer
        elif self.action in ['update', 'partial_update']:
            return InsuranceClaimUpdateSerializer
        elif self.action == 'update_status':
            return ClaimStatusSerializer
        return InsuranceClaimDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        return Response({'success': True, 'data': InsuranceClaimDetailSerializer(self.get_object()).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        claim = services.create_claim(
            bill_id=data['bill_id'],
            patient_id=data['patient_id'],
            provider_id=data['insurance_provider_id'],
            amount=data['amount'],
            documents=data.get('documents'),
            notes=data.get('notes'),
            actor_id=self.get_actor_id(),
        )
        return Response({
            'success': True,
            'message': 'Insurance claim created successfully',
            'data': InsuranceClaimDetailSerializer(claim).data
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        kwargs.pop('partial', None)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        claim = services.update_claim(self.get_object().pk, serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Insurance claim updated successfully',
            'data': InsuranceClaimDetailSerializer(claim).data
        })

    @extend_schema(
        summary="Approve or Reject Claim",
        description="Approving records an Insurance payment of the claim amount on the bill. "
                    "Resolved claims cannot be changed.",
        request=ClaimStatusSerializer,
        responses={200: InsuranceClaimDetailSerializer},
        examples=[OpenApiExample('Approve Example', value={
            'status': 'Approved',
            'admin_notes': 'Verified against policy'
        }, request_only=True)],
        tags=['Insurance Claims']
    )
    @action(detail=True, methods=['put', 'post'], url_path='status')
    def update_status(self, request, pk=None):
        serializer = ClaimStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        claim = services.update_claim_status(
            self.get_object().pk,
            serializer.validated_data['status'],
            admin_notes=serializer.validated_data.get('admin_notes'),
            actor_id=self.get_actor_id(),
        )
        return Response({
            'success': True,
            'message': f'Claim {claim.status.lower()}',
            'data': InsuranceClaimDetailSerializer(claim).data
        })
