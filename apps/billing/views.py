# billing/views.py
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
from .models import BillingItem, Payment
from .serializers import (
    BillListSerializer, BillDetailSerializer,
    BillCreateSerializer, BillUpdateSerializer,
    BillItemCreateSerializer,
    PaymentSerializer, PaymentCreateSerializer,
    BillingItemSerializer,
)


# ============================================================================
# BILL VIEWSET
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Bills",
        parameters=[
            OpenApiParameter(name='patient', type=int, description='Filter by patient ID'),
            OpenApiParameter(name='payment_status', type=str, description='Pending, Partial, Paid...'),
            OpenApiParameter(name='status', type=str, description='Draft, Final, Cancelled, Void'),
        ],
        tags=['Billing']
    ),
    retrieve=extend_schema(summary="Get Bill Details", description="Bill with items and payments", tags=['Billing']),
    create=extend_schema(
        summary="Create Bill",
        description="Opens a Draft bill; amounts start at zero",
        request=BillCreateSerializer,
        tags=['Billing']
    ),
    update=extend_schema(summary="Update Bill", request=BillUpdateSerializer, tags=['Billing']),
    partial_update=extend_schema(summary="Partial Update Bill", request=BillUpdateSerializer, tags=['Billing']),
    destroy=extend_schema(
        summary="Delete Bill",
        description="Only bills without items, payments or insurance claims can be deleted",
        tags=['Billing']
    ),
)
class BillViewSet(ActorViewSetMixin, viewsets.ModelViewSet):
    """
    Bill Management

    Amounts and payment status are derived from items and payments and
    are read-only on this endpoint.
    """
    queryset = services.bills_with_relations()
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.BILLING_VIEW,
        'retrieve': HMSPermissions.BILLING_VIEW,
        'payments': HMSPermissions.BILLING_VIEW,
        'create': HMSPermissions.BILLING_CREATE,
        'items': HMSPermissions.BILLING_EDIT,
        'record_payment': HMSPermissions.BILLING_CREATE,
        'update': HMSPermissions.BILLING_EDIT,
        'partial_update': HMSPermissions.BILLING_EDIT,
        'destroy': HMSPermissions.BILLING_DELETE,
    }

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['patient', 'payment_status', 'status', 'admission_id']
    search_fields = ['bill_number', 'patient__first_name', 'patient__last_name', 'patient__patient_id']
    ordering_fields = ['bill_date', 'total_amount', 'balance_due']
    ordering = ['-bill_date']

    def get_serializer_class(self):
        if self.action == 'list':
            return BillListSerializer
        elif self.action == 'create':
            return BillCreateSerializer
        elif self.action in ['update', 'partial_update']:
            return BillUpdateSerializer
        elif self.action == 'items':
            return BillItemCreateSerializer
        elif self.action == 'record_payment':
            return PaymentCreateSerializer
        elif self.action == 'payments':
            return PaymentSerializer
        return BillDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        bill = services.get_bill(self.get_object().pk)
        return Response({'success': True, 'data': BillDetailSerializer(bill).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        bill = services.create_bill(data.pop('patient'), actor_id=self.get_actor_id(), **data)
        return Response({
            'success': True,
            'message': 'Bill created successfully',
            'data': BillDetailSerializer(bill).data
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        bill = services.update_bill(kwargs['pk'], serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Bill updated successfully',
            'data': BillDetailSerializer(bill).data
        })

    def destroy(self, request, *args, **kwargs):
        services.delete_bill(self.get_object().pk)
        return Response({'success': True, 'message': 'Bill deleted successfully'})

    @extend_schema(
        summary="Add Bill Item",
        description="Append a line to a Draft bill; bill totals are recalculated",
        request=BillItemCreateSerializer,
        responses={201: BillDetailSerializer},
        examples=[OpenApiExample('Bill Item Example', value={
            'description': 'General ward bed charges (3 days)',
            'quantity': 3,
            'unit_price': 1500,
            'tax': 0,
            'discount': 0,
            'total': 4500
        }, request_only=True)],
        tags=['Billing']
    )
    @action(detail=True, methods=['post'])
    def items(self, request, pk=None):
        serializer = BillItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        bill = services.add_bill_item(self.get_object().pk, serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Item added to bill',
            'data': BillDetailSerializer(bill).data
        }, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="List Bill Payments",
        responses={200: PaymentSerializer(many=True)},
        tags=['Billing']
    )
    @action(detail=True, methods=['get'])
    def payments(self, request, pk=None):
        payments = services.list_payments(bill_id=self.get_object().pk)
        return Response({
            'success': True,
            'count': payments.count(),
            'data': PaymentSerializer(payments, many=True).data
        })

    @extend_schema(
        summary="Record Payment",
        description="Apply a payment to the bill; partial payments accumulate",
        request=PaymentCreateSerializer,
        responses={201: PaymentSerializer},
        examples=[OpenApiExample('Payment Example', value={
            'amount': 400,
            'payment_method': 'UPI',
            'transaction_reference': 'UPI-771203'
        }, request_only=True)],
        tags=['Billing']
    )
    @payments.mapping.post
    def record_payment(self, request, pk=None):
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        bill = self.get_object()
        payment = services.record_payment(bill.pk, actor_id=self.get_actor_id(), **serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Payment recorded successfully',
            'data': {
                'payment': PaymentSerializer(payment).data,
                'bill': BillDetailSerializer(services.get_bill(bill.pk)).data,
            }
        }, status=status.HTTP_201_CREATED)


# ============================================================================
# PAYMENT VIEWSET
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Payments",
        parameters=[
            OpenApiParameter(name='bill', type=int, description='Filter by bill ID'),
            OpenApiParameter(name='patient', type=int, description='Filter by patient ID'),
            OpenApiParameter(name='payment_method', type=str, description='Filter by method'),
        ],
        tags=['Payments']
    ),
    retrieve=extend_schema(summary="Get Payment Details", tags=['Payments']),
)
class PaymentViewSet(ActorViewSetMixin, viewsets.ReadOnlyModelViewSet):
    """Payments are recorded through a bill and never edited."""
    queryset = Payment.objects.select_related('bill', 'patient')
    serializer_class = PaymentSerializer
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.BILLING_VIEW,
        'retrieve': HMSPermissions.BILLING_VIEW,
    }

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['bill', 'patient', 'payment_method']
    search_fields = ['payment_id', 'transaction_reference', 'receipt_number', 'bill__bill_number']
    ordering_fields = ['payment_date', 'amount']
    ordering = ['-payment_date', '-id']

    def retrieve(self, request, *args, **kwargs):
        return Response({'success': True, 'data': self.get_serializer(self.get_object()).data})


# ============================================================================
# BILLING ITEM (CATALOG) VIEWSET
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Billing Items",
        description="Active catalog entries ordered by category and name",
        parameters=[OpenApiParameter(name='category', type=str, description='Filter by category')],
        tags=['Billing Items']
    ),
    retrieve=extend_schema(summary="Get Billing Item", tags=['Billing Items']),
    create=extend_schema(summary="Create Billing Item", tags=['Billing Items']),
    update=extend_schema(summary="Update Billing Item", tags=['Billing Items']),
    partial_update=extend_schema(summary="Partial Update Billing Item", tags=['Billing Items']),
)
class BillingItemViewSet(viewsets.ModelViewSet):
    """Billing catalog. Entries are deactivated instead of deleted."""
    serializer_class = BillingItemSerializer
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.BILLING_VIEW,
        'retrieve': HMSPermissions.BILLING_VIEW,
        'create': HMSPermissions.BILLING_CREATE,
        'update': HMSPermissions.BILLING_EDIT,
        'partial_update': HMSPermissions.BILLING_EDIT,
    }
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['category']
    search_fields = ['code', 'name', 'category']

    def get_queryset(self):
        if self.action == 'list':
            return services.list_billing_items()
        return BillingItem.objects.all()

    def retrieve(self, request, *args, **kwargs):
        return Response({'success': True, 'data': self.get_serializer(self.get_object()).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response({
            'success': True,
            'message': 'Billing item created successfully',
            'data': serializer.data
        }, status=status.HTTP_201_CREATED)
