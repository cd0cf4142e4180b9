from rest_framework import viewsets, status, filters
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from drf_spectacular.utils import (
    extend_schema, extend_schema_view,
    OpenApiParameter, OpenApiExample
)

from common.mixins import ActorViewSetMixin
from common.permissions import HMSActionPermission, HMSPermissions
from .models import PatientProfile
from .serializers import (
    PatientProfileListSerializer,
    PatientProfileDetailSerializer,
    PatientProfileCreateUpdateSerializer,
)


@extend_schema_view(
    list=extend_schema(
        summary="List patients",
        description="Get list of patient profiles with filtering, search and ordering.",
        parameters=[
            OpenApiParameter(name='status', type=str, description='Filter by status'),
            OpenApiParameter(name='gender', type=str, description='Filter by gender'),
            OpenApiParameter(name='blood_group', type=str, description='Filter by blood group'),
            OpenApiParameter(name='search', type=str, description='Search by name, patient ID, or phone'),
        ],
        tags=['Patients']
    ),
    retrieve=extend_schema(
        summary="Get patient details",
        tags=['Patients']
    ),
    create=extend_schema(
        summary="Register patient",
        description="Create a new patient profile.",
        examples=[
            OpenApiExample(
                'Patient Registration Example',
                value={
                    'first_name': 'John',
                    'last_name': 'Doe',
                    'date_of_birth': '1990-01-15',
                    'gender': 'male',
                    'mobile_primary': '+919876543210',
                    'email': 'john.doe@example.com',
                    'blood_group': 'O+',
                },
                request_only=True,
            ),
        ],
        tags=['Patients']
    ),
    update=extend_schema(summary="Update patient profile", tags=['Patients']),
    partial_update=extend_schema(summary="Partial update patient profile", tags=['Patients']),
    destroy=extend_schema(
        summary="Deactivate patient profile",
        description="Soft delete - set status to inactive.",
        tags=['Patients']
    ),
)
class PatientProfileViewSet(ActorViewSetMixin, viewsets.ModelViewSet):
    """
    Patient registry: registration and profile CRUD.
    """
    queryset = PatientProfile.objects.all()
    permission_classes = [HMSActionPermission]
    permission_mapping = {
        'list': HMSPermissions.PATIENTS_VIEW,
        'retrieve': HMSPermissions.PATIENTS_VIEW,
        'create': HMSPermissions.PATIENTS_CREATE,
        'update': HMSPermissions.PATIENTS_EDIT,
        'partial_update': HMSPermissions.PATIENTS_EDIT,
        'destroy': HMSPermissions.PATIENTS_DELETE,
    }

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'gender', 'blood_group']
    search_fields = ['patient_id', 'first_name', 'last_name', 'mobile_primary', 'email']
    ordering_fields = ['created_at', 'first_name', 'last_name']
    ordering = ['-created_at']

    def get_serializer_class(self):
        if self.action == 'list':
            return PatientProfileListSerializer
        elif self.action in ['create', 'update', 'partial_update']:
            return PatientProfileCreateUpdateSerializer
        return PatientProfileDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        s = self.get_serializer(self.get_object())
        return Response({'success': True, 'data': s.data})

    def create(self, request, *args, **kwargs):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        self.perform_create(s)
        return Response(
            {'success': True, 'message': 'Patient registered successfully',
             'data': PatientProfileDetailSerializer(s.instance).data},
            status=status.HTTP_201_CREATED
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        s = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        s.is_valid(raise_exception=True)
        patient = s.save()
        return Response({'success': True, 'message': 'Patient profile updated successfully',
                         'data': PatientProfileDetailSerializer(patient).data})

    def destroy(self, request, *args, **kwargs):
        obj = self.get_object()
        obj.status = 'inactive'  # soft-delete
        obj.save(update_fields=['status', 'updated_at'])
        return Response({'success': True, 'message': 'Patient profile deactivated successfully'})
