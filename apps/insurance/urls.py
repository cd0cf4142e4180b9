from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import InsuranceProviderViewSet, InsuranceClaimViewSet

router = DefaultRouter()
router.register(r'providers', InsuranceProviderViewSet, basename='insurance-provider')
router.register(r'claims', InsuranceClaimViewSet, basename='insurance-claim')

urlpatterns = [
    path('', include(router.urls)),
]
