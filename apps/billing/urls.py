from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import BillViewSet, PaymentViewSet, BillingItemViewSet

router = DefaultRouter()
router.register(r'bills', BillViewSet, basename='bill')
router.register(r'payments', PaymentViewSet, basename='payment')
router.register(r'billing-items', BillingItemViewSet, basename='billing-item')

urlpatterns = [
    path('', include(router.urls)),
]
