from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import IPDAdmissionViewSet

router = DefaultRouter()
router.register(r'admissions', IPDAdmissionViewSet, basename='ipd-admission')

urlpatterns = [
    path('', include(router.urls)),
]
