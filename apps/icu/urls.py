from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import ICUAdmissionViewSet

router = DefaultRouter()
router.register(r'admissions', ICUAdmissionViewSet, basename='icu-admission')

urlpatterns = [
    path('', include(router.urls)),
]
