from django.contrib import admin
from .models import PatientProfile


@admin.register(PatientProfile)
class PatientProfileAdmin(admin.ModelAdmin):
    list_display = [
        'patient_id', 'full_name', 'gender', 'mobile_primary',
        'blood_group', 'status', 'created_at'
    ]
    list_filter = ['status', 'gender', 'blood_group']
    search_fields = ['patient_id', 'first_name', 'last_name', 'mobile_primary', 'email']
    readonly_fields = ['patient_id', 'created_by_id', 'created_at', 'updated_at']
    ordering = ['-created_at']
