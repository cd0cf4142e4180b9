from django.contrib import admin
from .models import ICUAdmission, ICUVitalsLog


class ICUVitalsLogInline(admin.TabularInline):
    model = ICUVitalsLog
    extra = 0
    fields = ['recorded_at', 'bp_systolic', 'bp_diastolic', 'heart_rate', 'temperature', 'spo2', 'notes']
    readonly_fields = fields
    can_delete = False
    ordering = ['-recorded_at']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(ICUAdmission)
class ICUAdmissionAdmin(admin.ModelAdmin):
    list_display = [
        'admission_id', 'patient', 'bed', 'condition_status',
        'ventilator_support', 'status', 'admission_date'
    ]
    list_filter = ['status', 'condition_status', 'ventilator_support', 'isolation_required']
    search_fields = ['admission_id', 'patient__first_name', 'patient__last_name', 'patient__patient_id']
    readonly_fields = [
        'admission_id', 'patient', 'bed', 'status', 'current_vitals', 'discharge_date',
        'discharge_type', 'discharged_by_id', 'created_by_id', 'created_at', 'updated_at'
    ]
    inlines = [ICUVitalsLogInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
