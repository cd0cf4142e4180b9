from django.contrib import admin
from .models import IPDAdmission, BedTransfer


class BedTransferInline(admin.TabularInline):
    model = BedTransfer
    extra = 0
    fields = ['from_bed', 'to_bed', 'transfer_date', 'reason', 'performed_by_id']
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(IPDAdmission)
class IPDAdmissionAdmin(admin.ModelAdmin):
    list_display = [
        'admission_id', 'patient', 'bed', 'admission_type',
        'admission_date', 'status', 'actual_discharge_date'
    ]
    list_filter = ['status', 'admission_type', 'admission_date']
    search_fields = ['admission_id', 'patient__first_name', 'patient__last_name', 'patient__patient_id']
    readonly_fields = [
        'admission_id', 'patient', 'bed', 'status', 'actual_discharge_date',
        'discharge_type', 'discharged_by_id', 'created_by_id', 'created_at', 'updated_at'
    ]
    inlines = [BedTransferInline]
    date_hierarchy = 'admission_date'

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(BedTransfer)
class BedTransferAdmin(admin.ModelAdmin):
    list_display = ['admission', 'from_bed', 'to_bed', 'transfer_date']
    readonly_fields = ['admission', 'from_bed', 'to_bed', 'transfer_date', 'reason', 'performed_by_id']

    def has_add_permission(self, request):
        return False
