from django.contrib import admin
from .models import InsuranceProvider, InsuranceClaim


@admin.register(InsuranceProvider)
class InsuranceProviderAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'contact_number', 'email', 'status']
    list_filter = ['status']
    search_fields = ['name', 'code', 'email']


@admin.register(InsuranceClaim)
class InsuranceClaimAdmin(admin.ModelAdmin):
    """Claims are resolved through the API so approval posts its payment."""
    list_display = ['claim_number', 'bill', 'patient', 'insurance_provider', 'amount', 'status', 'created_at']
    list_filter = ['status', 'insurance_provider', 'created_at']
    search_fields = ['claim_number', 'bill__bill_number', 'patient__first_name', 'patient__last_name']
    readonly_fields = [
        'claim_number', 'bill', 'patient', 'insurance_provider', 'amount', 'status',
        'created_by_id', 'resolved_by_id', 'resolved_at', 'created_at', 'updated_at'
    ]

    def has_add_permission(self, request):
        return False
