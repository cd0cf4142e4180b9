from django.contrib import admin
from django.utils.html import format_html
from .models import BillingItem, Bill, BillItem, Payment


@admin.register(BillingItem)
class BillingItemAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'category', 'unit_price', 'tax_percent', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['code', 'name']


class BillItemInline(admin.TabularInline):
    model = BillItem
    extra = 0
    can_delete = False
    readonly_fields = ['description', 'quantity', 'unit_price', 'discount', 'tax', 'total', 'service_date']
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    can_delete = False
    readonly_fields = ['payment_id', 'amount', 'payment_method', 'payment_date', 'transaction_reference']
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    """Ledger rows are read-only here; items and payments go through the API."""
    list_display = [
        'bill_number',
        'patient',
        'bill_date',
        'total_amount',
        'paid_amount',
        'balance_due',
        'payment_status_badge',
        'status'
    ]
    list_filter = ['payment_status', 'status', 'bill_date']
    search_fields = ['bill_number', 'patient__first_name', 'patient__last_name', 'patient__patient_id']
    readonly_fields = [
        'bill_number', 'patient', 'subtotal', 'discount_amount', 'tax_amount', 'total_amount',
        'paid_amount', 'balance_due', 'insurance_claim', 'insurance_amount', 'payment_status',
        'status', 'created_by_id', 'created_at', 'updated_at'
    ]
    inlines = [BillItemInline, PaymentInline]

    def payment_status_badge(self, obj):
        colors = {'Pending': 'orange', 'Partial': 'blue', 'Paid': 'green'}
        return format_html(
            '<span style="color: {};">{}</span>',
            colors.get(obj.payment_status, 'black'),
            obj.payment_status
        )
    payment_status_badge.short_description = 'Payment Status'

    def has_add_permission(self, request):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['payment_id', 'bill', 'patient', 'amount', 'payment_method', 'payment_date']
    list_filter = ['payment_method', 'payment_date']
    search_fields = ['payment_id', 'transaction_reference', 'bill__bill_number']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
