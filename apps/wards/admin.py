from django.contrib import admin
from .models import Ward, Bed


class BedInline(admin.TabularInline):
    model = Bed
    extra = 0
    fields = ['bed_number', 'bed_type', 'daily_rate', 'status']
    readonly_fields = ['status']
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        # Beds are added through the API so ward counters move with them
        return False


@admin.register(Ward)
class WardAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'floor', 'nurse_station', 'total_beds', 'available_beds']
    list_filter = ['type', 'floor']
    search_fields = ['name', 'floor', 'nurse_station']
    readonly_fields = ['total_beds', 'available_beds', 'created_at', 'updated_at']
    inlines = [BedInline]


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ['bed_number', 'ward', 'bed_type', 'daily_rate', 'status']
    list_filter = ['status', 'bed_type', 'ward']
    search_fields = ['bed_number', 'ward__name']
    readonly_fields = ['ward', 'status', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        return False
