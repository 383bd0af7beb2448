"""
Django admin registrations for the stock models.

The API is the primary interface; the admin is kept for inspecting
data and fixing the occasional row by hand.
"""
from django.contrib import admin

from .models import (
    Backup,
    Batch,
    BatchDocument,
    Brand,
    DataLog,
    Document,
    Material,
    MaterialType,
    Permission,
    Physician,
    UsageRecord,
    User,
    Vendor,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'role', 'is_active', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'email')
    filter_horizontal = ('permissions',)
    exclude = ('password', 'user_permissions', 'groups')


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ('name', 'description')


@admin.register(MaterialType, Brand)
class NamedAdmin(admin.ModelAdmin):
    list_display = ('name', 'created_at')
    search_fields = ('name',)


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ('name', 'city', 'contact_person', 'gst_number')
    search_fields = ('name', 'gst_number')


@admin.register(Physician)
class PhysicianAdmin(admin.ModelAdmin):
    list_display = ('name', 'specialization', 'department', 'is_active')
    list_filter = ('is_active',)


class BatchInline(admin.TabularInline):
    model = Batch
    extra = 0
    fields = ('quantity', 'initial_quantity', 'purchase_type', 'vendor', 'expiration_date', 'lot_number')


@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    list_display = ('name', 'size', 'brand', 'material_type')
    list_filter = ('material_type', 'brand')
    search_fields = ('name',)
    inlines = [BatchInline]


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    list_display = ('id', 'material', 'quantity', 'purchase_type', 'vendor', 'expiration_date')
    list_filter = ('purchase_type', 'vendor')


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ('document_number', 'type', 'vendor', 'date')
    search_fields = ('document_number', 'vendor')


admin.site.register(BatchDocument)


@admin.register(UsageRecord)
class UsageRecordAdmin(admin.ModelAdmin):
    list_display = ('patient_id', 'procedure_name', 'procedure_date', 'physician', 'batch', 'quantity')
    search_fields = ('patient_id', 'patient_name', 'procedure_name')


@admin.register(DataLog)
class DataLogAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'action', 'table_name', 'record_id', 'user')
    list_filter = ('action', 'table_name')
    readonly_fields = [f.name for f in DataLog._meta.fields]


@admin.register(Backup)
class BackupAdmin(admin.ModelAdmin):
    list_display = ('filename', 'file_size', 'created_by', 'created_at')
