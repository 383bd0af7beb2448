"""
URL mappings for the stock API.

Paths carry no trailing slash (``APPEND_SLASH`` is off) to match what
the frontend calls.
"""
from django.urls import path

from .views import analytics, auth, backups, catalog, documents, health, inventory, usage, users

urlpatterns = [
    path('healthz', health.healthz, name='healthz'),

    # auth & setup
    path('api/auth/login', auth.login_view, name='login_view'),
    path('api/auth/refresh', auth.jwt_refresh_view, name='jwt_refresh'),
    path('api/auth/logout', auth.jwt_logout_view, name='jwt_logout'),
    path('api/auth/me', auth.me_view, name='me'),
    path('api/setup', auth.setup_view, name='setup'),
    path('api/profile', auth.profile_view, name='profile'),

    # inventory
    path('api/inventory', inventory.materials, name='materials'),
    path('api/inventory/filters', inventory.inventory_filters, name='inventory_filters'),
    path('api/inventory/<int:material_id>', inventory.material_detail, name='material_detail'),
    path('api/inventory/<int:material_id>/batches', inventory.batches, name='batches'),
    path('api/inventory/<int:material_id>/batches/<int:batch_id>', inventory.batch_detail, name='batch_detail'),

    # usage
    path('api/usage', usage.usage_records, name='usage'),
    path('api/usage/filters', usage.usage_filters, name='usage_filters'),
    path('api/usage/procedure', usage.procedure_view, name='usage_procedure'),
    path('api/usage/<int:usage_id>', usage.usage_detail, name='usage_detail'),

    # documents & stored files
    path('api/documents', documents.documents, name='documents'),
    path('api/documents/<int:document_id>', documents.document_detail, name='document_detail'),
    path('api/files/<path:path>', documents.stored_file, name='stored_file'),

    # analytics & dashboard
    path('api/analytics', analytics.analytics_report, name='analytics'),
    path('api/analytics/filters', analytics.analytics_filters, name='analytics_filters'),
    path('api/dashboard', analytics.dashboard_view, name='dashboard'),

    # settings: master data
    path('api/settings/material-types', catalog.material_types, name='material_types'),
    path('api/settings/material-types/<int:pk>', catalog.material_type_detail, name='material_type_detail'),
    path('api/settings/brands', catalog.brands, name='brands'),
    path('api/settings/brands/<int:pk>', catalog.brand_detail, name='brand_detail'),
    path('api/settings/vendors', catalog.vendors, name='vendors'),
    path('api/settings/vendors/<int:pk>', catalog.vendor_detail, name='vendor_detail'),
    path('api/settings/physicians', catalog.physicians, name='physicians'),
    path('api/settings/physicians/<int:pk>', catalog.physician_detail, name='physician_detail'),

    # settings: users, permissions, data log
    path('api/settings/users', users.users, name='users'),
    path('api/settings/users/<int:user_id>', users.user_detail, name='user_detail'),
    path('api/settings/permissions', users.permissions_list, name='permissions'),
    path('api/settings/data-log', users.data_log, name='data_log'),

    # settings: backups
    path('api/settings/backup', backups.backups, name='backups'),
    path('api/settings/backup/list-storage', backups.list_storage, name='backup_list_storage'),
    path('api/settings/backup/restore', backups.backup_restore, name='backup_restore'),
    path('api/settings/backup/download/<path:name>', backups.backup_download, name='backup_download'),
    path('api/settings/backup/<path:identifier>', backups.backup_delete, name='backup_delete'),
]
