"""
Database models for the medical stock backend.

Materials are tracked as batches (each with its own vendor, expiry and
remaining quantity).  Usage records consume batch stock per patient
procedure, documents back up purchases, and every mutation leaves a
``DataLog`` row with before/after values.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class Permission(models.Model):
    """A named capability such as ``Edit Materials``."""
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """Application user.

    ``role`` is a free-text label shown in the UI (``ADMIN`` for the
    first-run account); access control is driven by ``permissions``.
    """
    role = models.CharField(max_length=50, default='User')
    created_by = models.ForeignKey(
        'self', null=True, blank=True, on_delete=models.SET_NULL, related_name='created_users'
    )
    permissions = models.ManyToManyField(Permission, blank=True, related_name='users')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.username


class MaterialType(models.Model):
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class Brand(models.Model):
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    website = models.CharField(max_length=255, blank=True)
    contact_person = models.CharField(max_length=255, blank=True)
    contact_email = models.CharField(max_length=255, blank=True)
    contact_phone = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class Vendor(models.Model):
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=128, blank=True)
    state = models.CharField(max_length=128, blank=True)
    country = models.CharField(max_length=128, blank=True)
    postal_code = models.CharField(max_length=32, blank=True)
    website = models.CharField(max_length=255, blank=True)
    contact_person = models.CharField(max_length=255, blank=True)
    contact_email = models.CharField(max_length=255, blank=True)
    contact_phone = models.CharField(max_length=64, blank=True)
    gst_number = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class Physician(models.Model):
    name = models.CharField(max_length=255)
    specialization = models.CharField(max_length=255)
    email = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=64, blank=True)
    department = models.CharField(max_length=255, blank=True)
    # Inactive physicians are hidden from the usage form but kept for history
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class Material(models.Model):
    name = models.CharField(max_length=255)
    size = models.CharField(max_length=128, blank=True)
    brand = models.ForeignKey(Brand, on_delete=models.PROTECT, related_name='materials')
    material_type = models.ForeignKey(MaterialType, on_delete=models.PROTECT, related_name='materials')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class Document(models.Model):
    """Invoice, delivery challan or similar paperwork for a purchase."""
    type = models.CharField(max_length=100)
    document_number = models.CharField(max_length=255, unique=True)
    date = models.DateTimeField()
    vendor = models.CharField(max_length=255)
    file = models.FileField(upload_to='documents/', max_length=512, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.document_number


class Batch(models.Model):
    PURCHASE_ADVANCE = 'Advance'
    PURCHASE_PURCHASED = 'Purchased'
    PURCHASE_TYPE_CHOICES = [
        (PURCHASE_ADVANCE, 'Advance'),
        (PURCHASE_PURCHASED, 'Purchased'),
    ]

    material = models.ForeignKey(Material, on_delete=models.CASCADE, related_name='batches')
    # Remaining units; never negative
    quantity = models.PositiveIntegerField(default=0)
    initial_quantity = models.PositiveIntegerField(default=0)
    purchase_type = models.CharField(max_length=20, choices=PURCHASE_TYPE_CHOICES, db_index=True)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name='batches')
    expiration_date = models.DateTimeField(db_index=True)
    storage_location = models.CharField(max_length=255, blank=True)
    lot_number = models.CharField(max_length=255, blank=True)
    cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    stock_added_date = models.DateTimeField(auto_now_add=True)
    added_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='added_batches'
    )
    documents = models.ManyToManyField(
        Document, through='BatchDocument', related_name='batches', blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.material_id}#{self.pk} ({self.quantity})"


class BatchDocument(models.Model):
    batch = models.ForeignKey(Batch, on_delete=models.CASCADE, related_name='document_links')
    document = models.ForeignKey(Document, on_delete=models.CASCADE, related_name='batch_links')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('batch', 'document')


class UsageRecord(models.Model):
    patient_name = models.CharField(max_length=255)
    patient_id = models.CharField(max_length=128, db_index=True)
    procedure_name = models.CharField(max_length=255)
    procedure_date = models.DateTimeField(db_index=True)
    # Physician name as entered; physicians may later be deactivated or renamed
    physician = models.CharField(max_length=255, db_index=True)
    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name='usage_records')
    batch = models.ForeignKey(Batch, on_delete=models.PROTECT, related_name='usage_records')
    quantity = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.patient_id} {self.procedure_name} x{self.quantity}"


class DataLog(models.Model):
    """Audit trail entry for a single create/update/delete."""
    ACTION_CREATE = 'CREATE'
    ACTION_UPDATE = 'UPDATE'
    ACTION_DELETE = 'DELETE'
    ACTION_CHOICES = [
        (ACTION_CREATE, 'Create'),
        (ACTION_UPDATE, 'Update'),
        (ACTION_DELETE, 'Delete'),
    ]

    action = models.CharField(max_length=10, choices=ACTION_CHOICES, db_index=True)
    table_name = models.CharField(max_length=64, db_index=True)
    record_id = models.CharField(max_length=64)
    old_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='data_logs')
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
    description = models.CharField(max_length=500, blank=True)

    def __str__(self) -> str:
        return f"{self.action} {self.table_name}:{self.record_id}"


class Backup(models.Model):
    # Storage object name, e.g. backups/medstock-backup-20240101T000000.json
    filename = models.CharField(max_length=512, unique=True)
    file_size = models.BigIntegerField(default=0)
    description = models.CharField(max_length=500, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='backups')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.filename
