from rest_framework import serializers

from stock.models import Brand, MaterialType, Physician, Vendor
from .common import CleanCharField, iso


def _optional(max_length=255, **kw):
    return CleanCharField(max_length=max_length, required=False, allow_blank=True, allow_null=True, **kw)


class _NamedSerializer(serializers.ModelSerializer):
    name = CleanCharField(max_length=255)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    def validate_name(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('Name is required.')
        model = self.Meta.model
        if model is not Physician:
            qs = model.objects.filter(name__iexact=v)
            if self.instance is not None:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError(f'{model.__name__} "{v}" already exists.')
        return v

    def to_internal_value(self, data):
        attrs = super().to_internal_value(data)
        # optional text columns are NOT NULL blank strings
        return {k: ('' if v is None else v) for k, v in attrs.items()}


class MaterialTypeSerializer(_NamedSerializer):
    description = _optional(2000)

    class Meta:
        model = MaterialType
        fields = ['id', 'name', 'description', 'createdAt', 'updatedAt']


class BrandSerializer(_NamedSerializer):
    description = _optional(2000)
    website = _optional()
    contactPerson = _optional(source='contact_person')
    contactEmail = _optional(source='contact_email')
    contactPhone = _optional(64, source='contact_phone')

    class Meta:
        model = Brand
        fields = ['id', 'name', 'description', 'website', 'contactPerson', 'contactEmail',
                  'contactPhone', 'createdAt', 'updatedAt']


class VendorSerializer(_NamedSerializer):
    description = _optional(2000)
    address = _optional()
    city = _optional(128)
    state = _optional(128)
    country = _optional(128)
    postalCode = _optional(32, source='postal_code')
    website = _optional()
    contactPerson = _optional(source='contact_person')
    contactEmail = _optional(source='contact_email')
    contactPhone = _optional(64, source='contact_phone')
    gstNumber = _optional(64, source='gst_number')

    class Meta:
        model = Vendor
        fields = ['id', 'name', 'description', 'address', 'city', 'state', 'country', 'postalCode',
                  'website', 'contactPerson', 'contactEmail', 'contactPhone', 'gstNumber',
                  'createdAt', 'updatedAt']


class PhysicianSerializer(_NamedSerializer):
    specialization = CleanCharField(max_length=255)
    email = _optional()
    phone = _optional(64)
    department = _optional()
    isActive = serializers.BooleanField(source='is_active', required=False)

    class Meta:
        model = Physician
        fields = ['id', 'name', 'specialization', 'email', 'phone', 'department', 'isActive',
                  'createdAt', 'updatedAt']

    def validate_specialization(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('Specialization is required.')
        return v
