import bleach
from rest_framework import serializers

from stock.services.params import parse_when


class CleanCharField(serializers.CharField):
    """CharField that strips markup from free text before it is stored."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return bleach.clean(value, tags=[], strip=True)


class WhenField(serializers.Field):
    """Accepts ``YYYY-MM-DD`` or a full ISO timestamp."""

    def to_internal_value(self, data):
        return parse_when(data, self.field_name or 'date', required=True)

    def to_representation(self, value):
        return value.isoformat() if value else None


def iso(value):
    return value.isoformat() if value else None


def name_ref(obj):
    if obj is None:
        return None
    return {'id': obj.id, 'name': obj.name}
