from rest_framework import serializers

from stock.models import User
from stock.permissions import normalize_permission_name
from .common import CleanCharField, iso


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(required=False, allow_blank=True)
    account = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)


class SetupSerializer(serializers.Serializer):
    username = CleanCharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    confirmPassword = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs['password'] != attrs['confirmPassword']:
            raise serializers.ValidationError({'confirmPassword': 'Passwords do not match.'})
        return attrs


class UserWriteSerializer(serializers.Serializer):
    username = CleanCharField(max_length=150)
    email = serializers.EmailField(required=False, allow_blank=True)
    password = serializers.CharField(write_only=True)
    role = CleanCharField(max_length=50, required=False, allow_blank=True)
    permissions = serializers.ListField(child=serializers.CharField(), required=False)

    def validate_username(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('Username is required.')
        return v


class ProfileUpdateSerializer(serializers.Serializer):
    username = CleanCharField(max_length=150, required=False)
    email = serializers.EmailField(required=False, allow_blank=True)
    currentPassword = serializers.CharField(required=False, allow_blank=True, write_only=True)
    newPassword = serializers.CharField(required=False, allow_blank=True, write_only=True)


def title_permission(name: str) -> str:
    return ' '.join(w.capitalize() for w in normalize_permission_name(name).split(' '))


def format_user(user: User) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'role': user.role,
        'permissions': [{'id': p.id, 'name': p.name} for p in user.permissions.all()],
        'createdBy': user.created_by.username if user.created_by_id else None,
        'createdAt': iso(user.date_joined),
        'updatedAt': iso(user.updated_at),
    }


def format_me(user: User) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'role': user.role,
        'permissions': sorted({title_permission(p.name) for p in user.permissions.all()}),
    }
