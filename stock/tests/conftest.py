from datetime import timedelta

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from stock.models import Batch, Brand, Material, MaterialType, Physician, User, Vendor
from stock.permissions import VIEW_ONLY
from stock.services.users import ensure_default_permissions

PASSWORD = 'P@ssw0rd1-stock'


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / 'media')
    return settings.MEDIA_ROOT


@pytest.fixture
def admin_user(db):
    user = User.objects.create_user(username='stockadmin', email='admin@example.com', password=PASSWORD, role='Admin')
    user.permissions.set(ensure_default_permissions())
    return user


@pytest.fixture
def viewer(db):
    user = User.objects.create_user(username='viewer', email='viewer@example.com', password=PASSWORD)
    user.permissions.set([p for p in ensure_default_permissions() if p.name == VIEW_ONLY])
    return user


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def viewer_client(viewer):
    return client_for(viewer)


@pytest.fixture
def master(db):
    """A small catalogue: two types, a brand, two vendors and a physician."""
    return {
        'stent': MaterialType.objects.create(name='Stent'),
        'balloon': MaterialType.objects.create(name='Balloon'),
        'brand': Brand.objects.create(name='Medtronic'),
        'vendor': Vendor.objects.create(name='Vendor A'),
        'vendor_b': Vendor.objects.create(name='Vendor B'),
        'physician': Physician.objects.create(name='Dr. Rao', specialization='Cardiology'),
    }


@pytest.fixture
def material(master):
    return Material.objects.create(name='DES Stent', size='3x18', brand=master['brand'], material_type=master['stent'])


@pytest.fixture
def batch(material, master, admin_user):
    return Batch.objects.create(
        material=material,
        quantity=10,
        initial_quantity=10,
        purchase_type=Batch.PURCHASE_PURCHASED,
        vendor=master['vendor'],
        expiration_date=timezone.now() + timedelta(days=365),
        lot_number='L-100',
        added_by=admin_user,
    )
