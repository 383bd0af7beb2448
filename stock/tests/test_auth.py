import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from stock.models import DataLog, Permission, User
from stock.permissions import has_named_permission, normalize_permission_name

from .conftest import PASSWORD, client_for

pytestmark = pytest.mark.django_db


def login(client, username, password):
    return client.post(reverse('login_view'), {'username': username, 'password': password}, format='json')


# ---------------------------------------------------------------------
# First-run setup
# ---------------------------------------------------------------------
def test_api_requires_setup_until_first_user_exists():
    client = APIClient()
    r = client.get('/api/inventory')
    assert r.status_code == 409
    assert r.json()['error']['code'] == 'setup_required'

    r = client.get('/api/setup')
    assert r.status_code == 200
    assert r.data == {'setupRequired': True}


def test_setup_creates_admin_with_every_permission():
    client = APIClient()
    r = client.post('/api/setup', {
        'username': 'chief', 'email': 'chief@example.com',
        'password': 'Lumen#Cath2024', 'confirmPassword': 'Lumen#Cath2024',
    }, format='json')
    assert r.status_code == 201
    assert r.data['token'] and r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['role'] == 'ADMIN'
    assert len(r.data['user']['permissions']) == 6

    user = User.objects.get(username='chief')
    assert user.is_superuser and user.check_password('Lumen#Cath2024')
    assert DataLog.objects.filter(table_name='User', action=DataLog.ACTION_CREATE).exists()

    again = APIClient().post('/api/setup', {
        'username': 'other', 'email': 'other@example.com',
        'password': 'Lumen#Cath2024', 'confirmPassword': 'Lumen#Cath2024',
    }, format='json')
    assert again.status_code == 400
    assert again.data['error']['code'] == 'setup_done'


def test_setup_rejects_mismatched_confirmation():
    r = APIClient().post('/api/setup', {
        'username': 'chief', 'email': 'chief@example.com',
        'password': 'Lumen#Cath2024', 'confirmPassword': 'Lumen#Cath2025',
    }, format='json')
    assert r.status_code == 400
    assert not User.objects.exists()


def test_setup_rejects_weak_password():
    r = APIClient().post('/api/setup', {
        'username': 'chief', 'email': 'chief@example.com', 'password': '123', 'confirmPassword': '123',
    }, format='json')
    assert r.status_code == 400
    assert not User.objects.exists()


# ---------------------------------------------------------------------
# Login / tokens
# ---------------------------------------------------------------------
def test_login_returns_jwt_and_legacy_token(admin_user):
    r = login(APIClient(), 'stockadmin', PASSWORD)
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['jwt_access'] and r.data['jwt_refresh'] and r.data['token']
    assert 'Manage Users' in r.data['user']['permissions']


def test_login_failure_is_generic(admin_user):
    r = login(APIClient(), 'stockadmin', 'wrong-password')
    assert r.status_code == 400
    assert r.data['ok'] is False
    r = login(APIClient(), 'nobody', PASSWORD)
    assert r.status_code == 400


def test_both_token_kinds_authenticate(admin_user):
    data = login(APIClient(), 'stockadmin', PASSWORD).data

    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    assert client.get(reverse('me')).data['username'] == 'stockadmin'

    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {data['jwt_access']}")
    assert client.get(reverse('me')).data['username'] == 'stockadmin'


def test_unauthenticated_reads_are_rejected(admin_user):
    r = APIClient().get('/api/inventory')
    assert r.status_code == 401
    assert r.data['ok'] is False


def test_refresh_and_logout(admin_user):
    data = login(APIClient(), 'stockadmin', PASSWORD).data
    r = APIClient().post(reverse('jwt_refresh'), {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['jwt_access']

    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {data['jwt_access']}")
    r = client.post(reverse('jwt_logout'), {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 1

    r = APIClient().post(reverse('jwt_refresh'), {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 401


# ---------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------
@pytest.mark.parametrize('raw', ['EditMaterials', 'edit_materials', 'Edit Materials', '  edit-materials '])
def test_permission_names_normalise(raw):
    assert normalize_permission_name(raw) == 'EDIT MATERIALS'


def test_me_title_cases_stored_permission_names():
    clerk = User.objects.create_user(username='clerk', password=PASSWORD)
    clerk.permissions.add(Permission.objects.create(name='record usage'),
                          Permission.objects.create(name='ManageUsers'))
    r = client_for(clerk).get(reverse('me'))
    assert r.status_code == 200
    assert r.data['permissions'] == ['Manage Users', 'Record Usage']


def test_superuser_passes_every_named_permission():
    boss = User.objects.create_user(username='boss', password=PASSWORD, is_superuser=True)
    assert has_named_permission(boss, 'Manage Users')


def test_viewer_cannot_mutate(viewer, master):
    client = client_for(viewer)
    assert client.get('/api/inventory').status_code == 200
    r = client.post('/api/inventory', {
        'name': 'X', 'brandId': master['brand'].id, 'materialTypeId': master['stent'].id,
    }, format='json')
    assert r.status_code == 403
    assert r.data['error']['code'] == 'permission_denied'


# ---------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------
def test_profile_password_change_requires_current_password(admin_user):
    client = client_for(admin_user)
    r = client.put(reverse('profile'), {'newPassword': 'Fresh#Guidewire9'}, format='json')
    assert r.status_code == 400

    r = client.put(reverse('profile'), {'currentPassword': 'nope', 'newPassword': 'Fresh#Guidewire9'}, format='json')
    assert r.status_code == 400

    r = client.put(reverse('profile'), {
        'currentPassword': PASSWORD, 'newPassword': 'Fresh#Guidewire9', 'email': 'new@example.com',
    }, format='json')
    assert r.status_code == 200
    assert r.data['email'] == 'new@example.com'
    admin_user.refresh_from_db()
    assert admin_user.check_password('Fresh#Guidewire9')
    log = DataLog.objects.filter(table_name='User').latest('id')
    assert 'password' not in log.new_values
    assert log.new_values['passwordChanged'] is True


def test_health_endpoint_is_open():
    r = APIClient().get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json()['ok'] is True
