import json

import pytest
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.urls import reverse

from stock.models import Backup, Batch, DataLog, Material, User
from stock.services import backups

pytestmark = pytest.mark.django_db


def test_backup_name_stays_under_prefix():
    assert backups.backup_name('medstock-backup-1.json') == 'backups/medstock-backup-1.json'
    assert backups.backup_name('backups/medstock-backup-1.json') == 'backups/medstock-backup-1.json'
    assert backups.backup_name('documents/../x.json') == 'backups/x.json'


def test_create_list_download_and_delete(admin_client, media_root, batch):
    r = admin_client.post(reverse('backups'), {'description': 'before audit'}, format='json')
    assert r.status_code == 201
    name = r.data['filename']
    assert name.startswith('backups/medstock-backup-')
    assert default_storage.exists(name)

    listed = admin_client.get(reverse('backups')).data
    assert [b['description'] for b in listed] == ['before audit']
    stored = admin_client.get(reverse('backup_list_storage')).data
    assert [o['name'] for o in stored] == [name]

    download = admin_client.get(reverse('backup_download', args=[name]))
    assert download.status_code == 200
    fixture = json.loads(b''.join(download.streaming_content))
    models = {o['model'] for o in fixture}
    assert 'stock.batch' in models
    assert 'stock.backup' not in models

    r = admin_client.delete(reverse('backup_delete', args=[r.data['id']]))
    assert r.status_code == 204
    assert not Backup.objects.exists()
    assert not default_storage.exists(name)


def test_restore_replaces_domain_data_and_keeps_users(admin_client, admin_user, media_root, batch):
    name = admin_client.post(reverse('backups'), {}, format='json').data['filename']
    Material.objects.all().delete()
    assert not Batch.objects.exists()

    r = admin_client.post(reverse('backup_restore'), {'filename': name}, format='json')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert Batch.objects.get(pk=batch.pk).quantity == 10
    assert User.objects.filter(pk=admin_user.pk).exists()
    assert DataLog.objects.filter(table_name='Backup', record_id=name).exists()


def test_restore_from_upload(admin_client, media_root, batch):
    content = backups.dump_stock_data()
    Batch.objects.filter(pk=batch.pk).update(quantity=1)
    upload = SimpleUploadedFile('snapshot.json', content, content_type='application/json')
    r = admin_client.post(reverse('backup_restore'), {'file': upload}, format='multipart')
    assert r.status_code == 200
    assert Batch.objects.get(pk=batch.pk).quantity == 10


def test_restore_rejects_garbage(admin_client, media_root, batch):
    upload = SimpleUploadedFile('snapshot.json', b'{"not": "a fixture"}', content_type='application/json')
    r = admin_client.post(reverse('backup_restore'), {'file': upload}, format='multipart')
    assert r.status_code == 400
    assert Batch.objects.filter(pk=batch.pk).exists()

    assert admin_client.post(reverse('backup_restore'), {}, format='json').status_code == 400


def test_restore_refuses_username_taken_by_a_new_account(admin_client, media_root, batch):
    User.objects.create_user(username='nurse', password='Sheath#Balloon42')
    name = admin_client.post(reverse('backups'), {}, format='json').data['filename']
    User.objects.get(username='nurse').delete()
    User.objects.create_user(username='nurse', password='Sheath#Balloon42')
    Batch.objects.filter(pk=batch.pk).update(quantity=1)

    r = admin_client.post(reverse('backup_restore'), {'filename': name}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid'
    assert 'nurse' in str(r.data['error']['message'])
    assert Batch.objects.get(pk=batch.pk).quantity == 1


def test_restore_with_broken_references_is_rejected(admin_client, media_root, batch):
    fixture = json.loads(backups.dump_stock_data())
    for obj in fixture:
        if obj['model'] == 'stock.batch':
            obj['fields']['material'] = 4242
    upload = SimpleUploadedFile('snapshot.json', json.dumps(fixture).encode(), content_type='application/json')

    r = admin_client.post(reverse('backup_restore'), {'file': upload}, format='multipart')
    assert r.status_code == 400
    assert Batch.objects.get(pk=batch.pk).material_id == batch.material_id


def test_unknown_backup_is_not_found(admin_client, media_root):
    assert admin_client.delete(reverse('backup_delete', args=['nope.json'])).status_code == 404
    assert admin_client.get(reverse('backup_download', args=['nope.json'])).status_code == 404


def test_backups_need_manage_settings(viewer_client, media_root):
    assert viewer_client.get(reverse('backups')).status_code == 403


# ---------------------------------------------------------------------
# Management commands
# ---------------------------------------------------------------------
def test_ensure_permissions_is_idempotent(db):
    call_command('ensure_permissions')
    call_command('ensure_permissions')
    from stock.models import Permission
    assert Permission.objects.count() == 6


def test_seed_demo_builds_consistent_stock(db):
    call_command('seed_demo', password='Demo#Stock2024')
    admin = User.objects.get(username='admin')
    assert admin.check_password('Demo#Stock2024')
    assert admin.permissions.count() == 6
    assert Material.objects.count() == 4
    stent = Batch.objects.get(lot_number='L123')
    assert stent.quantity == stent.initial_quantity - stent.usage_records.count()


def test_refresh_caches_warms_dashboard(db):
    from django.core.cache import cache
    from stock.services.audit import DASHBOARD_CACHE_KEY
    call_command('refresh_caches')
    assert cache.get(DASHBOARD_CACHE_KEY) is not None
