from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from stock.models import Batch, BatchDocument, DataLog, Document, Material, UsageRecord

pytestmark = pytest.mark.django_db


def batch_payload(master, **overrides):
    data = {
        'quantity': 8,
        'expirationDate': (timezone.now() + timedelta(days=200)).date().isoformat(),
        'vendorId': master['vendor'].id,
        'purchaseType': 'Purchased',
        'lotNumber': 'LOT-9',
        'storageLocation': 'Shelf 3',
    }
    data.update(overrides)
    return data


def test_create_material_is_audited(admin_client, master):
    r = admin_client.post('/api/inventory', {
        'name': 'Balloon <b>NC</b>', 'size': '2.5mm',
        'brandId': master['brand'].id, 'materialTypeId': master['balloon'].id,
    }, format='json')
    assert r.status_code == 201
    assert r.data['name'] == 'Balloon NC'
    assert r.data['totalQuantity'] == 0
    assert r.data['materialType']['name'] == 'Balloon'

    log = DataLog.objects.get(table_name='Material', action=DataLog.ACTION_CREATE)
    assert log.record_id == str(r.data['id'])
    assert log.new_values['name'] == 'Balloon NC'


def test_material_requires_known_brand(admin_client, master):
    r = admin_client.post('/api/inventory', {
        'name': 'Orphan', 'brandId': 9999, 'materialTypeId': master['stent'].id,
    }, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid'


def test_list_filters_batches_and_keeps_unfiltered_total(admin_client, material, batch, master):
    Batch.objects.create(
        material=material, quantity=2, initial_quantity=2, purchase_type=Batch.PURCHASE_ADVANCE,
        vendor=master['vendor_b'], expiration_date=timezone.now() + timedelta(days=10),
    )
    Material.objects.create(name='Guidewire', brand=master['brand'], material_type=master['balloon'])

    r = admin_client.get('/api/inventory', {'purchaseType': 'Advance'})
    assert r.status_code == 200
    assert r.data['totalCount'] == 2
    assert [m['name'] for m in r.data['materials']] == ['DES Stent']
    assert [b['purchaseType'] for b in r.data['materials'][0]['batches']] == ['Advance']

    r = admin_client.get('/api/inventory', {'vendor': master['vendor'].id})
    assert [b['id'] for b in r.data['materials'][0]['batches']] == [batch.id]


def test_stock_status_filter(admin_client, material, batch, master):
    empty = Material.objects.create(name='Empty', brand=master['brand'], material_type=master['stent'])
    Batch.objects.create(
        material=empty, quantity=0, initial_quantity=4, purchase_type=Batch.PURCHASE_PURCHASED,
        vendor=master['vendor'], expiration_date=timezone.now() + timedelta(days=100),
    )
    r = admin_client.get('/api/inventory', {'stockStatus': 'Out of Stock'})
    assert [m['name'] for m in r.data['materials']] == ['Empty']

    r = admin_client.get('/api/inventory', {'stockStatus': 'In Stock'})
    assert [m['name'] for m in r.data['materials']] == ['DES Stent']


def test_search_matches_material_brand_and_vendor(admin_client, material, batch):
    assert len(admin_client.get('/api/inventory', {'search': 'des'}).data['materials']) == 1
    assert len(admin_client.get('/api/inventory', {'search': 'medtron'}).data['materials']) == 1
    assert len(admin_client.get('/api/inventory', {'search': 'Vendor A'}).data['materials']) == 1
    assert admin_client.get('/api/inventory', {'search': 'zzz'}).data['materials'] == []


def test_update_material_records_before_and_after(admin_client, material, master):
    r = admin_client.put(reverse('material_detail', args=[material.id]),
                         {'name': 'DES Stent XL', 'materialTypeId': master['balloon'].id}, format='json')
    assert r.status_code == 200
    assert r.data['name'] == 'DES Stent XL'
    log = DataLog.objects.get(table_name='Material', action=DataLog.ACTION_UPDATE)
    assert log.old_values['name'] == 'DES Stent'
    assert log.new_values['material_type_id'] == master['balloon'].id


def test_delete_material_with_usage_is_refused(admin_client, admin_user, material, batch):
    UsageRecord.objects.create(
        patient_name='A', patient_id='P1', procedure_name='PCI', procedure_date=timezone.now(),
        physician='Dr. Rao', user=admin_user, batch=batch, quantity=1,
    )
    r = admin_client.delete(reverse('material_detail', args=[material.id]))
    assert r.status_code == 400
    assert r.data['error']['code'] == 'in_use'
    assert Material.objects.filter(pk=material.pk).exists()


def test_delete_material_removes_batches(admin_client, material, batch):
    r = admin_client.delete(reverse('material_detail', args=[material.id]))
    assert r.status_code == 204
    assert not Batch.objects.filter(pk=batch.pk).exists()
    log = DataLog.objects.get(table_name='Material', action=DataLog.ACTION_DELETE)
    assert log.old_values['batches'][0]['id'] == batch.id


# ---------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------
def test_create_batch_defaults_initial_quantity_and_links_documents(admin_client, admin_user, material, master):
    doc = Document.objects.create(type='Invoice', document_number='INV-7', date=timezone.now(), vendor='Vendor A')
    r = admin_client.post(reverse('batches', args=[material.id]),
                          batch_payload(master, documentIds=[doc.id]), format='json')
    assert r.status_code == 201
    assert r.data['initialQuantity'] == 8
    assert r.data['addedBy']['username'] == admin_user.username
    assert [d['documentNumber'] for d in r.data['documents']] == ['INV-7']


def test_create_batch_rejects_unknown_document(admin_client, material, master):
    r = admin_client.post(reverse('batches', args=[material.id]),
                          batch_payload(master, documentIds=[424242]), format='json')
    assert r.status_code == 400
    assert not Batch.objects.exists()


def test_update_batch_keeps_links_unless_sent(admin_client, material, batch):
    doc = Document.objects.create(type='Invoice', document_number='INV-8', date=timezone.now(), vendor='Vendor A')
    BatchDocument.objects.create(batch=batch, document=doc)
    url = reverse('batch_detail', args=[material.id, batch.id])

    r = admin_client.put(url, {'quantity': 4}, format='json')
    assert r.status_code == 200
    assert r.data['quantity'] == 4
    assert len(r.data['documents']) == 1

    r = admin_client.put(url, {'documentIds': []}, format='json')
    assert r.data['documents'] == []


def test_batch_must_belong_to_material(admin_client, batch, master):
    other = Material.objects.create(name='Other', brand=master['brand'], material_type=master['stent'])
    assert admin_client.get(reverse('batch_detail', args=[other.id, batch.id])).status_code == 404


def test_delete_batch_with_usage_is_refused(admin_client, admin_user, material, batch):
    UsageRecord.objects.create(
        patient_name='A', patient_id='P1', procedure_name='PCI', procedure_date=timezone.now(),
        physician='Dr. Rao', user=admin_user, batch=batch, quantity=1,
    )
    r = admin_client.delete(reverse('batch_detail', args=[material.id, batch.id]))
    assert r.status_code == 400
    assert Batch.objects.filter(pk=batch.pk).exists()


def test_inventory_filters(viewer_client, master):
    r = viewer_client.get(reverse('inventory_filters'))
    assert r.status_code == 200
    assert {t['name'] for t in r.data['materialTypes']} == {'Stent', 'Balloon'}
    assert 'Advance' in r.data['purchaseTypes']
