from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.urls import reverse
from django.utils import timezone

from stock.models import Batch, DataLog, UsageRecord

from .conftest import client_for

pytestmark = pytest.mark.django_db


def usage_payload(batch, **overrides):
    data = {
        'patientName': 'Ravi Kumar',
        'patientId': 'P-1001',
        'procedureName': 'Coronary Angioplasty',
        'procedureDate': timezone.now().isoformat(),
        'physician': 'Dr. Rao',
        'batchId': batch.id,
        'quantity': 3,
    }
    data.update(overrides)
    return data


@pytest.fixture
def second_batch(material, master):
    return Batch.objects.create(
        material=material, quantity=5, initial_quantity=5, purchase_type=Batch.PURCHASE_ADVANCE,
        vendor=master['vendor_b'], expiration_date=timezone.now() + timedelta(days=90),
    )


def test_record_usage_decrements_stock(admin_client, batch):
    r = admin_client.post('/api/usage', usage_payload(batch), format='json')
    assert r.status_code == 201
    assert r.data['batch']['quantity'] == 7
    assert r.data['batch']['material']['name'] == 'DES Stent'
    batch.refresh_from_db()
    assert batch.quantity == 7

    log = DataLog.objects.get(table_name='UsageRecord', action=DataLog.ACTION_CREATE)
    assert log.new_values['materialName'] == 'DES Stent'
    assert log.new_values['vendorName'] == 'Vendor A'


def test_insufficient_stock_changes_nothing(admin_client, batch):
    r = admin_client.post('/api/usage', usage_payload(batch, quantity=11), format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'insufficient_stock'
    batch.refresh_from_db()
    assert batch.quantity == 10
    assert not UsageRecord.objects.exists()
    assert not DataLog.objects.exists()


def test_quantity_must_be_positive(admin_client, batch):
    r = admin_client.post('/api/usage', usage_payload(batch, quantity=0), format='json')
    assert r.status_code == 400


def test_unknown_batch_is_not_found(admin_client, batch):
    r = admin_client.post('/api/usage', usage_payload(batch, batchId=999999), format='json')
    assert r.status_code == 404


def test_viewer_cannot_record_usage(viewer, batch):
    r = client_for(viewer).post('/api/usage', usage_payload(batch), format='json')
    assert r.status_code == 403
    batch.refresh_from_db()
    assert batch.quantity == 10


def test_update_same_batch_applies_delta(admin_client, batch):
    record_id = admin_client.post('/api/usage', usage_payload(batch), format='json').data['id']
    url = reverse('usage_detail', args=[record_id])

    r = admin_client.put(url, usage_payload(batch, quantity=5), format='json')
    assert r.status_code == 200
    batch.refresh_from_db()
    assert batch.quantity == 5

    r = admin_client.put(url, usage_payload(batch, quantity=1), format='json')
    batch.refresh_from_db()
    assert batch.quantity == 9

    r = admin_client.put(url, usage_payload(batch, quantity=11), format='json')
    assert r.status_code == 400
    batch.refresh_from_db()
    assert batch.quantity == 9


def test_update_moving_to_other_batch_restores_old(admin_client, batch, second_batch):
    record_id = admin_client.post('/api/usage', usage_payload(batch), format='json').data['id']
    r = admin_client.put(reverse('usage_detail', args=[record_id]),
                         usage_payload(second_batch, quantity=2), format='json')
    assert r.status_code == 200
    assert r.data['batchId'] == second_batch.id
    batch.refresh_from_db()
    second_batch.refresh_from_db()
    assert batch.quantity == 10
    assert second_batch.quantity == 3

    log = DataLog.objects.get(table_name='UsageRecord', action=DataLog.ACTION_UPDATE)
    assert log.old_values['batch_id'] == batch.id
    assert log.new_values['batch_id'] == second_batch.id


def test_move_to_batch_without_stock_is_refused(admin_client, batch, second_batch):
    record_id = admin_client.post('/api/usage', usage_payload(batch), format='json').data['id']
    r = admin_client.put(reverse('usage_detail', args=[record_id]),
                         usage_payload(second_batch, quantity=6), format='json')
    assert r.status_code == 400
    batch.refresh_from_db()
    assert batch.quantity == 7
    assert UsageRecord.objects.get(pk=record_id).batch_id == batch.id


def test_delete_restores_stock(admin_client, batch):
    record_id = admin_client.post('/api/usage', usage_payload(batch), format='json').data['id']
    r = admin_client.delete(reverse('usage_detail', args=[record_id]))
    assert r.status_code == 204
    batch.refresh_from_db()
    assert batch.quantity == 10
    log = DataLog.objects.get(table_name='UsageRecord', action=DataLog.ACTION_DELETE)
    assert log.old_values['quantity'] == 3


def test_list_filters(admin_client, batch, second_batch):
    now = timezone.now()
    admin_client.post('/api/usage', usage_payload(batch, procedureDate=(now - timedelta(days=3)).isoformat()),
                      format='json')
    admin_client.post('/api/usage', usage_payload(second_batch, patientName='Sunita Devi', patientId='P-2',
                                                  physician='Dr. Shah', quantity=1), format='json')

    assert len(admin_client.get('/api/usage').data) == 2
    assert [u['patientId'] for u in admin_client.get('/api/usage', {'search': 'sunita'}).data] == ['P-2']
    assert [u['physician'] for u in admin_client.get('/api/usage', {'physician': 'Dr. Shah'}).data] == ['Dr. Shah']
    by_batch = admin_client.get('/api/usage', {'advancedBatchId': batch.id}).data
    assert [u['batchId'] for u in by_batch] == [batch.id]

    # dateTo names a whole day
    day = (now - timedelta(days=3)).date().isoformat()
    assert len(admin_client.get('/api/usage', {'dateFrom': day, 'dateTo': day}).data) == 1


def test_yesterday_preset_uses_exact_upper_bound(admin_client, admin_user, batch):
    day = datetime(2024, 3, 10, tzinfo=dt_timezone.utc)
    for name, hour in (('Early', 8), ('Late', 12)):
        UsageRecord.objects.create(
            patient_name=name, patient_id=name, procedure_name='PCI', procedure_date=day + timedelta(hours=hour),
            physician='Dr. Rao', user=admin_user, batch=batch, quantity=1,
        )
    window = {'dateFrom': '2024-03-10T00:00:00Z', 'dateTo': '2024-03-10T10:00:00Z'}

    exact = admin_client.get('/api/usage', dict(window, isYesterday='true')).data
    assert [u['patientName'] for u in exact] == ['Early']
    whole_day = admin_client.get('/api/usage', window).data
    assert [u['patientName'] for u in whole_day] == ['Late', 'Early']


def test_invalid_date_filter_is_rejected(admin_client):
    r = admin_client.get('/api/usage', {'dateFrom': 'not-a-date'})
    assert r.status_code == 400


def test_procedure_groups_rows_of_the_same_day(admin_client, batch, second_batch):
    when = timezone.now()
    admin_client.post('/api/usage', usage_payload(batch, procedureDate=when.isoformat()), format='json')
    admin_client.post('/api/usage', usage_payload(second_batch, procedureDate=when.isoformat(), quantity=1),
                      format='json')
    admin_client.post('/api/usage', usage_payload(batch, procedureDate=(when - timedelta(days=2)).isoformat()),
                      format='json')

    r = admin_client.get(reverse('usage_procedure'), {
        'patientName': 'Ravi Kumar', 'patientId': 'P-1001',
        'procedureName': 'Coronary Angioplasty', 'procedureDate': when.isoformat(),
    })
    assert r.status_code == 200
    assert [u['batchId'] for u in r.data] == [batch.id, second_batch.id]

    r = admin_client.get(reverse('usage_procedure'), {
        'patientName': 'Nobody', 'patientId': 'X',
        'procedureName': 'Coronary Angioplasty', 'procedureDate': when.isoformat(),
    })
    assert r.status_code == 404


def test_usage_filters_lists_active_physicians(admin_client, master):
    master['physician'].is_active = False
    master['physician'].save()
    r = admin_client.get(reverse('usage_filters'))
    assert r.status_code == 200
    assert r.data['physicians'] == []
    assert {t['name'] for t in r.data['materialTypes']} == {'Stent', 'Balloon'}
