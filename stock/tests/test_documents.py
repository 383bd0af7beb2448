import os

import pytest
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from django.utils import timezone

from stock.models import BatchDocument, DataLog, Document
from stock.services import audit
from stock.services.documents import stored_name, update_document

pytestmark = pytest.mark.django_db


def pdf(name='invoice.pdf', body=b'%PDF-1.4 test'):
    return SimpleUploadedFile(name, body, content_type='application/pdf')


def upload(client, number='INV-100', **extra):
    data = {'type': 'Invoice', 'documentNumber': number, 'date': '2024-05-01', 'vendor': 'Vendor A', 'file': pdf()}
    data.update(extra)
    return client.post('/api/documents', data, format='multipart')


def test_stored_name_is_sanitised():
    name = stored_name('INV/2024 #7', 'Scan.PDF')
    assert name.startswith('INV_2024__7_')
    assert name.endswith('.pdf')


def test_upload_stores_file_and_audits(admin_client, media_root):
    r = upload(admin_client)
    assert r.status_code == 201
    assert r.data['documentNumber'] == 'INV-100'
    assert r.data['fileUrl'].startswith('documents/INV-100_')
    assert default_storage.exists(r.data['fileUrl'])
    assert DataLog.objects.filter(table_name='Document', action=DataLog.ACTION_CREATE).count() == 1

    served = admin_client.get(reverse('stored_file', args=[r.data['fileUrl']]))
    assert served.status_code == 200
    assert served['Content-Type'] == 'application/pdf'
    assert b''.join(served.streaming_content) == b'%PDF-1.4 test'


def test_duplicate_number_is_rejected(admin_client, media_root):
    assert upload(admin_client).status_code == 201
    r = upload(admin_client)
    assert r.status_code == 400
    assert Document.objects.count() == 1


def test_disallowed_extension_is_rejected(admin_client, media_root):
    r = upload(admin_client, file=SimpleUploadedFile('run.exe', b'MZ', content_type='application/octet-stream'))
    assert r.status_code == 400
    assert not Document.objects.exists()


def test_oversized_file_is_rejected(admin_client, media_root, settings):
    settings.DOCUMENT_MAX_MB = 0
    r = upload(admin_client)
    assert r.status_code == 400


def test_replacing_file_removes_old_object(admin_client, media_root, django_capture_on_commit_callbacks):
    created = upload(admin_client).data
    old_name = created['fileUrl']
    with django_capture_on_commit_callbacks(execute=True):
        r = admin_client.put(reverse('document_detail', args=[created['id']]),
                             {'file': pdf('scan.png', b'png-bytes')}, format='multipart')
    assert r.status_code == 200
    assert r.data['fileUrl'].endswith('.png')
    assert default_storage.exists(r.data['fileUrl'])
    assert not default_storage.exists(old_name)


def test_failed_update_discards_new_file(admin_client, media_root, monkeypatch):
    created = upload(admin_client).data
    doc = Document.objects.get(pk=created['id'])

    def fail(*args, **kwargs):
        raise RuntimeError('audit unavailable')

    monkeypatch.setattr(audit, 'log_update', fail)
    with pytest.raises(RuntimeError):
        update_document(doc, {'file': pdf('scan.png', b'png-bytes')}, None)

    _, stored = default_storage.listdir('documents')
    assert stored == [os.path.basename(created['fileUrl'])]
    assert Document.objects.get(pk=created['id']).file.name == created['fileUrl']


def test_delete_linked_document_is_refused(admin_client, batch, media_root):
    doc = Document.objects.create(type='Invoice', document_number='INV-1', date=timezone.now(), vendor='Vendor A')
    BatchDocument.objects.create(batch=batch, document=doc)
    r = admin_client.delete(reverse('document_detail', args=[doc.id]))
    assert r.status_code == 400
    assert r.data['error']['code'] == 'in_use'

    detail = admin_client.get(reverse('document_detail', args=[doc.id])).data
    assert [b['id'] for b in detail['batches']] == [batch.id]


def test_delete_removes_file(admin_client, media_root, django_capture_on_commit_callbacks):
    created = upload(admin_client).data
    with django_capture_on_commit_callbacks(execute=True):
        r = admin_client.delete(reverse('document_detail', args=[created['id']]))
    assert r.status_code == 204
    assert not default_storage.exists(created['fileUrl'])


def test_list_filters_and_count_only(admin_client, media_root):
    upload(admin_client, 'INV-1')
    upload(admin_client, 'DC-1', type='Delivery Challan', vendor='Vendor B', date='2024-06-10')
    assert len(admin_client.get('/api/documents').data) == 2
    assert admin_client.get('/api/documents', {'countOnly': 'true'}).data == {'count': 2}
    assert [d['documentNumber'] for d in admin_client.get('/api/documents', {'search': 'dc'}).data] == ['DC-1']
    assert len(admin_client.get('/api/documents', {'vendor': 'vendor b'}).data) == 1
    assert len(admin_client.get('/api/documents', {'type': 'invoice'}).data) == 1
    assert len(admin_client.get('/api/documents', {'dateFrom': '2024-06-01'}).data) == 1


def test_files_route_refuses_traversal_and_backups(admin_client, media_root):
    os.makedirs(os.path.join(media_root, 'backups'), exist_ok=True)
    with open(os.path.join(media_root, 'backups', 'x.json'), 'w') as fh:
        fh.write('[]')
    assert admin_client.get('/api/files/backups/x.json').status_code == 403
    assert admin_client.get('/api/files/missing.pdf').status_code == 404
