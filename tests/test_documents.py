import itertools
import os
from io import BytesIO
from types import SimpleNamespace

import pytest

from conftest import WORK_ORDER_PAYLOAD, make_order
from workorders.extensions import db
from workorders.models import WorkOrder
from workorders.services import document_service
from workorders.services.document_service import DocumentService


@pytest.fixture
def order_id(login_as):
    client = login_as('requester')
    resp = client.post('/work-orders', json=WORK_ORDER_PAYLOAD)
    return resp.get_json()['data']['id']


@pytest.fixture
def distinct_timestamps(monkeypatch):
    # 文件名按毫秒时间戳生成，测试里连续上传需要不同的时间
    counter = itertools.count(1_700_000_000)
    monkeypatch.setattr(document_service, 'time', SimpleNamespace(time=lambda: float(next(counter))))


def upload(client, work_order_id, content=b'%PDF-1.4 fake', filename='ref.pdf',
           content_type='application/pdf'):
    data = {'reference_document': (BytesIO(content), filename, content_type)}
    return client.put(f'/work-orders/{work_order_id}/reference-document',
                      data=data, content_type='multipart/form-data')


def stored_path(app, relative_path):
    return os.path.join(app.config['UPLOAD_FOLDER'], *relative_path.split('/'))


def test_upload_reference_document(app, login_as, order_id):
    client = login_as('admin')
    resp = upload(client, order_id, content=b'\x89PNG fake', filename='photo.png',
                  content_type='image/png')
    assert resp.status_code == 200
    path = resp.get_json()['data']['reference_document']
    assert path.startswith(f'references/work-order-{order_id}-ref-')
    assert path.endswith('.png')

    with open(stored_path(app, path), 'rb') as f:
        assert f.read() == b'\x89PNG fake'

    served = client.get(f'/uploads/{path}')
    assert served.status_code == 200
    assert served.data == b'\x89PNG fake'


def test_only_admins_upload(login_as, order_id):
    client = login_as('requester')
    assert upload(client, order_id).status_code == 403


def test_rejects_other_file_types(login_as, order_id):
    client = login_as('admin')
    resp = upload(client, order_id, content=b'hello', filename='notes.txt', content_type='text/plain')
    assert resp.status_code == 400
    assert 'Invalid file type' in resp.get_json()['error']


def test_rejects_oversized_files(app, login_as, order_id):
    app.config['MAX_REFERENCE_SIZE'] = 16
    client = login_as('admin')
    resp = upload(client, order_id, content=b'x' * 17)
    assert resp.status_code == 400
    assert 'too large' in resp.get_json()['error']
    assert upload(client, order_id, content=b'x' * 16).status_code == 200


def test_missing_file_field(login_as, order_id):
    client = login_as('admin')
    resp = client.put(f'/work-orders/{order_id}/reference-document', data={},
                      content_type='multipart/form-data')
    assert resp.status_code == 400


def test_upload_to_unknown_order(login_as):
    client = login_as('admin')
    assert upload(client, 999).status_code == 404


def test_replacing_removes_previous_file(app, login_as, order_id, distinct_timestamps):
    client = login_as('admin')
    first = upload(client, order_id).get_json()['data']['reference_document']
    second = upload(client, order_id, content=b'%PDF-1.4 newer').get_json()['data']['reference_document']

    assert first != second
    assert not os.path.exists(stored_path(app, first))
    assert os.path.exists(stored_path(app, second))


def test_replace_survives_missing_previous_file(app, login_as, order_id, distinct_timestamps):
    client = login_as('admin')
    first = upload(client, order_id).get_json()['data']['reference_document']
    os.remove(stored_path(app, first))

    resp = upload(client, order_id)
    assert resp.status_code == 200
    assert resp.get_json()['data']['reference_document'] != first


def test_delete_reference_document(app, login_as, order_id):
    client = login_as('admin')
    url = f'/work-orders/{order_id}/reference-document'
    assert client.delete(url).status_code == 400

    path = upload(client, order_id).get_json()['data']['reference_document']
    resp = client.delete(url)
    assert resp.status_code == 200
    assert resp.get_json()['data']['reference_document'] is None
    assert not os.path.exists(stored_path(app, path))


def test_uploads_do_not_escape_folder(login_as):
    client = login_as('admin')
    assert client.get('/uploads/../config.py').status_code == 404


def test_failed_delete_keeps_file_and_reference(ctx, users, monkeypatch):
    order = make_order(users['requester'])
    directory = os.path.join(ctx.config['UPLOAD_FOLDER'], 'references')
    os.makedirs(directory)
    relative_path = 'references/work-order-1-ref-1.pdf'
    with open(stored_path(ctx, relative_path), 'wb') as f:
        f.write(b'%PDF-1.4 fake')
    order.reference_document = relative_path
    db.session.commit()

    def broken_commit():
        raise RuntimeError('database unavailable')

    monkeypatch.setattr(db.session, 'commit', broken_commit)
    with pytest.raises(RuntimeError):
        DocumentService.delete(order.id)
    monkeypatch.undo()

    # 提交失败: 记录仍指向文件，文件也还在
    assert db.session.get(WorkOrder, order.id).reference_document == relative_path
    assert os.path.exists(stored_path(ctx, relative_path))
