import pytest

from conftest import login, WORK_ORDER_PAYLOAD
from workorders.services.report_service import XLSX_MIMETYPE


def create_order(client, **overrides):
    payload = dict(WORK_ORDER_PAYLOAD, **overrides)
    resp = client.post('/work-orders', json=payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()['data']


# ================= 认证 =================
def test_health_needs_no_login(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['data'] == {'status': 'ok'}


@pytest.mark.parametrize('method, url', [
    ('get', '/work-orders'),
    ('get', '/auth/me'),
    ('get', '/dashboard/stats'),
    ('get', '/reports/progress'),
    ('put', '/work-orders/1/approve'),
])
def test_endpoints_require_login(client, method, url):
    resp = getattr(client, method)(url)
    assert resp.status_code == 401
    assert resp.get_json() == {'success': False, 'error': 'Unauthorized'}


def test_login_and_me(client):
    resp = login(client, 'requester')
    assert resp.status_code == 200
    assert resp.get_json()['data']['user']['role'] == 'user'

    me = client.get('/auth/me').get_json()['data']
    assert me['username'] == 'requester'
    assert 'password_hash' not in me


def test_login_requires_both_fields(client):
    resp = client.post('/auth/login', json={'username': 'requester'})
    assert resp.status_code == 400


def test_wrong_password_is_unauthorized(client):
    resp = login(client, 'requester', 'nope')
    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'Invalid credentials'
    assert login(client, 'ghost').status_code == 401


def test_account_locks_after_repeated_failures(client):
    for _ in range(4):
        assert login(client, 'colleague', 'wrong').status_code == 401
    locked = login(client, 'colleague', 'wrong')
    assert locked.status_code == 401
    assert 'locked' in locked.get_json()['error']
    # 锁定期内正确密码也无法登录
    assert login(client, 'colleague').status_code == 401


def test_logout(login_as):
    client = login_as('requester')
    assert client.post('/auth/logout').status_code == 200
    assert client.get('/auth/me').status_code == 401


def test_change_password(login_as):
    client = login_as('requester')
    short = client.post('/auth/change-password',
                        json={'current_password': 'secret123', 'new_password': '123'})
    assert short.status_code == 400
    wrong = client.post('/auth/change-password',
                        json={'current_password': 'bad', 'new_password': 'newsecret'})
    assert wrong.status_code == 400

    resp = client.post('/auth/change-password',
                       json={'current_password': 'secret123', 'new_password': 'newsecret'})
    assert resp.status_code == 200
    assert resp.get_json()['data']['first_login'] is False

    client.post('/auth/logout')
    assert login(client, 'requester', 'newsecret').status_code == 200


# ================= 工单 =================
def test_create_work_order(login_as):
    client = login_as('requester')
    order = create_order(client)
    assert order['status'] == 'pending'
    assert order['work_order_no'] == 'WO-100'
    assert order['work_order_date'] == '2024-01-02'
    assert order['requested_by_id'] is not None


def test_duplicate_work_order_number(login_as):
    client = login_as('requester')
    create_order(client)
    resp = client.post('/work-orders', json=WORK_ORDER_PAYLOAD)
    assert resp.status_code == 400
    assert 'already exists' in resp.get_json()['error']


@pytest.mark.parametrize('field, value', [
    ('work_order_date', '02/01/2024'),
    ('work_order_date', ''),
    ('equipment_number', '  '),
    ('km_hrs', 'lots'),
    ('job_allocation_time', 'yesterday'),
])
def test_create_rejects_bad_fields(login_as, field, value):
    client = login_as('requester')
    resp = client.post('/work-orders', json=dict(WORK_ORDER_PAYLOAD, **{field: value}))
    assert resp.status_code == 400
    assert resp.get_json()['success'] is False


def test_unknown_work_order_is_404(login_as):
    client = login_as('admin')
    assert client.get('/work-orders/999').status_code == 404
    assert client.put('/work-orders/999/approve').status_code == 404


def test_list_filters_and_pagination(login_as):
    client = login_as('requester')
    create_order(client, work_order_no='WO-1', work_order_date='2024-01-01', equipment_number='TUG-1')
    create_order(client, work_order_no='WO-2', work_order_date='2024-01-05', equipment_number='LIFT-9')
    create_order(client, work_order_no='WO-3', work_order_date='2024-01-09', equipment_number='TUG-3')

    page = client.get('/work-orders?limit=2&page=2&sortBy=work_order_date&sortOrder=asc').get_json()['data']
    assert [o['work_order_no'] for o in page['work_orders']] == ['WO-3']
    assert page['pagination'] == {
        'current_page': 2, 'total_pages': 2, 'total_items': 3, 'items_per_page': 2}

    found = client.get('/work-orders?search=tug').get_json()['data']['work_orders']
    assert {o['work_order_no'] for o in found} == {'WO-1', 'WO-3'}

    ranged = client.get('/work-orders?startDate=2024-01-02&endDate=2024-01-08').get_json()['data']
    assert [o['work_order_no'] for o in ranged['work_orders']] == ['WO-2']

    pending = client.get('/work-orders?status=pending,ongoing').get_json()['data']
    assert pending['pagination']['total_items'] == 3
    assert client.get('/work-orders?status=ongoing').get_json()['data']['work_orders'] == []


@pytest.mark.parametrize('query', [
    'sortBy=password_hash',
    'sortOrder=sideways',
    'status=archived',
    'limit=0',
    'limit=1000',
    'page=abc',
])
def test_list_rejects_bad_parameters(login_as, query):
    client = login_as('requester')
    assert client.get(f'/work-orders?{query}').status_code == 400


def test_update_work_order(login_as):
    client = login_as('requester')
    order = create_order(client)
    resp = client.put(f'/work-orders/{order["id"]}', json={'equipment_number': 'TUG-8', 'status': 'completed'})
    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert data['equipment_number'] == 'TUG-8'
    assert data['status'] == 'pending'

    client = login_as('colleague')
    assert client.put(f'/work-orders/{order["id"]}', json={'km_hrs': 5}).status_code == 403

    client = login_as('admin')
    client.put(f'/work-orders/{order["id"]}/approve')
    assert client.put(f'/work-orders/{order["id"]}', json={'km_hrs': 5}).status_code == 409


def test_user_cannot_approve(login_as):
    client = login_as('requester')
    order = create_order(client)
    resp = client.put(f'/work-orders/{order["id"]}/approve')
    assert resp.status_code == 403
    assert client.get(f'/work-orders/{order["id"]}').get_json()['data']['status'] == 'pending'


def test_reject_and_resubmit(login_as):
    client = login_as('requester')
    order = create_order(client)
    url = f'/work-orders/{order["id"]}'

    client = login_as('admin')
    assert client.put(f'{url}/reject', json={}).status_code == 400
    rejected = client.put(f'{url}/reject', json={'reason': 'Wrong tug'}).get_json()['data']
    assert rejected['status'] == 'rejected'
    assert client.put(f'{url}/approve').status_code == 409
    assert client.put(f'{url}/resubmit').status_code == 403

    client = login_as('requester')
    detail = client.get(url).get_json()['data']
    assert detail['allowed_events'] == ['resubmit']
    resubmitted = client.put(f'{url}/resubmit').get_json()['data']
    assert resubmitted['status'] == 'pending'
    assert resubmitted['rejection_reason'] is None


def test_full_workflow(login_as):
    client = login_as('requester')
    order = create_order(client)
    url = f'/work-orders/{order["id"]}'

    client = login_as('admin')
    assert 'approve' in client.get(url).get_json()['data']['allowed_events']
    assert client.put(f'{url}/approve').get_json()['data']['status'] == 'ongoing'

    finding = client.post('/findings', json={'work_order_id': order['id'],
                                             'description': 'Tyre worn'}).get_json()['data']
    action = client.post('/actions', json={
        'finding_id': finding['id'], 'description': 'Replaced tyre', 'action_date': '2024-01-03',
        'start_time': '09:00', 'end_time': '10:00', 'is_completed': True}).get_json()['data']
    assert action['end_time'] == '10:00'

    client = login_as('requester')
    early = client.put(f'{url}/complete', json={'work_completed_date': '2024-01-01'})
    assert early.status_code == 400
    requested = client.put(f'{url}/complete', json={'work_completed_date': '2024-01-05'})
    assert requested.get_json()['data']['status'] == 'completion_requested'

    client = login_as('admin')
    assert client.put(f'{url}/approve-completion', json={'approved': True}).status_code == 403

    client = login_as('boss')
    assert client.put(f'{url}/approve-completion', json={}).status_code == 400
    assert client.put(f'{url}/approve-completion', json={'approved': 'yes'}).status_code == 400
    done = client.put(f'{url}/approve-completion', json={'approved': True}).get_json()['data']
    assert done['status'] == 'completed'
    assert done['work_completed_date'] == '2024-01-05'

    detail = client.get(url).get_json()['data']
    assert detail['allowed_events'] == []
    assert detail['findings'][0]['actions'][0]['description'] == 'Replaced tyre'

    client = login_as('requester')
    body = client.get('/notifications').get_json()['data']
    assert body['unread_count'] == 2
    assert [n['title'] for n in body['notifications']] == [
        'Work Order Completion Approved', 'Work Order Approved']


def test_reject_completion_via_api(login_as):
    client = login_as('requester')
    order = create_order(client)
    url = f'/work-orders/{order["id"]}'
    client.put(f'{url}/complete', json={'work_completed_date': '2024-01-04'})

    client = login_as('boss')
    missing = client.put(f'{url}/approve-completion', json={'approved': False})
    assert missing.status_code == 400
    resp = client.put(f'{url}/approve-completion',
                      json={'approved': False, 'rejection_reason': 'Photos missing'})
    data = resp.get_json()['data']
    assert data['status'] == 'ongoing'
    assert data['completion_rejection_reason'] == 'Photos missing'


def test_incomplete_action_payload_is_returned(login_as):
    client = login_as('requester')
    order = create_order(client)
    client = login_as('admin')
    finding = client.post('/findings', json={'work_order_id': order['id'],
                                             'description': 'Tyre worn'}).get_json()['data']
    client.post('/actions', json={'finding_id': finding['id'], 'description': 'Inspect',
                                  'action_date': '2024-01-03', 'start_time': '09:00'})

    resp = client.put(f'/work-orders/{order["id"]}/complete', json={'work_completed_date': '2024-01-05'})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['success'] is False
    assert body['data']['incomplete_actions']


# ================= 通知 =================
def test_notifications_mark_read(login_as):
    client = login_as('requester')
    order = create_order(client)
    client = login_as('admin')
    client.put(f'/work-orders/{order["id"]}/approve')

    client = login_as('requester')
    note = client.get('/notifications').get_json()['data']['notifications'][0]
    assert note['type'] == 'approval'
    assert note['related_entity_id'] == order['id']

    read = client.put(f'/notifications/{note["id"]}/read').get_json()['data']
    assert read['is_read'] is True
    assert client.get('/notifications').get_json()['data']['unread_count'] == 0

    client = login_as('colleague')
    assert client.put(f'/notifications/{note["id"]}/read').status_code == 404


def test_admin_creates_notification(login_as):
    client = login_as('admin')
    me = client.get('/auth/me').get_json()['data']
    assert client.post('/notifications', json={'user_id': me['id'], 'title': 'x'}).status_code == 400
    assert client.post('/notifications', json={
        'user_id': me['id'], 'title': 'Hi', 'message': 'Hello', 'type': 'loud'}).status_code == 400
    created = client.post('/notifications', json={
        'user_id': me['id'], 'title': 'Hi', 'message': 'Hello', 'type': 'info'})
    assert created.status_code == 201

    assert client.put('/notifications/read-all').get_json()['data'] == {'updated': 1}
    assert client.post('/notifications/cleanup').get_json()['data'] == {'deleted_count': 0}

    client = login_as('requester')
    assert client.post('/notifications', json={}).status_code == 403


# ================= 仪表盘 / 报表 =================
def test_dashboard_stats(login_as):
    client = login_as('requester')
    first = create_order(client, work_order_no='WO-1')
    create_order(client, work_order_no='WO-2')
    client = login_as('admin')
    client.put(f'/work-orders/{first["id"]}/approve')

    stats = client.get('/dashboard/stats').get_json()['data']
    assert stats['pending'] == 1
    assert stats['ongoing'] == 1
    assert stats['completed'] == 0
    assert stats['total'] == 2


def test_progress_report_download(login_as):
    client = login_as('requester')
    create_order(client)
    assert client.get('/reports/progress?fromDate=2024-01-01&toDate=2024-01-31').status_code == 403

    client = login_as('admin')
    resp = client.get('/reports/progress?fromDate=2024-01-01&toDate=2024-01-31')
    assert resp.status_code == 200
    assert resp.mimetype == XLSX_MIMETYPE
    assert 'ProgressReport_2024-01-01_to_2024-01-31.xlsx' in resp.headers['Content-Disposition']

    assert client.get('/reports/progress?fromDate=2024-01-01').status_code == 400
    assert client.get('/reports/progress?fromDate=2024-02-01&toDate=2024-01-01').status_code == 400


def test_technician_performance_endpoint(login_as):
    client = login_as('admin')
    resp = client.get('/reports/technician-performance?date_from=2024-01-01')
    assert resp.status_code == 200
    assert resp.get_json()['data'] == []

    excel = client.get('/reports/technician-performance?export=excel')
    assert excel.mimetype == XLSX_MIMETYPE
    assert client.get('/reports/technician-performance?date_to=bad').status_code == 400


# ================= 用户管理 =================
def test_user_management(login_as):
    client = login_as('admin')
    assert client.get('/admin/users').status_code == 403

    client = login_as('boss')
    listed = client.get('/admin/users').get_json()['data']
    assert [u['username'] for u in listed] == ['admin', 'boss', 'colleague', 'requester']

    payload = {'username': 'newbie', 'first_name': 'New', 'last_name': 'Bie', 'password': 'secret123'}
    created = client.post('/admin/users', json=payload)
    assert created.status_code == 201
    assert created.get_json()['data']['role'] == 'user'
    assert client.post('/admin/users', json=payload).status_code == 400
    assert client.post('/admin/users', json=dict(payload, username='x', role='king')).status_code == 400

    user_id = created.get_json()['data']['id']
    assert client.put(f'/admin/users/{user_id}/role', json={'role': 'king'}).status_code == 400
    assert client.put('/admin/users/999/role', json={'role': 'admin'}).status_code == 404
    promoted = client.put(f'/admin/users/{user_id}/role', json={'role': 'admin'})
    assert promoted.get_json()['data']['role'] == 'admin'


def test_unknown_route_is_json_404(client):
    resp = client.get('/no-such-page')
    assert resp.status_code == 404
    assert resp.get_json()['success'] is False


def test_work_order_sheet_download(login_as):
    client = login_as('requester')
    order = create_order(client)
    resp = client.get(f'/reports/work-order-sheet?workOrderId={order["id"]}')
    assert resp.status_code == 200
    assert resp.mimetype == XLSX_MIMETYPE
    assert 'WorkOrderReport_WO-100_' in resp.headers['Content-Disposition']

    assert client.get('/reports/work-order-sheet?workOrderId=999').status_code == 404
    assert client.get('/reports/work-order-sheet').status_code == 400


def test_job_allocation_download(login_as):
    client = login_as('requester')
    order = create_order(client)
    assert client.get('/reports/job-allocation?fromDate=2024-01-01&toDate=2024-01-31').status_code == 403

    client = login_as('admin')
    resp = client.get('/reports/job-allocation?fromDate=2024-01-01&toDate=2024-01-31')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'No actions found for the selected date range'

    finding = client.post('/findings', json={'work_order_id': order['id'],
                                             'description': 'Flat'}).get_json()['data']
    client.post('/actions', json={'finding_id': finding['id'], 'description': 'Changed tyre',
                                  'action_date': '2024-01-05', 'start_time': '09:00'})
    resp = client.get('/reports/job-allocation?fromDate=2024-01-01&toDate=2024-01-31')
    assert resp.status_code == 200
    assert 'JobAllocation_2024-01-01_to_2024-01-31.xlsx' in resp.headers['Content-Disposition']


def test_summary_endpoint(login_as):
    client = login_as('requester')
    create_order(client)
    create_order(client, work_order_no='WO-101', equipment_number='LOADER-2')

    rows = client.get('/reports/summary?search=loader').get_json()['data']
    assert [r['work_order_no'] for r in rows] == ['WO-101']
    assert rows[0]['findings'] == 0

    excel = client.get('/reports/summary?export=excel')
    assert excel.mimetype == XLSX_MIMETYPE
    assert client.get('/reports/summary?date_from=bad').status_code == 400
