from datetime import date, datetime, time

import pytest

from workorders import create_app
from workorders.extensions import db
from workorders.models import (
    User, WorkOrder, Finding, Action, ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN, STATUS_PENDING
)

PASSWORD = 'secret123'

USERS = [
    ('requester', ROLE_USER),
    ('colleague', ROLE_USER),
    ('admin', ROLE_ADMIN),
    ('boss', ROLE_SUPERADMIN),
]


@pytest.fixture
def app(tmp_path):
    app = create_app('config.TestConfig')
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')
    with app.app_context():
        db.create_all()
        for username, role in USERS:
            user = User(username=username, first_name=username.title(), last_name='Test', role=role)
            user.set_password(PASSWORD)
            db.session.add(user)
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """ 服务层测试直接在应用上下文中调用 """
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(ctx):
    return {u.username: u for u in User.query.all()}


def login(client, username, password=PASSWORD):
    return client.post('/auth/login', json={'username': username, 'password': password})


@pytest.fixture
def login_as(client):
    def _login(username):
        client.post('/auth/logout')
        resp = login(client, username)
        assert resp.status_code == 200, resp.get_json()
        return client
    return _login


def make_order(requester, **overrides):
    """ 直接写库创建工单，用于服务层测试 """
    values = dict(
        work_order_no='WO-001',
        work_order_date=date(2024, 1, 2),
        equipment_number='GSE-42',
        km_hrs=1200,
        requested_by=requester.full_name,
        requested_by_id=requester.id,
        work_type='Mechanical',
        description='Hydraulic leak on lift',
        job_allocation_time=datetime(2024, 1, 2, 8, 30),
        status=STATUS_PENDING,
    )
    values.update(overrides)
    order = WorkOrder(**values)
    db.session.add(order)
    db.session.commit()
    return order


def add_action(order, action_date=date(2024, 1, 3), start=time(9, 0), end=time(10, 30),
               is_completed=True, description='Replaced seal'):
    finding = Finding.query.filter_by(work_order_id=order.id).first()
    if finding is None:
        finding = Finding(work_order_id=order.id, description='Seal worn out')
        db.session.add(finding)
        db.session.flush()
    action = Action(finding_id=finding.id, description=description, action_date=action_date,
                    start_time=start, end_time=end, is_completed=is_completed)
    db.session.add(action)
    db.session.commit()
    return action


WORK_ORDER_PAYLOAD = {
    'work_order_no': 'WO-100',
    'work_order_date': '2024-01-02',
    'equipment_number': 'TUG-7',
    'km_hrs': 3400,
    'requested_by': 'Requester Test',
    'work_type': 'Wheel',
    'job_allocation_time': '2024-01-02T08:00',
    'description': 'Flat tyre on rear axle',
}
