import os
import tempfile

# 日志写到临时目录（必须在导入项目模块之前设置）
os.environ.setdefault('LOG_DIR', tempfile.mkdtemp(prefix='support_chat_logs_'))

import pytest

from app import create_app
from exts import db, socketio
from mod.mysql.models import Customer, Order
from mod.mysql.ModuleClass import chat_store

CUSTOMER_ID = 'cust-1'
OTHER_CUSTOMER_ID = 'cust-2'
ORDER_ID = 'ORD123456'
STAFF_TOKEN = 'admin'
STAFF_ID = 'staff-1'

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_ENGINE_OPTIONS': {},
    'SOCKETIO_ASYNC_MODE': 'threading',
    'SOCKETIO_MESSAGE_QUEUE': None,
    'REDIS_URL': None,
    'STAFF_TOKEN': STAFF_TOKEN,
    'STAFF_USER_ID': STAFF_ID,
    'SUPPORT_CHAT_MAX_MESSAGE_LENGTH': 200,
    'SUPPORT_CHAT_IDLE_CLOSE_SECONDS': 0,
}


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    with app.app_context():
        db.create_all()
        db.session.add(Customer(id=CUSTOMER_ID, name='Alice', email='alice@example.com', phone='123'))
        db.session.add(Customer(id=OTHER_CUSTOMER_ID, name='Bob', email='bob@example.com', phone='456'))
        db.session.add(Order(id=ORDER_ID, customer_id=CUSTOMER_ID, customer_name='Alice', total_amount=25.5, status='paid'))
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def store(app_ctx):
    return chat_store


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    def _headers(token):
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def socket_client(app):
    clients = []

    def _connect(token=None):
        sio_client = socketio.test_client(app, auth={'token': token} if token else None)
        sio_client.get_received()
        clients.append(sio_client)
        return sio_client

    yield _connect
    for sio_client in clients:
        if sio_client.is_connected():
            sio_client.disconnect()


def received(sio_client, name):
    """取出某个事件收到的所有 payload"""
    return [event['args'][0] for event in sio_client.get_received() if event['name'] == name]
