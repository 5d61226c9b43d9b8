import pytest
import requests

from mod.client.rest_loader import RestFallbackLoader
from mod.errors import Conflict, InvalidArgument, NotFound, TransportUnavailable


class FakeResponse:

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body

    def json(self):
        if self.body is None:
            raise ValueError('no json')
        return self.body


class FakeSession:

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(200, {'code': 0, 'msg': 'success', 'data': None})
        self.error = error
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response


def _loader(session, token='cust-1'):
    return RestFallbackLoader('http://localhost:5302/api/support-chat/', token=token, session=session)


def test_list_sessions_params_and_auth():
    session = FakeSession(FakeResponse(200, {'code': 0, 'data': [{'id': 'chat-1'}]}))
    chats = _loader(session).list_sessions(customer_id='cust-1', order_id='ORD123456')
    assert chats == [{'id': 'chat-1'}]

    method, url, kwargs = session.requests[0]
    assert method == 'GET'
    assert url == 'http://localhost:5302/api/support-chat'
    assert kwargs['params'] == {'customerId': 'cust-1', 'orderId': 'ORD123456'}
    assert kwargs['headers'] == {'Authorization': 'Bearer cust-1'}
    assert kwargs['timeout'] == 10


def test_list_sessions_empty():
    session = FakeSession(FakeResponse(200, {'code': 0, 'data': None}))
    assert _loader(session, token=None).list_sessions(role='admin') == []
    assert session.requests[0][2]['headers'] == {}


def test_append_message_payload():
    session = FakeSession(FakeResponse(201, {'code': 0, 'data': {'id': 'm1'}}))
    assert _loader(session).append_message('chat-1', 'x', 'cust-1', sender='customer') == {'id': 'm1'}
    method, url, kwargs = session.requests[0]
    assert (method, url) == ('POST', 'http://localhost:5302/api/support-chat/message')
    assert kwargs['json'] == {'chatId': 'chat-1', 'content': 'x', 'senderId': 'cust-1', 'sender': 'customer'}


def test_set_status_and_mark_read_paths():
    session = FakeSession()
    loader = _loader(session)
    loader.set_status('chat-1', 'resolved')
    loader.mark_read('chat-1', 'cust-1')
    loader.create_session('ORD123456', 'cust-1', 'food cold', 'food-quality')
    assert [(m, u.rsplit('/api/support-chat', 1)[1]) for m, u, _ in session.requests] == [
        ('PUT', '/chat-1'),
        ('POST', '/read-messages'),
        ('POST', ''),
    ]


def test_conflict_error_kind():
    session = FakeSession(FakeResponse(409, {'code': 409, 'msg': '该订单已存在进行中的会话', 'error': 'Conflict'}))
    with pytest.raises(Conflict) as exc_info:
        _loader(session).create_session('ORD123456', 'cust-1', 'food cold', 'food-quality')
    assert exc_info.value.msg == '该订单已存在进行中的会话'


def test_error_without_body_uses_status():
    session = FakeSession(FakeResponse(404, None))
    with pytest.raises(NotFound):
        _loader(session).get_session('missing')


def test_non_object_body():
    assert _loader(FakeSession(FakeResponse(200, ['unexpected']))).get_session('chat-1') is None
    with pytest.raises(TransportUnavailable):
        _loader(FakeSession(FakeResponse(503, 'Service Unavailable'))).get_session('chat-1')


def test_bad_request():
    session = FakeSession(FakeResponse(400, {'code': 400, 'msg': '参数不完整'}))
    with pytest.raises(InvalidArgument):
        _loader(session).append_message('chat-1', '', 'cust-1')


@pytest.mark.parametrize('error', [requests.ConnectionError('down'), requests.Timeout('slow')])
def test_network_errors(error):
    with pytest.raises(TransportUnavailable):
        _loader(FakeSession(error=error)).get_session('chat-1')
