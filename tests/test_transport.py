import pytest
from socketio import exceptions as sio_exceptions

from mod.client.transport import PushTransport, unwrap_ack
from mod.errors import ChatError, InvalidState, NotFound, SendFailed, TransportUnavailable


class FakeSio:

    def __init__(self, connected=True):
        self.connected = connected
        self.connect_args = None
        self.handlers = {}
        self.ack = None
        self.error = None
        self.emitted = []

    def connect(self, url, **kwargs):
        if self.error:
            raise self.error
        self.connect_args = (url, kwargs)
        self.connected = True

    def disconnect(self):
        self.connected = False

    def on(self, event, handler):
        self.handlers[event] = handler

    def call(self, event, data=None, timeout=None):
        if self.error:
            raise self.error
        self.last_call = (event, data, timeout)
        return self.ack

    def emit(self, event, data=None, callback=None):
        if self.error:
            raise self.error
        self.emitted.append((event, data, callback))


class TestUnwrapAck:

    def test_success(self):
        assert unwrap_ack({'code': 0, 'msg': 'success', 'data': {'id': 'm1'}}) == {'id': 'm1'}

    def test_error_kind(self):
        with pytest.raises(InvalidState):
            unwrap_ack({'code': 409, 'msg': '会话已结束', 'error': 'InvalidState'})

    def test_unknown_error(self):
        with pytest.raises(ChatError):
            unwrap_ack({'code': 500, 'msg': '发送消息失败', 'error': 'ChatError'})

    def test_not_a_dict(self):
        with pytest.raises(SendFailed):
            unwrap_ack(None)


class TestPushTransport:

    def test_connect_passes_token(self):
        sio = FakeSio(connected=False)
        PushTransport(sio, 'http://localhost:5302', token='cust-1').connect(wait_timeout=2)
        url, kwargs = sio.connect_args
        assert url == 'http://localhost:5302'
        assert kwargs['auth'] == {'token': 'cust-1'}
        assert kwargs['wait_timeout'] == 2

    def test_connect_failure(self):
        sio = FakeSio(connected=False)
        sio.error = sio_exceptions.ConnectionError('refused')
        with pytest.raises(TransportUnavailable):
            PushTransport(sio, 'http://localhost:5302').connect()

    def test_call_uses_default_timeout(self):
        sio = FakeSio()
        sio.ack = {'code': 0, 'data': {'id': 'm1'}}
        transport = PushTransport(sio, 'http://x', send_timeout=7)
        assert transport.call('chat:send', {'content': 'x'}) == {'id': 'm1'}
        assert sio.last_call == ('chat:send', {'content': 'x'}, 7)

    def test_call_timeout(self):
        sio = FakeSio()
        sio.error = sio_exceptions.TimeoutError()
        with pytest.raises(SendFailed):
            PushTransport(sio, 'http://x').call('chat:send', {}, timeout=1)

    def test_call_server_error(self):
        sio = FakeSio()
        sio.ack = {'code': 404, 'msg': '会话不存在', 'error': 'NotFound'}
        with pytest.raises(NotFound):
            PushTransport(sio, 'http://x').call('chat:send', {})

    def test_disconnected(self):
        transport = PushTransport(FakeSio(connected=False), 'http://x')
        with pytest.raises(TransportUnavailable):
            transport.call('chat:send', {})
        with pytest.raises(TransportUnavailable):
            transport.emit('chat:markRead', {})

    def test_emit_after_connection_lost(self):
        sio = FakeSio()
        sio.error = sio_exceptions.BadNamespaceError('/ is not a connected namespace.')
        with pytest.raises(TransportUnavailable):
            PushTransport(sio, 'http://x').emit('chat:join', {'chatId': 'c'})

    def test_on_registers_handler(self):
        sio = FakeSio()
        handler = object()
        PushTransport(sio, 'http://x').on('chat:message', handler)
        assert sio.handlers['chat:message'] is handler
