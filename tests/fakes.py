"""客户端测试用的假通道"""
from mod.errors import TransportUnavailable


def make_message(message_id, seq, content, sender='staff', sender_id='staff-1', chat_id='chat-1', read=False):
    return {
        'id': message_id,
        'chat_id': chat_id,
        'seq': seq,
        'sender': sender,
        'sender_id': sender_id,
        'content': content,
        'timestamp': f'2026-10-19T10:00:{seq:02d}',
        'read': read
    }


def make_chat(chat_id='chat-1', status='active', order_id='ORD123456', customer_id='cust-1', messages=None):
    return {
        'id': chat_id,
        'order_id': order_id,
        'customer_id': customer_id,
        'category': 'food-quality',
        'issue': 'food cold',
        'status': status,
        'created_at': '2026-10-19T10:00:00',
        'last_message_at': '2026-10-19T10:00:00',
        'resolved_by': None,
        'resolved_at': None,
        'order_number': order_id[-6:],
        'messages': messages or []
    }


class FakeTransport:
    """记录 emit/call，call 的结果由 responders 决定"""

    def __init__(self, connected=True):
        self.connected = connected
        self.handlers = {}
        self.emitted = []
        self.calls = []
        self.responders = {}

    def on(self, event, handler):
        self.handlers[event] = handler

    def push(self, event, *args):
        """模拟服务端推送"""
        return self.handlers[event](*args)

    def call(self, event, data=None, timeout=None):
        if not self.connected:
            raise TransportUnavailable()
        self.calls.append((event, data, timeout))
        responder = self.responders[event]
        if isinstance(responder, Exception):
            raise responder
        return responder(data)

    def emit(self, event, data=None, callback=None):
        if not self.connected:
            raise TransportUnavailable()
        self.emitted.append((event, data))
        if callback:
            callback({'code': 0, 'msg': 'success', 'data': None})

    def emitted_events(self, name):
        return [data for event, data in self.emitted if event == name]


class FakeLoader:
    """REST 通道：按方法名返回预设结果，并记录调用"""

    def __init__(self, **results):
        self.results = results
        self.calls = []

    def _result(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        result = self.results.get(name)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(*args, **kwargs)
        return result

    def called(self, name):
        return [call for call in self.calls if call[0] == name]

    def list_sessions(self, role=None, customer_id=None, order_id=None, status=None):
        return self._result('list_sessions', customer_id=customer_id, order_id=order_id) or []

    def get_session(self, chat_id):
        return self._result('get_session', chat_id)

    def create_session(self, order_id, customer_id, issue, category):
        return self._result('create_session', order_id, customer_id, issue, category)

    def append_message(self, chat_id, content, sender_id, sender=None):
        return self._result('append_message', chat_id, content, sender_id, sender=sender)

    def set_status(self, chat_id, status):
        return self._result('set_status', chat_id, status)

    def mark_read(self, chat_id, user_id):
        return self._result('mark_read', chat_id, user_id)
