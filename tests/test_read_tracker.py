from mod.client.read_tracker import ReadReceiptTracker
from mod.errors import NotFound, TransportUnavailable
from tests.fakes import FakeLoader, FakeTransport, make_message


def test_focus_marks_read_over_push():
    transport = FakeTransport()
    tracker = ReadReceiptTracker('cust-1', transport=transport, loader=FakeLoader())
    assert tracker.focus('chat-1') is True
    assert transport.emitted_events('chat:markRead') == [{'chatId': 'chat-1'}]


def test_falls_back_to_rest_when_disconnected():
    loader = FakeLoader(mark_read={'updated': False, 'updatedCount': 0, 'messageIds': []})
    tracker = ReadReceiptTracker('cust-1', transport=FakeTransport(connected=False), loader=loader)
    # 没有未读消息时仍然算成功
    assert tracker.mark_read('chat-1') is True
    assert loader.called('mark_read') == [('mark_read', ('chat-1', 'cust-1'), {})]


def test_inbound_only_for_focused_chat_and_others():
    transport = FakeTransport()
    tracker = ReadReceiptTracker('cust-1', transport=transport)
    tracker.focus('chat-1')
    transport.emitted.clear()

    assert tracker.on_inbound('chat-2', make_message('m1', 1, 'hi', chat_id='chat-2')) is False
    assert tracker.on_inbound('chat-1', make_message('m2', 1, 'mine', sender='customer', sender_id='cust-1')) is False
    assert tracker.on_inbound('chat-1', make_message('m3', 2, 'reply')) is True
    assert transport.emitted_events('chat:markRead') == [{'chatId': 'chat-1'}]

    tracker.blur()
    assert tracker.on_inbound('chat-1', make_message('m4', 3, 'later')) is False


def test_errors_are_reported_not_raised():
    tracker = ReadReceiptTracker('cust-1', loader=FakeLoader(mark_read=NotFound()))
    assert tracker.mark_read('chat-1') is False


def test_no_channel():
    tracker = ReadReceiptTracker('cust-1')
    assert tracker.mark_read('chat-1') is False
    assert tracker.mark_read(None) is False


def test_push_failure_uses_rest():
    class BrokenTransport(FakeTransport):
        def emit(self, event, data=None, callback=None):
            raise TransportUnavailable()

    loader = FakeLoader(mark_read={'updated': True})
    tracker = ReadReceiptTracker('cust-1', transport=BrokenTransport(), loader=loader)
    assert tracker.mark_read('chat-1') is True
    assert len(loader.called('mark_read')) == 1
