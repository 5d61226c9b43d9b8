from datetime import timedelta

from exts import db
from mod.mysql.models import get_local_time
from mod.mysql.ModuleClass import chat_store
from mod.tasks import close_idle_sessions, start_session_monitor
from tests.conftest import CUSTOMER_ID, ORDER_ID


def _idle_chat(minutes):
    chat = chat_store.create_session(ORDER_ID, CUSTOMER_ID, 'food cold', 'food-quality')
    chat.last_message_at = get_local_time() - timedelta(minutes=minutes)
    db.session.commit()
    return chat.id


def test_closes_idle_active_sessions(app_ctx):
    chat_id = _idle_chat(30)
    events = []
    chat_store.feed.subscribe(lambda kind, cid, payload: events.append((kind, payload['status'])))

    assert close_idle_sessions(app_ctx, idle_seconds=600) == 1
    assert chat_store.get_session(chat_id).status == 'closed'
    assert events == [('updated', 'closed')]

    # 已关闭的会话不会再处理
    assert close_idle_sessions(app_ctx, idle_seconds=600) == 0


def test_recent_sessions_stay_open(app_ctx):
    chat_id = _idle_chat(1)
    assert close_idle_sessions(app_ctx, idle_seconds=600) == 0
    assert chat_store.get_session(chat_id).status == 'active'


def test_disabled_by_default(app_ctx):
    _idle_chat(60 * 24)
    assert close_idle_sessions(app_ctx) == 0


def test_explicit_now(app_ctx):
    chat_id = _idle_chat(0)
    later = get_local_time() + timedelta(hours=2)
    assert close_idle_sessions(app_ctx, idle_seconds=3600, now=later) == 1
    assert chat_store.get_session(chat_id).status == 'closed'


def test_monitor_not_started_when_disabled(app):
    assert start_session_monitor(app) is None
