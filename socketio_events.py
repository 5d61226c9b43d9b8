"""
SocketIO 事件处理
客服会话的实时通道：每个会话一个房间，写操作先落库再广播
"""
from flask import request, current_app
from flask_socketio import emit, join_room, leave_room

from exts import socketio, db
from mod.errors import ChatError, Forbidden, InvalidArgument, NotFound
from mod.mysql.models import Order
from mod.mysql.ModuleClass import chat_store, chat_query_service
from mod.mysql.ModuleClass.ChatStoreClass import EVENT_STARTED, EVENT_MESSAGE, EVENT_UPDATED, EVENT_READ
from mod.utils.identity import identity_from_token, check_chat_access, resolve_sender
import log

logger = log.get_logger(__name__)

ADMIN_ROOM = 'admin'

# 在线连接 {sid: Identity | None}，None 表示匿名连接
online_users = {}


def chat_room(chat_id):
    return f'chat:{chat_id}'


def user_room(user_id):
    return f'user:{user_id}'


def get_identity():
    """当前连接的身份"""
    return online_users.get(request.sid)


def ack_ok(data=None):
    return {'code': 0, 'msg': 'success', 'data': data}


def ack_error(error):
    """失败时除了 ack 之外，再给调用方推送一次 chat:error"""
    emit('chat:error', {'message': error.msg, 'error': error.kind}, to=request.sid)
    return error.to_dict()


def _payload(data, key):
    """兼容直接传字符串ID和传对象两种写法"""
    if isinstance(data, dict):
        return data.get(key)
    return data


# ========== 变更事件 -> 广播 ==========

def broadcast_change(kind, chat_id, payload):
    """
    把存储层的变更推送到对应房间
    在存储层的房间锁内调用，所以同一房间的推送顺序就是提交顺序
    """
    if kind == EVENT_STARTED:
        socketio.emit('chat:started', payload, to=user_room(payload['customer_id']))
        chat = dict(payload)
        chat['customer_details'] = chat_query_service.customer_details(payload['customer_id'])
        chat['order_details'] = chat_query_service.order_details(payload['order_id'])
        socketio.emit('chat:new', {'chat': chat}, to=ADMIN_ROOM)
    elif kind == EVENT_MESSAGE:
        socketio.emit('chat:message', payload, to=chat_room(chat_id))
    elif kind == EVENT_UPDATED:
        socketio.emit('chat:updated', payload, to=chat_room(chat_id))
        socketio.emit('chat:updated', payload, to=ADMIN_ROOM)
    elif kind == EVENT_READ:
        socketio.emit('chat:read', payload, to=chat_room(chat_id))
    else:
        logger.warning(f"未知的变更事件: {kind}")


def register_change_feed(store):
    """订阅存储层变更（create_app 中调用）"""
    store.feed.subscribe(broadcast_change)


# ========== 连接管理 ==========

@socketio.on('connect')
def handle_connect(auth=None):
    """客户端连接事件，auth: {'token': ...}"""
    sid = request.sid
    token = auth.get('token') if isinstance(auth, dict) else None
    identity = identity_from_token(token)
    online_users[sid] = identity

    if identity:
        join_room(user_room(identity.id))
        if identity.is_staff:
            join_room(ADMIN_ROOM)
        logger.info(f"Client connected: {sid} ({identity.role}:{identity.id})")
    else:
        logger.info(f"Client connected: {sid} (匿名)")

    emit('connect_response', {
        'status': 'connected',
        'sid': sid,
        'identity': identity.to_dict() if identity else None
    })


@socketio.on('disconnect')
def handle_disconnect(reason=None):
    """客户端断开连接事件"""
    identity = online_users.pop(request.sid, None)
    logger.info(f"Client disconnected: {request.sid} ({identity.id if identity else '匿名'}) reason={reason}")


# ========== 会话事件 ==========

def _resolve_customer_id(order_id, identity):
    """
    会话的客户ID：优先取订单上的客户，订单没有时使用当前客户身份
    """
    order = db.session.get(Order, order_id)
    if order and order.customer_id:
        return order.customer_id
    if identity and not identity.is_staff:
        return identity.id
    if not order:
        raise NotFound('订单不存在')
    raise NotFound('仅注册客户可以使用在线客服')


@socketio.on('chat:start')
def handle_chat_start(data):
    """
    开始会话
    data: {'orderId': 订单ID, 'issue': 问题描述, 'category': 问题分类}
    """
    try:
        data = data or {}
        order_id = data.get('orderId')
        if not order_id:
            raise InvalidArgument('缺少订单ID')

        customer_id = _resolve_customer_id(order_id, get_identity())
        chat = chat_store.create_session(order_id, customer_id, data.get('issue'), data.get('category'))
        join_room(chat_room(chat.id))
        return ack_ok(chat_query_service.enrich(chat))
    except ChatError as e:
        logger.info(f"开始会话被拒绝: order={(data or {}).get('orderId')}, {e.kind}: {e.msg}")
        return ack_error(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"开始会话失败: {e}", exc_info=True)
        return ack_error(ChatError('开始会话失败'))


@socketio.on('chat:send')
def handle_chat_send(data):
    """
    发送消息（先落库再广播，ack 返回服务器确认后的消息）
    data: {'chatId': 会话ID, 'content': 内容, 'senderId': 发送者ID}
    客户连接只能以自己的身份、在自己的会话中发送
    """
    try:
        data = data or {}
        identity = get_identity()
        chat = chat_store.get_session(data.get('chatId'))
        check_chat_access(chat, identity)
        sender, sender_id = resolve_sender(identity, data.get('senderId'), data.get('sender'))
        message = chat_store.append_message(chat.id, data.get('content'), sender_id, sender=sender)
        return ack_ok(message.to_dict())
    except ChatError as e:
        logger.info(f"发送消息被拒绝: chat={(data or {}).get('chatId')}, {e.kind}: {e.msg}")
        return ack_error(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"发送消息失败: {e}", exc_info=True)
        return ack_error(ChatError('发送消息失败'))


@socketio.on('chat:markRead')
def handle_mark_read(data):
    """
    标记已读（已读人为当前连接身份）
    data: {'chatId': 会话ID} 或直接传会话ID
    """
    try:
        identity = get_identity()
        reader_id = identity.id if identity else None
        if not reader_id and isinstance(data, dict):
            reader_id = data.get('userId')
        if not reader_id:
            raise InvalidArgument('匿名连接无法标记已读')

        chat = chat_store.get_session(_payload(data, 'chatId'))
        check_chat_access(chat, identity)
        result = chat_store.mark_read(chat.id, reader_id)
        return ack_ok({'updated': result['updated_count'] > 0, 'updatedCount': result['updated_count']})
    except ChatError as e:
        return ack_error(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"标记已读失败: {e}", exc_info=True)
        return ack_error(ChatError('标记已读失败'))


@socketio.on('chat:join')
def handle_chat_join(data):
    """加入会话房间（订阅实时消息）"""
    try:
        chat = chat_store.get_session(_payload(data, 'chatId'))
        check_chat_access(chat, get_identity())
        join_room(chat_room(chat.id))
        return ack_ok({'chatId': chat.id})
    except ChatError as e:
        return ack_error(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"加入会话失败: {e}", exc_info=True)
        return ack_error(ChatError('加入会话失败'))


@socketio.on('chat:leave')
def handle_chat_leave(data):
    """离开会话房间"""
    chat_id = _payload(data, 'chatId')
    if chat_id:
        leave_room(chat_room(chat_id))
    return ack_ok({'chatId': chat_id})


@socketio.on('chat:getByOrder')
def handle_get_by_order(data):
    """获取订单最近的会话（没有时 data 为 None）"""
    try:
        order_id = _payload(data, 'orderId')
        if not order_id:
            raise InvalidArgument('缺少订单ID')
        identity = get_identity()
        customer_id = identity.id if identity and not identity.is_staff else None
        return ack_ok(chat_query_service.get_by_order(order_id, customer_id))
    except ChatError as e:
        return ack_error(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"获取订单会话失败: {e}", exc_info=True)
        return ack_error(ChatError('获取订单会话失败'))


@socketio.on('chat:resolve')
def handle_chat_resolve(data):
    """客服将会话标记为已解决"""
    try:
        identity = get_identity()
        if not identity or not identity.is_staff:
            raise Forbidden()
        chat = chat_store.set_status(_payload(data, 'chatId'), 'resolved', actor=identity.id)
        return ack_ok(chat.to_dict())
    except ChatError as e:
        return ack_error(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"解决会话失败: {e}", exc_info=True)
        return ack_error(ChatError('解决会话失败'))


@socketio.on('chat:typing')
def handle_typing(data):
    """
    正在输入状态（只转发，不落库）
    data: {'chatId': 会话ID, 'isTyping': True/False}
    """
    data = data or {}
    chat_id = data.get('chatId')
    if not chat_id:
        return
    identity = get_identity()
    emit('chat:typing', {
        'chatId': chat_id,
        'userId': identity.id if identity else None,
        'userType': 'staff' if identity and identity.is_staff else 'customer',
        'isTyping': bool(data.get('isTyping', True))
    }, to=chat_room(chat_id), include_self=False)


@socketio.on('admin:getChats')
def handle_admin_get_chats(data=None):
    """管理端获取全部会话"""
    try:
        identity = get_identity()
        if not identity or not identity.is_staff:
            raise Forbidden()
        limit = current_app.config.get('SUPPORT_CHAT_ADMIN_LIMIT')
        return ack_ok(chat_query_service.list_admin_sessions(limit=limit))
    except ChatError as e:
        return ack_error(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"获取会话列表失败: {e}", exc_info=True)
        return ack_error(ChatError('获取会话列表失败'))


@socketio.on_error_default
def handle_error(error):
    """未捕获的事件异常"""
    logger.error(f"SocketIO Error: {error}", exc_info=True)
