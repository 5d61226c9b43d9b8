"""
客服会话API蓝图
推送通道不可用时的请求/响应通道，也是管理端的数据来源
"""
from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user

from mod.decorators.permission_required import staff_required
from mod.errors import ChatError, Forbidden, InvalidArgument
from mod.mysql.ModuleClass import chat_store, chat_query_service
from mod.utils.identity import check_chat_access, resolve_sender
import log

support_chat_bp = Blueprint('support_chat', __name__)
logger = log.get_logger(__name__)


def _field(data, *names):
    """按顺序取第一个存在的字段（兼容 camelCase / snake_case）"""
    for name in names:
        value = data.get(name)
        if value not in (None, ''):
            return value
    return None


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidArgument('请求体必须是JSON对象')
    return data


def _success(data, status=200):
    return jsonify({'code': 0, 'msg': 'success', 'data': data}), status


def _current_identity():
    return current_user if current_user.is_authenticated else None


@support_chat_bp.errorhandler(ChatError)
def handle_chat_error(error):
    """会话错误统一转换为JSON响应"""
    logger.info(f"⚠️ {request.method} {request.path} -> {error.kind}: {error.msg}")
    return jsonify(error.to_dict()), error.code


@staff_required
def _list_admin_sessions():
    limit = request.args.get('limit', type=int) or current_app.config.get('SUPPORT_CHAT_ADMIN_LIMIT')
    chats = chat_query_service.list_admin_sessions(limit=limit)
    logger.info(f"管理端获取会话列表: {len(chats)} 条")
    return _success(chats)


@support_chat_bp.route('', methods=['GET'])
def list_sessions():
    """
    获取会话列表
    ?role=admin              全部会话（需要客服身份）
    ?customerId=...          某个客户的会话，可选 orderId / status 过滤
    """
    if request.args.get('role') == 'admin':
        return _list_admin_sessions()

    customer_id = _field(request.args, 'customerId', 'customer_id')
    if not customer_id:
        raise InvalidArgument('缺少customerId参数')

    chats = chat_query_service.list_customer_sessions(
        customer_id,
        order_id=_field(request.args, 'orderId', 'order_id'),
        status=request.args.get('status')
    )
    return _success(chats)


@support_chat_bp.route('', methods=['POST'])
def create_session():
    """创建会话，已有进行中的会话时返回409"""
    data = _json_body()
    order_id = _field(data, 'orderId', 'order_id')
    customer_id = _field(data, 'customerId', 'customer_id')
    issue = _field(data, 'issue')
    category = _field(data, 'category')

    if not all([order_id, customer_id, issue, category]):
        raise InvalidArgument('参数不完整')

    chat = chat_store.create_session(order_id, customer_id, issue, category)
    return _success(chat_query_service.enrich(chat), 201)


@support_chat_bp.route('/<chat_id>', methods=['GET'])
def get_session(chat_id):
    """会话详情"""
    return _success(chat_query_service.get_session(chat_id))


@support_chat_bp.route('/<chat_id>', methods=['PUT'])
@support_chat_bp.route('/<chat_id>/status', methods=['PUT'])
def update_status(chat_id):
    """修改会话状态（active / resolved / closed）"""
    data = _json_body()
    status = _field(data, 'status')
    if not status:
        raise InvalidArgument('缺少status参数')

    actor = current_user.id if current_user.is_authenticated else _field(data, 'actorId', 'actor_id')
    chat = chat_store.set_status(chat_id, status, actor=actor)
    return _success(chat_query_service.enrich(chat))


@support_chat_bp.route('/message', methods=['POST'])
def append_message():
    """发送消息，返回服务器确认后的消息"""
    data = _json_body()
    chat_id = _field(data, 'chatId', 'chat_id')
    sender_id = _field(data, 'senderId', 'sender_id')
    content = data.get('content')

    if not chat_id or not sender_id or content is None:
        raise InvalidArgument('参数不完整')

    sender = _field(data, 'sender')
    identity = _current_identity()
    if identity:
        check_chat_access(chat_store.get_session(chat_id), identity)
        sender, sender_id = resolve_sender(identity, sender_id, sender)

    message = chat_store.append_message(chat_id, content, sender_id, sender=sender)
    return _success(message.to_dict(), 201)


@support_chat_bp.route('/read-messages', methods=['POST'])
def read_messages():
    """把非 userId 发送的消息全部标记为已读"""
    data = _json_body()
    chat_id = _field(data, 'chatId', 'chat_id')
    user_id = _field(data, 'userId', 'user_id')
    if not chat_id or not user_id:
        raise InvalidArgument('缺少chatId或userId参数')

    identity = _current_identity()
    if identity and not identity.is_staff:
        check_chat_access(chat_store.get_session(chat_id), identity)
        if user_id != identity.id:
            raise Forbidden('不能替其他用户标记已读')

    result = chat_store.mark_read(chat_id, user_id)
    return _success({
        'updated': result['updated_count'] > 0,
        'updatedCount': result['updated_count'],
        'messageIds': result['message_ids']
    })
