"""
客服会话客户端
进入会话时通过 REST 加载数据，再订阅实时推送；发送走乐观更新；
断线重连后重新加入房间并通过 REST 补齐期间的数据
"""
import threading

import requests
import socketio

from mod.client.reconciler import ChatView, OptimisticReconciler
from mod.client.read_tracker import ReadReceiptTracker
from mod.client.rest_loader import RestFallbackLoader
from mod.client.transport import PushTransport
from mod.errors import ChatError, Conflict, InvalidState, SendFailed, TransportUnavailable
import config
import log

logger = log.get_logger(__name__)


class ChatClient:
    """一个参与者（客户或客服）的会话客户端"""

    def __init__(self, user_id, transport, loader, role='customer', send_timeout=None, on_change=None):
        """
        Args:
            user_id: 当前用户ID
            transport: PushTransport
            loader: RestFallbackLoader
            role: customer / staff
            send_timeout: 发送确认超时（秒），默认使用 transport 的配置
            on_change: 本地视图变化时的回调 on_change(kind)
        """
        self.user_id = user_id
        self.role = role
        self.transport = transport
        self.loader = loader
        self.send_timeout = send_timeout
        self.on_change = on_change

        self.order_id = None
        self.last_error = None
        self.view = ChatView()
        self.reconciler = OptimisticReconciler(self.view)
        self.tracker = ReadReceiptTracker(user_id, transport=transport, loader=loader)
        self._lock = threading.RLock()

        self._bind_events()

    # ========== 状态 ==========

    @property
    def chat(self):
        return self.view.chat

    @property
    def chat_id(self):
        return self.view.chat_id

    @property
    def status(self):
        return self.chat['status'] if self.chat else None

    @property
    def messages(self):
        with self._lock:
            return self.reconciler.messages

    def _notify(self, kind):
        if self.on_change:
            self.on_change(kind)

    # ========== 加载 ==========

    def open(self, order_id):
        """客户进入订单的会话：REST 加载，加入房间，标记已读"""
        self.order_id = order_id
        chat = self.hydrate()
        if chat:
            self._join()
            self.tracker.focus(chat['id'])
        return chat

    def open_chat(self, chat_id):
        """客服进入指定会话"""
        with self._lock:
            self.view.load(self.loader.get_session(chat_id))
            self.order_id = self.view.chat['order_id']
        self._join()
        self.tracker.focus(chat_id)
        self._notify('hydrated')
        return self.chat

    def hydrate(self, by_order=False):
        """
        通过 REST 加载（或重新加载）当前会话
        已打开会话时按ID加载；否则（或 by_order=True）取该订单最近的会话，优先进行中的
        """
        if self.chat_id and not by_order:
            chat = self.loader.get_session(self.chat_id)
        else:
            chats = self.loader.list_sessions(customer_id=self.user_id, order_id=self.order_id)
            chats = [c for c in chats if c.get('order_id') == self.order_id]
            active = [c for c in chats if c.get('status') == 'active']
            chat = (active or chats or [None])[0]

        if chat:
            with self._lock:
                self.view.load(chat)
            self._notify('hydrated')
        return chat

    def _join(self):
        if not self.chat_id or not self.transport.connected:
            return
        try:
            self.transport.emit('chat:join', {'chatId': self.chat_id})
        except TransportUnavailable:
            logger.info('实时通道不可用，暂不加入会话房间')

    def close(self):
        """离开会话"""
        self.tracker.blur()
        if self.chat_id and self.transport.connected:
            try:
                self.transport.emit('chat:leave', {'chatId': self.chat_id})
            except TransportUnavailable:
                pass

    # ========== 操作 ==========

    def start(self, issue, category):
        """
        开始会话

        Raises:
            Conflict: 已有进行中的会话（此时已通过 REST 加载该会话）
        """
        if not self.order_id:
            raise InvalidState('未指定订单')
        try:
            try:
                chat = self.transport.call('chat:start', {
                    'orderId': self.order_id,
                    'issue': issue,
                    'category': category
                })
            except TransportUnavailable:
                logger.info('实时通道不可用，改用REST创建会话')
                chat = self.loader.create_session(self.order_id, self.user_id, issue, category)
        except Conflict:
            self.hydrate(by_order=True)
            self._join()
            raise

        with self._lock:
            self.view.load(chat)
        self._join()
        self.tracker.focus(chat['id'])
        self._notify('started')
        return chat

    def send(self, content):
        """
        发送消息：先插入临时消息，确认后替换为正式消息

        Returns:
            dict: 服务端确认的消息

        Raises:
            SendFailed: 超时或通道不可用（临时消息已撤回）
            ChatError: 服务端拒绝（如 InvalidState），临时消息已撤回
        """
        if not self.chat_id:
            raise InvalidState('没有进行中的会话')

        sender = 'staff' if self.role == 'staff' else 'customer'
        with self._lock:
            correlation_id = self.reconciler.begin(content, sender, self.user_id)
        self._notify('pending')

        try:
            try:
                message = self.transport.call('chat:send', {
                    'chatId': self.chat_id,
                    'content': content,
                    'senderId': self.user_id
                }, timeout=self.send_timeout)
            except TransportUnavailable:
                logger.info('实时通道不可用，改用REST发送')
                message = self.loader.append_message(self.chat_id, content, self.user_id, sender=sender)
        except TransportUnavailable as e:
            self._rollback(correlation_id, e)
            raise SendFailed(e.msg)
        except ChatError as e:
            self._rollback(correlation_id, e)
            raise

        with self._lock:
            self.reconciler.confirm(correlation_id, message)
        self._notify('confirmed')
        return message

    def _rollback(self, correlation_id, error):
        with self._lock:
            self.reconciler.reject(correlation_id, error.msg)
        self.last_error = error.msg
        self._notify('rejected')

    def mark_read(self):
        """手动标记已读"""
        return self.tracker.mark_read(self.chat_id)

    def set_status(self, status):
        """修改会话状态（走 REST）"""
        chat = self.loader.set_status(self.chat_id, status)
        with self._lock:
            self.view.load(chat)
        self._notify('updated')
        return chat

    # ========== 推送事件 ==========

    def _bind_events(self):
        self.transport.on('connect', self._on_connect)
        self.transport.on('chat:started', self._on_started)
        self.transport.on('chat:message', self._on_message)
        self.transport.on('chat:updated', self._on_updated)
        self.transport.on('chat:read', self._on_read)
        self.transport.on('chat:error', self._on_error)

    def _on_connect(self):
        """连接/重连：重新加入房间，并通过 REST 补齐断线期间的数据"""
        if not self.chat_id and not self.order_id:
            return
        try:
            self.hydrate()
        except ChatError as e:
            logger.warning(f"⚠️ 重连后加载会话失败: {e.kind}: {e.msg}")
            return
        self._join()

    def _on_started(self, chat):
        if not chat or chat.get('order_id') != self.order_id:
            return
        if self.chat and self.chat.get('status') == 'active' and self.chat_id != chat.get('id'):
            return
        with self._lock:
            self.view.load(chat)
        self._join()
        self._notify('started')

    def _on_message(self, payload):
        payload = payload or {}
        message = payload.get('message')
        if not message or payload.get('chatId') != self.chat_id:
            return
        with self._lock:
            is_new = self.view.merge_message(message)
        if is_new:
            self._notify('message')
            self.tracker.on_inbound(self.chat_id, message)

    def _on_updated(self, chat):
        if not chat or chat.get('id') != self.chat_id:
            return
        with self._lock:
            self.view.load(chat)
        self._notify('updated')

    def _on_read(self, payload):
        payload = payload or {}
        if payload.get('chatId') != self.chat_id:
            return
        with self._lock:
            changed = self.view.apply_read(payload.get('messageIds'))
        if changed:
            self._notify('read')

    def _on_error(self, payload):
        self.last_error = (payload or {}).get('message')
        logger.warning(f"⚠️ 服务端错误: {self.last_error}")


def create_chat_client(server_url, token, user_id, role='customer', send_timeout=None):
    """
    创建客户端（每次调用都创建新的连接对象）

    Args:
        server_url: 服务端地址，如 http://localhost:5302
        token: 身份 token
        user_id: 当前用户ID
        role: customer / staff
        send_timeout: 发送确认超时（秒），默认 config.SUPPORT_CHAT_SEND_TIMEOUT
    """
    send_timeout = send_timeout or config.SUPPORT_CHAT_SEND_TIMEOUT
    transport = PushTransport(socketio.Client(reconnection=True), server_url, token=token, send_timeout=send_timeout)
    loader = RestFallbackLoader(f"{server_url.rstrip('/')}/api/support-chat", token=token, session=requests.Session())
    return ChatClient(user_id, transport, loader, role=role, send_timeout=send_timeout)
