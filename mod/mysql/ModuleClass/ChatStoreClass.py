#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
客服会话存储
负责会话创建、消息追加、状态变更、已读标记

- 同一个会话的所有写操作串行执行（房间锁），提交后在锁内发布变更事件，
  所以推送顺序和提交顺序一致
- 同一订单+客户最多一个进行中的会话，由 active_key 唯一约束兜底
"""
import threading
from contextlib import contextmanager

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

import log
from exts import db
from mod.errors import Conflict, NotFound, InvalidState, InvalidArgument, TransportUnavailable
from mod.mysql.models import SupportChat, SupportChatMessage, CHAT_STATUSES, SENDER_TYPES, get_local_time
from mod.utils.security_filter import SecurityFilter

logger = log.get_logger(__name__)

# 变更事件类型
EVENT_STARTED = 'started'
EVENT_MESSAGE = 'message'
EVENT_UPDATED = 'updated'
EVENT_READ = 'read'


class ChangeFeed:
    """变更事件订阅（推送网关通过它拿到每一次提交）"""

    def __init__(self):
        self._listeners = []

    def subscribe(self, listener):
        """listener(kind, chat_id, payload)"""
        if listener not in self._listeners:
            self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, kind, chat_id, payload):
        for listener in list(self._listeners):
            try:
                listener(kind, chat_id, payload)
            except Exception as e:
                # 数据已经提交，推送失败不影响结果，客户端重连后通过REST补齐
                logger.error(f"❌ 变更事件推送失败: kind={kind}, chat_id={chat_id}, error={e}", exc_info=True)


class RoomLocks:
    """
    按房间加锁
    配置了 Redis 时使用分布式锁（多进程部署），否则使用进程内锁
    """

    def __init__(self, redis_client=None, timeout=10):
        self.redis = redis_client
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks = {}  # {key: [lock, 引用数]}

    @contextmanager
    def hold(self, key):
        if self.redis is not None:
            lock = self.redis.lock(f'support_chat:lock:{key}', timeout=self.timeout, blocking_timeout=self.timeout)
            if not lock.acquire():
                raise TransportUnavailable('会话繁忙，请稍后重试')
            try:
                yield
            finally:
                lock.release()
            return

        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            if not entry[0].acquire(timeout=self.timeout):
                raise TransportUnavailable('会话繁忙，请稍后重试')
            try:
                yield
            finally:
                entry[0].release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)


class ChatStore:
    """客服会话存储"""

    def __init__(self):
        self.feed = ChangeFeed()
        self.locks = RoomLocks()
        self.max_message_length = 2000
        self.default_category = 'order-issue'

    def init_app(self, app, redis_client=None):
        """绑定应用配置（每次初始化都会重置订阅者和锁）"""
        self.feed = ChangeFeed()
        self.locks = RoomLocks(redis_client, timeout=app.config.get('SUPPORT_CHAT_LOCK_TIMEOUT', 10))
        self.max_message_length = app.config.get('SUPPORT_CHAT_MAX_MESSAGE_LENGTH', 2000)
        self.default_category = app.config.get('SUPPORT_CHAT_DEFAULT_CATEGORY', 'order-issue')
        app.extensions['support_chat_store'] = self

    # ========== 查询 ==========

    def get_session(self, chat_id):
        """
        获取会话（总是从数据库重新加载）

        Raises:
            NotFound: 会话不存在
        """
        chat = db.session.get(SupportChat, chat_id, populate_existing=True) if chat_id else None
        if not chat:
            raise NotFound('会话不存在')
        return chat

    def find_active(self, order_id, customer_id):
        """获取订单+客户的进行中会话，没有返回 None"""
        return SupportChat.query.filter_by(
            order_id=order_id,
            customer_id=customer_id,
            status='active'
        ).first()

    def latest_for_order(self, order_id, customer_id=None):
        """获取订单最近的会话（优先进行中的）"""
        query = SupportChat.query.filter_by(order_id=order_id)
        if customer_id:
            query = query.filter_by(customer_id=customer_id)
        active = query.filter_by(status='active').first()
        if active:
            return active
        return query.order_by(SupportChat.created_at.desc()).first()

    def list_sessions(self, customer_id=None, order_id=None, status=None, limit=None):
        """会话列表，按最后消息时间倒序"""
        query = SupportChat.query
        if customer_id:
            query = query.filter_by(customer_id=customer_id)
        if order_id:
            query = query.filter_by(order_id=order_id)
        if status:
            query = query.filter_by(status=status)
        query = query.order_by(SupportChat.last_message_at.desc(), SupportChat.created_at.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    # ========== 写操作 ==========

    def _commit(self, conflict_msg):
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict(conflict_msg)
        except Exception:
            db.session.rollback()
            raise

    def create_session(self, order_id, customer_id, issue, category=None):
        """
        创建会话

        Raises:
            InvalidArgument: 参数缺失
            Conflict: 该订单+客户已有进行中的会话
        """
        if not order_id or not customer_id:
            raise InvalidArgument('缺少订单ID或客户ID')
        issue = SecurityFilter.clean_text(issue, self.max_message_length, field='问题描述')
        category = (category or self.default_category).strip() or self.default_category

        active_key = SupportChat.make_active_key(order_id, customer_id)
        with self.locks.hold(f'create:{active_key}'):
            if self.find_active(order_id, customer_id):
                logger.info(f"⚠️ 订单{order_id}已有进行中的会话，拒绝重复创建 (customer={customer_id})")
                raise Conflict()

            now = get_local_time()
            chat = SupportChat(
                order_id=order_id,
                customer_id=customer_id,
                issue=issue,
                category=category,
                status='active',
                active_key=active_key,
                created_at=now,
                last_message_at=now
            )
            db.session.add(chat)
            self._commit(Conflict.default_msg)

            logger.info(f"✅ 会话已创建: chat={chat.id}, order={order_id}, customer={customer_id}")
            self.feed.publish(EVENT_STARTED, chat.id, chat.to_dict())
        return chat

    def append_message(self, chat_id, content, sender_id, sender=None):
        """
        追加消息

        Args:
            chat_id: 会话ID
            content: 消息内容
            sender_id: 发送者ID
            sender: customer / staff，为空时只有会话客户本人可以省略（视为 customer）

        Returns:
            SupportChatMessage: 已提交的消息

        Raises:
            NotFound / InvalidState / InvalidArgument
        """
        if not sender_id:
            raise InvalidArgument('缺少发送者ID')

        with self.locks.hold(chat_id):
            chat = self.get_session(chat_id)
            if not chat.is_active:
                logger.info(f"⛔ 会话{chat_id}状态为{chat.status}，拒绝发送消息")
                raise InvalidState()

            content = SecurityFilter.clean_text(content, self.max_message_length, field='消息内容')
            if sender is None:
                if sender_id != chat.customer_id:
                    raise InvalidArgument('缺少发送方')
                sender = 'customer'
            if sender not in SENDER_TYPES:
                raise InvalidArgument(f'无效的发送方: {sender}')
            if (sender == 'customer') != (sender_id == chat.customer_id):
                raise InvalidArgument('发送方与会话客户不一致')

            last_seq = db.session.query(func.max(SupportChatMessage.seq)).filter(
                SupportChatMessage.chat_id == chat.id
            ).scalar() or 0

            # 时间戳在会话内单调不减
            now = get_local_time()
            if chat.last_message_at and chat.last_message_at > now:
                now = chat.last_message_at

            message = SupportChatMessage(
                chat_id=chat.id,
                seq=last_seq + 1,
                sender=sender,
                sender_id=sender_id,
                content=content,
                timestamp=now,
                read=False
            )
            db.session.add(message)
            chat.last_message_at = now
            self._commit('消息提交冲突，请重试')

            payload = message.to_dict()
            logger.info(f"💬 会话{chat.id}新消息 #{message.seq} from {sender}:{sender_id}")
            self.feed.publish(EVENT_MESSAGE, chat.id, {'chatId': chat.id, 'message': payload})
        return message

    def set_status(self, chat_id, status, actor=None):
        """
        修改会话状态

        active -> resolved/closed, resolved -> closed/active, closed 不可再修改；
        状态相同时不做任何修改

        Raises:
            InvalidArgument: 状态值无效
            InvalidState: 会话已关闭
            Conflict: 重新打开时已有其他进行中的会话
        """
        if status not in CHAT_STATUSES:
            raise InvalidArgument(f'无效的会话状态: {status}')

        with self.locks.hold(chat_id):
            chat = self.get_session(chat_id)
            if chat.status == status:
                return chat
            if chat.status == 'closed':
                raise InvalidState('会话已关闭，状态不可修改')

            previous = chat.status
            chat.status = status
            if status == 'active':
                chat.active_key = SupportChat.make_active_key(chat.order_id, chat.customer_id)
            else:
                chat.active_key = None
            if status == 'resolved':
                chat.resolved_at = get_local_time()
                chat.resolved_by = actor or 'staff'
            self._commit(Conflict.default_msg)

            logger.info(f"🔄 会话{chat.id}状态变更: {previous} -> {status} (actor={actor})")
            self.feed.publish(EVENT_UPDATED, chat.id, chat.to_dict())
        return chat

    def mark_read(self, chat_id, reader_id):
        """
        标记已读：一次 UPDATE 把所有非 reader 发送的未读消息置为已读

        Returns:
            dict: {'updated_count': 数量, 'message_ids': [消息ID]}
        """
        if not reader_id:
            raise InvalidArgument('缺少已读用户ID')

        with self.locks.hold(chat_id):
            chat = self.get_session(chat_id)
            rows = db.session.query(SupportChatMessage.id).filter(
                SupportChatMessage.chat_id == chat.id,
                SupportChatMessage.sender_id != reader_id,
                SupportChatMessage.read.is_(False)
            ).order_by(SupportChatMessage.seq).all()
            message_ids = [row.id for row in rows]
            if not message_ids:
                return {'updated_count': 0, 'message_ids': []}

            updated = SupportChatMessage.query.filter(
                SupportChatMessage.id.in_(message_ids),
                SupportChatMessage.read.is_(False)
            ).update({SupportChatMessage.read: True}, synchronize_session=False)
            self._commit('已读状态提交冲突，请重试')

            logger.info(f"👁️ 会话{chat.id}: {reader_id} 已读 {updated} 条消息")
            self.feed.publish(EVENT_READ, chat.id, {
                'chatId': chat.id,
                'readerId': reader_id,
                'messageIds': message_ids,
                'updatedCount': updated
            })
        return {'updated_count': updated, 'message_ids': message_ids}


# 创建单例实例（由 create_app 调用 init_app 绑定配置）
chat_store = ChatStore()
