"""
乐观消息处理
发送时先在本地插入临时消息，收到服务端确认后用正式消息替换，失败时移除

临时消息只按关联ID（temp-xxx）匹配，不按内容匹配
"""
import uuid
from datetime import datetime

import log

logger = log.get_logger(__name__)


def new_correlation_id():
    return f'temp-{uuid.uuid4().hex}'


class ChatView:
    """
    本地会话视图
    已确认的消息按 seq 排序，按消息ID去重（重复推送、重连补数据都可以安全合并）
    """

    def __init__(self):
        self.chat = None
        self._messages = {}

    @property
    def chat_id(self):
        return self.chat['id'] if self.chat else None

    def load(self, chat):
        """加载/刷新会话（切换到其他会话时清空本地消息）"""
        if not chat:
            return
        if self.chat_id and chat.get('id') != self.chat_id:
            self._messages = {}
        self.chat = {key: value for key, value in chat.items() if key != 'messages'}
        for message in chat.get('messages') or []:
            self.merge_message(message)

    def merge_message(self, message):
        """
        合并一条已确认的消息

        Returns:
            bool: 是否是新消息
        """
        existing = self._messages.get(message['id'])
        if existing:
            # 已读只能从 False 变为 True
            existing['read'] = bool(existing.get('read')) or bool(message.get('read'))
            return False

        self._messages[message['id']] = dict(message)
        if self.chat is not None and message.get('timestamp'):
            last = self.chat.get('last_message_at')
            if not last or message['timestamp'] > last:
                self.chat['last_message_at'] = message['timestamp']
        return True

    def apply_read(self, message_ids):
        """处理已读回执，返回本地实际变化的条数"""
        changed = 0
        for message_id in message_ids or []:
            message = self._messages.get(message_id)
            if message and not message.get('read'):
                message['read'] = True
                changed += 1
        return changed

    @property
    def messages(self):
        return sorted(self._messages.values(), key=lambda m: (m.get('seq') or 0, m.get('timestamp') or ''))


class OptimisticReconciler:
    """待确认消息表 {关联ID: 临时消息}"""

    def __init__(self, view):
        self.view = view
        self.pending = {}

    def begin(self, content, sender, sender_id):
        """
        插入临时消息

        Returns:
            str: 关联ID
        """
        correlation_id = new_correlation_id()
        self.pending[correlation_id] = {
            'id': correlation_id,
            'chat_id': self.view.chat_id,
            'seq': None,
            'sender': sender,
            'sender_id': sender_id,
            'content': content,
            'timestamp': datetime.now().isoformat(),
            'read': False,
            'pending': True
        }
        return correlation_id

    def confirm(self, correlation_id, canonical):
        """
        用服务端确认的消息替换临时消息
        如果推送已经先到（正式消息已在视图中），只移除临时消息
        """
        if self.pending.pop(correlation_id, None) is None:
            logger.warning(f"⚠️ 未找到待确认消息: {correlation_id}")
        self.view.merge_message(canonical)
        return canonical

    def reject(self, correlation_id, reason=None):
        """发送失败，移除临时消息"""
        removed = self.pending.pop(correlation_id, None)
        if removed is not None:
            logger.info(f"↩️ 撤回临时消息 {correlation_id}: {reason}")
        return removed is not None

    @property
    def messages(self):
        """界面展示的消息：已确认的在前，待确认的按发送顺序排在后面"""
        return self.view.messages + list(self.pending.values())
