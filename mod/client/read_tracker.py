"""
已读回执
打开/聚焦会话时标记已读；聚焦期间收到对方的新消息时再次标记
"""
from mod.errors import ChatError, TransportUnavailable
import log

logger = log.get_logger(__name__)


class ReadReceiptTracker:
    """已读回执"""

    def __init__(self, user_id, transport=None, loader=None):
        """
        Args:
            user_id: 当前用户ID（自己发的消息不会被自己标记已读）
            transport: PushTransport（已连接时优先使用）
            loader: RestFallbackLoader（实时通道不可用时使用）
        """
        self.user_id = user_id
        self.transport = transport
        self.loader = loader
        self.focused_chat_id = None

    def focus(self, chat_id):
        self.focused_chat_id = chat_id
        return self.mark_read(chat_id)

    def blur(self):
        self.focused_chat_id = None

    def on_inbound(self, chat_id, message):
        """收到新消息：聚焦中且是对方发的未读消息时标记已读"""
        if chat_id != self.focused_chat_id:
            return False
        if message.get('sender_id') == self.user_id or message.get('read'):
            return False
        return self.mark_read(chat_id)

    def _on_ack(self, ack=None):
        if isinstance(ack, dict) and ack.get('code') != 0:
            logger.warning(f"⚠️ 标记已读失败: {ack.get('msg')}")

    def mark_read(self, chat_id):
        """
        标记已读（不等待结果）

        Returns:
            bool: 是否已发出请求
        """
        if not chat_id:
            return False

        if self.transport is not None and self.transport.connected:
            try:
                self.transport.emit('chat:markRead', {'chatId': chat_id}, callback=self._on_ack)
                return True
            except TransportUnavailable:
                logger.info('实时通道不可用，改用REST标记已读')

        if self.loader is None:
            return False
        try:
            self.loader.mark_read(chat_id, self.user_id)
            return True
        except ChatError as e:
            logger.warning(f"⚠️ 标记已读失败: {e.kind}: {e.msg}")
            return False
