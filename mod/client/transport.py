"""
实时通道客户端
包装 python-socketio 的 Client：连接对象由调用方创建并传入，生命周期由调用方管理
"""
from socketio import exceptions as sio_exceptions

from mod.errors import TransportUnavailable, SendFailed, error_from_payload
import log

logger = log.get_logger(__name__)


def unwrap_ack(ack):
    """
    解析服务端 ack：{'code': 0, 'data': ...} 返回 data，否则抛出对应错误
    """
    if not isinstance(ack, dict):
        raise SendFailed('无效的确认消息')
    if ack.get('code') != 0:
        raise error_from_payload(ack)
    return ack.get('data')


class PushTransport:
    """Socket.IO 推送通道"""

    def __init__(self, sio, url, token=None, send_timeout=10, socketio_path='socket.io'):
        """
        Args:
            sio: socketio.Client 实例
            url: 服务端地址
            token: 身份 token（握手时通过 auth 传递）
            send_timeout: 等待 ack 的超时时间（秒）
            socketio_path: Socket.IO 路径
        """
        self.sio = sio
        self.url = url
        self.token = token
        self.send_timeout = send_timeout
        self.socketio_path = socketio_path

    @property
    def connected(self):
        return bool(self.sio.connected)

    def connect(self, wait_timeout=5):
        """建立连接，失败抛出 TransportUnavailable"""
        if self.connected:
            return
        try:
            self.sio.connect(
                self.url,
                auth={'token': self.token} if self.token else None,
                socketio_path=self.socketio_path,
                wait_timeout=wait_timeout
            )
        except sio_exceptions.ConnectionError as e:
            logger.warning(f"⚠️ 实时通道连接失败: {e}")
            raise TransportUnavailable(f'实时通道连接失败: {e}')
        logger.info(f"✅ 实时通道已连接: {self.url}")

    def disconnect(self):
        if self.connected:
            self.sio.disconnect()

    def on(self, event, handler):
        self.sio.on(event, handler)

    def call(self, event, data=None, timeout=None):
        """
        发送事件并等待 ack

        Raises:
            TransportUnavailable: 未连接
            SendFailed: 超时未收到 ack
            ChatError: 服务端返回的错误
        """
        if not self.connected:
            raise TransportUnavailable()
        try:
            ack = self.sio.call(event, data, timeout=timeout or self.send_timeout)
        except sio_exceptions.TimeoutError:
            logger.warning(f"⚠️ {event} 等待确认超时")
            raise SendFailed(f'{event} 确认超时')
        except (sio_exceptions.BadNamespaceError, sio_exceptions.ConnectionError) as e:
            raise TransportUnavailable(f'实时通道不可用: {e}')
        return unwrap_ack(ack)

    def emit(self, event, data=None, callback=None):
        """发送事件，不等待 ack"""
        if not self.connected:
            raise TransportUnavailable()
        try:
            self.sio.emit(event, data, callback=callback)
        except (sio_exceptions.BadNamespaceError, sio_exceptions.ConnectionError) as e:
            raise TransportUnavailable(f'实时通道不可用: {e}')
