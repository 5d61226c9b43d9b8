"""
REST 通道客户端
用于进入会话时加载数据、重连后补齐数据，以及实时通道不可用时的读写
"""
import requests

from mod.errors import TransportUnavailable, error_from_payload
import log

logger = log.get_logger(__name__)


class RestFallbackLoader:
    """客服会话 REST 接口"""

    def __init__(self, base_url, token=None, session=None, timeout=10):
        """
        Args:
            base_url: 接口地址，如 http://localhost:5302/api/support-chat
            token: 身份 token（Authorization: Bearer）
            session: requests.Session（默认新建）
            timeout: 请求超时（秒）
        """
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers = {'Authorization': f'Bearer {token}'} if token else {}

    def _request(self, method, path='', **kwargs):
        url = f'{self.base_url}{path}'
        try:
            resp = self.session.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning(f"⚠️ REST请求失败: {method} {url}: {e}")
            raise TransportUnavailable(f'REST请求失败: {e}')

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code >= 400 or body.get('code', 0) != 0:
            raise error_from_payload(body, resp.status_code)
        return body.get('data')

    def list_sessions(self, role=None, customer_id=None, order_id=None, status=None):
        """会话列表（最后消息时间倒序）"""
        params = {}
        if role:
            params['role'] = role
        if customer_id:
            params['customerId'] = customer_id
        if order_id:
            params['orderId'] = order_id
        if status:
            params['status'] = status
        return self._request('GET', params=params) or []

    def get_session(self, chat_id):
        return self._request('GET', f'/{chat_id}')

    def create_session(self, order_id, customer_id, issue, category):
        return self._request('POST', json={
            'orderId': order_id,
            'customerId': customer_id,
            'issue': issue,
            'category': category
        })

    def append_message(self, chat_id, content, sender_id, sender=None):
        payload = {'chatId': chat_id, 'content': content, 'senderId': sender_id}
        if sender:
            payload['sender'] = sender
        return self._request('POST', '/message', json=payload)

    def set_status(self, chat_id, status):
        return self._request('PUT', f'/{chat_id}', json={'status': status})

    def mark_read(self, chat_id, user_id):
        """返回 {'updated': bool, 'updatedCount': int, 'messageIds': [...]}"""
        return self._request('POST', '/read-messages', json={'chatId': chat_id, 'userId': user_id})
