"""
身份解析
认证由外部系统完成，这里只把不透明的 token 映射成身份（客户或客服）
"""
from flask import current_app
from flask_login import UserMixin

from mod.errors import Forbidden, NotFound


class Identity(UserMixin):
    """当前连接/请求的身份"""

    def __init__(self, user_id, role='customer'):
        self.id = str(user_id)
        self.role = role

    def __repr__(self):
        return f'<Identity {self.role}:{self.id}>'

    @property
    def is_staff(self):
        return self.role == 'staff'

    def to_dict(self):
        return {'user_id': self.id, 'role': self.role}


def identity_from_token(token, config=None):
    """
    token -> Identity

    Args:
        token: 客户端传入的 token（为空表示匿名）
        config: 配置字典（默认使用当前应用配置）

    Returns:
        Identity | None: 匿名时返回 None
    """
    if not token or not isinstance(token, str):
        return None
    config = config if config is not None else current_app.config
    if token == config.get('STAFF_TOKEN'):
        return Identity(config.get('STAFF_USER_ID'), role='staff')
    return Identity(token, role='customer')


def identity_from_header(header_value):
    """解析 Authorization: Bearer <token>"""
    if not header_value:
        return None
    scheme, _, token = header_value.partition(' ')
    if scheme.lower() != 'bearer':
        return None
    return identity_from_token(token.strip())


def check_chat_access(chat, identity):
    """客户只能访问自己的会话（对其他客户表现为会话不存在）"""
    if identity and not identity.is_staff and chat.customer_id != identity.id:
        raise NotFound('会话不存在')


def resolve_sender(identity, sender_id=None, sender=None):
    """
    根据当前身份确定发送方

    Returns:
        tuple: (sender, sender_id)；匿名时原样返回，由存储层校验

    Raises:
        Forbidden: 客户以其他用户的身份发送
    """
    if identity is None:
        return sender, sender_id
    if identity.is_staff:
        return 'staff', sender_id or identity.id
    if (sender_id and sender_id != identity.id) or sender not in (None, 'customer'):
        raise Forbidden('不能以其他用户身份发送消息')
    return 'customer', identity.id
