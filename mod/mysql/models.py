"""
数据库模型定义
"""
import uuid
from datetime import datetime
from exts import db


# ✅ 使用本地时区时间（非UTC）
def get_local_time():
    """获取本地时间"""
    return datetime.now()


def new_uuid():
    return str(uuid.uuid4())


def isoformat(value):
    return value.isoformat() if value else None


def order_number(order_id):
    """订单展示编号：订单ID的后6位（只用于展示，不入库）"""
    return str(order_id or '')[-6:]


CHAT_STATUSES = ('active', 'resolved', 'closed')
SENDER_TYPES = ('customer', 'staff')


# ========== 客服会话模型 ==========
class SupportChat(db.Model):
    """客服会话表（一个会话只对应一个订单）"""
    __tablename__ = 'support_chats'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    order_id = db.Column(db.String(64), nullable=False, comment='订单ID')
    customer_id = db.Column(db.String(64), nullable=False, comment='客户ID')
    category = db.Column(db.String(64), nullable=False, default='order-issue', comment='问题分类')
    issue = db.Column(db.Text, nullable=False, comment='问题描述')

    # 状态
    status = db.Column(db.Enum(*CHAT_STATUSES, name='support_chat_status'), nullable=False, default='active', comment='会话状态')
    # 进行中时为 "订单ID:客户ID"，否则为 NULL；唯一约束保证同一订单+客户只有一个进行中的会话
    active_key = db.Column(db.String(160), unique=True, nullable=True, comment='进行中会话唯一键')

    resolved_by = db.Column(db.String(64), comment='解决人')
    resolved_at = db.Column(db.DateTime, comment='解决时间')

    # 时间戳
    created_at = db.Column(db.DateTime, default=get_local_time, comment='创建时间')
    last_message_at = db.Column(db.DateTime, default=get_local_time, comment='最后消息时间')

    messages = db.relationship(
        'SupportChatMessage',
        backref='chat',
        lazy='select',
        order_by='SupportChatMessage.seq',
        cascade='all, delete-orphan'
    )

    __table_args__ = (
        db.Index('idx_support_chat_order', 'order_id'),
        db.Index('idx_support_chat_customer', 'customer_id'),
        db.Index('idx_support_chat_last_message', 'last_message_at'),
    )

    def __repr__(self):
        return f'<SupportChat {self.id} {self.status}>'

    @staticmethod
    def make_active_key(order_id, customer_id):
        return f'{order_id}:{customer_id}'

    @property
    def is_active(self):
        return self.status == 'active'

    def to_dict(self, include_messages=True):
        data = {
            'id': self.id,
            'order_id': self.order_id,
            'customer_id': self.customer_id,
            'category': self.category,
            'issue': self.issue,
            'status': self.status,
            'created_at': isoformat(self.created_at),
            'last_message_at': isoformat(self.last_message_at),
            'resolved_by': self.resolved_by,
            'resolved_at': isoformat(self.resolved_at),
            'order_number': order_number(self.order_id)
        }
        if include_messages:
            data['messages'] = [msg.to_dict() for msg in self.messages]
        return data


# ========== 会话消息模型 ==========
class SupportChatMessage(db.Model):
    """会话消息表（只追加，只有 read 字段允许修改）"""
    __tablename__ = 'support_chat_messages'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    chat_id = db.Column(db.String(36), db.ForeignKey('support_chats.id'), nullable=False, comment='会话ID')
    seq = db.Column(db.Integer, nullable=False, comment='会话内提交顺序')

    sender = db.Column(db.Enum(*SENDER_TYPES, name='support_chat_sender'), nullable=False, comment='发送方')
    sender_id = db.Column(db.String(64), nullable=False, comment='发送者ID')
    content = db.Column(db.Text, nullable=False, comment='消息内容')
    timestamp = db.Column(db.DateTime, nullable=False, default=get_local_time, comment='发送时间')
    read = db.Column(db.Boolean, nullable=False, default=False, comment='是否已读')

    __table_args__ = (
        db.UniqueConstraint('chat_id', 'seq', name='uix_support_chat_seq'),
        db.Index('idx_support_chat_message_chat', 'chat_id'),
    )

    def __repr__(self):
        return f'<SupportChatMessage {self.chat_id}#{self.seq}>'

    def to_dict(self):
        return {
            'id': self.id,
            'chat_id': self.chat_id,
            'seq': self.seq,
            'sender': self.sender,
            'sender_id': self.sender_id,
            'content': self.content,
            'timestamp': isoformat(self.timestamp),
            'read': bool(self.read)
        }


# ========== 外部数据（只读，用于会话列表补充信息） ==========
class Customer(db.Model):
    """客户表"""
    __tablename__ = 'customers'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), default='', comment='姓名')
    email = db.Column(db.String(255), default='', comment='邮箱')
    phone = db.Column(db.String(64), default='', comment='电话')

    def __repr__(self):
        return f'<Customer {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name or '',
            'email': self.email or '',
            'phone': self.phone or ''
        }


class Order(db.Model):
    """订单表"""
    __tablename__ = 'orders'

    id = db.Column(db.String(64), primary_key=True)
    customer_id = db.Column(db.String(64), comment='客户ID')
    customer_name = db.Column(db.String(255), default='', comment='下单人')
    total_amount = db.Column(db.Numeric(10, 2), default=0, comment='订单金额')
    status = db.Column(db.String(32), default='pending', comment='订单状态')
    table_number = db.Column(db.String(32), default='', comment='桌号')
    created_at = db.Column(db.DateTime, default=get_local_time, comment='下单时间')

    def __repr__(self):
        return f'<Order {self.id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'total_amount': float(self.total_amount or 0),
            'status': self.status,
            'table_number': self.table_number,
            'customer_name': self.customer_name,
            'created_at': isoformat(self.created_at),
            'order_number': order_number(self.id)
        }
