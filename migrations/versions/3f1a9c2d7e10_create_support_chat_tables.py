"""create_support_chat_tables

创建客服会话相关表：support_chats、support_chat_messages，以及只读的 customers、orders

Revision ID: 3f1a9c2d7e10
Revises:
Create Date: 2026-10-19 10:12:40.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1a9c2d7e10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('customers',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True, comment='姓名'),
        sa.Column('email', sa.String(length=255), nullable=True, comment='邮箱'),
        sa.Column('phone', sa.String(length=64), nullable=True, comment='电话'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('orders',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.String(length=64), nullable=True, comment='客户ID'),
        sa.Column('customer_name', sa.String(length=255), nullable=True, comment='下单人'),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=True, comment='订单金额'),
        sa.Column('status', sa.String(length=32), nullable=True, comment='订单状态'),
        sa.Column('table_number', sa.String(length=32), nullable=True, comment='桌号'),
        sa.Column('created_at', sa.DateTime(), nullable=True, comment='下单时间'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('support_chats',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False, comment='订单ID'),
        sa.Column('customer_id', sa.String(length=64), nullable=False, comment='客户ID'),
        sa.Column('category', sa.String(length=64), nullable=False, comment='问题分类'),
        sa.Column('issue', sa.Text(), nullable=False, comment='问题描述'),
        sa.Column('status', sa.Enum('active', 'resolved', 'closed', name='support_chat_status'), nullable=False, comment='会话状态'),
        sa.Column('active_key', sa.String(length=160), nullable=True, comment='进行中会话唯一键'),
        sa.Column('resolved_by', sa.String(length=64), nullable=True, comment='解决人'),
        sa.Column('resolved_at', sa.DateTime(), nullable=True, comment='解决时间'),
        sa.Column('created_at', sa.DateTime(), nullable=True, comment='创建时间'),
        sa.Column('last_message_at', sa.DateTime(), nullable=True, comment='最后消息时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('active_key')
    )
    op.create_index('idx_support_chat_order', 'support_chats', ['order_id'], unique=False)
    op.create_index('idx_support_chat_customer', 'support_chats', ['customer_id'], unique=False)
    op.create_index('idx_support_chat_last_message', 'support_chats', ['last_message_at'], unique=False)

    op.create_table('support_chat_messages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('chat_id', sa.String(length=36), nullable=False, comment='会话ID'),
        sa.Column('seq', sa.Integer(), nullable=False, comment='会话内提交顺序'),
        sa.Column('sender', sa.Enum('customer', 'staff', name='support_chat_sender'), nullable=False, comment='发送方'),
        sa.Column('sender_id', sa.String(length=64), nullable=False, comment='发送者ID'),
        sa.Column('content', sa.Text(), nullable=False, comment='消息内容'),
        sa.Column('timestamp', sa.DateTime(), nullable=False, comment='发送时间'),
        sa.Column('read', sa.Boolean(), nullable=False, comment='是否已读'),
        sa.ForeignKeyConstraint(['chat_id'], ['support_chats.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('chat_id', 'seq', name='uix_support_chat_seq')
    )
    op.create_index('idx_support_chat_message_chat', 'support_chat_messages', ['chat_id'], unique=False)


def downgrade():
    op.drop_index('idx_support_chat_message_chat', table_name='support_chat_messages')
    op.drop_table('support_chat_messages')
    op.drop_index('idx_support_chat_last_message', table_name='support_chats')
    op.drop_index('idx_support_chat_customer', table_name='support_chats')
    op.drop_index('idx_support_chat_order', table_name='support_chats')
    op.drop_table('support_chats')
    op.drop_table('orders')
    op.drop_table('customers')
