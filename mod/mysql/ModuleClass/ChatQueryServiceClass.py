#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
会话查询业务逻辑
负责会话列表、会话详情，并补充客户和订单信息（查不到时使用占位数据，不影响主响应）
"""
from sqlalchemy.exc import SQLAlchemyError

import log
from exts import db
from mod.mysql.models import Customer, Order, order_number
from mod.mysql.ModuleClass.ChatStoreClass import chat_store

logger = log.get_logger(__name__)


def placeholder_customer():
    return {'name': 'Unknown', 'email': '', 'phone': ''}


def placeholder_order(order_id):
    return {
        'id': order_id,
        'total_amount': 0,
        'status': 'unknown',
        'order_number': order_number(order_id)
    }


class ChatQueryService:
    """会话查询服务"""

    @staticmethod
    def customer_details(customer_id):
        """
        获取客户信息

        Returns:
            dict: 客户信息，不存在或查询失败时返回占位数据
        """
        try:
            customer = db.session.get(Customer, customer_id) if customer_id else None
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning(f"⚠️ 查询客户{customer_id}失败，使用占位数据: {e}")
            customer = None
        return customer.to_dict() if customer else placeholder_customer()

    @staticmethod
    def order_details(order_id):
        """
        获取订单信息（order_number 总是订单ID后6位）
        """
        try:
            order = db.session.get(Order, order_id) if order_id else None
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning(f"⚠️ 查询订单{order_id}失败，使用占位数据: {e}")
            order = None
        return order.to_dict() if order else placeholder_order(order_id)

    @classmethod
    def enrich(cls, chat, include_customer=True):
        """会话转字典，并补充订单（和客户）信息"""
        data = chat.to_dict()
        data['order_details'] = cls.order_details(chat.order_id)
        if include_customer:
            data['customer_details'] = cls.customer_details(chat.customer_id)
        return data

    @classmethod
    def list_admin_sessions(cls, limit=None):
        """管理端：全部会话，最新的在前，包含客户和订单信息"""
        chats = chat_store.list_sessions(limit=limit)
        return [cls.enrich(chat) for chat in chats]

    @classmethod
    def list_customer_sessions(cls, customer_id, order_id=None, status=None):
        """客户端：某个客户的会话，包含订单信息"""
        chats = chat_store.list_sessions(customer_id=customer_id, order_id=order_id, status=status)
        return [cls.enrich(chat, include_customer=False) for chat in chats]

    @classmethod
    def get_session(cls, chat_id):
        """会话详情（NotFound 向上抛出）"""
        return cls.enrich(chat_store.get_session(chat_id))

    @classmethod
    def get_by_order(cls, order_id, customer_id=None):
        """订单最近的会话，没有返回 None"""
        chat = chat_store.latest_for_order(order_id, customer_id)
        return cls.enrich(chat) if chat else None


chat_query_service = ChatQueryService()
