"""
业务类封装
"""
from .ChatStoreClass import ChatStore, ChangeFeed, RoomLocks
from .ChatQueryServiceClass import ChatQueryService

# 导出单例实例
from .ChatStoreClass import chat_store
from .ChatQueryServiceClass import chat_query_service

__all__ = [
    'ChatStore',
    'ChangeFeed',
    'RoomLocks',
    'ChatQueryService',
    'chat_store',
    'chat_query_service'
]
