"""
客服会话客户端
"""
from .transport import PushTransport
from .rest_loader import RestFallbackLoader
from .reconciler import ChatView, OptimisticReconciler
from .read_tracker import ReadReceiptTracker
from .chat_client import ChatClient, create_chat_client

__all__ = [
    'PushTransport',
    'RestFallbackLoader',
    'ChatView',
    'OptimisticReconciler',
    'ReadReceiptTracker',
    'ChatClient',
    'create_chat_client'
]
