"""
蓝图包
"""
from .support_chat import support_chat_bp

__all__ = ['support_chat_bp']
