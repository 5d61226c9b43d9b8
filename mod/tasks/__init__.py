"""
定时任务
"""
from .session_monitor import start_session_monitor, stop_session_monitor, close_idle_sessions

__all__ = ['start_session_monitor', 'stop_session_monitor', 'close_idle_sessions']
