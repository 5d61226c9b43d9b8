"""
会话监控定时任务
- 进行中的会话长时间没有新消息时自动关闭
"""

from apscheduler.schedulers.background import BackgroundScheduler
from datetime import timedelta
from mod.errors import ChatError
from mod.mysql.models import SupportChat, get_local_time
from mod.mysql.ModuleClass import chat_store
import log

logger = log.get_logger(__name__)

# 全局调度器
scheduler = None


def close_idle_sessions(app, idle_seconds=None, now=None):
    """
    关闭空闲会话

    Args:
        app: Flask 应用
        idle_seconds: 空闲多久关闭（秒），默认读取 SUPPORT_CHAT_IDLE_CLOSE_SECONDS
        now: 当前时间（测试用）

    Returns:
        int: 关闭的会话数
    """
    with app.app_context():
        idle_seconds = idle_seconds if idle_seconds is not None else app.config.get('SUPPORT_CHAT_IDLE_CLOSE_SECONDS', 0)
        if not idle_seconds:
            return 0

        deadline = (now or get_local_time()) - timedelta(seconds=idle_seconds)
        idle_ids = [row.id for row in SupportChat.query.with_entities(SupportChat.id).filter(
            SupportChat.status == 'active',
            SupportChat.last_message_at < deadline
        ).all()]

        close_count = 0
        for chat_id in idle_ids:
            try:
                chat_store.set_status(chat_id, 'closed', actor='system')
                close_count += 1
                logger.info(f'会话空闲超时，已自动关闭: chat={chat_id}')
            except ChatError as e:
                # 检查之后状态已被其他请求修改
                logger.info(f'自动关闭会话跳过: chat={chat_id}, {e.kind}: {e.msg}')

        if close_count > 0:
            logger.info(f'本次检查完成，共关闭{close_count}个空闲会话')
        return close_count


def start_session_monitor(app):
    """启动会话监控定时任务（SUPPORT_CHAT_IDLE_CLOSE_SECONDS 为 0 时不启动）"""
    global scheduler

    if not app.config.get('SUPPORT_CHAT_IDLE_CLOSE_SECONDS'):
        logger.info('会话空闲自动关闭未启用')
        return None
    if scheduler:
        return scheduler

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        close_idle_sessions,
        'interval',
        args=[app],
        minutes=app.config.get('SUPPORT_CHAT_IDLE_CHECK_MINUTES', 5),
        id='close_idle_sessions',
        name='关闭空闲会话',
        max_instances=1
    )
    scheduler.start()
    logger.info('✅ 会话监控定时任务已启动')
    return scheduler


def stop_session_monitor():
    """停止会话监控定时任务"""
    global scheduler

    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info('会话监控定时任务已停止')
