"""
应用工厂
创建 Flask 应用，绑定扩展、会话存储、实时推送和 REST 接口
"""
from flask import Flask, request, jsonify
from redis import Redis

import config
import exts
import log
from exts import db, migrate, login_manager, cors, socketio
from mod.mysql.ModuleClass import chat_store

# 必须在 socketio.init_app 之前导入：事件处理器登记在 socketio.handlers 中，每次 init_app 重新绑定
import socketio_events

logger = log.get_logger(__name__)


def create_app(overrides=None):
    """
    创建应用

    Args:
        overrides: 覆盖 config.py 的配置项（测试用）

    Returns:
        Flask: 应用实例
    """
    app = Flask(__name__)

    # ========== 配置加载 ==========
    app.config.from_object(config)
    if overrides:
        app.config.update(overrides)

    # ========== 扩展初始化 ==========
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})

    # Redis 初始化（连接失败时降级为进程内锁）
    exts.redis_client = None
    redis_url = app.config.get('REDIS_URL')
    if redis_url:
        try:
            exts.redis_client = Redis.from_url(redis_url, decode_responses=True)
            exts.redis_client.ping()
            logger.info(f"✅ Redis连接成功: {redis_url}")
        except Exception as e:
            logger.warning(f"⚠️ Redis连接失败: {e}，使用进程内房间锁")
            exts.redis_client = None

    # SocketIO 初始化
    socketio.init_app(
        app,
        message_queue=app.config.get('SOCKETIO_MESSAGE_QUEUE') if exts.redis_client else None,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE'),
        cors_allowed_origins=app.config.get('SOCKETIO_CORS_ALLOWED_ORIGINS', '*')
    )

    # ========== 会话存储 + 实时推送 ==========
    chat_store.init_app(app, redis_client=exts.redis_client)
    socketio_events.register_change_feed(chat_store)

    # ========== 蓝图注册 ==========
    from mod.blueprint import support_chat_bp
    app.register_blueprint(support_chat_bp, url_prefix='/api/support-chat')

    register_hooks(app)
    register_error_handlers(app)

    # ========== 定时任务 ==========
    if not app.config.get('TESTING'):
        from mod.tasks import start_session_monitor
        start_session_monitor(app)

    logger.info(f"🚀 {app.config['SYSTEM_NAME']} v{app.config['SYSTEM_VERSION']} 初始化完成")
    return app


# ========== 身份识别 ==========
@login_manager.request_loader
def load_identity_from_request(req):
    """Authorization: Bearer <token> -> Identity"""
    from mod.utils.identity import identity_from_header
    return identity_from_header(req.headers.get('Authorization'))


def register_hooks(app):
    """请求生命周期：调试日志、响应头、释放数据库会话"""

    @app.before_request
    def log_request():
        if app.config['DEBUG']:
            logger.debug(f"➡️ {request.method} {request.path} auth={'yes' if request.headers.get('Authorization') else 'no'}")

    @app.after_request
    def add_response_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        if request.path.startswith('/api/'):
            response.headers['Cache-Control'] = 'no-store'
        return response

    @app.teardown_appcontext
    def remove_db_session(exception=None):
        db.session.remove()

    @app.shell_context_processor
    def make_shell_context():
        from mod.mysql import models
        from mod.mysql.ModuleClass import chat_store
        return {'db': db, 'models': models, 'chat_store': chat_store}

    register_health_check(app)


def register_health_check(app):

    @app.route('/health')
    def health():
        """健康检查：数据库、Redis、在线连接数、进行中的会话数"""
        from mod.mysql.models import SupportChat

        try:
            active_sessions = SupportChat.query.filter_by(status='active').count()
        except Exception as e:
            db.session.rollback()
            logger.error(f"❌ 健康检查失败: {e}")
            return jsonify({'status': 'unhealthy', 'database': False, 'error': str(e)}), 500

        return jsonify({
            'status': 'healthy',
            'service': app.config['SYSTEM_NAME'],
            'version': app.config['SYSTEM_VERSION'],
            'database': True,
            'redis': exts.redis_client is not None,
            'online_connections': len(socketio_events.online_users),
            'active_sessions': active_sessions
        })


def register_error_handlers(app):
    """非会话接口的错误也使用 {code, msg, error} 格式"""
    from werkzeug.exceptions import HTTPException
    from mod.errors import ChatError

    @app.errorhandler(ChatError)
    def handle_chat_error(error):
        return jsonify(error.to_dict()), error.code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        msg = {404: '资源不存在', 405: '请求方法不允许'}.get(error.code, error.description)
        return jsonify({'code': error.code, 'msg': msg, 'error': error.name}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        logger.error(f"❌ 未捕获的异常: {error}", exc_info=True)
        return jsonify({'code': 500, 'msg': '服务器错误', 'error': 'InternalServerError'}), 500
