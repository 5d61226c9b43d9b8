"""
全局配置文件
所有配置项都可以通过环境变量（或项目根目录的 .env 文件）覆盖
"""
import os
from dotenv import load_dotenv

# 加载环境变量（从 .env 文件）
load_dotenv()

# 项目根目录
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ========== 数据库配置 ==========
HOSTNAME = os.getenv('DB_HOST', '')
PORT = os.getenv('DB_PORT', '3306')
DATABASE = os.getenv('DB_NAME', 'support_chat')
USERNAME = os.getenv('DB_USER', '')
PASSWORD = os.getenv('DB_PASSWORD', '')

# 未配置MySQL时使用本地SQLite（开发环境）
if HOSTNAME:
    SQLALCHEMY_DATABASE_URI = f'mysql+pymysql://{USERNAME}:{PASSWORD}@{HOSTNAME}:{PORT}/{DATABASE}?charset=utf8mb4'
    # 数据库连接池优化
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,        # 连接前测试可用性
        "pool_recycle": 300,          # 5分钟回收连接
        "pool_size": 15,              # 连接池大小
        "max_overflow": 30,           # 最大溢出连接数
        "pool_timeout": 10,           # 获取连接超时
        "connect_args": {
            "connect_timeout": 5,
            "read_timeout": 10,
            "write_timeout": 10,
        }
    }
else:
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', f'sqlite:///{os.path.join(BASE_DIR, "support_chat.db")}')
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

SQLALCHEMY_TRACK_MODIFICATIONS = False

# ========== Flask 配置 ==========
SECRET_KEY = os.getenv('SECRET_KEY', 'your-secret-key-here')  # 生产环境请修改为随机字符串
DEBUG = os.getenv('DEBUG', '0') == '1'
TESTING = False

# ========== Redis 配置 ==========
REDIS_HOST = os.getenv('REDIS_HOST', '')
REDIS_PORT = os.getenv('REDIS_PORT', '6379')
REDIS_PASSWORD = os.getenv('REDIS_PASSWORD', '')
REDIS_DB = os.getenv('REDIS_DB', '0')


def build_redis_url(host, port, password, db):
    """构建 Redis 连接 URL，自动处理密码"""
    if password:
        return f'redis://:{password}@{host}:{port}/{db}'
    else:
        return f'redis://{host}:{port}/{db}'


# 未配置 REDIS_HOST 时不启用 Redis（单进程部署）
REDIS_URL = build_redis_url(REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB) if REDIS_HOST else None

# ========== SocketIO 配置 ==========
# 多进程部署时通过 Redis 消息队列广播
SOCKETIO_MESSAGE_QUEUE = build_redis_url(REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, '3') if REDIS_HOST else None
SOCKETIO_ASYNC_MODE = os.getenv('SOCKETIO_ASYNC_MODE', 'eventlet')
SOCKETIO_CORS_ALLOWED_ORIGINS = os.getenv('SOCKETIO_CORS_ALLOWED_ORIGINS', '*')

# ========== 日志配置 ==========
LOG_LEVEL = os.getenv('LOG_LEVEL', 'info')
LOG_DIR = os.getenv('LOG_DIR', os.path.join(BASE_DIR, 'logs'))

# ========== 客服会话配置 ==========
SUPPORT_CHAT_MAX_MESSAGE_LENGTH = int(os.getenv('SUPPORT_CHAT_MAX_MESSAGE_LENGTH', '2000'))
SUPPORT_CHAT_SEND_TIMEOUT = int(os.getenv('SUPPORT_CHAT_SEND_TIMEOUT', '10'))      # 发送确认超时（秒）
SUPPORT_CHAT_LOCK_TIMEOUT = int(os.getenv('SUPPORT_CHAT_LOCK_TIMEOUT', '10'))      # 房间锁超时（秒）
SUPPORT_CHAT_IDLE_CLOSE_SECONDS = int(os.getenv('SUPPORT_CHAT_IDLE_CLOSE_SECONDS', '0'))  # 0 表示不自动关闭
SUPPORT_CHAT_IDLE_CHECK_MINUTES = int(os.getenv('SUPPORT_CHAT_IDLE_CHECK_MINUTES', '5'))
SUPPORT_CHAT_DEFAULT_CATEGORY = 'order-issue'
SUPPORT_CHAT_ADMIN_LIMIT = 100

# ========== 身份配置 ==========
# 认证由外部系统负责，这里只把 token 解析成身份
STAFF_TOKEN = os.getenv('STAFF_TOKEN', 'admin')
STAFF_USER_ID = os.getenv('STAFF_USER_ID', '00000000-0000-4000-8000-000000000001')

# ========== 系统信息 ==========
SYSTEM_NAME = '订单客服会话'
SYSTEM_VERSION = '1.0.0'
