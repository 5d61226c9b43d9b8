"""
Flask 扩展初始化
扩展对象在这里创建，由 app.create_app() 绑定到应用
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_cors import CORS
from flask_socketio import SocketIO

# 数据库 ORM
db = SQLAlchemy()

# 数据库迁移
migrate = Migrate()

# 身份识别（token -> Identity）
login_manager = LoginManager()

# 跨域支持
cors = CORS()

# SocketIO
socketio = SocketIO()

# Redis 客户端（create_app 中初始化，连接失败时为 None）
redis_client = None
