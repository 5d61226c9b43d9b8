"""
生产/开发启动入口
gunicorn: gunicorn -k eventlet -w 1 server:app
"""
# ========== Eventlet Monkey Patch (必须在所有导入之前) ==========
import eventlet
eventlet.monkey_patch()

import config
from app import create_app
from exts import db, socketio

app = create_app()


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
    # 开发环境使用 SocketIO 运行
    socketio.run(
        app,
        host='127.0.0.1',
        port=5302,
        debug=config.DEBUG
    )
