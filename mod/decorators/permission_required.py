"""
权限验证装饰器
"""
from functools import wraps
from flask import jsonify
from flask_login import current_user


def permission_required(*allowed_roles):
    """
    权限验证装饰器

    Args:
        *allowed_roles: 允许访问的角色，如 'staff', 'customer'

    Usage:
        @permission_required('staff')
        def staff_only_view():
            pass
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            # 检查身份
            if not current_user.is_authenticated:
                return jsonify({'code': 401, 'msg': '未登录', 'error': 'Unauthorized'}), 401

            # 检查角色
            if current_user.role not in allowed_roles:
                return jsonify({'code': 403, 'msg': '权限不足', 'error': 'Forbidden'}), 403

            return func(*args, **kwargs)
        return wrapper
    return decorator


def staff_required(func):
    """客服权限"""
    return permission_required('staff')(func)
