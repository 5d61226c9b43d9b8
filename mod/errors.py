"""
客服会话错误类型
REST 响应、Socket ack 和客户端共用同一套错误分类
"""


class ChatError(Exception):
    """会话错误基类"""

    kind = 'ChatError'
    code = 500
    default_msg = '会话操作失败'

    def __init__(self, msg=None):
        self.msg = msg or self.default_msg
        super().__init__(self.msg)

    def to_dict(self):
        return {
            'code': self.code,
            'msg': self.msg,
            'error': self.kind
        }


class Conflict(ChatError):
    """该订单已有进行中的会话"""
    kind = 'Conflict'
    code = 409
    default_msg = '该订单已存在进行中的会话'


class NotFound(ChatError):
    """会话/订单/客户不存在"""
    kind = 'NotFound'
    code = 404
    default_msg = '会话不存在'


class InvalidState(ChatError):
    """会话状态不允许该操作"""
    kind = 'InvalidState'
    code = 409
    default_msg = '会话已结束，无法发送消息'


class InvalidArgument(ChatError):
    """参数校验失败"""
    kind = 'InvalidArgument'
    code = 400
    default_msg = '参数不完整'


class Forbidden(ChatError):
    """当前身份无权执行该操作"""
    kind = 'Forbidden'
    code = 403
    default_msg = '权限不足'


class TransportUnavailable(ChatError):
    """推送通道不可用，调用方需要走 REST"""
    kind = 'TransportUnavailable'
    code = 503
    default_msg = '实时通道不可用'


class SendFailed(ChatError):
    """发送超时或被拒绝"""
    kind = 'SendFailed'
    code = 504
    default_msg = '消息发送失败'


ERROR_KINDS = {
    cls.kind: cls
    for cls in (Conflict, NotFound, InvalidState, InvalidArgument, Forbidden, TransportUnavailable, SendFailed)
}


def error_from_payload(payload, status=None):
    """
    根据响应体还原错误对象

    Args:
        payload: {'code': ..., 'msg': ..., 'error': ...}
        status: HTTP状态码（可选，payload缺少error字段时使用）

    Returns:
        ChatError: 对应的错误实例
    """
    payload = payload if isinstance(payload, dict) else {}
    msg = payload.get('msg') or payload.get('message')
    cls = ERROR_KINDS.get(payload.get('error'))
    if cls is None:
        code = status or payload.get('code')
        cls = next((c for c in ERROR_KINDS.values() if c.code == code and c is not InvalidState), ChatError)
    return cls(msg)
