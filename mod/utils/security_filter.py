"""
消息内容过滤
去掉控制字符和危险标签，校验长度
"""
import re

import log
from mod.errors import InvalidArgument

logger = log.get_logger(__name__)


class SecurityFilter:
    """安全过滤器类"""

    # XSS危险标签（客户端按纯文本渲染，这里只做兜底清理）
    XSS_PATTERNS = [
        r'<script[^>]*>.*?</script>',
        r'<iframe[^>]*>.*?</iframe>',
        r'<embed[^>]*>',
        r'<object[^>]*>.*?</object>',
        r'javascript:',
    ]

    # 保留换行和制表符，去掉其他控制字符
    CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')

    @classmethod
    def remove_xss(cls, content):
        for pattern in cls.XSS_PATTERNS:
            content = re.sub(pattern, '', content, flags=re.IGNORECASE | re.DOTALL)
        return content

    @classmethod
    def remove_dangerous_chars(cls, content):
        return cls.CONTROL_CHARS.sub('', content)

    @classmethod
    def clean_text(cls, content, max_length, field='内容'):
        """
        清理并校验文本

        Args:
            content: 原始文本
            max_length: 最大长度
            field: 字段名称（用于错误提示）

        Returns:
            str: 清理后的文本

        Raises:
            InvalidArgument: 为空或超长
        """
        if not isinstance(content, str):
            raise InvalidArgument(f'{field}不能为空')

        cleaned = cls.remove_dangerous_chars(cls.remove_xss(content)).strip()
        if cleaned != content.strip():
            logger.info(f"🛡️ {field}已过滤 - original_length: {len(content)}, filtered_length: {len(cleaned)}")

        if not cleaned:
            raise InvalidArgument(f'{field}不能为空')
        if len(cleaned) > max_length:
            raise InvalidArgument(f'{field}过长（最多{max_length}个字符）')
        return cleaned
