"""
日志配置
控制台彩色输出 + 按天滚动的文件日志，日志目录超过上限时自动清理旧文件
"""
import logging
import os
from logging import handlers

import colorlog  # 彩色日志输出支持

import config

ROOT_LOGGER_NAME = 'support_chat'

# 全局logger缓存，避免重复创建
_logger_cache = {}

_check_interval = 500         # 每500条日志检查一次目录大小
_max_folder_size_mb = 500     # 最大文件夹大小（MB）
_target_folder_size_mb = 400  # 清理后的目标大小（MB）

LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'crit': logging.CRITICAL
}

FILE_FORMAT = '%(asctime)s - %(name)s[line:%(lineno)d] - %(levelname)s: %(message)s'
COLOR_FORMAT = '%(log_color)s' + FILE_FORMAT


class LogCleanupFilter(logging.Filter):
    """
    计数日志条目，每 _check_interval 条检查一次日志目录大小
    """

    def __init__(self, logs_path):
        super().__init__()
        self.logs_path = logs_path
        self.count = 0

    def filter(self, record):
        self.count += 1
        if self.count % _check_interval == 0:
            cleanup_logs(self.logs_path)
        return True


def _folder_size_mb(logs_path):
    total_size = 0
    for filename in os.listdir(logs_path):
        file_path = os.path.join(logs_path, filename)
        if os.path.isfile(file_path):
            total_size += os.path.getsize(file_path)
    return total_size / (1024 * 1024)


def cleanup_logs(logs_path, max_size_mb=_max_folder_size_mb, target_size_mb=_target_folder_size_mb):
    """
    日志目录超过 max_size_mb 时，按修改时间从旧到新删除文件，直到降到 target_size_mb

    Returns:
        int: 删除的文件数
    """
    if not os.path.isdir(logs_path):
        return 0

    current_size_mb = _folder_size_mb(logs_path)
    if current_size_mb <= max_size_mb:
        return 0

    files = []
    for filename in os.listdir(logs_path):
        file_path = os.path.join(logs_path, filename)
        if os.path.isfile(file_path):
            files.append((file_path, os.path.getmtime(file_path), os.path.getsize(file_path)))
    files.sort(key=lambda x: x[1])

    deleted_count = 0
    for file_path, _, size in files:
        if current_size_mb <= target_size_mb:
            break
        try:
            os.remove(file_path)
        except OSError as e:
            logging.getLogger(ROOT_LOGGER_NAME).warning(f'删除日志文件 {file_path} 失败: {e}')
            continue
        current_size_mb -= size / (1024 * 1024)
        deleted_count += 1
    return deleted_count


def _setup_root(level, log_dir):
    """给根logger挂载控制台和文件处理器（只执行一次）"""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    root.setLevel(LEVELS.get(level, logging.INFO))
    root.propagate = False

    # 控制台处理器（彩色输出）
    sh = logging.StreamHandler()
    sh.setFormatter(colorlog.ColoredFormatter(
        COLOR_FORMAT,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'bold_red'
        }
    ))
    root.addHandler(sh)

    # 文件处理器（普通格式，按天滚动）
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        th = handlers.TimedRotatingFileHandler(
            filename=os.path.join(log_dir, 'app.log'),
            when='D',
            backupCount=7,
            encoding='utf-8'
        )
        th.setFormatter(logging.Formatter(FILE_FORMAT))
        th.addFilter(LogCleanupFilter(log_dir))
        root.addHandler(th)

    return root


def get_logger(name=None, level=None):
    """
    获取logger实例的便捷函数

    Args:
        name: logger名称，通常传入__name__
        level: 日志级别，默认使用 config.LOG_LEVEL

    Returns:
        logging.Logger: 挂在 support_chat 根logger下的子logger
    """
    cache_key = name or ROOT_LOGGER_NAME
    if cache_key not in _logger_cache:
        _setup_root(level or config.LOG_LEVEL, config.LOG_DIR)
        if name:
            _logger_cache[cache_key] = logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')
        else:
            _logger_cache[cache_key] = logging.getLogger(ROOT_LOGGER_NAME)
    return _logger_cache[cache_key]
