"""
日誌模組

提供統一的 logger 配置：
- 統一格式（時間、層級、名稱）
- 日誌層級可由環境變數 SCENLAB_LOG_LEVEL 覆蓋（預設 INFO）
"""
from __future__ import annotations
import logging
import os


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
LOG_LEVEL_ENV = "SCENLAB_LOG_LEVEL"

# 已配置的 logger 名稱（避免重複配置）
_configured_loggers: set[str] = set()


def _resolve_level(default: int = logging.INFO) -> int:
    """從環境變數解析日誌層級，無法辨識時回退到預設值"""
    raw = os.getenv(LOG_LEVEL_ENV)
    if not raw:
        return default
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else default


def get_logger(name: str = "scenlab") -> logging.Logger:
    """
    取得 logger 實例

    自動配置：
    - 統一的日誌格式
    - 環境變數控制的日誌層級

    Args:
        name: logger 名稱

    Returns:
        配置好的 logger
    """
    logger = logging.getLogger(name)

    # 避免重複配置
    if name in _configured_loggers:
        return logger

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_resolve_level())

    _configured_loggers.add(name)
    return logger
