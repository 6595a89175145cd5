"""
Discord API 异常定义
"""
from typing import Optional


class DiscordAPIError(Exception):
    """
    统一的 Discord API 异常（非 2xx 响应或网络错误）。
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
