"""
Discord API 基础客户端

提供 Bot 认证与 HTTP 请求封装，供所有子客户端共享
"""
from __future__ import annotations

import logging
from json import JSONDecodeError
from typing import Any, Optional

import httpx

from jobrelay.config import Settings, get_settings
from jobrelay.services.discord.errors import DiscordAPIError

logger = logging.getLogger(__name__)


def mask_token(token: str) -> str:
    return f"{token[:4]}...{token[-4:]}" if len(token) > 8 else "***"


class DiscordBaseClient:
    """
    Discord API 基础客户端

    负责：
    - Bot token 认证与 User-Agent
    - HTTP 请求封装（带日志、错误处理、超时）
    """

    USER_AGENT = "DiscordBot (https://github.com/jobrelay/jobrelay, 0.1.0)"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=self.settings.DISCORD_API_BASE_URL,
            timeout=self.settings.DISCORD_API_TIMEOUT_S,
            transport=transport,
            headers={
                "User-Agent": self.USER_AGENT,
                "Authorization": f"Bot {self.settings.DISCORD_BOT_TOKEN}",
            },
        )

    @property
    def application_id(self) -> str:
        return self.settings.DISCORD_APPLICATION_ID

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        content: Optional[str] = None,
    ) -> Any:
        """
        发送 HTTP 请求到 Discord API

        - json / content 二选一；content 用于已经序列化好的 JSON 文本
        - 非 2xx 抛出 DiscordAPIError，不在这里重试
        """
        headers = {"Content-Type": "application/json"}
        logger.info(
            "Discord API Request: %s %s (token=%s)",
            method,
            path,
            mask_token(self.settings.DISCORD_BOT_TOKEN),
        )

        try:
            resp = await self._client.request(
                method,
                path,
                json=json,
                content=content.encode("utf-8") if content is not None else None,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.error("Discord API transport error: %s %s -> %s", method, path, exc)
            raise DiscordAPIError(f"Network error calling Discord API: {exc}") from exc

        logger.info(
            "Discord API Response: %s %s -> status=%s",
            method,
            path,
            resp.status_code,
        )

        if not resp.is_success:
            logger.error(
                "Discord API error: %s %s -> status=%s, body=%s",
                method,
                path,
                resp.status_code,
                resp.text[:200],
            )
            raise DiscordAPIError(
                f"Discord API error path={path}, status={resp.status_code}, body={resp.text[:200]}",
                status_code=resp.status_code,
                body=resp.text,
            )

        if not resp.content:
            return None
        try:
            return resp.json()
        except JSONDecodeError as exc:
            raise DiscordAPIError(
                f"Discord API returned non-JSON response. Status: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text[:200],
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()
