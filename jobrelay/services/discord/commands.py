"""
Discord guild 命令注册 API 客户端
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, TYPE_CHECKING

from jobrelay.services.discord.errors import DiscordAPIError

if TYPE_CHECKING:
    from jobrelay.services.discord.base import DiscordBaseClient

logger = logging.getLogger(__name__)


class DiscordCommandsClient:
    """
    Discord guild 应用命令封装

    - 列出 / 注册 / 删除 guild 命令
    """

    def __init__(self, base: "DiscordBaseClient") -> None:
        self._base = base

    def _commands_path(self, guild_id: str) -> str:
        return f"/applications/{self._base.application_id}/guilds/{guild_id}/commands"

    async def list_guild_commands(self, guild_id: str) -> List[Dict[str, Any]]:
        """
        API: GET /applications/{application.id}/guilds/{guild.id}/commands
        """
        data = await self._base.request("GET", self._commands_path(guild_id))
        if not isinstance(data, list):
            raise DiscordAPIError(f"unexpected guild commands payload: {data!r}")
        return data

    async def register_guild_command(self, guild_id: str, command_json: str) -> Dict[str, Any]:
        """
        API: POST /applications/{application.id}/guilds/{guild.id}/commands

        Args:
            guild_id: guild ID
            command_json: 已规范化的命令 JSON 文本
        """
        data = await self._base.request(
            "POST", self._commands_path(guild_id), content=command_json
        )
        logger.info("register_guild_command succeeded: guild_id=%s", guild_id)
        return data or {}

    async def delete_guild_command(self, guild_id: str, command_id: str) -> None:
        await self._base.request("DELETE", f"{self._commands_path(guild_id)}/{command_id}")

    async def delete_all_guild_commands(self, guild_id: str) -> int:
        """
        删除 guild 下当前注册的所有命令，返回删除数量。
        """
        commands = await self.list_guild_commands(guild_id)
        for command in commands:
            command_id = command.get("id") if isinstance(command, dict) else None
            if not isinstance(command_id, str):
                raise DiscordAPIError(f"failed to get command id: {command!r}")
            await self.delete_guild_command(guild_id, command_id)
        logger.info("deleted %d guild commands: guild_id=%s", len(commands), guild_id)
        return len(commands)
