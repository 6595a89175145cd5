"""
Discord API 客户端模块

按领域划分：
- commands: guild 应用命令注册
- followup: 交互的延迟回复消息
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx

from jobrelay.config import Settings
from jobrelay.services.discord.base import DiscordBaseClient
from jobrelay.services.discord.commands import DiscordCommandsClient
from jobrelay.services.discord.errors import DiscordAPIError
from jobrelay.services.discord.followup import DiscordFollowupClient


class DiscordClientLike(Protocol):
    async def send_followup_message(self, interaction_token: str, content: str) -> None: ...

    async def register_guild_command(self, guild_id: str, command_json: str) -> Dict[str, Any]: ...

    async def delete_all_guild_commands(self, guild_id: str) -> int: ...


class DiscordClient:
    """
    Discord API 统一入口客户端

    组合各子客户端：
    - discord.commands.xxx - guild 命令
    - discord.followup.xxx - followup 消息
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base = DiscordBaseClient(settings, transport=transport)

        # 子客户端（共享 base 的认证和 http 能力）
        self.commands = DiscordCommandsClient(self._base)
        self.followup = DiscordFollowupClient(self._base)

    # ==================== 快捷方法 ====================

    async def send_followup_message(self, interaction_token: str, content: str) -> None:
        await self.followup.send_message(interaction_token, content)

    async def list_guild_commands(self, guild_id: str) -> List[Dict[str, Any]]:
        return await self.commands.list_guild_commands(guild_id)

    async def register_guild_command(self, guild_id: str, command_json: str) -> Dict[str, Any]:
        return await self.commands.register_guild_command(guild_id, command_json)

    async def delete_guild_command(self, guild_id: str, command_id: str) -> None:
        await self.commands.delete_guild_command(guild_id, command_id)

    async def delete_all_guild_commands(self, guild_id: str) -> int:
        return await self.commands.delete_all_guild_commands(guild_id)

    async def aclose(self) -> None:
        await self._base.aclose()


__all__ = [
    "DiscordClient",
    "DiscordClientLike",
    "DiscordAPIError",
]
