"""
Discord 交互 followup 消息 API 客户端
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jobrelay.services.discord.base import DiscordBaseClient

logger = logging.getLogger(__name__)


class DiscordFollowupClient:
    def __init__(self, base: "DiscordBaseClient") -> None:
        self._base = base

    async def send_message(self, interaction_token: str, content: str) -> None:
        """
        发送 followup 文本消息

        API: POST /webhooks/{application.id}/{interaction.token}
        """
        await self._base.request(
            "POST",
            f"/webhooks/{self._base.application_id}/{interaction_token}",
            json={"content": content},
        )
        logger.info("send_followup_message succeeded: content=%s", content)
