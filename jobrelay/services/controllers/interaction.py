"""
DiscordInteraction 调谐器：让 guild 的命令注册表与 spec.commands 保持一致

状态机：
- PENDING_FINALIZER: 还没挂 finalizer -> 挂上并要求再跑一轮（不调用 Discord）
- PENDING_DELETION:  标记删除 -> 删除 guild 下所有命令，摘掉 finalizer
- STEADY:            命令摘要或 guild label 变化时整体替换远端命令
"""
from __future__ import annotations

import enum
import logging

from jobrelay.core.commands import canonicalize_commands, commands_digest
from jobrelay.core.errors import RequeueRequested
from jobrelay.core.models import (
    ANNOT_KEY_COMMANDS,
    FINALIZER_DISCORD_INTERACTION,
    LABEL_KEY_DISCORD_GUILD_ID,
    DiscordInteraction,
)
from jobrelay.core.resource_store import NotFoundError, ResourceStore
from jobrelay.services.discord import DiscordClientLike

logger = logging.getLogger(__name__)


class InteractionState(str, enum.Enum):
    PENDING_FINALIZER = "pending_finalizer"
    PENDING_DELETION = "pending_deletion"
    STEADY = "steady"


def classify(di: DiscordInteraction) -> InteractionState:
    if di.is_deleting:
        return InteractionState.PENDING_DELETION
    if FINALIZER_DISCORD_INTERACTION not in di.metadata.finalizers:
        return InteractionState.PENDING_FINALIZER
    return InteractionState.STEADY


class DiscordInteractionReconciler:
    def __init__(self, *, store: ResourceStore, discord_client: DiscordClientLike) -> None:
        self._store = store
        self._discord = discord_client

    async def reconcile(self, name: str) -> None:
        try:
            di = await self._store.get(DiscordInteraction, name)
        except NotFoundError:
            return

        state = classify(di)
        if state is InteractionState.PENDING_DELETION:
            await self._teardown(di)
        elif state is InteractionState.PENDING_FINALIZER:
            di.metadata.finalizers.append(FINALIZER_DISCORD_INTERACTION)
            await self._store.update(di)
            raise RequeueRequested(name)
        else:
            await self._sync_commands(di)

    async def _teardown(self, di: DiscordInteraction) -> None:
        guild_id = di.spec.guild_id
        logger.info("unregister Discord guild commands: name=%s guild_id=%s", di.name, guild_id)
        await self._discord.delete_all_guild_commands(guild_id)

        if FINALIZER_DISCORD_INTERACTION not in di.metadata.finalizers:
            return
        di.metadata.finalizers.remove(FINALIZER_DISCORD_INTERACTION)
        try:
            await self._store.update(di)
        except NotFoundError:
            pass

    async def _sync_commands(self, di: DiscordInteraction) -> None:
        guild_id = di.spec.guild_id
        digest = commands_digest(di.spec.commands)

        guild_stale = di.metadata.labels.get(LABEL_KEY_DISCORD_GUILD_ID) != guild_id
        commands_stale = di.metadata.annotations.get(ANNOT_KEY_COMMANDS) != digest
        if not guild_stale and not commands_stale:
            return

        # guild label 先落盘：派发器靠它查找配置，不能等远端注册成功
        if guild_stale:
            di.metadata.labels[LABEL_KEY_DISCORD_GUILD_ID] = guild_id
            di = await self._store.update(di)

        # 摘要在远端替换完成后才写回；中途失败时摘要不变，下一轮会重新替换
        logger.info("register Discord guild commands: name=%s guild_id=%s", di.name, guild_id)
        await self._discord.delete_all_guild_commands(guild_id)
        for command_json in canonicalize_commands(di.spec.commands):
            await self._discord.register_guild_command(guild_id, command_json)

        di.metadata.annotations[ANNOT_KEY_COMMANDS] = digest
        await self._store.update(di)
