from __future__ import annotations

import unittest
from unittest.mock import AsyncMock, Mock, call

from jobrelay.core.commands import commands_digest
from jobrelay.core.errors import RequeueRequested
from jobrelay.core.models import (
    ANNOT_KEY_COMMANDS,
    FINALIZER_DISCORD_INTERACTION,
    LABEL_KEY_DISCORD_GUILD_ID,
    DiscordInteraction,
    Interaction,
    Job,
    ObjectMeta,
)
from jobrelay.core.resource_store import InMemoryResourceStore, NotFoundError
from jobrelay.services.controllers.interaction import (
    DiscordInteractionReconciler,
    InteractionState,
    classify,
)
from jobrelay.services.discord import DiscordAPIError
from jobrelay.services.triggers.service import InteractionDispatcher

COMMANDS = ["a:\n - b\n - c: d", "- e: f"]


def _discord_mock() -> Mock:
    discord = Mock()
    discord.delete_all_guild_commands = AsyncMock(return_value=0)
    discord.register_guild_command = AsyncMock()
    discord.send_followup_message = AsyncMock()
    return discord


class TestClassify(unittest.TestCase):
    def test_states(self) -> None:
        di = DiscordInteraction(metadata=ObjectMeta(name="di"), spec={"guildID": "g"})
        self.assertIs(classify(di), InteractionState.PENDING_FINALIZER)

        di.metadata.finalizers.append(FINALIZER_DISCORD_INTERACTION)
        self.assertIs(classify(di), InteractionState.STEADY)

        di.metadata.deletion_timestamp = "2024-01-01T00:00:00Z"
        self.assertIs(classify(di), InteractionState.PENDING_DELETION)

        # 删除优先于 finalizer 检查
        di.metadata.finalizers.clear()
        self.assertIs(classify(di), InteractionState.PENDING_DELETION)


class TestDiscordInteractionReconciler(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryResourceStore(namespace="bots")
        self.discord = _discord_mock()
        self.reconciler = DiscordInteractionReconciler(store=self.store, discord_client=self.discord)
        await self.store.create(
            DiscordInteraction(
                metadata=ObjectMeta(name="di"),
                spec={"guildID": "guild-1", "commands": COMMANDS},
            )
        )

    async def test_full_lifecycle(self) -> None:
        # 第一轮：只挂 finalizer
        with self.assertRaises(RequeueRequested):
            await self.reconciler.reconcile("di")
        di = await self.store.get(DiscordInteraction, "di")
        self.assertIn(FINALIZER_DISCORD_INTERACTION, di.metadata.finalizers)
        self.discord.delete_all_guild_commands.assert_not_awaited()
        self.discord.register_guild_command.assert_not_awaited()

        # 第二轮：整体替换远端命令
        await self.reconciler.reconcile("di")
        self.discord.delete_all_guild_commands.assert_awaited_once_with("guild-1")
        self.assertEqual(
            self.discord.register_guild_command.await_args_list,
            [
                call("guild-1", '{"a":["b",{"c":"d"}]}'),
                call("guild-1", '[{"e":"f"}]'),
            ],
        )
        di = await self.store.get(DiscordInteraction, "di")
        self.assertEqual(di.metadata.labels[LABEL_KEY_DISCORD_GUILD_ID], "guild-1")
        self.assertEqual(di.metadata.annotations[ANNOT_KEY_COMMANDS], commands_digest(COMMANDS))

        # 第三轮：没有变化，不调用 Discord
        self.discord.reset_mock()
        await self.reconciler.reconcile("di")
        self.discord.delete_all_guild_commands.assert_not_awaited()
        self.discord.register_guild_command.assert_not_awaited()

        # 删除：清空命令后摘掉 finalizer，对象随之消失
        await self.store.delete(DiscordInteraction, "di")
        await self.reconciler.reconcile("di")
        self.discord.delete_all_guild_commands.assert_awaited_once_with("guild-1")
        with self.assertRaises(NotFoundError):
            await self.store.get(DiscordInteraction, "di")

        # 对象已不存在时什么都不做
        self.discord.reset_mock()
        await self.reconciler.reconcile("di")
        self.discord.delete_all_guild_commands.assert_not_awaited()

    async def test_changed_commands_are_replaced(self) -> None:
        with self.assertRaises(RequeueRequested):
            await self.reconciler.reconcile("di")
        await self.reconciler.reconcile("di")
        self.discord.reset_mock()

        di = await self.store.get(DiscordInteraction, "di")
        di.spec.commands = ["name: ping"]
        await self.store.update(di)

        await self.reconciler.reconcile("di")
        self.discord.delete_all_guild_commands.assert_awaited_once_with("guild-1")
        self.discord.register_guild_command.assert_awaited_once_with("guild-1", '{"name":"ping"}')
        di = await self.store.get(DiscordInteraction, "di")
        self.assertEqual(di.metadata.annotations[ANNOT_KEY_COMMANDS], commands_digest(["name: ping"]))

    async def test_changed_guild_is_reregistered(self) -> None:
        with self.assertRaises(RequeueRequested):
            await self.reconciler.reconcile("di")
        await self.reconciler.reconcile("di")
        self.discord.reset_mock()

        di = await self.store.get(DiscordInteraction, "di")
        di.spec.guild_id = "guild-2"
        await self.store.update(di)

        await self.reconciler.reconcile("di")
        self.discord.delete_all_guild_commands.assert_awaited_once_with("guild-2")
        self.assertEqual(self.discord.register_guild_command.await_count, 2)
        di = await self.store.get(DiscordInteraction, "di")
        self.assertEqual(di.metadata.labels[LABEL_KEY_DISCORD_GUILD_ID], "guild-2")

    async def test_failure_mid_registration_keeps_old_digest(self) -> None:
        with self.assertRaises(RequeueRequested):
            await self.reconciler.reconcile("di")

        self.discord.register_guild_command.side_effect = [None, DiscordAPIError("boom", status_code=500)]
        with self.assertRaises(DiscordAPIError):
            await self.reconciler.reconcile("di")
        di = await self.store.get(DiscordInteraction, "di")
        self.assertNotIn(ANNOT_KEY_COMMANDS, di.metadata.annotations)

        # 下一轮重新整体替换
        self.discord.reset_mock()
        self.discord.register_guild_command.side_effect = None
        await self.reconciler.reconcile("di")
        self.discord.delete_all_guild_commands.assert_awaited_once_with("guild-1")
        self.assertEqual(self.discord.register_guild_command.await_count, 2)
        di = await self.store.get(DiscordInteraction, "di")
        self.assertEqual(di.metadata.annotations[ANNOT_KEY_COMMANDS], commands_digest(COMMANDS))

    async def test_rejected_registration_still_routes_interactions(self) -> None:
        await self.store.create(
            DiscordInteraction(
                metadata=ObjectMeta(name="deployer"),
                spec={
                    "guildID": "guild-9",
                    "actions": [
                        {"name": "deploy", "pattern": "{name: deploy}", "actionInline": {"jobTemplate": {}}}
                    ],
                    "commands": ["name: deploy"],
                },
            )
        )
        with self.assertRaises(RequeueRequested):
            await self.reconciler.reconcile("deployer")

        self.discord.register_guild_command.side_effect = DiscordAPIError("Invalid Form Body", status_code=400)
        with self.assertRaises(DiscordAPIError):
            await self.reconciler.reconcile("deployer")

        di = await self.store.get(DiscordInteraction, "deployer")
        self.assertEqual(di.metadata.labels[LABEL_KEY_DISCORD_GUILD_ID], "guild-9")
        self.assertNotIn(ANNOT_KEY_COMMANDS, di.metadata.annotations)

        dispatcher = InteractionDispatcher(store=self.store, discord_client=self.discord, namespace="bots")
        job_name = await dispatcher.queue_job(
            Interaction(id="i-1", type=2, data={"name": "deploy"}, guild_id="guild-9", token="tok-1")
        )
        await self.store.get(Job, job_name)

    async def test_teardown_failure_keeps_finalizer(self) -> None:
        with self.assertRaises(RequeueRequested):
            await self.reconciler.reconcile("di")
        await self.store.delete(DiscordInteraction, "di")

        self.discord.delete_all_guild_commands.side_effect = DiscordAPIError("boom", status_code=500)
        with self.assertRaises(DiscordAPIError):
            await self.reconciler.reconcile("di")
        di = await self.store.get(DiscordInteraction, "di")
        self.assertTrue(di.is_deleting)
        self.assertIn(FINALIZER_DISCORD_INTERACTION, di.metadata.finalizers)


if __name__ == "__main__":
    unittest.main()
