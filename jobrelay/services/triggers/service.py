from __future__ import annotations

import asyncio
import copy
import logging
from typing import Set

from jobrelay.core.errors import (
    AlreadyRunningError,
    AmbiguousConfigurationError,
    ConfigurationNotFoundError,
)
from jobrelay.core.jobenc import make_job_name
from jobrelay.core.models import (
    ANNOT_KEY_ACTION,
    ANNOT_KEY_DISCORD_INTERACTION,
    ANNOT_KEY_DISCORD_INTERACTION_TOKEN,
    LABEL_KEY_DISCORD_GUILD_ID,
    LABEL_KEY_JOB,
    DiscordInteraction,
    Interaction,
    InteractionAction,
    Job,
    ObjectMeta,
)
from jobrelay.core.pattern import match_actions
from jobrelay.core.resource_store import AlreadyExistsError, NotFoundError, ResourceStore
from jobrelay.services.discord import DiscordClientLike

logger = logging.getLogger(__name__)

FOLLOWUP_QUEUED = ":ok: successfully queued your job"
FOLLOWUP_ALREADY_RUNNING = ":x: your job is already running"
FOLLOWUP_FAILED = ":x: failed to queue your job"

# 模板 metadata 中不会带到 Job 上的字段
_SERVER_MANAGED_META = (
    "name",
    "generateName",
    "namespace",
    "labels",
    "annotations",
    "uid",
    "resourceVersion",
    "creationTimestamp",
    "deletionTimestamp",
)


class InteractionDispatcher:
    """
    触发层统一服务：把 APPLICATION_COMMAND 交互转换为 Job。

    请求本身只回 deferred，真正的派发在后台任务中完成，
    无论成功与否都恰好发送一条 followup 消息。
    """

    def __init__(
        self,
        *,
        store: ResourceStore,
        discord_client: DiscordClientLike,
        namespace: str,
        timeout_s: float = 5.0,
    ) -> None:
        self._store = store
        self._discord = discord_client
        self._namespace = namespace
        self._timeout_s = timeout_s
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, interaction: Interaction) -> asyncio.Task:
        """
        启动后台派发任务并立即返回。
        """
        task = asyncio.create_task(self._run(interaction))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout_s: float) -> None:
        """
        等待进行中的派发任务结束，超时后不取消、直接返回。
        """
        if not self._tasks:
            return
        logger.info("waiting for %d in-flight dispatch tasks", len(self._tasks))
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout_s)
        if pending:
            logger.warning("%d dispatch tasks still running after %.1fs", len(pending), timeout_s)

    async def _run(self, interaction: Interaction) -> None:
        message = FOLLOWUP_FAILED
        try:
            job_name = await asyncio.wait_for(self.queue_job(interaction), timeout=self._timeout_s)
            logger.info(
                "queued job %s for interaction id=%s guild_id=%s",
                job_name,
                interaction.id,
                interaction.guild_id,
            )
            message = FOLLOWUP_QUEUED
        except AlreadyRunningError as exc:
            logger.warning("job already running: %s", exc.job_name)
            message = FOLLOWUP_ALREADY_RUNNING
        except Exception:  # noqa: BLE001
            logger.exception(
                "failed to queue job: interaction id=%s guild_id=%s data=%s",
                interaction.id,
                interaction.guild_id,
                interaction.data,
            )
        finally:
            await self._notify(interaction.token, message)

    async def _notify(self, token: str, message: str) -> None:
        # 在 finally 中调用，任何异常都不能逃出后台任务（例如关停后 http 客户端已关闭）
        try:
            await self._discord.send_followup_message(token, message)
        except Exception:  # noqa: BLE001
            logger.exception("failed to send followup message: %s", message)

    async def queue_job(self, interaction: Interaction) -> str:
        """
        查找配置 -> 匹配 action -> 去重检查 -> 创建 Job，返回 Job 名。
        """
        config = await self._resolve_configuration(interaction.guild_id)
        action = match_actions(config.spec.actions, interaction.data)
        job_name = make_job_name(config.name, action.name)

        try:
            await self._store.get(Job, job_name)
        except NotFoundError:
            pass
        else:
            raise AlreadyRunningError(job_name)

        job = build_job(
            config=config,
            action=action,
            job_name=job_name,
            namespace=self._namespace,
            interaction_token=interaction.token,
        )
        try:
            await self._store.create(job)
        except AlreadyExistsError as exc:
            # 并发派发时 get 与 create 之间的竞争，由存储的 create-if-absent 兜底
            raise AlreadyRunningError(job_name) from exc
        return job_name

    async def _resolve_configuration(self, guild_id: str) -> DiscordInteraction:
        if not guild_id:
            raise ConfigurationNotFoundError("interaction has no guild id")

        candidates = await self._store.list(
            DiscordInteraction, labels={LABEL_KEY_DISCORD_GUILD_ID: guild_id}
        )
        # label 可能滞后于 spec，以 spec.guildID 为准；删除中的配置不参与
        active = [
            di for di in candidates if di.spec.guild_id == guild_id and not di.is_deleting
        ]
        if not active:
            raise ConfigurationNotFoundError(f"no DiscordInteraction for guild {guild_id}")
        if len(active) > 1:
            raise AmbiguousConfigurationError(
                f"unexpected number of DiscordInteractions for guild {guild_id}: {len(active)}"
            )
        return active[0]


def build_job(
    *,
    config: DiscordInteraction,
    action: InteractionAction,
    job_name: str,
    namespace: str,
    interaction_token: str,
) -> Job:
    """
    由 action 的 jobTemplate 实例化 Job，并打上归属标记与回复 token。
    """
    template = copy.deepcopy(action.action_inline.job_template)
    template_meta = template.get("metadata") or {}
    spec = template.get("spec") or {}

    pod_template = spec.setdefault("template", {})
    pod_spec = pod_template.setdefault("spec", {})
    pod_spec["restartPolicy"] = "Never"

    labels = dict(template_meta.get("labels") or {})
    labels[LABEL_KEY_JOB] = "true"

    annotations = dict(template_meta.get("annotations") or {})
    annotations[ANNOT_KEY_DISCORD_INTERACTION] = config.name
    annotations[ANNOT_KEY_ACTION] = action.name
    annotations[ANNOT_KEY_DISCORD_INTERACTION_TOKEN] = interaction_token

    extra_meta = {
        k: v
        for k, v in template_meta.items()
        if k not in _SERVER_MANAGED_META
    }
    return Job(
        metadata=ObjectMeta(
            name=job_name,
            namespace=namespace,
            labels=labels,
            annotations=annotations,
            **extra_meta,
        ),
        spec=spec,
    )
