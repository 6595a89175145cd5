"""
调谐层（Controllers）

- DiscordInteractionReconciler: guild 命令注册表同步（带 finalizer 的安全清理）
- JobReconciler: Job 结束后回复一次 followup 并删除 Job
- ReconcileLoop: 每个资源 kind 一条调谐循环
"""
from __future__ import annotations

from typing import List

from jobrelay.config import Settings
from jobrelay.core.models import DiscordInteraction, Job
from jobrelay.core.resource_store import InMemoryResourceStore, ResourceStore
from jobrelay.services.controllers.interaction import DiscordInteractionReconciler
from jobrelay.services.controllers.job import JobReconciler
from jobrelay.services.controllers.loop import ReconcileLoop
from jobrelay.services.discord import DiscordClientLike


def build_reconcile_loops(
    settings: Settings, store: ResourceStore, discord_client: DiscordClientLike
) -> List[ReconcileLoop]:
    loops = [
        ReconcileLoop(
            name="discordinteraction",
            store=store,
            kind=DiscordInteraction,
            reconciler=DiscordInteractionReconciler(store=store, discord_client=discord_client),
            resync_interval_s=settings.RESYNC_INTERVAL_S,
            requeue_delay_s=settings.REQUEUE_DELAY_S,
            error_backoff_s=settings.ERROR_BACKOFF_S,
        ),
        ReconcileLoop(
            name="job",
            store=store,
            kind=Job,
            reconciler=JobReconciler(store=store, discord_client=discord_client),
            resync_interval_s=settings.RESYNC_INTERVAL_S,
            requeue_delay_s=settings.REQUEUE_DELAY_S,
            error_backoff_s=settings.ERROR_BACKOFF_S,
        ),
    ]

    # 内存存储可以直接推送变更，不必等下一次全量 list
    if isinstance(store, InMemoryResourceStore):
        for loop, kind in zip(loops, (DiscordInteraction, Job)):
            store.subscribe(kind, loop.enqueue)

    return loops


__all__ = [
    "DiscordInteractionReconciler",
    "JobReconciler",
    "ReconcileLoop",
    "build_reconcile_loops",
]
