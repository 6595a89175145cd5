from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Optional, Protocol, Set, Type

from jobrelay.core.errors import RequeueRequested
from jobrelay.core.models import Resource
from jobrelay.core.resource_store import ResourceStore

logger = logging.getLogger(__name__)


class Reconciler(Protocol):
    def reconcile(self, name: str) -> Awaitable[None]: ...


class ReconcileLoop:
    """
    单个资源 kind 的调谐循环。

    - 定期全量 list，把所有对象名放入队列（外部重新触发机制）
    - 单 worker 顺序处理；RequeueRequested 稍后立即重试，其他异常退避后重试
    - 队列去重：同一对象在队列中最多一份
    """

    def __init__(
        self,
        *,
        name: str,
        store: ResourceStore,
        kind: Type[Resource],
        reconciler: Reconciler,
        resync_interval_s: float = 30.0,
        requeue_delay_s: float = 1.0,
        error_backoff_s: float = 5.0,
    ) -> None:
        self.name = name
        self._store = store
        self._kind = kind
        self._reconciler = reconciler
        self._resync_interval_s = resync_interval_s
        self._requeue_delay_s = requeue_delay_s
        self._error_backoff_s = error_backoff_s

        self._queue: Optional[asyncio.Queue[str]] = None
        self._pending: Set[str] = set()
        self._tasks: List[asyncio.Task] = []

    def enqueue(self, key: str) -> None:
        if self._queue is None or key in self._pending:
            return
        self._pending.add(key)
        self._queue.put_nowait(key)

    def start(self) -> None:
        if self._tasks:
            logger.warning("reconcile loop %s already running", self.name)
            return
        logger.info("starting reconcile loop %s (resync every %.1fs)", self.name, self._resync_interval_s)
        queue: asyncio.Queue[str] = asyncio.Queue()
        self._queue = queue
        self._tasks = [
            asyncio.create_task(self._resync_forever(), name=f"{self.name}-resync"),
            asyncio.create_task(self._work_forever(queue), name=f"{self.name}-worker"),
        ]

    async def stop(self) -> None:
        if not self._tasks:
            return
        logger.info("stopping reconcile loop %s", self.name)
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._queue = None
        self._pending.clear()

    async def _resync_forever(self) -> None:
        while True:
            try:
                for obj in await self._store.list(self._kind):
                    self.enqueue(obj.name)
            except Exception:  # noqa: BLE001
                logger.exception("reconcile loop %s failed to list objects", self.name)
            await asyncio.sleep(self._resync_interval_s)

    async def _work_forever(self, queue: asyncio.Queue[str]) -> None:
        while True:
            key = await queue.get()
            self._pending.discard(key)
            await self.process(key)

    async def process(self, key: str) -> None:
        """
        跑一轮调谐；失败不向外抛，交给下一次触发重试。
        """
        try:
            await self._reconciler.reconcile(key)
        except RequeueRequested:
            self._schedule(key, self._requeue_delay_s)
        except Exception:  # noqa: BLE001
            logger.exception("reconcile loop %s failed to reconcile %s", self.name, key)
            self._schedule(key, self._error_backoff_s)

    def _schedule(self, key: str, delay_s: float) -> None:
        asyncio.get_running_loop().call_later(delay_s, self.enqueue, key)
