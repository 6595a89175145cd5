from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Type, TypeVar

from jobrelay.core.models import Resource

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Resource)

ChangeListener = Callable[[str], None]


class ResourceStoreError(Exception):
    """
    资源存储的统一异常。
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ResourceStoreError):
    pass


class AlreadyExistsError(ResourceStoreError):
    pass


class ConflictError(ResourceStoreError):
    pass


class ResourceStore(Protocol):
    """
    派发器与调谐器依赖的资源读写能力（绑定到单个 namespace）。
    """

    async def get(self, kind: Type[R], name: str) -> R: ...

    async def list(self, kind: Type[R], *, labels: Optional[Dict[str, str]] = None) -> List[R]: ...

    async def create(self, obj: R) -> R: ...

    async def update(self, obj: R) -> R: ...

    async def delete(
        self, kind: Type[R], name: str, *, propagation_policy: str = "Background"
    ) -> None: ...

    async def aclose(self) -> None: ...


class InMemoryResourceStore:
    """
    简易内存版资源存储，用于本地调试与测试。

    模拟 Kubernetes 的关键语义：
    - create 同名对象已存在时报 AlreadyExistsError
    - update 携带过期的 resourceVersion 时报 ConflictError
    - 带 finalizer 的对象 delete 时只打上 deletionTimestamp，finalizer 清空后才真正删除
    """

    def __init__(self, *, namespace: str = "default") -> None:
        self.namespace = namespace
        self._lock = asyncio.Lock()
        self._objects: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._revision = 0
        self._listeners: Dict[str, List[ChangeListener]] = {}

    def subscribe(self, kind: Type[Resource], listener: ChangeListener) -> None:
        """
        注册变更回调：该 kind 的对象每次写入后以对象名回调。
        """
        self._listeners.setdefault(_kind_of(kind), []).append(listener)

    async def get(self, kind: Type[R], name: str) -> R:
        async with self._lock:
            stored = self._objects.get((_kind_of(kind), name))
            if stored is None:
                raise NotFoundError(f"{_kind_of(kind)} {name} not found", status_code=404)
            # 返回副本避免外部修改
            return kind.model_validate(copy.deepcopy(stored))

    async def list(self, kind: Type[R], *, labels: Optional[Dict[str, str]] = None) -> List[R]:
        selector = labels or {}
        async with self._lock:
            items = [
                copy.deepcopy(stored)
                for (stored_kind, _), stored in sorted(self._objects.items())
                if stored_kind == _kind_of(kind)
            ]
        result = [kind.model_validate(item) for item in items]
        return [
            obj
            for obj in result
            if all(obj.metadata.labels.get(k) == v for k, v in selector.items())
        ]

    async def create(self, obj: R) -> R:
        key = (_kind_of(type(obj)), obj.name)
        async with self._lock:
            if key in self._objects:
                raise AlreadyExistsError(f"{key[0]} {obj.name} already exists", status_code=409)
            payload = obj.to_payload()
            meta = payload["metadata"]
            meta["namespace"] = self.namespace
            meta.pop("deletionTimestamp", None)
            meta["resourceVersion"] = self._next_revision()
            self._objects[key] = payload
            created = type(obj).model_validate(copy.deepcopy(payload))
        self._notify(key)
        return created

    async def update(self, obj: R) -> R:
        key = (_kind_of(type(obj)), obj.name)
        async with self._lock:
            stored = self._objects.get(key)
            if stored is None:
                raise NotFoundError(f"{key[0]} {obj.name} not found", status_code=404)
            stored_meta = stored["metadata"]
            if (
                obj.metadata.resource_version is not None
                and obj.metadata.resource_version != stored_meta.get("resourceVersion")
            ):
                raise ConflictError(
                    f"{key[0]} {obj.name} has been modified", status_code=409
                )

            payload = obj.to_payload()
            meta = payload["metadata"]
            meta["namespace"] = self.namespace
            # deletionTimestamp 只能由 delete 设置
            meta.pop("deletionTimestamp", None)
            if "deletionTimestamp" in stored_meta:
                meta["deletionTimestamp"] = stored_meta["deletionTimestamp"]
            meta["resourceVersion"] = self._next_revision()

            if "deletionTimestamp" in meta and not meta.get("finalizers"):
                del self._objects[key]
            else:
                self._objects[key] = payload
            updated = type(obj).model_validate(copy.deepcopy(payload))
        self._notify(key)
        return updated

    async def delete(
        self, kind: Type[R], name: str, *, propagation_policy: str = "Background"
    ) -> None:
        # 内存版没有从属对象，propagation_policy 仅为接口一致
        _ = propagation_policy
        key = (_kind_of(kind), name)
        async with self._lock:
            stored = self._objects.get(key)
            if stored is None:
                raise NotFoundError(f"{key[0]} {name} not found", status_code=404)
            meta = stored["metadata"]
            if meta.get("finalizers"):
                if "deletionTimestamp" not in meta:
                    meta["deletionTimestamp"] = _now()
                    meta["resourceVersion"] = self._next_revision()
            else:
                del self._objects[key]
        self._notify(key)

    async def aclose(self) -> None:
        return None

    def _next_revision(self) -> str:
        self._revision += 1
        return str(self._revision)

    def _notify(self, key: Tuple[str, str]) -> None:
        kind, name = key
        for listener in self._listeners.get(kind, []):
            listener(name)


def _kind_of(kind: Type[Resource]) -> str:
    return kind.model_fields["kind"].default


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
