"""
基于 Kubernetes REST API 的资源存储

只覆盖调谐器与派发器用到的 get / list / create / update / delete，
认证使用 Pod 内挂载的 ServiceAccount token。
"""
from __future__ import annotations

import logging
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

import httpx

from jobrelay.config import Settings
from jobrelay.core.models import Resource
from jobrelay.core.resource_store import (
    R,
    AlreadyExistsError,
    ConflictError,
    InMemoryResourceStore,
    NotFoundError,
    ResourceStoreError,
)

logger = logging.getLogger(__name__)

# kind -> (API 前缀, 资源复数名)
RESOURCE_PATHS: Dict[str, tuple[str, str]] = {
    "DiscordInteraction": ("/apis/jobrelay.dev/v1", "discordinteractions"),
    "Job": ("/apis/batch/v1", "jobs"),
}


class KubernetesResourceStore:
    def __init__(
        self,
        *,
        api_url: str,
        namespace: str,
        token: Optional[str] = None,
        verify: Union[bool, str] = True,
        timeout_s: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.namespace = namespace
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers=headers,
            verify=verify,
            timeout=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "KubernetesResourceStore":
        token_path = Path(settings.KUBERNETES_TOKEN_PATH)
        ca_path = Path(settings.KUBERNETES_CA_PATH)
        token = token_path.read_text(encoding="utf-8").strip() if token_path.exists() else None
        if token is None:
            logger.warning("ServiceAccount token not found at %s, requests are unauthenticated", token_path)
        return cls(
            api_url=settings.KUBERNETES_API_URL,
            namespace=settings.NAMESPACE,
            token=token,
            verify=str(ca_path) if ca_path.exists() else True,
            timeout_s=settings.KUBERNETES_TIMEOUT_S,
        )

    async def get(self, kind: Type[R], name: str) -> R:
        data = await self._request("GET", self._path(kind, name))
        return kind.model_validate(data)

    async def list(self, kind: Type[R], *, labels: Optional[Dict[str, str]] = None) -> List[R]:
        params = None
        if labels:
            params = {"labelSelector": ",".join(f"{k}={v}" for k, v in labels.items())}
        data = await self._request("GET", self._path(kind), params=params)
        return [kind.model_validate(item) for item in data.get("items") or []]

    async def create(self, obj: R) -> R:
        data = await self._request("POST", self._path(type(obj)), json=obj.to_payload())
        return type(obj).model_validate(data)

    async def update(self, obj: R) -> R:
        data = await self._request(
            "PUT", self._path(type(obj), obj.name), json=obj.to_payload()
        )
        return type(obj).model_validate(data)

    async def delete(
        self, kind: Type[R], name: str, *, propagation_policy: str = "Background"
    ) -> None:
        await self._request(
            "DELETE",
            self._path(kind, name),
            json={
                "apiVersion": "v1",
                "kind": "DeleteOptions",
                "propagationPolicy": propagation_policy,
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _path(self, kind: Type[Resource], name: Optional[str] = None) -> str:
        kind_name = kind.model_fields["kind"].default
        prefix, plural = RESOURCE_PATHS[kind_name]
        path = f"{prefix}/namespaces/{self.namespace}/{plural}"
        return f"{path}/{name}" if name else path

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.error("Kubernetes API transport error: %s %s -> %s", method, path, exc)
            raise ResourceStoreError(f"Kubernetes API request failed: {method} {path}: {exc}") from exc

        logger.debug("Kubernetes API Response: %s %s -> status=%s", method, path, resp.status_code)

        if resp.status_code == 404:
            raise NotFoundError(f"not found: {path}", status_code=404)
        if resp.status_code == 409:
            if method == "POST":
                raise AlreadyExistsError(f"already exists: {path}", status_code=409)
            raise ConflictError(f"conflict: {path}", status_code=409)
        if not resp.is_success:
            logger.error(
                "Kubernetes API error: %s %s -> status=%s, body=%s",
                method,
                path,
                resp.status_code,
                resp.text[:200],
            )
            raise ResourceStoreError(
                f"Kubernetes API error path={path}, status={resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except JSONDecodeError as exc:
            raise ResourceStoreError(
                f"Kubernetes API returned non-JSON response. Status: {resp.status_code}",
                status_code=resp.status_code,
            ) from exc


def build_resource_store(settings: Settings):
    """
    按配置选择资源存储实现。
    """
    if settings.STORE_BACKEND == "memory":
        return InMemoryResourceStore(namespace=settings.NAMESPACE)
    return KubernetesResourceStore.from_settings(settings)
