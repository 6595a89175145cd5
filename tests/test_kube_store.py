from __future__ import annotations

import json
import unittest
from typing import List

import httpx

from jobrelay.config import Settings
from jobrelay.core.kube_store import KubernetesResourceStore, build_resource_store
from jobrelay.core.models import LABEL_KEY_DISCORD_GUILD_ID, DiscordInteraction, Job, ObjectMeta
from jobrelay.core.resource_store import (
    AlreadyExistsError,
    ConflictError,
    InMemoryResourceStore,
    NotFoundError,
    ResourceStoreError,
)

DI_PATH = "/apis/jobrelay.dev/v1/namespaces/bots/discordinteractions"
JOB_PATH = "/apis/batch/v1/namespaces/bots/jobs"


def _job_payload(name: str) -> dict:
    return {"apiVersion": "batch/v1", "kind": "Job", "metadata": {"name": name, "resourceVersion": "7"}}


class TestKubernetesResourceStore(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status = 200
        self.payload: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(self.status, json=self.payload)

        self.store = KubernetesResourceStore(
            api_url="https://kube.test",
            namespace="bots",
            token="sa-token",
            transport=httpx.MockTransport(handler),
        )

    async def asyncTearDown(self) -> None:
        await self.store.aclose()

    async def test_get(self) -> None:
        self.payload = _job_payload("job-a")
        job = await self.store.get(Job, "job-a")
        self.assertEqual(job.name, "job-a")
        self.assertEqual(job.metadata.resource_version, "7")
        request = self.requests[0]
        self.assertEqual(request.url.path, f"{JOB_PATH}/job-a")
        self.assertEqual(request.headers["Authorization"], "Bearer sa-token")

    async def test_list_with_label_selector(self) -> None:
        self.payload = {
            "items": [
                {
                    "metadata": {"name": "di"},
                    "spec": {"guildID": "g1", "commands": ["name: ping"]},
                }
            ]
        }
        items = await self.store.list(DiscordInteraction, labels={LABEL_KEY_DISCORD_GUILD_ID: "g1"})
        self.assertEqual([di.spec.guild_id for di in items], ["g1"])
        request = self.requests[0]
        self.assertEqual(request.url.path, DI_PATH)
        self.assertEqual(request.url.params["labelSelector"], f"{LABEL_KEY_DISCORD_GUILD_ID}=g1")

    async def test_get_missing(self) -> None:
        self.status = 404
        with self.assertRaises(NotFoundError):
            await self.store.get(Job, "job-a")

    async def test_create_posts_payload(self) -> None:
        self.status = 201
        self.payload = _job_payload("job-a")
        await self.store.create(Job(metadata=ObjectMeta(name="job-a"), spec={"backoffLimit": 0}))
        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.path, JOB_PATH)
        body = json.loads(request.content)
        self.assertEqual(body["kind"], "Job")
        self.assertEqual(body["metadata"]["name"], "job-a")
        self.assertEqual(body["spec"], {"backoffLimit": 0})

    async def test_create_conflict_is_already_exists(self) -> None:
        self.status = 409
        with self.assertRaises(AlreadyExistsError):
            await self.store.create(Job(metadata=ObjectMeta(name="job-a")))

    async def test_update_conflict(self) -> None:
        self.status = 409
        with self.assertRaises(ConflictError) as ctx:
            await self.store.update(Job(metadata=ObjectMeta(name="job-a", resourceVersion="1")))
        self.assertNotIsInstance(ctx.exception, AlreadyExistsError)
        self.assertEqual(self.requests[0].method, "PUT")
        self.assertEqual(self.requests[0].url.path, f"{JOB_PATH}/job-a")

    async def test_delete_sends_propagation_policy(self) -> None:
        self.payload = {"kind": "Status", "status": "Success"}
        await self.store.delete(Job, "job-a", propagation_policy="Background")
        request = self.requests[0]
        self.assertEqual(request.method, "DELETE")
        self.assertEqual(json.loads(request.content)["propagationPolicy"], "Background")

    async def test_server_error(self) -> None:
        self.status = 500
        with self.assertRaises(ResourceStoreError) as ctx:
            await self.store.get(Job, "job-a")
        self.assertEqual(ctx.exception.status_code, 500)


def test_build_resource_store_memory_backend():
    settings = Settings(
        _env_file=None,
        DISCORD_APPLICATION_ID="1",
        DISCORD_BOT_TOKEN="t",
        DISCORD_APPLICATION_PUBLIC_KEY="00" * 32,
        STORE_BACKEND="memory",
        NAMESPACE="bots",
    )
    store = build_resource_store(settings)
    assert isinstance(store, InMemoryResourceStore)
    assert store.namespace == "bots"


if __name__ == "__main__":
    unittest.main()
