from __future__ import annotations

import logging

from jobrelay.core.models import ANNOT_KEY_DISCORD_INTERACTION_TOKEN, LABEL_KEY_JOB, Job
from jobrelay.core.resource_store import NotFoundError, ResourceStore
from jobrelay.services.discord import DiscordClientLike

logger = logging.getLogger(__name__)

MESSAGE_COMPLETED = "completed"
MESSAGE_FAILED = "failed"


class JobReconciler:
    """
    Job 结束（Complete / Failed）后发送一次 followup，然后删除 Job。
    """

    def __init__(self, *, store: ResourceStore, discord_client: DiscordClientLike) -> None:
        self._store = store
        self._discord = discord_client

    async def reconcile(self, name: str) -> None:
        try:
            job = await self._store.get(Job, name)
        except NotFoundError:
            return

        if LABEL_KEY_JOB not in job.metadata.labels:
            return
        if not job.succeeded and not job.failed:
            return

        message = MESSAGE_FAILED if job.failed else MESSAGE_COMPLETED
        token = job.metadata.annotations.get(ANNOT_KEY_DISCORD_INTERACTION_TOKEN)
        if token:
            try:
                await self._discord.send_followup_message(token, message)
            except Exception:  # noqa: BLE001
                logger.exception("failed to send followup message: job=%s", name)
        else:
            logger.warning("job %s has no interaction token, skip followup", name)

        try:
            await self._store.delete(Job, name, propagation_policy="Background")
        except NotFoundError:
            pass
        logger.info("job %s finished (%s) and deleted", name, message)
