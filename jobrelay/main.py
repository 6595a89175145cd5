import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from jobrelay.config import Settings, get_settings

load_dotenv()

# 配置日志级别（确保能看到 INFO 级别的调试日志）
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

from jobrelay.api.routes import router as api_router
from jobrelay.api.routes import webhook_router
from jobrelay.core.kube_store import build_resource_store
from jobrelay.core.resource_store import ResourceStore
from jobrelay.core.verifier import InteractionVerifier
from jobrelay.services.controllers import build_reconcile_loops
from jobrelay.services.discord import DiscordClient, DiscordClientLike
from jobrelay.services.triggers import InteractionDispatcher

logger = logging.getLogger(__name__)


def create_app(
    *,
    settings: Optional[Settings] = None,
    store: Optional[ResourceStore] = None,
    discord_client: Optional[DiscordClientLike] = None,
) -> FastAPI:
    """
    创建 FastAPI 应用，组装资源存储、Discord 客户端、派发器与调谐循环。
    """
    # 预加载配置，缺少凭据时启动即失败
    settings = settings or get_settings()

    verifier = InteractionVerifier(settings.DISCORD_APPLICATION_PUBLIC_KEY)
    store = store or build_resource_store(settings)
    discord_client = discord_client or DiscordClient(settings)
    dispatcher = InteractionDispatcher(
        store=store,
        discord_client=discord_client,
        namespace=settings.NAMESPACE,
        timeout_s=settings.DISPATCH_TIMEOUT_S,
    )
    loops = build_reconcile_loops(settings, store, discord_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for loop in loops:
            loop.start()
        try:
            yield
        finally:
            for loop in loops:
                await loop.stop()
            await dispatcher.drain(settings.SHUTDOWN_GRACE_S)
            await store.aclose()
            if isinstance(discord_client, DiscordClient):
                await discord_client.aclose()

    app = FastAPI(
        title="jobrelay",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.verifier = verifier
    app.state.dispatcher = dispatcher
    app.state.store = store

    app.include_router(api_router, prefix="/api")
    app.include_router(webhook_router)

    @app.get("/health", summary="健康检查")
    async def health_check():
        return {"status": "ok"}

    return app


def run() -> None:
    settings = get_settings()
    logger.info("starting discord webhook server on %s:%s", settings.LISTEN_HOST, settings.LISTEN_PORT)
    uvicorn.run(
        "jobrelay.main:create_app",
        factory=True,
        host=settings.LISTEN_HOST,
        port=settings.LISTEN_PORT,
        timeout_graceful_shutdown=int(settings.SHUTDOWN_GRACE_S),
    )


if __name__ == "__main__":
    run()
