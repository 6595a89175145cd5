from __future__ import annotations

import json
import logging
from typing import Dict

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from jobrelay.core.models import Interaction
from jobrelay.core.verifier import SignatureDecodeError

logger = logging.getLogger(__name__)

router = APIRouter()
webhook_router = APIRouter()

# cf. https://discord.com/developers/docs/interactions/receiving-and-responding
INTERACTION_TYPE_PING = 1
INTERACTION_TYPE_APPLICATION_COMMAND = 2

RESPONSE_TYPE_PONG = 1
RESPONSE_TYPE_DEFERRED_CHANNEL_MESSAGE = 5


@router.get("/ping", summary="简单连通性测试")
async def ping() -> Dict[str, str]:
    return {"message": "pong"}


@webhook_router.post("/webhook", summary="Discord 交互回调")
async def discord_webhook(request: Request) -> Response:
    body = await request.body()
    logger.info("discord webhook request: %s", body[:500])

    # 1) 签名校验
    try:
        verified = request.app.state.verifier.verify(request.headers, body)
    except SignatureDecodeError:
        logger.exception("failed to decode interaction signature")
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    if not verified:
        return Response(status_code=status.HTTP_401_UNAUTHORIZED)

    # 2) 按交互类型分发
    try:
        root = json.loads(body)
    except ValueError:
        logger.exception("failed to parse interaction body")
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    interaction_type = root.get("type") if isinstance(root, dict) else None
    if isinstance(interaction_type, bool) or not isinstance(interaction_type, (int, float)):
        logger.error("type not found in the request")
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if int(interaction_type) == INTERACTION_TYPE_PING:
        return JSONResponse({"type": RESPONSE_TYPE_PONG})

    if int(interaction_type) == INTERACTION_TYPE_APPLICATION_COMMAND:
        try:
            interaction = Interaction.model_validate(root)
        except ValidationError:
            logger.exception("malformed application command interaction")
            return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

        # 3) 后台派发，先回 deferred，结果通过 followup 告知
        request.app.state.dispatcher.dispatch(interaction)
        return JSONResponse({"type": RESPONSE_TYPE_DEFERRED_CHANNEL_MESSAGE})

    logger.info("unexpected request: type=%s", interaction_type)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
