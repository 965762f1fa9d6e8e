import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from chatrelay.api.dependencies.auth import get_required_auth_context
from chatrelay.api.schemas.auth import Principal
from chatrelay.api.schemas.chat import ChatRequest
from chatrelay.dependency_injection import get_container
from chatrelay.errors import InputError, UpstreamError
from chatrelay.services.contracts import StreamRelayProtocol

logger = logging.getLogger(__name__)
router = APIRouter(tags=["chat"])


@router.post(
    "/chat",
    summary="Stream an assistant completion for a transcript",
    description=(
        "Forwards the full transcript to the upstream completion service and relays the answer as a raw "
        "UTF-8 text stream. Fails with a normal error response, and no body bytes, when the upstream call "
        "cannot be started."
    ),
)
async def chat(
    payload: ChatRequest,
    request: Request,
    auth_context: Principal = Depends(get_required_auth_context),
) -> StreamingResponse:
    relay = get_container(request).resolve(StreamRelayProtocol)
    logger.info("chat relay request", extra={"user_id": auth_context.user_id})

    try:
        stream = await relay.open(payload.messages)
    except InputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except UpstreamError as exc:
        logger.warning("upstream completion call rejected", extra={"status_code": exc.status_code})
        raise HTTPException(status_code=exc.status_code, detail=f"upstream error: {exc.message}") from exc

    body = relay.forward(stream)
    return StreamingResponse(
        body,
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        # Releases the upstream even when the response is abandoned before the body starts.
        background=BackgroundTask(body.aclose),
    )
