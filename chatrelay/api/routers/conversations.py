import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from chatrelay.api.dependencies.auth import get_required_auth_context
from chatrelay.api.schemas.auth import Principal
from chatrelay.api.schemas.conversations import (
    ConversationCreateRequest,
    ConversationResponse,
    ConversationUpdateRequest,
    MessageCreateRequest,
    MessageResponse,
)
from chatrelay.dependency_injection import get_container
from chatrelay.services.contracts import ConversationServiceProtocol

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/conversations", tags=["conversations"])


def _conversation_from_record(record) -> ConversationResponse:
    return ConversationResponse(
        conversation_id=record["conversation_id"],
        user_id=record["user_id"],
        title=record["title"],
        created_at=record["created_at"],
    )


def _message_from_record(record) -> MessageResponse:
    return MessageResponse(
        conversation_id=record["conversation_id"],
        message_num=record["message_num"],
        role=record["role"],
        content=record["content"],
        created_at=record.get("created_at"),
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="conversation not found")


async def _require_conversation(service: ConversationServiceProtocol, principal: Principal, conversation_id: str):
    conversation = await service.get_conversation(principal.user_id, conversation_id)
    if conversation is None:
        logger.info("conversation missing or not owned", extra={"conversation_id": conversation_id})
        raise _not_found()
    return conversation


@router.get("", response_model=list[ConversationResponse], summary="List the caller's conversations")
async def list_conversations(
    request: Request,
    principal: Principal = Depends(get_required_auth_context),
) -> list[ConversationResponse]:
    service = get_container(request).resolve(ConversationServiceProtocol)
    rows = await service.list_conversations(principal.user_id)
    return [_conversation_from_record(row) for row in rows]


@router.post("", response_model=ConversationResponse, summary="Create an empty conversation")
async def create_conversation(
    request: Request,
    payload: ConversationCreateRequest | None = None,
    principal: Principal = Depends(get_required_auth_context),
) -> ConversationResponse:
    service = get_container(request).resolve(ConversationServiceProtocol)
    title = payload.title if payload is not None else ConversationCreateRequest().title
    row = await service.create_conversation(principal.user_id, title)
    return _conversation_from_record(row)


@router.put("/{conversation_id}", response_model=ConversationResponse, summary="Rename a conversation")
async def rename_conversation(
    conversation_id: str,
    payload: ConversationUpdateRequest,
    request: Request,
    principal: Principal = Depends(get_required_auth_context),
) -> ConversationResponse:
    service = get_container(request).resolve(ConversationServiceProtocol)
    row = await service.rename_conversation(principal.user_id, conversation_id, payload.title)
    if row is None:
        raise _not_found()
    return _conversation_from_record(row)


@router.delete(
    "/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a conversation and its messages",
)
async def delete_conversation(
    conversation_id: str,
    request: Request,
    principal: Principal = Depends(get_required_auth_context),
) -> Response:
    service = get_container(request).resolve(ConversationServiceProtocol)
    if not await service.delete_conversation(principal.user_id, conversation_id):
        raise _not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{conversation_id}/messages",
    response_model=list[MessageResponse],
    summary="List messages in transcript order",
)
async def list_messages(
    conversation_id: str,
    request: Request,
    principal: Principal = Depends(get_required_auth_context),
) -> list[MessageResponse]:
    service = get_container(request).resolve(ConversationServiceProtocol)
    await _require_conversation(service, principal, conversation_id)
    rows = await service.list_messages(conversation_id)
    return [_message_from_record(row) for row in rows]


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    summary="Persist one transcript turn",
    description="Stores the turn at its transcript position; re-posting the same position overwrites it.",
)
async def create_message(
    conversation_id: str,
    payload: MessageCreateRequest,
    request: Request,
    principal: Principal = Depends(get_required_auth_context),
) -> MessageResponse:
    service = get_container(request).resolve(ConversationServiceProtocol)
    await _require_conversation(service, principal, conversation_id)
    row = await service.create_message(
        conversation_id=conversation_id,
        message_num=payload.message_num,
        role=payload.role,
        content=payload.content,
    )
    return _message_from_record(row)
