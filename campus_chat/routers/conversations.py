from fastapi import APIRouter, Depends, HTTPException, status

from campus_chat.schemas.chat import CreateConversationIn, SendMessageIn
from campus_chat.services.chat_service import ChatService
from campus_chat.utils.dependencies import get_chat_service, get_current_user


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("")
async def list_conversations(current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    views = await service.list_conversations(current_user["_id"])
    return {"items": [v.model_dump(mode="json") for v in views]}


@router.post("")
async def create_conversation(body: CreateConversationIn, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    try:
        convo = await service.get_or_create_conversation(current_user["_id"], body.other_user_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"id": convo["_id"], "participant1_id": convo["participant1_id"], "participant2_id": convo["participant2_id"]}


@router.get("/{conversation_id}/messages")
async def list_messages(conversation_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    messages = await service.get_history(conversation_id, user_id=current_user["_id"])
    return {"items": [m.model_dump(mode="json") for m in messages]}


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(conversation_id: str, body: SendMessageIn, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    try:
        message = await service.send_message(conversation_id, current_user["_id"], body.content)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return message.model_dump(mode="json")


@router.post("/{conversation_id}/read")
async def mark_read(conversation_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    updated = await service.mark_read(conversation_id, current_user["_id"])
    return {"updated": updated}
