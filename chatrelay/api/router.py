from fastapi import APIRouter

from chatrelay.api.routers.chat import router as chat_router
from chatrelay.api.routers.conversations import router as conversations_router

api_router = APIRouter()
api_router.include_router(chat_router)
api_router.include_router(conversations_router)
