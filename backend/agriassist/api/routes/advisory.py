"""
Farmer advisory chat API routes
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from agriassist.core.logging_config import LoggingConfig
from agriassist.models.agriculture import ConversationTurn
from agriassist.services.advisory_service import (AdvisoryService,
                                                  get_advisory_service)

router = APIRouter(prefix="/api/advisory", tags=["advisory"])
logger = LoggingConfig.get_logger(__name__)


class ChatRequest(BaseModel):
    """Chat request: prior turns plus the new user message"""
    history: List[ConversationTurn] = Field(
        default_factory=list,
        description="Previous turns in chronological order"
    )
    message: str = Field(..., description="New user message")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v.strip()


class ChatResponse(BaseModel):
    reply: str


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    service: AdvisoryService = Depends(get_advisory_service)
):
    """Send a message to the advisory bot"""
    logger.debug(
        "Advisory chat request",
        extra={"history_length": len(request.history)}
    )
    reply = await service.chat_reply(request.history, request.message)
    return ChatResponse(reply=reply)
