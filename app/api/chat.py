"""Chat API endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Query

from app.core.config import get_settings
from app.core.logging import get_logger, log_with_context
from app.core.schemas_chat import ChatRequest, ChatResponse, MessageResponse
from app.db.messages import create_message, list_recent_messages
from app.graphs.guideline_agent_graph import get_agent

logger = get_logger(__name__)

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat_with_agent(request: ChatRequest) -> ChatResponse:
    """
    Send a user message and get the agent's reply.

    Stores the user message, replays the user's stored history as the
    conversation, runs the guideline agent, and stores its reply.
    """
    settings = get_settings()
    try:
        user_message = create_message(
            user_id=request.user_id,
            message=request.message,
            is_agent_response=False,
        )

        history = list_recent_messages(request.user_id, limit=settings.MESSAGE_HISTORY_LIMIT)
        conversation = [m.to_turn() for m in history]
        log_with_context(
            logger,
            logging.INFO,
            f"Processing chat message with {len(conversation)} turns of history",
            user_id=request.user_id,
        )

        agent_response = await get_agent().process_message(conversation)

        agent_message = create_message(
            user_id=request.user_id,
            message=agent_response.message,
            is_agent_response=True,
        )

        return ChatResponse(user_message=user_message, agent_message=agent_message)

    except Exception:
        logger.exception(f"Chat request failed for user {request.user_id}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/users/{user_id}/messages", response_model=list[MessageResponse])
async def list_user_messages(
    user_id: int,
    limit: int = Query(50, ge=1, le=500),
) -> list[MessageResponse]:
    """Recent messages for a user, oldest first."""
    try:
        return list_recent_messages(user_id, limit=limit)
    except Exception as e:
        logger.exception(f"Failed to list messages for user {user_id}")
        raise HTTPException(status_code=500, detail=str(e))
