"""Database access layer for chat messages."""

from app.core.schemas_chat import MessageResponse
from app.db.supabase_client import get_supabase

# Table name is misspelled in the deployed schema
TABLE = "messsages"


def create_message(user_id: int, message: str, is_agent_response: bool) -> MessageResponse:
    """Store one chat message."""
    client = get_supabase()
    data = {
        "user_id": user_id,
        "message": message,
        "is_agent_response": is_agent_response,
    }
    result = client.table(TABLE).insert(data).execute()
    if not result.data:
        raise RuntimeError(f"Failed to store message for user {user_id}: no row returned")
    return MessageResponse.model_validate(result.data[0])


def list_recent_messages(user_id: int, limit: int | None = 50) -> list[MessageResponse]:
    """Most recent messages for a user, returned oldest first. A None limit loads all of them."""
    client = get_supabase()
    query = client.table(TABLE).select("*").eq("user_id", user_id)
    if limit is None:
        result = query.order("created_at").execute()
        rows = result.data or []
    else:
        result = query.order("created_at", desc=True).limit(limit).execute()
        rows = list(reversed(result.data or []))
    return [MessageResponse.model_validate(row) for row in rows]
