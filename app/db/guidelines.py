"""Database access layer for guidelines."""

import asyncio
import logging

from app.core.schemas_guidelines import Guideline, GuidelineCandidate
from app.db.supabase_client import get_supabase

logger = logging.getLogger(__name__)

TABLE = "guidelines"
SIMILARITY_RPC = "search_similar_guidelines"


def _to_pgvector(embedding: list[float]) -> str:
    """Serialize an embedding the way pgvector expects it."""
    return "[" + ",".join(str(v) for v in embedding) + "]"


def list_guidelines() -> list[Guideline]:
    """List all guidelines, newest first."""
    client = get_supabase()
    result = client.table(TABLE).select("*").order("created_at", desc=True).execute()
    return [Guideline.model_validate(row) for row in result.data or []]


def get_guideline(guideline_id: int) -> Guideline | None:
    """Get a single guideline by ID."""
    client = get_supabase()
    result = (
        client.table(TABLE)
        .select("*")
        .eq("id", guideline_id)
        .maybe_single()
        .execute()
    )
    if result is None or not result.data:
        return None
    return Guideline.model_validate(result.data)


def get_guidelines_by_type(is_global: bool, enabled_only: bool = True) -> list[Guideline]:
    """List global or conditional guidelines, newest first."""
    client = get_supabase()
    query = (
        client.table(TABLE)
        .select("*")
        .eq("is_global", is_global)
        .order("created_at", desc=True)
    )
    if enabled_only:
        query = query.eq("is_disabled", False)

    result = query.execute()
    return [Guideline.model_validate(row) for row in result.data or []]


def search_similar_guidelines(query_embedding: list[float], limit: int) -> list[GuidelineCandidate]:
    """
    Cosine similarity search over enabled conditional guidelines (pgvector RPC).

    Args:
        query_embedding: Normalized query embedding
        limit: Max number of matches

    Returns:
        Candidates ordered by similarity, highest first
    """
    client = get_supabase()
    result = client.rpc(
        SIMILARITY_RPC,
        {
            "query_embedding": _to_pgvector(query_embedding),
            "match_count": limit,
        },
    ).execute()

    candidates = [GuidelineCandidate.model_validate(row) for row in result.data or []]
    candidates.sort(key=lambda c: c.similarity, reverse=True)
    return candidates


def create_guideline(
    directive: str,
    condition: str | None,
    is_global: bool,
    condition_vector: list[float] | None = None,
) -> Guideline:
    """Insert a new, enabled guideline."""
    client = get_supabase()
    data = {
        "guideline": directive,
        "condition": None if is_global else condition,
        "is_global": is_global,
        "is_disabled": False,
        "condition_vector": _to_pgvector(condition_vector) if condition_vector else None,
    }
    result = client.table(TABLE).insert(data).execute()
    if not result.data:
        raise RuntimeError("Failed to create guideline: no row returned")
    guideline = Guideline.model_validate(result.data[0])
    logger.info(f"Created {'global' if is_global else 'conditional'} guideline {guideline.id}")
    return guideline


def update_guideline(guideline_id: int, updates: dict) -> Guideline | None:
    """Update a guideline's fields. Returns None when the row does not exist."""
    allowed = {"guideline", "condition", "condition_vector", "is_disabled"}
    safe_updates = {k: v for k, v in updates.items() if k in allowed}
    if "condition_vector" in safe_updates and safe_updates["condition_vector"] is not None:
        safe_updates["condition_vector"] = _to_pgvector(safe_updates["condition_vector"])

    if not safe_updates:
        return get_guideline(guideline_id)

    client = get_supabase()
    result = client.table(TABLE).update(safe_updates).eq("id", guideline_id).execute()
    if not result.data:
        return None
    return Guideline.model_validate(result.data[0])


def delete_guideline(guideline_id: int) -> None:
    """Delete a guideline."""
    client = get_supabase()
    client.table(TABLE).delete().eq("id", guideline_id).execute()
    logger.info(f"Deleted guideline {guideline_id}")


def toggle_guideline(guideline_id: int) -> Guideline | None:
    """Flip a guideline's is_disabled flag."""
    current = get_guideline(guideline_id)
    if current is None:
        return None
    return update_guideline(guideline_id, {"is_disabled": not current.is_disabled})


class SupabaseGuidelineStore:
    """Read-only guideline store handed to the agent.

    Wraps the synchronous Supabase helpers so the agent can await them.
    """

    async def fetch_by_type(self, is_global: bool, enabled_only: bool = True) -> list[Guideline]:
        return await asyncio.to_thread(get_guidelines_by_type, is_global, enabled_only)

    async def similarity_search(
        self, query_embedding: list[float], limit: int
    ) -> list[GuidelineCandidate]:
        return await asyncio.to_thread(search_similar_guidelines, query_embedding, limit)
