"""Guideline retrieval: enabled globals plus semantically nearest conditionals.

Both fetches degrade to an empty list on failure; the agent carries on with
whatever was retrieved.
"""

from typing import Callable, Protocol

from app.core.embeddings import normalize_text
from app.core.logging import get_logger
from app.core.schemas_chat import ConversationRole, ConversationTurn
from app.core.schemas_guidelines import Guideline, GuidelineCandidate

logger = get_logger(__name__)

TurnPolicy = Callable[[list[ConversationTurn]], list[ConversationTurn]]


class GuidelineStore(Protocol):
    async def fetch_by_type(self, is_global: bool, enabled_only: bool = True) -> list[Guideline]: ...

    async def similarity_search(
        self, query_embedding: list[float], limit: int
    ) -> list[GuidelineCandidate]: ...


class Embedder(Protocol):
    async def embed_async(self, text: str) -> list[float]: ...


def all_turns(conversation: list[ConversationTurn]) -> list[ConversationTurn]:
    return list(conversation)


def user_turns(conversation: list[ConversationTurn]) -> list[ConversationTurn]:
    return [turn for turn in conversation if turn.role == ConversationRole.USER]


TURN_POLICIES: dict[str, TurnPolicy] = {
    "all": all_turns,
    "user": user_turns,
}


def build_embedding_query(
    conversation: list[ConversationTurn],
    turn_policy: TurnPolicy = all_turns,
) -> str:
    """Flatten the selected turns into one normalized search string."""
    query = " ".join(
        f"{turn.role.value} says {turn.content}" for turn in turn_policy(conversation)
    )
    return normalize_text(query)


async def fetch_global_guidelines(store: GuidelineStore) -> list[Guideline]:
    """Fetch enabled global guidelines in store order."""
    try:
        guidelines = await store.fetch_by_type(is_global=True, enabled_only=True)
    except Exception as e:
        logger.error(f"Failed to fetch global guidelines: {e}")
        return []

    logger.debug(f"Fetched {len(guidelines)} global guidelines")
    return list(guidelines)


async def semantic_retrieve(
    conversation: list[ConversationTurn],
    store: GuidelineStore,
    embedder: Embedder,
    k: int,
    turn_policy: TurnPolicy = all_turns,
) -> list[GuidelineCandidate]:
    """
    Find the top-k enabled conditional guidelines closest to the conversation.

    Args:
        conversation: Conversation so far, oldest turn first
        store: Guideline store answering similarity queries
        embedder: Embedding client
        k: Max number of candidates
        turn_policy: Selects which turns make up the search query

    Returns:
        Candidates ordered by similarity descending, or [] on any failure
    """
    query = build_embedding_query(conversation, turn_policy)

    try:
        embedding = await embedder.embed_async(query)
        candidates = await store.similarity_search(embedding, k)
    except Exception as e:
        logger.error(f"Failed to perform vector similarity search: {e}")
        return []

    logger.debug("Guidelines selected by semantic search:")
    for candidate in candidates:
        logger.debug(f"{candidate.id}: [{candidate.similarity:.2f}] {candidate.directive}")

    return list(candidates)
