"""Tests for global and semantic guideline retrieval."""

import pytest

from app.chains.retrieve_guidelines import (
    TURN_POLICIES,
    build_embedding_query,
    fetch_global_guidelines,
    semantic_retrieve,
    user_turns,
)
from app.core.embeddings import EmbeddingError
from app.core.schemas_chat import ConversationTurn
from tests.fakes.fake_guideline_store import (
    FakeEmbedder,
    FakeGuidelineStore,
    make_conditional,
    make_global,
)

CONVERSATION = [
    ConversationTurn(role="user", content="Hi,   I  want a REFUND"),
    ConversationTurn(role="assistant", content="Sorry to hear that. What happened?"),
    ConversationTurn(role="user", content="The item arrived broken"),
]


def _store() -> FakeGuidelineStore:
    return FakeGuidelineStore(
        [
            make_global(1, "Be polite"),
            make_global(2, "Never share internal notes", disabled=True),
            make_global(3, "Answer in the user's language"),
            make_conditional(10, "customer requests refund", "Offer a discount", [1.0, 0.0, 0.0]),
            make_conditional(11, "item damaged", "Ask for a photo", [0.8, 0.6, 0.0]),
            make_conditional(12, "asks about shipping", "Mention free shipping", [0.0, 1.0, 0.0]),
            make_conditional(13, "angry customer", "Escalate", [1.0, 0.0, 0.0], disabled=True),
        ]
    )


class TestBuildEmbeddingQuery:
    def test_all_turns_both_roles(self):
        query = build_embedding_query(CONVERSATION)
        assert query == (
            "user says hi, i want a refund "
            "assistant says sorry to hear that. what happened? "
            "user says the item arrived broken"
        )

    def test_user_turn_policy(self):
        query = build_embedding_query(CONVERSATION, user_turns)
        assert "assistant says" not in query
        assert query == "user says hi, i want a refund user says the item arrived broken"

    def test_policies_registered(self):
        assert set(TURN_POLICIES) == {"all", "user"}

    def test_empty_conversation(self):
        assert build_embedding_query([]) == ""


@pytest.mark.asyncio
async def test_fetch_global_guidelines_enabled_only_in_store_order():
    store = _store()

    guidelines = await fetch_global_guidelines(store)

    assert [g.id for g in guidelines] == [1, 3]
    assert store.fetch_calls == [{"is_global": True, "enabled_only": True}]


@pytest.mark.asyncio
async def test_fetch_global_guidelines_store_failure_returns_empty():
    store = _store()
    store.fail_fetch = True

    assert await fetch_global_guidelines(store) == []


@pytest.mark.asyncio
async def test_semantic_retrieve_orders_by_similarity_and_skips_disabled():
    store = _store()
    embedder = FakeEmbedder([1.0, 0.0, 0.0])

    candidates = await semantic_retrieve(CONVERSATION, store, embedder, k=5)

    assert [c.id for c in candidates] == [10, 11, 12]
    similarities = [c.similarity for c in candidates]
    assert similarities == sorted(similarities, reverse=True)
    assert store.search_calls[0]["limit"] == 5


@pytest.mark.asyncio
async def test_semantic_retrieve_respects_k():
    candidates = await semantic_retrieve(
        CONVERSATION, _store(), FakeEmbedder([1.0, 0.0, 0.0]), k=1
    )
    assert [c.id for c in candidates] == [10]


@pytest.mark.asyncio
async def test_semantic_retrieve_embeds_normalized_query():
    embedder = FakeEmbedder()

    await semantic_retrieve(CONVERSATION, _store(), embedder, k=5, turn_policy=user_turns)

    assert embedder.texts == ["user says hi, i want a refund user says the item arrived broken"]


@pytest.mark.asyncio
async def test_semantic_retrieve_embedding_failure_returns_empty():
    store = _store()
    embedder = FakeEmbedder(error=EmbeddingError("provider down"))

    candidates = await semantic_retrieve(CONVERSATION, store, embedder, k=5)

    assert candidates == []
    assert store.search_calls == []


@pytest.mark.asyncio
async def test_semantic_retrieve_store_failure_returns_empty():
    store = _store()
    store.fail_search = True

    assert await semantic_retrieve(CONVERSATION, store, FakeEmbedder(), k=5) == []


@pytest.mark.asyncio
async def test_semantic_retrieve_empty_conversation_returns_empty():
    assert await semantic_retrieve([], _store(), FakeEmbedder(), k=5) == []
