"""Guideline-aware response agent (LangGraph).

Flow: retrieve (globals + semantic candidates, concurrently) -> filter
candidates -> assemble prompt -> generate reply. The filter node is skipped
when semantic search found nothing.
"""

import asyncio
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from langgraph.graph import END, StateGraph

from app.chains.build_system_prompt import build_system_prompt
from app.chains.filter_guidelines import filter_relevant_guidelines
from app.chains.generate_reply import generate_reply
from app.chains.retrieve_guidelines import (
    TURN_POLICIES,
    Embedder,
    GuidelineStore,
    fetch_global_guidelines,
    semantic_retrieve,
)
from app.core.config import Settings, get_settings
from app.core.llm import ChatClient, CompletionClient
from app.core.logging import get_logger
from app.core.schemas_chat import AgentResponse, ConversationTurn
from app.core.schemas_guidelines import Guideline, GuidelineCandidate

logger = get_logger(__name__)

PIPELINE_FALLBACK_MESSAGE = (
    "I apologize, but I encountered an error while processing your message. Please try again."
)


@dataclass
class AgentState:
    """State for the guideline agent graph."""

    # Input
    conversation: list[ConversationTurn]

    # Retrieval
    global_guidelines: list[Guideline] = field(default_factory=list)
    candidates: list[GuidelineCandidate] = field(default_factory=list)

    # Filtering and prompt
    relevant_guidelines: list[GuidelineCandidate] = field(default_factory=list)
    system_prompt: str = ""

    # Output
    reply: str = ""


class GuidelineAgent:
    """Answers a conversation under the guidelines that apply to it.

    Args:
        store: Guideline store (read-only use)
        embedder: Embedding client for the semantic search query
        llm: Chat completion client used for filtering and the reply
        settings: Settings override (defaults to get_settings())
    """

    def __init__(
        self,
        store: GuidelineStore,
        embedder: Embedder,
        llm: CompletionClient,
        settings: Settings | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.llm = llm
        self.settings = settings or get_settings()
        self.turn_policy = TURN_POLICIES[self.settings.EMBEDDING_TURN_POLICY]
        self._graph = self._build_graph().compile()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def retrieve(self, state: AgentState) -> dict[str, Any]:
        global_guidelines, candidates = await asyncio.gather(
            fetch_global_guidelines(self.store),
            semantic_retrieve(
                state.conversation,
                self.store,
                self.embedder,
                k=self.settings.CONDITIONAL_GUIDELINES_MATCH_COUNT,
                turn_policy=self.turn_policy,
            ),
        )
        logger.info(
            f"Retrieved {len(global_guidelines)} global guidelines, {len(candidates)} candidates"
        )
        return {"global_guidelines": global_guidelines, "candidates": candidates}

    async def filter_candidates(self, state: AgentState) -> dict[str, Any]:
        relevant = await filter_relevant_guidelines(
            state.candidates,
            state.conversation,
            self.llm,
            model=self.settings.AGENT_MODEL,
            temperature=self.settings.AGENT_TEMPERATURE,
            top_p=self.settings.AGENT_TOP_P,
            max_tokens=self.settings.AGENT_MAX_TOKENS,
        )
        logger.info(f"Kept {len(relevant)}/{len(state.candidates)} conditional guidelines")
        return {"relevant_guidelines": relevant}

    def assemble_prompt(self, state: AgentState) -> dict[str, Any]:
        return {
            "system_prompt": build_system_prompt(
                state.global_guidelines, state.relevant_guidelines
            )
        }

    async def generate(self, state: AgentState) -> dict[str, Any]:
        reply = await generate_reply(
            state.system_prompt,
            state.conversation,
            self.llm,
            model=self.settings.AGENT_MODEL,
            temperature=self.settings.AGENT_TEMPERATURE,
            top_p=self.settings.AGENT_TOP_P,
            max_tokens=self.settings.AGENT_MAX_TOKENS,
        )
        return {"reply": reply}

    @staticmethod
    def route_after_retrieve(state: AgentState) -> str:
        """Skip the relevance call when there is nothing to adjudicate."""
        if state.candidates:
            return "filter_candidates"
        return "assemble_prompt"

    def _build_graph(self) -> StateGraph:
        graph = StateGraph(AgentState)

        graph.add_node("retrieve", self.retrieve)
        graph.add_node("filter_candidates", self.filter_candidates)
        graph.add_node("assemble_prompt", self.assemble_prompt)
        graph.add_node("generate_reply", self.generate)

        graph.set_entry_point("retrieve")
        graph.add_conditional_edges(
            "retrieve",
            self.route_after_retrieve,
            {
                "filter_candidates": "filter_candidates",
                "assemble_prompt": "assemble_prompt",
            },
        )
        graph.add_edge("filter_candidates", "assemble_prompt")
        graph.add_edge("assemble_prompt", "generate_reply")
        graph.add_edge("generate_reply", END)

        return graph

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process_message(
        self, conversation: list[ConversationTurn] | list[dict[str, str]]
    ) -> AgentResponse:
        """
        Produce a reply for the conversation. Never raises.

        Args:
            conversation: Turns oldest first, as models or role/content dicts

        Returns:
            AgentResponse with a non-empty message
        """
        try:
            turns = [
                t if isinstance(t, ConversationTurn) else ConversationTurn.model_validate(t)
                for t in conversation
            ]
            if turns:
                logger.debug(f"Message: {turns[-1].content}")

            final_state = await self._graph.ainvoke(AgentState(conversation=turns))
            reply = (final_state.get("reply") or "").strip()
            if not reply:
                raise RuntimeError("Agent graph finished without a reply")

            return AgentResponse(message=reply)

        except Exception:
            logger.exception("Agent processing failed")
            return AgentResponse(message=PIPELINE_FALLBACK_MESSAGE)


@lru_cache(maxsize=1)
def get_agent() -> GuidelineAgent:
    """Shared agent wired to Supabase and OpenAI."""
    from app.core.embeddings import OpenAIEmbedder
    from app.db.guidelines import SupabaseGuidelineStore

    return GuidelineAgent(
        store=SupabaseGuidelineStore(),
        embedder=OpenAIEmbedder(),
        llm=ChatClient(),
    )
