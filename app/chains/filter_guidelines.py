"""Relevance filter: one JSON-mode LLM call decides which candidates apply."""

from app.core.llm import CompletionClient, ParseFailure, try_parse_llm_json
from app.core.logging import get_logger
from app.core.schemas_chat import ConversationTurn
from app.core.schemas_guidelines import GuidelineCandidate, GuidelineSelectionResponse

logger = get_logger(__name__)


SYSTEM_PROMPT_TEMPLATE = """You are an expert customer service guideline analyzer.
Review the conditional guidelines below and decide which ones should shape the assistant's next reply in this conversation.

<filtering_criteria>
1. RELEVANCE: Select a guideline only if its condition clearly matches the customer's current situation.
2. APPROPRIATENESS: Exclude guidelines that would be inappropriate given the conversation context.
3. AVOID REPETITION: Do NOT select a guideline the assistant has already applied in an earlier response, unless:
   - its condition has been met again for a new reason in the most recent user message, and the associated action has not yet been taken for this new occurrence.
4. TIMING: Consider whether the guideline fits the current stage of the conversation.
</filtering_criteria>

<analysis_process>
1. Read the full conversation history.
2. For each guideline, check whether its condition matches the customer's current state or request.
3. Check the assistant's earlier responses to see whether the guideline was already applied.
4. Keep only guidelines whose action would help rather than repeat.
</analysis_process>

<conditional_guidelines>
{guidelines}
</conditional_guidelines>

<conversation_context>
The transcript shows what the customer said and how the assistant already responded.
{transcript}
</conversation_context>

<return_format>
Return ONLY the IDs of guidelines that are relevant, not already applied, and appropriate right now, as JSON:
{{
  "guidelines": [
    {{"id": "guideline_id", "reason": "Brief explanation of why this guideline applies now"}}
  ]
}}
Return {{"guidelines": []}} if none apply.
</return_format>"""


def _format_candidates(candidates: list[GuidelineCandidate]) -> str:
    blocks = []
    for i, candidate in enumerate(candidates, 1):
        blocks.append(
            f"{i}. ID: {candidate.id}\n"
            f'   When: "{candidate.condition}"\n'
            f'   Then: "{candidate.directive}"\n'
            f"   Similarity: {candidate.similarity:.2f}"
        )
    return "\n\n".join(blocks)


def _format_transcript(conversation: list[ConversationTurn]) -> str:
    return "\n".join(f"{turn.role.value}: {turn.content}" for turn in conversation)


def build_filter_prompt(
    candidates: list[GuidelineCandidate],
    conversation: list[ConversationTurn],
) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        guidelines=_format_candidates(candidates),
        transcript=_format_transcript(conversation),
    )


async def filter_relevant_guidelines(
    candidates: list[GuidelineCandidate],
    conversation: list[ConversationTurn],
    llm: CompletionClient,
    model: str,
    temperature: float = 0.3,
    top_p: float = 0.9,
    max_tokens: int = 1000,
) -> list[GuidelineCandidate]:
    """
    Keep the candidates the model judges relevant to the conversation right now.

    Fails open: if the call fails or its output is malformed, every candidate
    is returned unchanged. Ids the model returns that match no candidate are
    ignored.

    Args:
        candidates: Conditional guidelines from semantic search
        conversation: Full conversation, oldest turn first
        llm: Chat completion client
        model: Model name

    Returns:
        Surviving candidates in candidate order
    """
    if not candidates:
        return []

    messages = [{"role": "system", "content": build_filter_prompt(candidates, conversation)}]

    try:
        raw_output = await llm.complete(
            model=model,
            messages=messages,
            temperature=temperature,
            top_p=top_p,
            max_tokens=max_tokens,
            json_mode=True,
        )
    except Exception as e:
        logger.error(f"Guideline relevance call failed, keeping all candidates: {e}")
        return list(candidates)

    result = try_parse_llm_json(raw_output, GuidelineSelectionResponse)
    if isinstance(result, ParseFailure):
        logger.error(f"Failed to parse guideline selection ({result.error}), keeping all candidates")
        return list(candidates)

    selection = result.value
    logger.debug("Guidelines selected by LLM:")
    for item in selection.guidelines:
        logger.debug(f"{item.id}: [{item.reason}]")

    selected_ids = selection.selected_ids()
    return [c for c in candidates if str(c.id) in selected_ids]
