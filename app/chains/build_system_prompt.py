"""System prompt assembly from global and filtered conditional guidelines."""

from app.core.schemas_guidelines import Guideline, GuidelineCandidate

SYSTEM_PROMPT_TEMPLATE = """You are a helpful AI assistant.
When crafting your reply, you must:
1. Follow the global guidelines below. They apply to every interaction.
2. Follow the behavioral guidelines below. They are specific to the current interaction and apply in addition to the global guidelines. They have already been pre-filtered for this interaction based on its context and other considerations outside your scope.
3. You may choose not to follow a guideline ONLY when:
   3.1. It conflicts with an earlier request from the customer.
   3.2. It is clearly inappropriate given the current context of the conversation.
4. Do not make up information. If you do not know the answer, say so.

<global_guidelines>
{global_guidelines}
</global_guidelines>

<behavioral_guidelines>
{behavioral_guidelines}
</behavioral_guidelines>"""


def _numbered(lines: list[str]) -> str:
    return "\n".join(f"{i}. {line}" for i, line in enumerate(lines, 1))


def order_by_similarity(candidates: list[GuidelineCandidate]) -> list[GuidelineCandidate]:
    """Highest similarity first; ties keep retrieval order."""
    return sorted(candidates, key=lambda c: c.similarity, reverse=True)


def build_system_prompt(
    global_guidelines: list[Guideline],
    conditional_guidelines: list[GuidelineCandidate],
) -> str:
    """Render the instruction block. Conditions are never shown to the model."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        global_guidelines=_numbered([g.directive for g in global_guidelines]),
        behavioral_guidelines=_numbered(
            [c.directive for c in order_by_similarity(conditional_guidelines)]
        ),
    )
