"""API endpoints for guideline management."""

import logging

from fastapi import APIRouter, HTTPException, Query, Response

from app.core.embeddings import EmbeddingError, OpenAIEmbedder
from app.core.logging import log_with_context
from app.core.schemas_guidelines import (
    GuidelineCreate,
    GuidelineResponse,
    GuidelineUpdate,
)
from app.db.guidelines import (
    create_guideline,
    delete_guideline,
    get_guideline,
    get_guidelines_by_type,
    list_guidelines,
    toggle_guideline,
    update_guideline,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/guidelines", tags=["guidelines"])


def get_embedder() -> OpenAIEmbedder:
    return OpenAIEmbedder()


@router.get("/", response_model=list[GuidelineResponse])
async def list_all_guidelines(
    is_global: bool | None = Query(None, description="Only global (true) or conditional (false)"),
    enabled_only: bool = Query(False, description="Exclude disabled guidelines"),
) -> list[GuidelineResponse]:
    """List guidelines, newest first."""
    try:
        if is_global is None:
            guidelines = list_guidelines()
            if enabled_only:
                guidelines = [g for g in guidelines if not g.is_disabled]
        else:
            guidelines = get_guidelines_by_type(is_global, enabled_only=enabled_only)
        return [GuidelineResponse.from_guideline(g) for g in guidelines]
    except Exception as e:
        logger.exception("Failed to list guidelines")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/", response_model=GuidelineResponse, status_code=201)
async def create_new_guideline(data: GuidelineCreate) -> GuidelineResponse:
    """Create a guideline, embedding its condition when it is conditional."""
    condition_vector = None
    if not data.is_global:
        try:
            condition_vector = await get_embedder().embed_async(data.condition)
        except EmbeddingError:
            logger.exception("Failed to create embedding for condition")
            raise HTTPException(status_code=500, detail="Failed to create a guideline")

    try:
        guideline = create_guideline(
            directive=data.directive,
            condition=data.condition,
            is_global=data.is_global,
            condition_vector=condition_vector,
        )
        return GuidelineResponse.from_guideline(guideline)
    except Exception:
        logger.exception("Failed to create guideline")
        raise HTTPException(status_code=500, detail="Failed to create a guideline")


@router.patch("/{guideline_id}", response_model=GuidelineResponse)
async def update_existing_guideline(guideline_id: int, data: GuidelineUpdate) -> GuidelineResponse:
    """Update a guideline. A changed condition is re-embedded."""
    try:
        existing = get_guideline(guideline_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Guideline not found")

        updates = data.model_dump(exclude_none=True, by_alias=True)

        if "condition" in updates:
            if existing.is_global:
                raise HTTPException(
                    status_code=400, detail="Global guidelines cannot have a condition"
                )
            if updates["condition"] != existing.condition:
                try:
                    updates["condition_vector"] = await get_embedder().embed_async(
                        updates["condition"]
                    )
                except EmbeddingError:
                    logger.exception(f"Failed to re-embed condition for guideline {guideline_id}")
                    raise HTTPException(status_code=500, detail="Failed to update guideline")

        updated = update_guideline(guideline_id, updates)
        if updated is None:
            raise HTTPException(status_code=404, detail="Guideline not found")
        return GuidelineResponse.from_guideline(updated)

    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to update guideline {guideline_id}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{guideline_id}", status_code=204)
async def delete_existing_guideline(guideline_id: int) -> Response:
    """Delete a guideline."""
    try:
        delete_guideline(guideline_id)
        return Response(status_code=204)
    except Exception as e:
        logger.exception(f"Failed to delete guideline {guideline_id}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{guideline_id}/toggle", response_model=GuidelineResponse)
async def toggle_existing_guideline(guideline_id: int) -> GuidelineResponse:
    """Enable a disabled guideline or disable an enabled one."""
    try:
        toggled = toggle_guideline(guideline_id)
        if toggled is None:
            raise HTTPException(status_code=404, detail="Guideline not found")
        log_with_context(
            logger,
            logging.INFO,
            "Guideline disabled" if toggled.is_disabled else "Guideline enabled",
            guideline_id=guideline_id,
        )
        return GuidelineResponse.from_guideline(toggled)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to toggle guideline {guideline_id}")
        raise HTTPException(status_code=500, detail=str(e))
