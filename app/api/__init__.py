"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import chat, guidelines

router = APIRouter()

router.include_router(chat.router, tags=["chat"])
router.include_router(guidelines.router)
