from fastapi import APIRouter

from sitegen.api.routes import generation, health, visual_editor

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(generation.router, prefix="/generate", tags=["generation"])
api_router.include_router(visual_editor.router, prefix="/visual-editor", tags=["visual-editor"])
