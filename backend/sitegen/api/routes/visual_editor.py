"""Visual editor routes: save pending edits as a new version."""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitegen.api.routes.generation import get_session_factory_dep, get_version_service
from sitegen.core.auth import ClerkUser, require_auth
from sitegen.core.exceptions import MergeError, MergePersistenceError, ProjectNotFoundError
from sitegen.schemas.generation import VisualEditorSaveRequest, VisualEditorSaveResponse
from sitegen.services.version_service import VersionService
from sitegen.services.visual_edit_service import VisualEditService

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_visual_edit_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dep),
    version_service: VersionService = Depends(get_version_service),
) -> VisualEditService:
    return VisualEditService(session_factory, version_service)


@router.post("/save", response_model=VisualEditorSaveResponse)
async def save_visual_edits(
    request: VisualEditorSaveRequest,
    user: ClerkUser = Depends(require_auth),
    service: VisualEditService = Depends(get_visual_edit_service),
):
    """Merge pending edits into the latest completed version and store the result.

    Raises:
        HTTPException(400): No changes, no completed version, or no files to edit
        HTTPException(404): Project not found or not owned by the caller
        HTTPException(500): New version could not be written (it was rolled back)
    """
    if not request.changes:
        raise HTTPException(status_code=400, detail="No changes to save")

    try:
        result = await service.save(user.user_id, request.project_id, request.changes)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except MergePersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    except MergeError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return VisualEditorSaveResponse(
        success=True,
        version_id=result.version_id,
        version_number=result.version_number,
        changes_applied=result.changes_applied,
    )
