"""
Study Session API Routes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_current_user, get_study_session_service
from app.models.common import ApiResponse, CurrentUser
from app.models.study_session import (
    EndStudySessionRequest,
    StartStudySessionRequest,
    UpdateStudySessionRequest
)
from app.services.study_session_service import StudySessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions/study", tags=["Study Sessions"])


# ============================================================================
# COLLECTION ENDPOINTS
# (declared before /{session_id} so the static paths win)
# ============================================================================

@router.post(
    "/start",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start or resume a study session",
    description="""
    Start a study session for an exam.

    **Modes:** sequential, random, flagged, incorrect, review, weak_areas

    If an open session exists for the same exam and mode it is resumed
    (`isResuming: true`); an open session in another mode is abandoned.
    """
)
async def start_study_session(
    request: StartStudySessionRequest,
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    result = await service.create(caller, request)
    return ApiResponse(success=True, data=result)


@router.get(
    "/history",
    response_model=ApiResponse,
    summary="List the caller's study sessions"
)
async def get_study_history(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    examId: Optional[str] = Query(default=None),
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    history = await service.get_user_history(caller, page=page, limit=limit, exam_id=examId)
    return ApiResponse(success=True, data=history)


@router.get(
    "/bookmarks",
    response_model=ApiResponse,
    summary="Questions bookmarked across study sessions"
)
async def get_bookmarked_questions(
    examId: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    questions, total = await service.get_bookmarks(caller, exam_id=examId, limit=limit, offset=offset)
    return ApiResponse(
        success=True,
        data={
            "questions": questions,
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + len(questions) < total
        }
    )


@router.get(
    "/analytics",
    response_model=ApiResponse,
    summary="Progress across the caller's study sessions"
)
async def get_study_analytics(
    examId: Optional[str] = Query(default=None),
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    analytics = await service.get_analytics(caller, exam_id=examId)
    return ApiResponse(success=True, data=analytics)


@router.get(
    "/weak-areas",
    response_model=ApiResponse,
    summary="Objectives with low accuracy"
)
async def get_weak_areas(
    examId: Optional[str] = Query(default=None),
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    weak_areas = await service.get_weak_areas(caller, exam_id=examId)
    return ApiResponse(success=True, data={"weakAreas": weak_areas})


# ============================================================================
# SINGLE SESSION ENDPOINTS
# ============================================================================

@router.get(
    "/{session_id}",
    response_model=ApiResponse,
    summary="Get a study session with its questions"
)
async def get_study_session(
    session_id: str,
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    session = await service.get_by_id(session_id, caller)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Study session not found"
        )
    questions = await service.get_questions(session)
    return ApiResponse(success=True, data={"session": session, "questions": questions})


@router.put(
    "/{session_id}",
    response_model=ApiResponse,
    summary="Record study progress",
    description="""
    Apply a partial progress update: answer, bookmark/flag toggle, cursor
    move and elapsed time. Pass `expectedVersion` to reject the update if
    the session changed since it was read.
    """
)
async def update_study_session(
    session_id: str,
    patch: UpdateStudySessionRequest,
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    session = await service.update_progress(session_id, caller, patch)
    return ApiResponse(success=True, data=session)


@router.post(
    "/{session_id}/pause",
    response_model=ApiResponse,
    summary="Pause an active study session"
)
async def pause_study_session(
    session_id: str,
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    session = await service.pause(session_id, caller)
    return ApiResponse(success=True, data=session)


@router.post(
    "/{session_id}/resume",
    response_model=ApiResponse,
    summary="Resume a paused study session"
)
async def resume_study_session(
    session_id: str,
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    session = await service.resume(session_id, caller)
    return ApiResponse(success=True, data=session)


@router.delete(
    "/{session_id}",
    response_model=ApiResponse,
    summary="Complete or abandon a study session"
)
async def end_study_session(
    session_id: str,
    request: EndStudySessionRequest,
    caller: CurrentUser = Depends(get_current_user),
    service: StudySessionService = Depends(get_study_session_service)
) -> ApiResponse:
    if request.action == "complete":
        result = await service.complete(session_id, caller)
    else:
        result = await service.abandon(session_id, caller)
    return ApiResponse(success=True, data=result)
