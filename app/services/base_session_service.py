"""
Base Session Service
Collaborators and access checks shared by the study and test services
"""
import logging
from typing import Dict, Literal, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.errors import ForbiddenError, NotFoundError
from app.db.exam_catalog import ExamCatalog
from app.db.question_store import QuestionStore
from app.db.session_repository import SessionModel, SessionRepository
from app.models.common import CurrentUser
from app.models.question import ExamProjection
from app.utils.clock import Clock, epoch_seconds

logger = logging.getLogger(__name__)


class BaseSessionService:
    """
    Wires a session repository to the question store and exam catalog

    Every collaborator can be injected; by default they are built on the
    given database. clock returns epoch seconds and is injectable so timers
    can be exercised deterministically.
    """

    KIND: Literal["study", "test"]

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        question_store: Optional[QuestionStore] = None,
        exam_catalog: Optional[ExamCatalog] = None,
        repository: Optional[SessionRepository] = None,
        clock: Optional[Clock] = None
    ):
        self.db = db
        self.questions = question_store or QuestionStore(db)
        self.exams = exam_catalog or ExamCatalog(db)
        self.repository = repository or SessionRepository(db, self.KIND)
        self.clock = clock or epoch_seconds

    async def _get_exam(self, exam_id: str, caller: CurrentUser) -> ExamProjection:
        """
        Load an exam the caller may start a session on

        Raises:
            NotFoundError: Exam does not exist
            ForbiddenError: Exam is inactive and the caller is not privileged
        """
        exam = await self.exams.get_by_id(exam_id)
        if not exam:
            raise NotFoundError("Exam not found")
        if not exam.isActive and not caller.isAdmin:
            raise ForbiddenError("This exam is not currently available")
        return exam

    async def _load_owned(self, session_id: str, caller: CurrentUser) -> SessionModel:
        """
        Load a session the caller owns (or may administer)

        Raises:
            NotFoundError: Unknown session ID
            ForbiddenError: Session belongs to someone else
        """
        session = await self.repository.get_by_id(session_id)
        if not session:
            raise NotFoundError(f"{self.KIND.capitalize()} session not found")
        if not caller.can_access(session.userId):
            logger.warning(
                f"⚠️ User {caller.id} denied access to {self.KIND} session {session_id}"
            )
            raise ForbiddenError("Access denied to this session")
        return session

    @staticmethod
    def _page_window(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
        """Clamp pagination parameters to sane bounds"""
        page = max(1, page or 1)
        limit = limit or settings.history_default_limit
        limit = min(max(1, limit), settings.history_max_limit)
        return page, limit

    @staticmethod
    def _exam_metadata(exam: ExamProjection) -> Dict[str, Optional[str]]:
        return {
            "examName": exam.name,
            "examCode": exam.code,
            "vendorName": exam.vendor
        }
