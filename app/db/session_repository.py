"""
Session Repository
MongoDB persistence for Study and Test session records
FILE: app/db/session_repository.py
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.errors import (
    InvalidStateError,
    NotFoundError,
    VersionConflictError
)
from app.models.sessions import (
    OPEN_STUDY_STATUSES,
    OPEN_TEST_STATUSES,
    TERMINAL_STATUSES,
    StudySession,
    TestSession
)

logger = logging.getLogger(__name__)

SessionModel = Union[StudySession, TestSession]


class SessionRepository:
    """
    Create/get/update/list operations over one kind of session

    Updates are partial patches applied atomically to a single document.
    Concurrent patches touching different fields (e.g. answers to different
    questions) both land; patches to the same field are last-write-wins
    unless the caller supplies the version it last observed.
    """

    def __init__(self, db: AsyncIOMotorDatabase, kind: Literal["study", "test"]):
        """
        Initialize the repository

        Args:
            db: MongoDB database instance
            kind: "study" or "test"; selects collection and record model
        """
        if kind not in ("study", "test"):
            raise ValueError(f"Unknown session kind: {kind}")
        self.kind = kind
        self.collection = db[f"{kind}_sessions"]
        self.model = StudySession if kind == "study" else TestSession
        self.open_statuses = OPEN_STUDY_STATUSES if kind == "study" else OPEN_TEST_STATUSES

    def _to_model(self, doc: Dict[str, Any]) -> SessionModel:
        doc.pop("_id", None)
        doc.pop("openSlot", None)
        return self.model(**doc)

    @staticmethod
    def _open_slot(user_id: str, exam_id: str) -> str:
        return f"{user_id}:{exam_id}"

    async def create(self, session: SessionModel) -> SessionModel:
        """
        Insert a new session, claiming the (user, exam) slot while it is open

        Raises:
            InvalidStateError: If another open session holds the (user, exam) slot
        """
        doc = session.model_dump()
        if session.is_open:
            doc["openSlot"] = self._open_slot(session.userId, session.examId)

        try:
            await self.collection.insert_one(doc)
        except DuplicateKeyError:
            logger.warning(
                f"⚠️ Open {self.kind} session already exists for "
                f"user {session.userId}, exam {session.examId}"
            )
            raise InvalidStateError(
                f"An open {self.kind} session already exists for this exam"
            )

        logger.info(f"✅ Created {self.kind} session: {session.id}")
        return session

    async def get_by_id(self, session_id: str) -> Optional[SessionModel]:
        """Retrieve a session by ID"""
        doc = await self.collection.find_one({"id": session_id})
        if not doc:
            logger.debug(f"Session not found: {session_id}")
            return None
        return self._to_model(doc)

    async def get_active_by_user_exam(
        self,
        user_id: str,
        exam_id: str
    ) -> Optional[SessionModel]:
        """Return the open (active/paused) session for this user and exam"""
        cursor = self.collection.find(
            {
                "userId": user_id,
                "examId": exam_id,
                "status": {"$in": list(self.open_statuses)}
            }
        ).sort("startedAt", -1).limit(1)

        async for doc in cursor:
            return self._to_model(doc)
        return None

    async def update(
        self,
        session_id: str,
        set_fields: Optional[Dict[str, Any]] = None,
        add_to_set: Optional[Dict[str, Any]] = None,
        pull: Optional[Dict[str, Any]] = None,
        inc: Optional[Dict[str, int]] = None,
        allowed_statuses: Optional[Tuple[str, ...]] = None,
        expected_version: Optional[int] = None
    ) -> SessionModel:
        """
        Apply a partial patch to one session

        Args:
            session_id: Session to patch
            set_fields: Fields to overwrite (dotted paths allowed)
            add_to_set: Set fields to add a value to
            pull: Set fields to remove a value from
            inc: Numeric fields to increment
            allowed_statuses: Only patch while the session is in one of these
            expected_version: Only patch if the stored version matches

        Returns:
            The session as stored after the patch

        Raises:
            NotFoundError: Unknown session
            InvalidStateError: Session status not in allowed_statuses
            VersionConflictError: Stored version differs from expected_version
        """
        query: Dict[str, Any] = {"id": session_id}
        if allowed_statuses:
            query["status"] = {"$in": list(allowed_statuses)}
        if expected_version is not None:
            query["version"] = expected_version

        set_fields = dict(set_fields or {})
        set_fields["updatedAt"] = datetime.now(timezone.utc)

        update: Dict[str, Any] = {
            "$set": set_fields,
            "$inc": {"version": 1, **(inc or {})}
        }
        if add_to_set:
            update["$addToSet"] = add_to_set
        if pull:
            update["$pull"] = pull
        if set_fields.get("status") in TERMINAL_STATUSES:
            # Free the (user, exam) slot for the next session
            update["$unset"] = {"openSlot": ""}

        doc = await self.collection.find_one_and_update(
            query,
            update,
            return_document=ReturnDocument.AFTER
        )
        if doc:
            logger.debug(f"✅ Patched {self.kind} session {session_id}: {sorted(set_fields)}")
            return self._to_model(doc)

        # Work out why nothing matched
        current = await self.get_by_id(session_id)
        if current is None:
            raise NotFoundError(f"Session not found: {session_id}")
        if allowed_statuses and current.status not in allowed_statuses:
            raise InvalidStateError(
                f"Session {session_id} is {current.status} and cannot be modified"
            )
        if expected_version is not None and current.version != expected_version:
            raise VersionConflictError(
                f"Session {session_id} is at version {current.version}, "
                f"expected {expected_version}"
            )
        raise InvalidStateError(f"Session {session_id} could not be updated")

    async def list_by_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        exam_id: Optional[str] = None
    ) -> Tuple[List[SessionModel], int]:
        """
        Paginated sessions for a user, most recent first

        Returns:
            Tuple of (sessions on the page, total matching sessions)
        """
        query: Dict[str, Any] = {"userId": user_id}
        if exam_id:
            query["examId"] = exam_id

        total = await self.collection.count_documents(query)
        cursor = self.collection.find(query).sort(
            [("startedAt", -1), ("createdAt", -1)]
        ).skip((page - 1) * limit).limit(limit)

        sessions = []
        async for doc in cursor:
            sessions.append(self._to_model(doc))

        logger.info(
            f"📊 Retrieved {len(sessions)}/{total} {self.kind} sessions for user {user_id}"
        )
        return sessions, total

    async def list_all_for_user(
        self,
        user_id: str,
        exam_id: Optional[str] = None
    ) -> List[SessionModel]:
        """Every session of this kind for a user (oldest first)"""
        query: Dict[str, Any] = {"userId": user_id}
        if exam_id:
            query["examId"] = exam_id

        sessions = []
        async for doc in self.collection.find(query).sort("startedAt", 1):
            sessions.append(self._to_model(doc))
        return sessions
