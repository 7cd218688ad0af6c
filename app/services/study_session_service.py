"""
Study Session Service
Untimed practice sessions with flexible question selection modes
"""
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from app.core.config import settings
from app.core.errors import (
    AlreadyEndedError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError
)
from app.models.common import CurrentUser, Pagination
from app.models.question import QuestionProjection
from app.models.sessions import (
    OPEN_STUDY_STATUSES,
    AnswerRecord,
    StudySession,
    StudySettings
)
from app.models.study_session import (
    PerformancePoint,
    RecentStudySession,
    StartStudySessionRequest,
    StudyAnalytics,
    StudyHistory,
    StudySessionEnd,
    StudySessionStart,
    StudySessionStatistics,
    UpdateStudySessionRequest,
    WeakArea
)
from app.services.base_session_service import BaseSessionService
from app.utils.scoring import percentage, rounded_mean

logger = logging.getLogger(__name__)

TREND_WINDOW_SECONDS = 7 * 24 * 60 * 60


class StudySessionService(BaseSessionService):
    """
    Service for study session operations

    Study sessions have no deadline. They can be paused and resumed and only
    end through complete() or abandon(). Question selection depends on the
    mode requested at start:

    - sequential: catalog order
    - random: shuffled
    - flagged: questions flagged in any of the user's study sessions
    - incorrect: questions whose most recent answer was wrong
    - review: every question the user has answered
    - weak_areas: questions from objectives below the accuracy threshold
    """

    KIND = "study"

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    async def create(
        self,
        caller: CurrentUser,
        request: StartStudySessionRequest
    ) -> StudySessionStart:
        """
        Start a study session, or resume the open one

        An open session for the same exam is resumed when it was started in
        the same mode and all of its questions can still be loaded. Otherwise
        it is abandoned and replaced.

        Raises:
            NotFoundError: Exam missing or no eligible questions
            ForbiddenError: Exam inactive and caller not privileged
        """
        exam = await self._get_exam(request.examId, caller)

        existing = await self.repository.get_active_by_user_exam(caller.id, request.examId)
        if existing:
            if existing.studyMode == request.mode:
                questions = await self.questions.get_by_ids(
                    existing.questionsOrder,
                    include_answers=True
                )
                if questions and len(questions) == existing.totalQuestions:
                    logger.info(
                        f"🔄 Resuming study session {existing.id} for user {caller.id}"
                    )
                    return StudySessionStart(
                        session=existing,
                        questions=self._present(existing, questions),
                        isResuming=True
                    )
                reason = f"only {len(questions)}/{existing.totalQuestions} questions could be loaded"
            else:
                reason = f"mode changed from {existing.studyMode} to {request.mode}"

            logger.info(f"🗑️ Abandoning study session {existing.id}: {reason}")
            try:
                await self._finish(existing, "abandoned")
            except AlreadyEndedError:
                logger.info(f"Study session {existing.id} was ended concurrently")

        questions = await self._select_questions(caller.id, request)
        if not questions:
            raise NotFoundError(
                f"No questions available for this exam in {request.mode} mode"
            )

        now = self.clock()
        session = StudySession(
            userId=caller.id,
            examId=request.examId,
            studyMode=request.mode,
            questionsOrder=[q.id for q in questions],
            startedAt=now,
            lastActivityAt=now,
            settings=StudySettings(
                showExplanations=request.showExplanations,
                showTimer=request.showTimer,
                autoAdvance=request.autoAdvance,
                objectiveIds=request.objectiveIds or []
            ),
            metadata=self._exam_metadata(exam)
        )
        await self.repository.create(session)

        logger.info(
            f"🎬 Started study session {session.id} for user {caller.id} - "
            f"Exam: {request.examId}, Mode: {request.mode}, Questions: {len(questions)}"
        )
        return StudySessionStart(
            session=session,
            questions=self._present(session, questions),
            isResuming=False
        )

    async def get_by_id(
        self,
        session_id: str,
        caller: CurrentUser
    ) -> Optional[StudySession]:
        """Return the session or None; raises ForbiddenError for other users' sessions"""
        try:
            return await self._load_owned(session_id, caller)
        except NotFoundError:
            return None

    async def get_questions(self, session: StudySession) -> List[QuestionProjection]:
        """Questions of a session in session order"""
        questions = await self.questions.get_by_ids(session.questionsOrder, include_answers=True)
        return self._present(session, questions)

    async def update_progress(
        self,
        session_id: str,
        caller: CurrentUser,
        patch: UpdateStudySessionRequest
    ) -> StudySession:
        """
        Apply a progress patch as one atomic update

        The patch may record an answer, toggle a bookmark or flag, move the
        cursor and add elapsed time. Everything is validated before anything
        is written, so a rejected patch leaves the record untouched.

        Raises:
            NotFoundError: Unknown session or question
            ForbiddenError: Not the caller's session
            InvalidInputError: Question not part of the session, index out of range
            InvalidStateError: Session has ended
            VersionConflictError: expectedVersion is stale
        """
        session = await self._load_owned(session_id, caller)
        if not session.is_open:
            raise InvalidStateError("Cannot update a completed or abandoned session")

        now = self.clock()
        set_fields: Dict[str, object] = {"lastActivityAt": now}
        add_to_set: Dict[str, str] = {}
        pull: Dict[str, str] = {}
        inc: Dict[str, int] = {}

        if patch.answer:
            question_id = patch.answer.questionId
            self._require_member(session, question_id)

            question = await self.questions.get_by_id(question_id, include_answers=True)
            if not question:
                raise NotFoundError("Question not found")
            self.questions.check_selection(question, patch.answer.selectedAnswers)

            is_correct = self.questions.validate_answer(question, patch.answer.selectedAnswers)
            if patch.answer.isCorrect is not None and patch.answer.isCorrect != is_correct:
                logger.debug(
                    f"Client reported isCorrect={patch.answer.isCorrect} for {question_id}, "
                    f"server computed {is_correct}"
                )

            record = AnswerRecord(
                questionId=question_id,
                selectedAnswers=patch.answer.selectedAnswers,
                isCorrect=is_correct,
                timeSpent=patch.answer.timeSpent,
                answeredAt=now
            )
            set_fields[f"answers.{question_id}"] = record.model_dump()

        for field, toggle in (("bookmarks", patch.bookmark), ("flags", patch.flag)):
            if toggle is None:
                continue
            self._require_member(session, toggle.questionId)
            if toggle.action == "add":
                add_to_set[field] = toggle.questionId
            else:
                pull[field] = toggle.questionId

        if patch.currentQuestionIndex is not None:
            if patch.currentQuestionIndex >= session.totalQuestions:
                raise InvalidInputError("Invalid question index")
            set_fields["currentQuestionIndex"] = patch.currentQuestionIndex

        if patch.timeSpentSeconds:
            inc["timeSpentSeconds"] = patch.timeSpentSeconds

        updated = await self.repository.update(
            session_id,
            set_fields=set_fields,
            add_to_set=add_to_set,
            pull=pull,
            inc=inc,
            allowed_statuses=OPEN_STUDY_STATUSES,
            expected_version=patch.expectedVersion
        )
        logger.info(f"✅ Updated study session {session_id} for user {caller.id}")
        return updated

    async def pause(self, session_id: str, caller: CurrentUser) -> StudySession:
        session = await self._load_owned(session_id, caller)
        if session.status != "active":
            raise InvalidStateError(f"Cannot pause a {session.status} session")
        updated = await self.repository.update(
            session_id,
            set_fields={"status": "paused", "lastActivityAt": self.clock()},
            allowed_statuses=("active",)
        )
        logger.info(f"⏸️ Paused study session {session_id}")
        return updated

    async def resume(self, session_id: str, caller: CurrentUser) -> StudySession:
        session = await self._load_owned(session_id, caller)
        if session.status != "paused":
            raise InvalidStateError(f"Cannot resume a {session.status} session")
        updated = await self.repository.update(
            session_id,
            set_fields={"status": "active", "lastActivityAt": self.clock()},
            allowed_statuses=("paused",)
        )
        logger.info(f"▶️ Resumed study session {session_id}")
        return updated

    async def complete(self, session_id: str, caller: CurrentUser) -> StudySessionEnd:
        return await self._end(session_id, caller, "completed")

    async def abandon(self, session_id: str, caller: CurrentUser) -> StudySessionEnd:
        return await self._end(session_id, caller, "abandoned")

    async def _end(self, session_id: str, caller: CurrentUser, status: str) -> StudySessionEnd:
        session = await self._load_owned(session_id, caller)
        if not session.is_open:
            raise AlreadyEndedError("Session has already ended")

        final = await self._finish(session, status)
        logger.info(f"🏁 Study session {session_id} {status} by user {caller.id}")
        return StudySessionEnd(session=final, statistics=self.statistics(final))

    async def _finish(self, session: StudySession, status: str) -> StudySession:
        try:
            return await self.repository.update(
                session.id,
                set_fields={"status": status, "completedAt": self.clock()},
                allowed_statuses=OPEN_STUDY_STATUSES
            )
        except InvalidStateError:
            # Another request ended it first
            raise AlreadyEndedError("Session has already ended")

    @staticmethod
    def statistics(session: StudySession) -> StudySessionStatistics:
        answered = len(session.answers)
        correct = sum(1 for a in session.answers.values() if a.isCorrect)
        return StudySessionStatistics(
            totalQuestions=session.totalQuestions,
            questionsAnswered=answered,
            correctAnswers=correct,
            incorrectAnswers=answered - correct,
            skippedAnswers=session.totalQuestions - answered,
            accuracy=percentage(correct, answered),
            timeSpentSeconds=session.timeSpentSeconds,
            bookmarkedCount=len(session.bookmarks),
            flaggedCount=len(session.flags)
        )

    # ============================================================================
    # HISTORY & REPORTS
    # ============================================================================

    async def get_user_history(
        self,
        caller: CurrentUser,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        exam_id: Optional[str] = None
    ) -> StudyHistory:
        page, limit = self._page_window(page, limit)
        sessions, total = await self.repository.list_by_user(caller.id, page, limit, exam_id)
        return StudyHistory(
            sessions=sessions,
            pagination=Pagination.build(page, limit, total)
        )

    async def get_bookmarks(
        self,
        caller: CurrentUser,
        exam_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[QuestionProjection], int]:
        """
        Questions bookmarked in any of the user's study sessions

        Most recently bookmarked first.

        Returns:
            Tuple of (questions on the page, total bookmarked questions)
        """
        sessions = await self.repository.list_all_for_user(caller.id, exam_id)

        # Later sessions win, so walk newest first and keep first sighting
        ordered: List[str] = []
        seen = set()
        for session in sorted(sessions, key=lambda s: s.lastActivityAt, reverse=True):
            for question_id in session.bookmarks:
                if question_id not in seen:
                    seen.add(question_id)
                    ordered.append(question_id)

        page_ids = ordered[offset:offset + limit]
        questions = await self.questions.get_by_ids(page_ids, include_answers=True)
        return questions, len(ordered)

    async def get_analytics(
        self,
        caller: CurrentUser,
        exam_id: Optional[str] = None
    ) -> StudyAnalytics:
        """
        Aggregate progress across the caller's study sessions

        Includes totals, accuracy, a per-mode session count, the five most
        recent sessions and a per-session accuracy trend for the last seven
        days (oldest first).
        """
        sessions = await self.repository.list_all_for_user(caller.id, exam_id)
        if not sessions:
            return StudyAnalytics()

        total_time = 0
        total_answered = 0
        total_correct = 0
        by_mode: Dict[str, int] = defaultdict(int)
        summaries = []
        for session in sessions:
            stats = self.statistics(session)
            total_time += session.timeSpentSeconds
            total_answered += stats.questionsAnswered
            total_correct += stats.correctAnswers
            by_mode[session.studyMode] += 1
            summaries.append((session, stats))

        recent = sorted(summaries, key=lambda pair: pair[0].startedAt, reverse=True)[:5]
        trend_start = self.clock() - TREND_WINDOW_SECONDS

        analytics = StudyAnalytics(
            totalSessions=len(sessions),
            totalTimeSpent=total_time,
            totalQuestionsAnswered=total_answered,
            totalCorrect=total_correct,
            overallAccuracy=percentage(total_correct, total_answered),
            sessionsByMode=dict(by_mode),
            recentSessions=[
                RecentStudySession(
                    id=session.id,
                    examId=session.examId,
                    mode=session.studyMode,
                    status=session.status,
                    startedAt=session.startedAt,
                    totalQuestions=stats.totalQuestions,
                    questionsAnswered=stats.questionsAnswered,
                    correctAnswers=stats.correctAnswers,
                    accuracy=stats.accuracy,
                    timeSpentSeconds=session.timeSpentSeconds
                )
                for session, stats in recent
            ],
            performanceTrend=[
                PerformancePoint(
                    date=datetime.fromtimestamp(session.startedAt, timezone.utc).date().isoformat(),
                    sessionId=session.id,
                    accuracy=stats.accuracy,
                    questionsAnswered=stats.questionsAnswered
                )
                for session, stats in summaries
                if session.startedAt >= trend_start
            ],
            averageSessionTime=rounded_mean(total_time, len(sessions)),
            averageQuestionsPerSession=rounded_mean(total_answered, len(sessions))
        )
        logger.info(
            f"📊 Analytics for user {caller.id}: {analytics.totalSessions} sessions, "
            f"{analytics.overallAccuracy}% accuracy"
        )
        return analytics

    async def get_weak_areas(
        self,
        caller: CurrentUser,
        exam_id: Optional[str] = None
    ) -> List[WeakArea]:
        """
        Objectives whose accuracy is below the weak-area threshold

        Accuracy uses the most recent answer to each question across the
        user's study sessions. Weakest first.
        """
        latest = await self._latest_answers(caller.id, exam_id)
        if not latest:
            return []

        questions = await self.questions.get_by_ids(list(latest), include_answers=False)

        stats: Dict[Tuple[str, str], Dict[str, int]] = defaultdict(
            lambda: {"answered": 0, "correct": 0, "lastAttempt": 0}
        )
        for question in questions:
            if not question.objectiveId:
                continue
            answer = latest[question.id]
            entry = stats[(question.examId, question.objectiveId)]
            entry["answered"] += 1
            entry["correct"] += int(bool(answer.isCorrect))
            entry["lastAttempt"] = max(entry["lastAttempt"], answer.answeredAt)

        titles = await self.questions.get_objective_titles(
            objective_id for _, objective_id in stats
        )

        weak_areas = []
        for (area_exam_id, objective_id), entry in stats.items():
            accuracy = percentage(entry["correct"], entry["answered"])
            if accuracy >= settings.weak_area_accuracy_threshold:
                continue
            weak_areas.append(
                WeakArea(
                    objectiveId=objective_id,
                    objectiveTitle=titles.get(objective_id),
                    examId=area_exam_id,
                    totalQuestions=entry["answered"],
                    incorrectAnswers=entry["answered"] - entry["correct"],
                    accuracy=accuracy,
                    lastAttempt=entry["lastAttempt"]
                )
            )

        weak_areas.sort(key=lambda area: (area.accuracy, area.objectiveId))
        return weak_areas

    # ============================================================================
    # QUESTION SELECTION
    # ============================================================================

    async def _select_questions(
        self,
        user_id: str,
        request: StartStudySessionRequest
    ) -> List[QuestionProjection]:
        mode = request.mode
        common = {
            "exam_id": request.examId,
            "kind": "study",
            "objective_ids": request.objectiveIds
        }

        if mode in ("sequential", "random"):
            return await self.questions.get_questions_for_session(
                max_questions=request.maxQuestions,
                shuffle_questions=(mode == "random"),
                **common
            )

        if mode == "weak_areas":
            return await self._select_weak_area_questions(user_id, request)

        if mode == "flagged":
            sessions = await self.repository.list_all_for_user(user_id, request.examId)
            question_ids = {qid for s in sessions for qid in s.flags}
        else:
            latest = await self._latest_answers(user_id, request.examId)
            if mode == "incorrect":
                question_ids = {qid for qid, a in latest.items() if not a.isCorrect}
            else:  # review
                question_ids = set(latest)

        if not question_ids:
            return []

        return await self.questions.get_questions_for_session(
            max_questions=request.maxQuestions,
            question_ids=question_ids,
            shuffle_questions=False,
            **common
        )

    async def _select_weak_area_questions(
        self,
        user_id: str,
        request: StartStudySessionRequest
    ) -> List[QuestionProjection]:
        weak_areas = await self.get_weak_areas(
            CurrentUser(id=user_id),
            exam_id=request.examId
        )
        rank = {area.objectiveId: i for i, area in enumerate(weak_areas)}
        if request.objectiveIds:
            rank = {oid: r for oid, r in rank.items() if oid in request.objectiveIds}
        if not rank:
            return []

        candidates = await self.questions.get_questions_for_session(
            exam_id=request.examId,
            kind="study",
            objective_ids=list(rank),
            shuffle_questions=True
        )
        # Stable sort keeps the shuffle within each objective
        candidates.sort(key=lambda q: rank[q.objectiveId])
        if request.maxQuestions:
            candidates = candidates[:request.maxQuestions]
        return candidates

    async def _latest_answers(
        self,
        user_id: str,
        exam_id: Optional[str]
    ) -> Dict[str, AnswerRecord]:
        """Most recent answer per question across the user's study sessions"""
        sessions = await self.repository.list_all_for_user(user_id, exam_id)
        latest: Dict[str, AnswerRecord] = {}
        for session in sessions:
            for question_id, answer in session.answers.items():
                current = latest.get(question_id)
                if current is None or answer.answeredAt >= current.answeredAt:
                    latest[question_id] = answer
        return latest

    # ============================================================================
    # HELPERS
    # ============================================================================

    @staticmethod
    def _require_member(session: StudySession, question_id: str):
        if question_id not in session.questionsOrder:
            raise InvalidInputError(f"Question {question_id} is not part of this session")

    @staticmethod
    def _present(
        session: StudySession,
        questions: List[QuestionProjection]
    ) -> List[QuestionProjection]:
        if session.settings.showExplanations:
            return questions
        return [q.model_copy(update={"explanation": None}) for q in questions]

