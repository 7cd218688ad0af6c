"""
Session Models
Persistent Study and Test session records
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
import uuid


StudyStatus = Literal["active", "paused", "completed", "abandoned"]
TestStatus = Literal["active", "submitted", "expired", "abandoned"]
StudyMode = Literal["sequential", "random", "flagged", "incorrect", "weak_areas", "review"]

OPEN_STUDY_STATUSES = ("active", "paused")
OPEN_TEST_STATUSES = ("active",)
TERMINAL_STATUSES = ("completed", "submitted", "expired", "abandoned")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnswerRecord(BaseModel):
    """
    Last recorded answer for one question

    isCorrect is always computed server-side from the question key.
    selectedAnswers are indices in the order the options were displayed.
    """
    questionId: str = Field(..., description="Question ID reference")
    selectedAnswers: List[int] = Field(default_factory=list, description="Selected option indices")
    isCorrect: Optional[bool] = Field(
        default=None,
        description="Whether the answer was correct (hidden while a test is running)"
    )
    timeSpent: int = Field(default=0, ge=0, description="Seconds spent on the question")
    answeredAt: int = Field(..., description="Epoch seconds when answered")


class SessionRecord(BaseModel):
    """Fields shared by Study and Test sessions"""
    id: str
    userId: str = Field(..., description="Owning user (immutable)")
    examId: str = Field(..., description="Target exam (immutable)")
    status: str

    # Fixed at creation, defines the session's question sequence
    questionsOrder: List[str] = Field(..., description="Ordered question IDs")
    currentQuestionIndex: int = Field(default=0, ge=0)

    answers: Dict[str, AnswerRecord] = Field(default_factory=dict)
    flags: List[str] = Field(default_factory=list)

    startedAt: int = Field(..., description="Epoch seconds")
    lastActivityAt: int = Field(..., description="Epoch seconds")
    timeSpentSeconds: int = Field(default=0, ge=0)

    # Snapshot of exam name/code/vendor for history listings
    metadata: Dict[str, Any] = Field(default_factory=dict)

    # Incremented on every write (optimistic concurrency)
    version: int = Field(default=1, ge=1)

    createdAt: datetime = Field(default_factory=_utcnow)
    updatedAt: datetime = Field(default_factory=_utcnow)

    @property
    def totalQuestions(self) -> int:
        return len(self.questionsOrder)

    @property
    def is_open(self) -> bool:
        return self.status not in TERMINAL_STATUSES


class StudySettings(BaseModel):
    showExplanations: bool = True
    showTimer: bool = True
    autoAdvance: bool = False
    objectiveIds: List[str] = Field(default_factory=list)


class StudySession(SessionRecord):
    """Untimed practice session"""
    id: str = Field(
        default_factory=lambda: f"study_{uuid.uuid4().hex[:12]}",
        description="Unique session identifier"
    )
    status: StudyStatus = Field(default="active", description="Session status")
    studyMode: StudyMode = Field(default="sequential")
    bookmarks: List[str] = Field(default_factory=list)
    settings: StudySettings = Field(default_factory=StudySettings)
    completedAt: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "study_3f2a9c1d0b7e",
                "userId": "user_42",
                "examId": "exam_n10_008",
                "status": "active",
                "studyMode": "sequential",
                "questionsOrder": ["q_1", "q_2", "q_3"],
                "currentQuestionIndex": 1,
                "answers": {
                    "q_1": {
                        "questionId": "q_1",
                        "selectedAnswers": [1],
                        "isCorrect": True,
                        "timeSpent": 35,
                        "answeredAt": 1760000035
                    }
                },
                "bookmarks": ["q_2"],
                "flags": [],
                "startedAt": 1760000000,
                "lastActivityAt": 1760000035,
                "timeSpentSeconds": 35,
                "version": 3
            }
        }


class TestSession(SessionRecord):
    """Timed, graded assessment"""
    id: str = Field(
        default_factory=lambda: f"test_{uuid.uuid4().hex[:12]}",
        description="Unique session identifier"
    )
    status: TestStatus = Field(default="active", description="Session status")
    timeLimitSeconds: int = Field(..., gt=0)
    passingScore: int = Field(..., ge=0, le=100, description="Passing percentage snapshotted at creation")

    # Per question: original option index displayed at each position
    optionsOrder: Dict[str, List[int]] = Field(default_factory=dict)

    score: Optional[int] = Field(default=None, ge=0, le=100)
    correctCount: Optional[int] = None
    incorrectCount: Optional[int] = None
    unansweredCount: Optional[int] = None
    passed: Optional[bool] = None
    submittedAt: Optional[int] = None

    def time_remaining(self, now: int) -> int:
        """Seconds left on the timer, never negative"""
        return max(0, self.timeLimitSeconds - (now - self.startedAt))

    def is_timed_out(self, now: int) -> bool:
        return self.time_remaining(now) <= 0
