"""
Study Session Request/Response Models
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from app.models.common import Pagination
from app.models.question import QuestionProjection
from app.models.sessions import StudyMode, StudySession


class StartStudySessionRequest(BaseModel):
    """Request model for starting (or resuming) a study session"""
    examId: str = Field(..., min_length=1, description="Exam ID")
    mode: StudyMode = Field(default="sequential", description="Question selection mode")
    maxQuestions: Optional[int] = Field(default=None, ge=1, le=500)
    objectiveIds: Optional[List[str]] = Field(default=None, description="Restrict to these objectives")
    showExplanations: bool = True
    showTimer: bool = True
    autoAdvance: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "examId": "exam_n10_008",
                "mode": "random",
                "maxQuestions": 20,
                "objectiveIds": ["obj_1_1"]
            }
        }


class StudyAnswerInput(BaseModel):
    questionId: str = Field(..., min_length=1)
    selectedAnswers: List[int] = Field(..., description="Selected option indices")
    # Echoed by older clients; never trusted
    isCorrect: Optional[bool] = None
    timeSpent: int = Field(default=0, ge=0)


class ToggleInput(BaseModel):
    questionId: str = Field(..., min_length=1)
    action: Literal["add", "remove"]


class UpdateStudySessionRequest(BaseModel):
    """Progress patch; at least one field must be present"""
    currentQuestionIndex: Optional[int] = Field(default=None, ge=0)
    answer: Optional[StudyAnswerInput] = None
    bookmark: Optional[ToggleInput] = None
    flag: Optional[ToggleInput] = None
    timeSpentSeconds: Optional[int] = Field(default=None, ge=0, description="Elapsed seconds to add")
    expectedVersion: Optional[int] = Field(default=None, ge=1, description="Reject if the record moved on")

    @model_validator(mode="after")
    def require_an_update(self):
        if (
            self.currentQuestionIndex is None
            and self.answer is None
            and self.bookmark is None
            and self.flag is None
            and self.timeSpentSeconds is None
        ):
            raise ValueError("No updates provided")
        return self


class EndStudySessionRequest(BaseModel):
    action: Literal["complete", "abandon"]


class StudySessionStart(BaseModel):
    session: StudySession
    questions: List[QuestionProjection]
    isResuming: bool


class StudySessionStatistics(BaseModel):
    totalQuestions: int
    questionsAnswered: int
    correctAnswers: int
    incorrectAnswers: int
    skippedAnswers: int
    accuracy: int
    timeSpentSeconds: int
    bookmarkedCount: int
    flaggedCount: int


class StudySessionEnd(BaseModel):
    session: StudySession
    statistics: StudySessionStatistics


class WeakArea(BaseModel):
    objectiveId: str
    objectiveTitle: Optional[str] = None
    examId: str
    totalQuestions: int = Field(..., description="Distinct questions answered in this objective")
    incorrectAnswers: int
    accuracy: int
    lastAttempt: int


class StudyHistory(BaseModel):
    sessions: List[StudySession]
    pagination: Pagination


class RecentStudySession(BaseModel):
    id: str
    examId: str
    mode: StudyMode
    status: str
    startedAt: int
    totalQuestions: int
    questionsAnswered: int
    correctAnswers: int
    accuracy: int
    timeSpentSeconds: int


class PerformancePoint(BaseModel):
    date: str = Field(..., description="UTC day the session started (YYYY-MM-DD)")
    sessionId: str
    accuracy: int
    questionsAnswered: int


class StudyAnalytics(BaseModel):
    """Progress aggregated over the caller's study sessions"""
    totalSessions: int = 0
    totalTimeSpent: int = 0
    totalQuestionsAnswered: int = 0
    totalCorrect: int = 0
    overallAccuracy: int = 0
    sessionsByMode: Dict[str, int] = Field(default_factory=dict)
    recentSessions: List[RecentStudySession] = Field(default_factory=list)
    performanceTrend: List[PerformancePoint] = Field(default_factory=list)
    averageSessionTime: int = 0
    averageQuestionsPerSession: int = 0
