"""
Question and Exam Models
Projections returned by the Question Store and the Exam Catalog
"""
import json
import re
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


CODE_BLOCK_PATTERN = re.compile(r"```([\s\S]*?)```")


def _decode_json_blob(value: Any) -> Any:
    """Stored options/answers may be stringified JSON; decode them"""
    if isinstance(value, str):
        return json.loads(value)
    return value


class QuestionProjection(BaseModel):
    """
    A question as returned to callers

    correctAnswers and explanation are only populated when the caller asked
    for answers (study mode, scoring, results). NEVER for an active test.
    """
    id: str = Field(..., description="Unique question identifier")
    examId: str = Field(..., description="Owning exam")
    objectiveId: Optional[str] = Field(default=None, description="Objective this question covers")
    questionText: str = Field(..., description="Question text")
    questionType: str = Field(default="multiple-choice", description="multiple-choice or multiple-select")
    options: List[str] = Field(..., description="Ordered answer options")
    correctAnswers: Optional[List[int]] = Field(
        default=None,
        description="Zero-based indices into options - PRIVATE"
    )
    explanation: Optional[str] = Field(default=None, description="Answer explanation - PRIVATE")
    codeBlock: Optional[str] = Field(default=None, description="Code snippet extracted from the text")
    # Set when options were shuffled; never serialized to clients
    optionOrder: Optional[List[int]] = Field(default=None, exclude=True)

    @field_validator("id")
    @classmethod
    def check_id_is_map_key(cls, v):
        # Answers are stored in a map keyed by question ID
        if not v or "." in v or v.startswith("$"):
            raise ValueError(f"question id {v!r} cannot be used as an answer key")
        return v

    @field_validator("options", mode="before")
    @classmethod
    def decode_options(cls, v):
        v = _decode_json_blob(v)
        if not isinstance(v, list) or not all(isinstance(o, str) for o in v):
            raise ValueError("options must be a list of strings")
        return v

    @field_validator("correctAnswers", mode="before")
    @classmethod
    def decode_correct_answers(cls, v):
        if v is None:
            return v
        v = _decode_json_blob(v)
        if isinstance(v, bool):
            raise ValueError("correctAnswers must be option indices")
        if isinstance(v, int):
            v = [v]
        if not isinstance(v, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in v
        ):
            raise ValueError("correctAnswers must be a list of option indices")
        return sorted(set(v))

    @model_validator(mode="after")
    def check_answer_indices(self):
        if self.correctAnswers is not None:
            for index in self.correctAnswers:
                if index < 0 or index >= len(self.options):
                    raise ValueError(
                        f"correct answer index {index} is out of range for "
                        f"{len(self.options)} options"
                    )
        if self.codeBlock is None:
            match = CODE_BLOCK_PATTERN.search(self.questionText)
            if match:
                self.codeBlock = match.group(1).strip()
        return self

    def without_answers(self) -> "QuestionProjection":
        """Return a copy that is safe to show during an active test"""
        return self.model_copy(update={"correctAnswers": None, "explanation": None})

    def with_option_order(self, order: List[int]) -> "QuestionProjection":
        """
        Return a copy with options permuted

        order[j] is the original index of the option displayed at position j.
        Correct answers are remapped to displayed positions.
        """
        options = [self.options[i] for i in order]
        correct = None
        if self.correctAnswers is not None:
            wanted = set(self.correctAnswers)
            correct = [j for j, original in enumerate(order) if original in wanted]
        return self.model_copy(
            update={"options": options, "correctAnswers": correct, "optionOrder": list(order)}
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "q_12345",
                "examId": "exam_n10_008",
                "objectiveId": "obj_1_1",
                "questionText": "Which port does HTTPS use by default?",
                "questionType": "multiple-choice",
                "options": ["80", "443", "22", "25"],
                "correctAnswers": [1],
                "explanation": "HTTPS listens on TCP 443."
            }
        }


class ExamProjection(BaseModel):
    """Exam metadata that drives session policy"""
    id: str = Field(..., description="Exam identifier")
    code: Optional[str] = Field(default=None, description="Vendor exam code, e.g. N10-008")
    name: Optional[str] = Field(default=None, description="Exam name")
    vendor: Optional[str] = Field(default=None, description="Vendor name")
    duration: Optional[int] = Field(default=None, description="Exam duration in minutes")
    totalQuestions: Optional[int] = Field(default=None, description="Questions on the real exam")
    passingScore: Optional[int] = Field(default=None, description="Passing percentage")
    isActive: bool = Field(default=True, description="Whether the exam is published")

    @field_validator("vendor", mode="before")
    @classmethod
    def flatten_vendor(cls, v):
        if isinstance(v, dict):
            return v.get("name")
        return v


class Objective(BaseModel):
    """Weighted topic area within an exam"""
    id: str
    examId: str
    title: str
    weight: Optional[float] = None
