"""
Question Store
Read-only access to exam questions and objectives
FILE: app/db/question_store.py
"""
import logging
import random
from typing import Any, Dict, Iterable, List, Literal, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from app.core.errors import InvalidInputError
from app.models.question import Objective, QuestionProjection

logger = logging.getLogger(__name__)


class QuestionStore:
    """
    Fetches question projections and validates answers

    Stored option/answer encodings are loosely typed (lists or stringified
    JSON). They are normalized here; rows that cannot be normalized are
    logged and left out rather than handed to the session services.
    """

    QUESTIONS = "questions"
    OBJECTIVES = "objectives"

    def __init__(self, db: AsyncIOMotorDatabase, rng: Optional[random.Random] = None):
        self.db = db
        self.collection = db[self.QUESTIONS]
        self.rng = rng or random.Random()

    def _to_projection(
        self,
        doc: Dict[str, Any],
        include_answers: bool
    ) -> Optional[QuestionProjection]:
        try:
            question = QuestionProjection(
                id=doc["id"],
                examId=doc["examId"],
                objectiveId=doc.get("objectiveId"),
                questionText=doc.get("questionText", ""),
                questionType=doc.get("questionType") or "multiple-choice",
                options=doc.get("options") or [],
                correctAnswers=doc.get("correctAnswer"),
                explanation=doc.get("explanation"),
            )
        except (KeyError, ValueError, ValidationError) as e:
            logger.warning(f"⚠️ Skipping malformed question {doc.get('id')}: {e}")
            return None

        if not include_answers:
            return question.without_answers()
        return question

    async def get_by_id(
        self,
        question_id: str,
        include_answers: bool = False
    ) -> Optional[QuestionProjection]:
        """Fetch a single question or None"""
        doc = await self.collection.find_one({"id": question_id})
        if not doc:
            return None
        return self._to_projection(doc, include_answers)

    async def get_by_ids(
        self,
        question_ids: List[str],
        include_answers: bool = False
    ) -> List[QuestionProjection]:
        """
        Fetch questions by ID, preserving the requested order

        Args:
            question_ids: IDs in the order the caller wants them back
            include_answers: Whether to keep correct answers and explanation

        Returns:
            Projections for every ID that exists and is well formed
        """
        if not question_ids:
            return []

        by_id: Dict[str, QuestionProjection] = {}
        cursor = self.collection.find({"id": {"$in": list(question_ids)}})
        async for doc in cursor:
            question = self._to_projection(doc, include_answers)
            if question:
                by_id[question.id] = question

        missing = [qid for qid in question_ids if qid not in by_id]
        if missing:
            logger.warning(f"⚠️ {len(missing)} question(s) could not be loaded: {missing[:5]}")

        return [by_id[qid] for qid in question_ids if qid in by_id]

    async def get_questions_for_session(
        self,
        exam_id: str,
        kind: Literal["study", "test"],
        max_questions: Optional[int] = None,
        objective_ids: Optional[Iterable[str]] = None,
        question_ids: Optional[Iterable[str]] = None,
        shuffle_questions: bool = True,
        shuffle_options: bool = False
    ) -> List[QuestionProjection]:
        """
        Candidate questions for a new session

        Only active questions of the exam are returned, in catalog order
        unless shuffled. Study sessions get answers and explanations; test
        sessions never do. Shuffled options carry their permutation in
        optionOrder so the caller can persist it.

        Args:
            exam_id: Exam to draw from
            kind: "study" or "test"
            max_questions: Truncate to this many questions
            objective_ids: Restrict to these objectives
            question_ids: Restrict to these question IDs
            shuffle_questions: Randomize question order
            shuffle_options: Randomize option order (test sessions only)
        """
        query: Dict[str, Any] = {"examId": exam_id, "isActive": True}
        if objective_ids:
            query["objectiveId"] = {"$in": list(objective_ids)}
        if question_ids is not None:
            query["id"] = {"$in": list(question_ids)}

        questions: List[QuestionProjection] = []
        cursor = self.collection.find(query).sort([("position", 1), ("id", 1)])
        async for doc in cursor:
            question = self._to_projection(doc, include_answers=(kind == "study"))
            if question:
                questions.append(question)

        logger.debug(f"📚 {len(questions)} candidate questions for exam {exam_id} ({kind})")

        if shuffle_questions:
            self.rng.shuffle(questions)

        if shuffle_options and kind == "test":
            questions = [self._shuffle_options(q) for q in questions]

        if max_questions and max_questions > 0:
            questions = questions[:max_questions]

        return questions

    def _shuffle_options(self, question: QuestionProjection) -> QuestionProjection:
        order = list(range(len(question.options)))
        self.rng.shuffle(order)
        return question.with_option_order(order)

    async def get_objective_titles(self, objective_ids: Iterable[str]) -> Dict[str, str]:
        """Map objective IDs to their titles"""
        ids = list(objective_ids)
        if not ids:
            return {}
        titles = {}
        cursor = self.db[self.OBJECTIVES].find({"id": {"$in": ids}})
        async for doc in cursor:
            doc.pop("_id", None)
            try:
                objective = Objective(**doc)
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping malformed objective {doc.get('id')}: {e}")
                continue
            titles[objective.id] = objective.title
        return titles

    @staticmethod
    def check_selection(question: QuestionProjection, selected_answers: Iterable[int]):
        """
        Reject selections that do not point at existing options

        Raises:
            InvalidInputError: Index out of range or selected twice
        """
        selected = list(selected_answers)
        if len(set(selected)) != len(selected):
            raise InvalidInputError(f"Duplicate answer index for question {question.id}")
        for index in selected:
            if index < 0 or index >= len(question.options):
                raise InvalidInputError(
                    f"Answer index {index} is out of range for question {question.id}"
                )

    @staticmethod
    def validate_answer(
        question: Optional[QuestionProjection],
        selected_answers: Iterable[int]
    ) -> bool:
        """
        Exact match of selected options against the answer key

        Order-independent, no partial credit. A question without an answer
        key can never be answered correctly.
        """
        if question is None or not question.correctAnswers:
            return False
        return sorted(selected_answers) == sorted(question.correctAnswers)
