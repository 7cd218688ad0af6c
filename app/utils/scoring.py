"""
Scoring helpers
Pure functions shared by the study and test session services
"""
from typing import Dict, List, Optional

from app.db.question_store import QuestionStore
from app.models.question import QuestionProjection
from app.models.sessions import AnswerRecord, TestSession


def percentage(part: int, whole: int) -> int:
    """
    Integer percentage rounded half-up

    Computed in integers so 0.5 always rounds up (Python's round() would
    round half to even).
    """
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def rounded_mean(total: int, count: int) -> int:
    """Integer mean rounded half-up"""
    if count <= 0:
        return 0
    return (2 * total + count) // (2 * count)


def displayed_question(
    session: TestSession,
    question: QuestionProjection
) -> QuestionProjection:
    """Apply the session's recorded option permutation, if any"""
    order = session.optionsOrder.get(question.id)
    if order and len(order) == len(question.options):
        return question.with_option_order(order)
    return question


def score_test_session(
    session: TestSession,
    questions: List[QuestionProjection]
) -> Dict[str, int]:
    """
    Tally a test session against the answer key

    Every question in questionsOrder counts toward the total. Answered
    questions are correct or incorrect; the rest are unanswered.

    Args:
        session: The test session being scored
        questions: Questions with correct answers (canonical option order)

    Returns:
        Dictionary with score, correctCount, incorrectCount, unansweredCount
        and totalQuestions
    """
    by_id = {q.id: displayed_question(session, q) for q in questions}

    correct = 0
    incorrect = 0
    unanswered = 0
    for question_id in session.questionsOrder:
        answer: Optional[AnswerRecord] = session.answers.get(question_id)
        if answer is None:
            unanswered += 1
        elif QuestionStore.validate_answer(by_id.get(question_id), answer.selectedAnswers):
            correct += 1
        else:
            incorrect += 1

    total = session.totalQuestions
    return {
        "score": percentage(correct, total),
        "correctCount": correct,
        "incorrectCount": incorrect,
        "unansweredCount": unanswered,
        "totalQuestions": total
    }
