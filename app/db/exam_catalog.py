"""
Exam Catalog
Read access to exam metadata (duration, passing score, question count)
FILE: app/db/exam_catalog.py
"""
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.question import ExamProjection

logger = logging.getLogger(__name__)


class ExamCatalog:
    """Looks up exams by ID"""

    COLLECTION_NAME = "exams"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[self.COLLECTION_NAME]

    async def get_by_id(self, exam_id: str) -> Optional[ExamProjection]:
        doc = await self.collection.find_one({"id": exam_id})
        if not doc:
            logger.warning(f"⚠️ Exam not found: {exam_id}")
            return None
        doc.pop("_id", None)
        return ExamProjection(**doc)
