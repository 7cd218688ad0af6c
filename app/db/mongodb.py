from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

class MongoDB:
    client: AsyncIOMotorClient = None

mongodb = MongoDB()

async def connect_to_mongo():
    """Connect to MongoDB and test the connection"""
    try:
        mongodb.client = AsyncIOMotorClient(settings.mongodb_url)
        # Test connection
        await mongodb.client.admin.command('ping')
        logger.info(f"✓ Connected to MongoDB at {settings.mongodb_url}")
    except Exception as e:
        logger.error(f"✗ Failed to connect to MongoDB: {e}")
        raise

async def close_mongo_connection():
    """Close MongoDB connection"""
    if mongodb.client:
        mongodb.client.close()
        logger.info("✓ Closed MongoDB connection")

async def ping_database() -> bool:
    """Return True if MongoDB answers a ping"""
    if not mongodb.client:
        return False
    await mongodb.client.admin.command('ping')
    return True

async def ensure_indexes(db: AsyncIOMotorDatabase):
    """
    Create the indexes the session engine relies on

    openSlot is only present while a session is open, so the unique sparse
    index allows a single open session per (user, exam) and kind.
    """
    for name in ("study_sessions", "test_sessions"):
        collection = db[name]
        await collection.create_index("id", unique=True)
        await collection.create_index("openSlot", unique=True, sparse=True)
        await collection.create_index(
            [("userId", ASCENDING), ("examId", ASCENDING), ("startedAt", DESCENDING)]
        )

    await db["questions"].create_index("id", unique=True)
    await db["questions"].create_index([("examId", ASCENDING), ("isActive", ASCENDING)])
    await db["exams"].create_index("id", unique=True)
    await db["objectives"].create_index("id", unique=True)
    logger.info("✓ MongoDB indexes ensured")

def get_database():
    """Get the database instance"""
    return mongodb.client[settings.database_name]
