from contextlib import asynccontextmanager

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING
from app.core.config import get_settings
from app.core.exceptions import UpstreamError
from pymongo.collation import Collation
import logging

logger = logging.getLogger(__name__)

# Emails match regardless of case; lookups and the unique index share this collation
EMAIL_COLLATION = Collation(locale="en", strength=2)

class MongoDB:
    client: AsyncIOMotorClient = None
    db = None

    async def connect_to_database(self):
        settings = get_settings()
        logger.info("Connecting to MongoDB...")
        try:
            self.client = AsyncIOMotorClient(settings.MONGO_URI, tz_aware=True)
            self.db = self.client[settings.MONGO_DB_NAME]
            logger.info("Connected to MongoDB.")
        except Exception as e:
            logger.error(f"Could not connect to MongoDB: {e}")
            raise e

    async def ensure_indexes(self):
        await self.db.users.create_index(
            [("email", ASCENDING)], name="email_ci", unique=True, collation=EMAIL_COLLATION
        )
        await self.db.users.create_index([("reset_token", ASCENDING)], unique=True, sparse=True)
        await self.db.documents.create_index([("user_id", ASCENDING)])
        await self.db.billing.create_index([("user_id", ASCENDING)])
        await self.db.billing.create_index([("payment_id", ASCENDING)])
        logger.info("MongoDB indexes ensured.")

    async def close_database_connection(self):
        logger.info("Closing MongoDB connection...")
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed.")

mongodb = MongoDB()

async def get_database():
    return mongodb.db


@asynccontextmanager
async def db_session():
    """
    Per-request client session.

    Opening failures surface as UpstreamError; failures while ending the
    session are logged and swallowed.
    """
    try:
        session = await mongodb.client.start_session()
    except Exception as e:
        logger.error(f"Could not open MongoDB session: {e}")
        raise UpstreamError()
    try:
        yield session
    finally:
        try:
            await session.end_session()
        except Exception as e:
            logger.warning(f"Error releasing MongoDB session: {e}")


async def get_db_session():
    async with db_session() as session:
        yield session
