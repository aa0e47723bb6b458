import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from bizfinder.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

mongo_client: AsyncIOMotorClient | None = None
mongo_db: AsyncIOMotorDatabase | None = None


async def connect_to_mongo() -> AsyncIOMotorDatabase:
    """Open the shared Motor client used by every repository."""
    global mongo_client, mongo_db
    if mongo_db is not None:
        return mongo_db

    mongo_client = AsyncIOMotorClient(settings.mongodb_url, uuidRepresentation="standard")
    mongo_db = mongo_client[settings.mongodb_db_name]
    logger.info(f"Connected to MongoDB database '{settings.mongodb_db_name}'")
    return mongo_db


async def close_mongo_connection() -> None:
    global mongo_client, mongo_db
    if mongo_client:
        mongo_client.close()
        logger.info("MongoDB connection closed")
    mongo_client = None
    mongo_db = None


def get_database() -> AsyncIOMotorDatabase:
    if mongo_db is None:
        raise RuntimeError("Database not initialized. Call connect_to_mongo first.")
    return mongo_db
