# facility_docs/database/mongo.py
import logging

from motor.motor_asyncio import AsyncIOMotorClient

from facility_docs.config import settings

logger = logging.getLogger(__name__)

client: AsyncIOMotorClient = None
db = None


async def connect_to_mongo():
    global client, db
    client = AsyncIOMotorClient(settings.mongo_uri)
    db = client[settings.mongo_db_name]
    logger.info("Connected to MongoDB database '%s'", settings.mongo_db_name)


async def close_mongo_connection():
    global client, db
    if client:
        client.close()
        logger.info("MongoDB connection closed")
    client = None
    db = None
