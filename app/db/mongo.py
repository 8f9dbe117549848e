from motor.motor_asyncio import AsyncIOMotorClient
from app.core.config import settings
from app.core.constants import PROFILES
import logging

logger = logging.getLogger(__name__)

USER_PROFILES_VIEW = "user_profiles_view"

# Identity and profile fields exposed to readers of `user_profiles`.
USER_PROFILES_PIPELINE = [
    {
        "$project": {
            "_id": 0,
            "id": 1,
            "email": 1,
            "role": {"$ifNull": ["$role", "user"]},
            "first_name": 1,
            "last_name": 1,
            "avatar_url": 1,
            "full_name": {
                "$trim": {
                    "input": {
                        "$concat": [
                            {"$ifNull": ["$first_name", ""]},
                            " ",
                            {"$ifNull": ["$last_name", ""]},
                        ]
                    }
                }
            },
            "created_at": 1,
            "updated_at": 1,
        }
    }
]


class MongoDB:
    client: AsyncIOMotorClient = None
    db = None

    def __init__(self, uri: str = None, db_name: str = None):
        self.uri = uri or settings.MONGO_URI
        self.db_name = db_name or settings.MONGO_DB_NAME

    async def connect_to_database(self):
        logger.info("Connecting to MongoDB...")
        try:
            self.client = AsyncIOMotorClient(self.uri)
            self.db = self.client[self.db_name]
            await self.ensure_views()
            logger.info("Connected to MongoDB.")
        except Exception as e:
            logger.error(f"Could not connect to MongoDB: {e}")
            raise e

    async def ensure_views(self):
        """Create the denormalized `user_profiles` view if it is missing."""
        existing = await self.db.list_collection_names()
        if USER_PROFILES_VIEW in existing:
            return
        await self.db.create_collection(
            USER_PROFILES_VIEW,
            viewOn=PROFILES,
            pipeline=USER_PROFILES_PIPELINE,
        )
        logger.info(f"Created view {USER_PROFILES_VIEW} on {PROFILES}")

    async def close_database_connection(self):
        logger.info("Closing MongoDB connection...")
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed.")
