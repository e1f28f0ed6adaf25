from pymongo.errors import PyMongoError

from app.config import client, db, logger, settings
from app.core.store import MongoEntityStore


def check_connection() -> bool:
    try:
        client.admin.command("ping")
        logger.info("Connected to MongoDB successfully!")
        return True
    except PyMongoError as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        return False


store = MongoEntityStore(db, use_transactions=settings.MONGO_TRANSACTIONS)
